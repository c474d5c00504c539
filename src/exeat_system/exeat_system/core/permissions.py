"""Role gates and house scoping shared by the services."""
from __future__ import annotations

from typing import AbstractSet, Optional

from .enums import Role
from .exceptions import AuthorizationError

STAFF_ROLES = frozenset({Role.HOUSEMASTER, Role.HEADMASTER})
HEADMASTER_ONLY = frozenset({Role.HEADMASTER})
STUDENT_ONLY = frozenset({Role.STUDENT})
ALL_ROLES = frozenset(Role)


def authorize(user, allowed: AbstractSet[Role]) -> None:
    if user.role not in allowed:
        raise AuthorizationError("Access denied. Insufficient permissions.")


def in_scope_house(user, house_id: Optional[int]) -> bool:
    """True if `user` may act on data belonging to `house_id`."""
    if user.role == Role.HEADMASTER:
        return True
    if user.role == Role.HOUSEMASTER:
        return user.house_id is not None and house_id == user.house_id
    return False


def ensure_house_scope(user, house_id: Optional[int], message: str) -> None:
    if not in_scope_house(user, house_id):
        raise AuthorizationError(message)


def can_view_request(user, request) -> bool:
    if user.role == Role.STUDENT:
        return request.student_id == user.id
    return in_scope_house(user, request.house_id)
