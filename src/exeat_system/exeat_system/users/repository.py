from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import StudentData, User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def find_conflict(self, *, student_id: str, email: str, exclude_user_id: Optional[int] = None) -> Optional[User]:
        """Any user (other than `exclude_user_id`) holding this student id or email."""

        raise NotImplementedError

    def create_user(
        self,
        *,
        role: Role,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        house_id: Optional[int] = None,
        student_id: Optional[str] = None,
        staff_id: Optional[str] = None,
        phone: Optional[str] = None,
        class_name: Optional[str] = None,
        guardian_name: Optional[str] = None,
        guardian_phone: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def update_student(self, user_id: int, data: StudentData) -> bool:
        raise NotImplementedError

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        raise NotImplementedError

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        raise NotImplementedError

    def set_two_factor(self, user_id: int, *, secret: Optional[str], enabled: bool) -> bool:
        raise NotImplementedError

    def touch_last_login(self, user_id: int, at: datetime) -> None:
        raise NotImplementedError

    def list_students(self, *, house_id: Optional[int] = None) -> Sequence[User]:
        raise NotImplementedError

    def list_users(
        self,
        *,
        role: Optional[Role] = None,
        house_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Sequence[User]:
        raise NotImplementedError
