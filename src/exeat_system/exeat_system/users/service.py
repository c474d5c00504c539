from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence

from ..audit.service import AuditService
from ..common.datetime_utils import now_local
from ..common.validators import optional_str, parse_int, require_min_length, require_non_empty
from ..core.constants import MIN_PASSWORD_LENGTH
from ..core.enums import AuditAction, Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..core.permissions import HEADMASTER_ONLY, STAFF_ROLES, authorize, ensure_house_scope
from .house_repository import HouseRepository
from .model import StudentData, User
from .passwords import hash_password, verify_password
from .repository import UserRepository
from .tokens import TokenService
from .two_factor import verify_totp


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str


class AuthService:
    """Use case: authenticate users (login) and resolve session tokens."""

    def __init__(
        self,
        users: UserRepository,
        tokens: TokenService,
        audit: AuditService,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._users = users
        self._tokens = tokens
        self._audit = audit
        self._clock = clock

    def login(
        self,
        email: str,
        password: str,
        otp: Optional[str] = None,
        *,
        origin: Optional[str] = None,
    ) -> LoginResult:
        email = (email or "").strip().lower()
        if not email or not password:
            raise AuthenticationError("Invalid email or password")

        user = self._users.get_by_email(email)
        if not user or not user.is_active:
            raise AuthenticationError("Invalid email or password")
        if not verify_password(user.password_hash, password):
            raise AuthenticationError("Invalid email or password")

        if user.two_factor_enabled:
            if not (otp or "").strip():
                raise AuthenticationError("Two-factor code required")
            if not verify_totp(user.two_factor_secret, otp):
                raise AuthenticationError("Invalid two-factor code")

        now = self._clock()
        self._users.touch_last_login(user.id, now)
        self._audit.log(user.id, AuditAction.USER_LOGIN, f"Signed in: {user.email}", origin)

        return LoginResult(user=replace(user, last_login=now), token=self._tokens.issue(user))

    def authenticate(self, token: Optional[str]) -> User:
        payload = self._tokens.decode(token)
        user = self._users.get_by_id(int(payload["id"]))
        if not user or not user.is_active:
            raise AuthenticationError("Invalid token")
        return user


def _student_data(payload: Mapping[str, Any], *, fallback: Optional[User] = None) -> StudentData:
    def _field(name: str, *aliases: str):
        for key in (name, *aliases):
            if key in payload:
                return payload[key]
        return getattr(fallback, name, None) if fallback is not None else None

    house_raw = _field("house_id")
    if house_raw in (None, ""):
        raise ValidationError("Please provide all required fields")

    return StudentData(
        student_id=require_non_empty(_field("student_id"), "Student ID"),
        first_name=require_non_empty(_field("first_name"), "First name"),
        last_name=require_non_empty(_field("last_name"), "Last name"),
        email=require_non_empty(_field("email"), "Email").lower(),
        house_id=parse_int(house_raw, "house_id"),
        phone=optional_str(_field("phone")),
        class_name=optional_str(_field("class_name", "class")),
        guardian_name=optional_str(_field("guardian_name")),
        guardian_phone=optional_str(_field("guardian_phone")),
    )


class StudentService:
    """Use case: manage student records (housemasters for their house, headmaster for all)."""

    def __init__(self, users: UserRepository, houses: HouseRepository, audit: AuditService):
        self._users = users
        self._houses = houses
        self._audit = audit

    def _get_student(self, student_id: int) -> User:
        user = self._users.get_by_id(int(student_id))
        if not user or user.role != Role.STUDENT:
            raise NotFoundError("Student not found")
        return user

    def _ensure_house_exists(self, house_id: int) -> None:
        if not self._houses.get_by_id(house_id):
            raise ValidationError("House does not exist")

    def list_students(self, caller) -> Sequence[User]:
        authorize(caller, STAFF_ROLES)
        if caller.role == Role.HOUSEMASTER:
            if caller.house_id is None:
                return []
            return self._users.list_students(house_id=caller.house_id)
        return self._users.list_students()

    def add_student(self, caller, payload: Mapping[str, Any], *, origin: Optional[str] = None) -> User:
        authorize(caller, STAFF_ROLES)

        data = _student_data(payload)
        password = payload.get("password")
        if not password:
            raise ValidationError("Please provide all required fields")
        require_min_length(password, "Password", MIN_PASSWORD_LENGTH)

        ensure_house_scope(caller, data.house_id, "You can only add students to your own house")
        self._ensure_house_exists(data.house_id)

        if self._users.find_conflict(student_id=data.student_id, email=data.email):
            raise ConflictError("Student ID or email already exists")

        user_id = self._users.create_user(
            role=Role.STUDENT,
            email=data.email,
            password_hash=hash_password(password),
            first_name=data.first_name,
            last_name=data.last_name,
            house_id=data.house_id,
            student_id=data.student_id,
            phone=data.phone,
            class_name=data.class_name,
            guardian_name=data.guardian_name,
            guardian_phone=data.guardian_phone,
        )
        self._audit.log(
            caller.id,
            AuditAction.STUDENT_ADDED,
            f"Added student: {data.first_name} {data.last_name} ({data.student_id})",
            origin,
        )
        return self._get_student(user_id)

    def update_student(
        self,
        caller,
        student_id: int,
        payload: Mapping[str, Any],
        *,
        origin: Optional[str] = None,
    ) -> User:
        authorize(caller, STAFF_ROLES)
        student = self._get_student(student_id)
        ensure_house_scope(caller, student.house_id, "You can only update students in your house")

        data = _student_data(payload, fallback=student)
        if caller.role == Role.HOUSEMASTER and data.house_id != caller.house_id:
            raise AuthorizationError("You cannot transfer students to other houses")
        if data.house_id != student.house_id:
            self._ensure_house_exists(data.house_id)

        if self._users.find_conflict(student_id=data.student_id, email=data.email, exclude_user_id=student.id):
            raise ConflictError("Student ID or email already exists")

        if not self._users.update_student(student.id, data):
            raise NotFoundError("Student not found")

        self._audit.log(
            caller.id,
            AuditAction.STUDENT_UPDATED,
            f"Updated student: {data.first_name} {data.last_name} ({data.student_id})",
            origin,
        )
        return self._get_student(student.id)

    def remove_student(self, caller, student_id: int, *, origin: Optional[str] = None) -> None:
        authorize(caller, STAFF_ROLES)
        student = self._get_student(student_id)
        ensure_house_scope(caller, student.house_id, "You can only remove students from your house")

        self._users.set_active(student.id, is_active=False)
        self._audit.log(
            caller.id,
            AuditAction.STUDENT_REMOVED,
            f"Removed student: {student.full_name} ({student.student_id})",
            origin,
        )

    def reactivate_student(self, caller, student_id: int, *, origin: Optional[str] = None) -> User:
        authorize(caller, HEADMASTER_ONLY)
        student = self._get_student(student_id)

        self._users.set_active(student.id, is_active=True)
        self._audit.log(
            caller.id,
            AuditAction.STUDENT_REACTIVATED,
            f"Reactivated student: {student.full_name}",
            origin,
        )
        return self._get_student(student.id)

    def reset_password(self, caller, student_id: int, new_password: Optional[str], *, origin: Optional[str] = None) -> None:
        authorize(caller, STAFF_ROLES)
        if not new_password:
            raise ValidationError("New password is required")
        require_min_length(new_password, "New password", MIN_PASSWORD_LENGTH)

        student = self._get_student(student_id)
        ensure_house_scope(caller, student.house_id, "You can only reset passwords for students in your house")

        self._users.set_password_hash(student.id, hash_password(new_password))
        self._audit.log(
            caller.id,
            AuditAction.PASSWORD_RESET,
            f"Reset password for student: {student.full_name}",
            origin,
        )


class UserAdminService:
    """Use case: headmaster's view over every account."""

    def __init__(self, users: UserRepository, audit: AuditService):
        self._users = users
        self._audit = audit

    def list_users(
        self,
        caller,
        *,
        role: Optional[str] = None,
        house_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Sequence[User]:
        authorize(caller, HEADMASTER_ONLY)

        role_v: Optional[Role] = None
        if role:
            try:
                role_v = Role(role.strip().lower())
            except ValueError:
                raise ValidationError(f"Unknown role: {role}")

        return self._users.list_users(role=role_v, house_id=house_id, search=optional_str(search))

    def toggle_active(self, caller, user_id: int, *, origin: Optional[str] = None) -> User:
        authorize(caller, HEADMASTER_ONLY)
        if int(user_id) == caller.id:
            raise ValidationError("You cannot deactivate your own account")

        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")

        self._users.set_active(user.id, is_active=not user.is_active)
        state = "deactivated" if user.is_active else "activated"
        self._audit.log(
            caller.id,
            AuditAction.USER_STATUS_CHANGED,
            f"Changed active status for user ID: {user.id} ({state})",
            origin,
        )
        return self._users.get_by_id(user.id)
