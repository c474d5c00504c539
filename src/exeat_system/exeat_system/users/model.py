from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Plain data object (no DB access code). Students carry a house and a school
    student id; staff carry an optional staff id.
    """

    id: int
    email: str
    password_hash: str
    role: Role
    first_name: str
    last_name: str
    house_id: Optional[int] = None
    house_name: Optional[str] = None
    student_id: Optional[str] = None
    staff_id: Optional[str] = None
    phone: Optional[str] = None
    class_name: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    is_active: bool = True
    two_factor_secret: Optional[str] = None
    two_factor_enabled: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def public_dict(self) -> dict:
        """User record safe to return to clients (no credentials)."""
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "house_id": self.house_id,
            "house_name": self.house_name,
            "student_id": self.student_id,
            "staff_id": self.staff_id,
            "phone": self.phone,
            "class_name": self.class_name,
            "guardian_name": self.guardian_name,
            "guardian_phone": self.guardian_phone,
            "is_active": self.is_active,
            "two_factor_enabled": self.two_factor_enabled,
            "last_login": self.last_login,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class StudentData:
    """Input for creating/updating a student record."""

    student_id: str
    first_name: str
    last_name: str
    email: str
    house_id: int
    phone: Optional[str] = None
    class_name: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
