from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from ..core.enums import RequestStatus


@dataclass(frozen=True)
class ExeatDetails:
    """Trip details a student submits (and may edit while pending)."""

    departure_date: date
    departure_time: time
    duration: str
    destination: str
    reason: str
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None


@dataclass(frozen=True)
class ExeatRequest:
    id: int
    student_id: int
    house_id: int
    departure_date: date
    departure_time: time
    duration: str
    destination: str
    reason: str
    status: RequestStatus
    semester: str
    academic_year: str
    expires_at: datetime
    created_at: datetime
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    is_expired: bool = False
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    edited_at: Optional[datetime] = None

    # Display fields joined from users/houses.
    student_name: Optional[str] = None
    student_code: Optional[str] = None
    class_name: Optional[str] = None
    house_name: Optional[str] = None
    approved_by_name: Optional[str] = None
    rejected_by_name: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None


@dataclass(frozen=True)
class RequestNote:
    id: int
    request_id: int
    author_id: int
    note: str
    created_at: datetime
    author_name: Optional[str] = None


@dataclass(frozen=True)
class RequestStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    expired: int = 0


@dataclass(frozen=True)
class HouseStats:
    house_id: int
    house_name: str
    total_requests: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    expired: int = 0
