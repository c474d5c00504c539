from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization."""

    STUDENT = "student"
    HOUSEMASTER = "housemaster"
    HEADMASTER = "headmaster"


class RequestStatus(str, Enum):
    """Exeat request approval states stored in the database."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditAction(str, Enum):
    USER_LOGIN = "USER_LOGIN"
    USER_STATUS_CHANGED = "USER_STATUS_CHANGED"

    REQUEST_CREATED = "REQUEST_CREATED"
    REQUEST_DENIED_LIMIT = "REQUEST_DENIED_LIMIT"
    REQUEST_EDITED = "REQUEST_EDITED"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_BATCH_APPROVED = "REQUEST_BATCH_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    REQUEST_NOTE_ADDED = "REQUEST_NOTE_ADDED"

    STUDENT_ADDED = "STUDENT_ADDED"
    STUDENT_UPDATED = "STUDENT_UPDATED"
    STUDENT_REMOVED = "STUDENT_REMOVED"
    STUDENT_REACTIVATED = "STUDENT_REACTIVATED"
    PASSWORD_RESET = "PASSWORD_RESET"

    SETTING_UPDATED = "SETTING_UPDATED"

    TWO_FACTOR_SETUP = "2FA_SETUP"
    TWO_FACTOR_ENABLED = "2FA_ENABLED"
    TWO_FACTOR_DISABLED = "2FA_DISABLED"
