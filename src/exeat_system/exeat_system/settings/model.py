from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

from ..common.validators import parse_bool, parse_int
from ..core import constants
from ..core.exceptions import ValidationError

MAX_REQUESTS_PER_SEMESTER = "max_requests_per_semester"
REQUEST_EXPIRY_HOURS = "request_expiry_hours"
CURRENT_SEMESTER = "current_semester"
CURRENT_ACADEMIC_YEAR = "current_academic_year"
ALLOW_REQUEST_EDITING = "allow_request_editing"
ALLOW_REQUEST_CANCELLATION = "allow_request_cancellation"

INT_KEYS = frozenset({MAX_REQUESTS_PER_SEMESTER, REQUEST_EXPIRY_HOURS})
BOOL_KEYS = frozenset({ALLOW_REQUEST_EDITING, ALLOW_REQUEST_CANCELLATION})


@dataclass(frozen=True)
class SystemSetting:
    key: str
    value: str
    description: Optional[str] = None
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class SystemSettings:
    """Typed view over the key-value settings table, read by the request lifecycle."""

    max_requests_per_semester: int = constants.DEFAULT_MAX_REQUESTS_PER_SEMESTER
    request_expiry_hours: int = constants.DEFAULT_REQUEST_EXPIRY_HOURS
    current_semester: str = constants.DEFAULT_CURRENT_SEMESTER
    current_academic_year: str = constants.DEFAULT_ACADEMIC_YEAR
    allow_request_editing: bool = True
    allow_request_cancellation: bool = True

    @classmethod
    def from_map(cls, values: Mapping[str, str]) -> "SystemSettings":
        """Build from stored strings; missing or unparseable entries fall back to defaults."""
        defaults = cls()

        def _get(key: str, default: str) -> str:
            if key not in values:
                return default
            try:
                return normalize_value(key, values[key])
            except ValidationError:
                return default

        return cls(
            max_requests_per_semester=int(_get(MAX_REQUESTS_PER_SEMESTER, str(defaults.max_requests_per_semester))),
            request_expiry_hours=int(_get(REQUEST_EXPIRY_HOURS, str(defaults.request_expiry_hours))),
            current_semester=_get(CURRENT_SEMESTER, defaults.current_semester) or defaults.current_semester,
            current_academic_year=_get(CURRENT_ACADEMIC_YEAR, defaults.current_academic_year)
            or defaults.current_academic_year,
            allow_request_editing=_get(ALLOW_REQUEST_EDITING, "true") == "true",
            allow_request_cancellation=_get(ALLOW_REQUEST_CANCELLATION, "true") == "true",
        )


def normalize_value(key: str, value) -> str:
    """Validate a known key's value and return its canonical string form."""
    if key in INT_KEYS:
        n = parse_int(value, key)
        if n < 1:
            raise ValidationError(f"{key} must be at least 1")
        return str(n)
    if key in BOOL_KEYS:
        return "true" if parse_bool(value, key) else "false"
    if value is None:
        raise ValidationError(f"{key} requires a value")
    return str(value).strip()
