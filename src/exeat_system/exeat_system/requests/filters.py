"""Structured request filters.

`RequestScope` is the role-based base filter (own requests / own house /
everything); `RequestFilter` holds the optional, named filter fields a caller
may add. Both render to a parameterised WHERE clause and can also be
evaluated in memory against an `ExeatRequest`.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, List, Mapping, Optional, Tuple

from ..common.validators import parse_date, parse_int
from ..core.enums import RequestStatus, Role
from ..core.exceptions import ValidationError
from ..database.mysql_base import like_contains
from .model import ExeatRequest


@dataclass(frozen=True)
class RequestScope:
    student_id: Optional[int] = None
    house_id: Optional[int] = None
    deny_all: bool = False

    @classmethod
    def for_user(cls, user) -> "RequestScope":
        if user.role == Role.STUDENT:
            return cls(student_id=user.id)
        if user.role == Role.HOUSEMASTER:
            # a housemaster without a house sees nothing
            if user.house_id is None:
                return cls(deny_all=True)
            return cls(house_id=user.house_id)
        return cls()

    def clauses(self) -> Tuple[List[str], List[Any]]:
        if self.deny_all:
            return ["1=0"], []
        out: List[str] = []
        params: List[Any] = []
        if self.student_id is not None:
            out.append("r.student_id=%s")
            params.append(int(self.student_id))
        if self.house_id is not None:
            out.append("r.house_id=%s")
            params.append(int(self.house_id))
        return out, params

    def allows(self, req: ExeatRequest) -> bool:
        if self.deny_all:
            return False
        if self.student_id is not None and req.student_id != self.student_id:
            return False
        if self.house_id is not None and req.house_id != self.house_id:
            return False
        return True


_PREDICATES = {
    "status": "r.status=%s",
    "house_id": "r.house_id=%s",
    "student_id": "r.student_id=%s",
    "semester": "r.semester=%s",
    "academic_year": "r.academic_year=%s",
    "departure_date": "r.departure_date=%s",
}

_SEARCH_SQL = "(CONCAT(s.first_name, ' ', s.last_name) LIKE %s ESCAPE '!' OR s.student_id LIKE %s ESCAPE '!')"


@dataclass(frozen=True)
class RequestFilter:
    status: Optional[RequestStatus] = None
    house_id: Optional[int] = None
    student_id: Optional[int] = None
    semester: Optional[str] = None
    academic_year: Optional[str] = None
    departure_date: Optional[date] = None
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "RequestFilter":
        """Build from query-string arguments; blank or `all` values are ignored."""

        def _arg(name: str) -> Optional[str]:
            v = args.get(name)
            if v is None:
                return None
            v = str(v).strip()
            return None if v == "" or v.lower() == "all" else v

        status = _arg("status")
        if status is not None:
            try:
                status_v: Optional[RequestStatus] = RequestStatus(status.lower())
            except ValueError:
                raise ValidationError(f"Unknown status: {status}")
        else:
            status_v = None

        house_id = _arg("house_id")
        student_id = _arg("student_id")
        departure_date = _arg("departure_date")

        return cls(
            status=status_v,
            house_id=parse_int(house_id, "house_id") if house_id is not None else None,
            student_id=parse_int(student_id, "student_id") if student_id is not None else None,
            semester=_arg("semester"),
            academic_year=_arg("academic_year"),
            departure_date=parse_date(departure_date, "departure_date") if departure_date is not None else None,
            search=_arg("search"),
        )

    def to_sql(self, scope: RequestScope) -> Tuple[str, List[Any]]:
        """WHERE clause (without the keyword) plus its parameters."""
        clauses, params = scope.clauses()

        for f in fields(self):
            if f.name == "search":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            clauses.append(_PREDICATES[f.name])
            params.append(value.value if isinstance(value, RequestStatus) else value)

        if self.search:
            like = like_contains(self.search)
            clauses.append(_SEARCH_SQL)
            params.extend([like, like])

        return (" AND ".join(clauses) if clauses else "1=1"), params

    def matches(self, req: ExeatRequest) -> bool:
        # search is a literal substring here, as `like_contains` makes it in SQL
        for f in fields(self):
            if f.name == "search":
                continue
            value = getattr(self, f.name)
            if value is not None and getattr(req, f.name) != value:
                return False
        if self.search:
            needle = self.search.lower()
            haystack = [(req.student_name or "").lower(), (req.student_code or "").lower()]
            if not any(needle in h for h in haystack):
                return False
        return True
