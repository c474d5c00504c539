from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


@dataclass(frozen=True)
class DateRange:
    """Inclusive range over `created_at`; either end may be open."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass(frozen=True)
class OverallStats:
    total_requests: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    expired: int = 0
    avg_approval_hours: Optional[float] = None


@dataclass(frozen=True)
class HouseBreakdown:
    house_id: int
    house_name: str
    total_requests: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


@dataclass(frozen=True)
class SemesterBreakdown:
    semester: str
    academic_year: str
    total: int = 0
    approved: int = 0


@dataclass(frozen=True)
class TopRequester:
    student_name: str
    student_code: Optional[str]
    house_name: Optional[str]
    request_count: int


@dataclass(frozen=True)
class AnalyticsReport:
    overall: OverallStats
    by_house: List[HouseBreakdown] = field(default_factory=list)
    by_semester: List[SemesterBreakdown] = field(default_factory=list)
    top_requesters: List[TopRequester] = field(default_factory=list)
