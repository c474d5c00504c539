from __future__ import annotations

from typing import Protocol, Sequence

from .model import DateRange, HouseBreakdown, OverallStats, SemesterBreakdown, TopRequester


class AnalyticsRepository(Protocol):
    """Read-only aggregate queries over exeat requests."""

    def overall(self, period: DateRange) -> OverallStats:
        raise NotImplementedError

    def by_house(self, period: DateRange) -> Sequence[HouseBreakdown]:
        raise NotImplementedError

    def by_semester(self, period: DateRange) -> Sequence[SemesterBreakdown]:
        """Newest academic year/semester first."""

        raise NotImplementedError

    def top_requesters(self, period: DateRange, *, limit: int) -> Sequence[TopRequester]:
        raise NotImplementedError
