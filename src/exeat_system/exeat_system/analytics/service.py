from __future__ import annotations

from datetime import date
from typing import Optional

from ..core.constants import TOP_REQUESTERS_LIMIT
from ..core.exceptions import ValidationError
from ..core.permissions import HEADMASTER_ONLY, authorize
from .model import AnalyticsReport, DateRange
from .repository import AnalyticsRepository


class AnalyticsService:
    """Use case: headmaster's aggregate reporting. Never writes."""

    def __init__(self, analytics: AnalyticsRepository, *, top_limit: int = TOP_REQUESTERS_LIMIT):
        self._analytics = analytics
        self._top_limit = top_limit

    def comprehensive(
        self,
        caller,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> AnalyticsReport:
        authorize(caller, HEADMASTER_ONLY)
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must be on or after start_date")

        period = DateRange(start_date=start_date, end_date=end_date)
        return AnalyticsReport(
            overall=self._analytics.overall(period),
            by_house=list(self._analytics.by_house(period)),
            by_semester=list(self._analytics.by_semester(period)),
            top_requesters=list(self._analytics.top_requesters(period, limit=self._top_limit)),
        )
