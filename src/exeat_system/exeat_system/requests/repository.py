from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence, Tuple

from .filters import RequestFilter, RequestScope
from .model import ExeatDetails, ExeatRequest, HouseStats, RequestNote, RequestStats


class RequestRepository(Protocol):
    def create_within_quota(
        self,
        *,
        student_id: int,
        house_id: int,
        details: ExeatDetails,
        semester: str,
        academic_year: str,
        max_requests: int,
        expires_at: datetime,
        created_at: datetime,
    ) -> Tuple[Optional[int], int]:
        """Count the student's requests for the semester and insert a pending one
        only while that count is below `max_requests`, as one atomic step.

        Returns `(new_id, used)`; `new_id` is None when the quota is already spent.
        """

        raise NotImplementedError

    def get(self, request_id: int) -> Optional[ExeatRequest]:
        raise NotImplementedError

    def list(self, filters: RequestFilter, scope: RequestScope) -> Sequence[ExeatRequest]:
        """Newest first."""

        raise NotImplementedError

    # Transitions below only touch rows still in `pending` and report whether a row changed.
    def update_details(self, request_id: int, *, student_id: int, details: ExeatDetails, edited_at: datetime) -> bool:
        raise NotImplementedError

    def approve(self, request_id: int, *, approver_id: int, approved_at: datetime) -> bool:
        raise NotImplementedError

    def approve_many(
        self,
        request_ids: Sequence[int],
        *,
        approver_id: int,
        approved_at: datetime,
        house_id: Optional[int] = None,
    ) -> Sequence[int]:
        """Approve the pending subset (optionally limited to one house); returns approved ids."""

        raise NotImplementedError

    def reject(self, request_id: int, *, rejector_id: int, reason: str, rejected_at: datetime) -> bool:
        raise NotImplementedError

    def cancel(self, request_id: int, *, student_id: int, reason: str, cancelled_at: datetime) -> bool:
        raise NotImplementedError

    def mark_expired(self, now: datetime) -> int:
        raise NotImplementedError

    def add_note(self, *, request_id: int, author_id: int, note: str, created_at: datetime) -> int:
        raise NotImplementedError

    def list_notes(self, request_id: int) -> Sequence[RequestNote]:
        """Oldest first."""

        raise NotImplementedError

    def stats(self, scope: RequestScope) -> RequestStats:
        raise NotImplementedError

    def house_stats(self, scope: RequestScope) -> Sequence[HouseStats]:
        raise NotImplementedError
