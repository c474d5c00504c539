from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence

from ..audit.service import AuditService
from ..common.datetime_utils import now_local
from ..common.validators import optional_str, parse_date, parse_time, require_non_empty
from ..core.constants import DEFAULT_CANCELLATION_REASON
from ..core.enums import AuditAction, Role
from ..core.exceptions import AuthorizationError, NotFoundError, QuotaExceededError, ValidationError
from ..core.permissions import (
    ALL_ROLES,
    STAFF_ROLES,
    STUDENT_ONLY,
    authorize,
    can_view_request,
    ensure_house_scope,
)
from ..settings.service import SettingsService
from .filters import RequestFilter, RequestScope
from .model import ExeatDetails, ExeatRequest, HouseStats, RequestNote, RequestStats
from .repository import RequestRepository

logger = logging.getLogger(__name__)


class RequestService:
    """Use case: the exeat request lifecycle.

    pending -> approved | rejected (rejection also reached by a student's cancel).
    Approved and rejected are terminal; only notes may be added afterwards.
    """

    def __init__(
        self,
        requests: RequestRepository,
        settings: SettingsService,
        audit: AuditService,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._requests = requests
        self._settings = settings
        self._audit = audit
        self._clock = clock

    @staticmethod
    def _parse_details(
        *,
        departure_date,
        departure_time,
        duration,
        destination,
        reason,
        guardian_name=None,
        guardian_phone=None,
        fallback_guardian_name: Optional[str] = None,
        fallback_guardian_phone: Optional[str] = None,
    ) -> ExeatDetails:
        if departure_date in (None, ""):
            raise ValidationError("Departure date is required")
        if departure_time in (None, ""):
            raise ValidationError("Departure time is required")
        return ExeatDetails(
            departure_date=parse_date(departure_date, "Departure date"),
            departure_time=parse_time(departure_time, "Departure time"),
            duration=require_non_empty(duration, "Duration"),
            destination=require_non_empty(destination, "Destination"),
            reason=require_non_empty(reason, "Reason"),
            guardian_name=optional_str(guardian_name) or fallback_guardian_name,
            guardian_phone=optional_str(guardian_phone) or fallback_guardian_phone,
        )

    def _get_or_404(self, request_id: int) -> ExeatRequest:
        req = self._requests.get(int(request_id))
        if not req:
            raise NotFoundError("Request not found")
        return req

    def _get_owned(self, student, request_id: int) -> ExeatRequest:
        req = self._requests.get(int(request_id))
        if not req or req.student_id != student.id:
            raise NotFoundError("Request not found")
        return req

    def _get_for_decision(self, approver, request_id: int, action: str) -> ExeatRequest:
        req = self._get_or_404(request_id)
        ensure_house_scope(approver, req.house_id, f"You can only {action} requests from your own house")
        return req

    # ---------------------------------------------------------------- student

    def create(
        self,
        student,
        *,
        departure_date,
        departure_time,
        duration,
        destination,
        reason,
        guardian_name=None,
        guardian_phone=None,
        origin: Optional[str] = None,
    ) -> ExeatRequest:
        authorize(student, STUDENT_ONLY)
        if student.house_id is None:
            raise ValidationError("You are not assigned to a house")

        details = self._parse_details(
            departure_date=departure_date,
            departure_time=departure_time,
            duration=duration,
            destination=destination,
            reason=reason,
            guardian_name=guardian_name,
            guardian_phone=guardian_phone,
            fallback_guardian_name=getattr(student, "guardian_name", None),
            fallback_guardian_phone=getattr(student, "guardian_phone", None),
        )

        cfg = self._settings.current()
        now = self._clock()
        request_id, used = self._requests.create_within_quota(
            student_id=student.id,
            house_id=int(student.house_id),
            details=details,
            semester=cfg.current_semester,
            academic_year=cfg.current_academic_year,
            max_requests=cfg.max_requests_per_semester,
            expires_at=now + timedelta(hours=cfg.request_expiry_hours),
            created_at=now,
        )
        if request_id is None:
            self._audit.log(
                student.id,
                AuditAction.REQUEST_DENIED_LIMIT,
                f"Request limit reached ({used}/{cfg.max_requests_per_semester}) for semester "
                f"{cfg.current_semester} {cfg.current_academic_year}",
                origin,
            )
            raise QuotaExceededError(
                f"You have reached the maximum of {cfg.max_requests_per_semester} exeat requests this semester"
            )

        self._audit.log(
            student.id,
            AuditAction.REQUEST_CREATED,
            f"Created exeat request #{request_id} to {details.destination} on {details.departure_date.isoformat()}",
            origin,
        )
        return self._get_or_404(request_id)

    def edit(
        self,
        student,
        request_id: int,
        *,
        departure_date,
        departure_time,
        duration,
        destination,
        reason,
        guardian_name=None,
        guardian_phone=None,
        origin: Optional[str] = None,
    ) -> ExeatRequest:
        authorize(student, STUDENT_ONLY)
        if not self._settings.current().allow_request_editing:
            raise AuthorizationError("Editing requests is currently disabled")

        req = self._get_owned(student, request_id)
        if not req.is_pending:
            raise ValidationError("Only pending requests can be edited")

        details = self._parse_details(
            departure_date=departure_date,
            departure_time=departure_time,
            duration=duration,
            destination=destination,
            reason=reason,
            guardian_name=guardian_name,
            guardian_phone=guardian_phone,
            fallback_guardian_name=req.guardian_name,
            fallback_guardian_phone=req.guardian_phone,
        )
        if not self._requests.update_details(req.id, student_id=student.id, details=details, edited_at=self._clock()):
            raise ValidationError("Only pending requests can be edited")

        self._audit.log(student.id, AuditAction.REQUEST_EDITED, f"Edited exeat request #{req.id}", origin)
        return self._get_or_404(req.id)

    def cancel(
        self,
        student,
        request_id: int,
        reason: Optional[str] = None,
        *,
        origin: Optional[str] = None,
    ) -> ExeatRequest:
        authorize(student, STUDENT_ONLY)
        if not self._settings.current().allow_request_cancellation:
            raise AuthorizationError("Cancelling requests is currently disabled")

        req = self._get_owned(student, request_id)
        if not req.is_pending:
            raise ValidationError("Only pending requests can be cancelled")

        reason = optional_str(reason) or DEFAULT_CANCELLATION_REASON
        if not self._requests.cancel(req.id, student_id=student.id, reason=reason, cancelled_at=self._clock()):
            raise ValidationError("Only pending requests can be cancelled")

        self._audit.log(student.id, AuditAction.REQUEST_CANCELLED, f"Cancelled exeat request #{req.id}: {reason}", origin)
        return self._get_or_404(req.id)

    # ---------------------------------------------------------------- staff

    def approve(self, approver, request_id: int, *, origin: Optional[str] = None) -> ExeatRequest:
        authorize(approver, STAFF_ROLES)
        req = self._get_for_decision(approver, request_id, "approve")
        if not req.is_pending:
            raise ValidationError("Request has already been processed")

        if not self._requests.approve(req.id, approver_id=approver.id, approved_at=self._clock()):
            raise ValidationError("Request has already been processed")

        self._audit.log(
            approver.id,
            AuditAction.REQUEST_APPROVED,
            f"Approved exeat request #{req.id} for {req.student_name or req.student_id}",
            origin,
        )
        return self._get_or_404(req.id)

    def batch_approve(self, approver, request_ids: Iterable, *, origin: Optional[str] = None) -> List[ExeatRequest]:
        authorize(approver, STAFF_ROLES)

        ids: List[int] = []
        for raw in request_ids or []:
            # JSON true/false would otherwise pass int() as ids 1 and 0
            if isinstance(raw, bool):
                raise ValidationError("Request ids must be whole numbers")
            try:
                ids.append(int(raw))
            except (TypeError, ValueError):
                raise ValidationError("Request ids must be whole numbers")
        ids = sorted(set(ids))
        if not ids:
            raise ValidationError("No requests selected")

        house_id = approver.house_id if approver.role == Role.HOUSEMASTER else None
        if approver.role == Role.HOUSEMASTER and house_id is None:
            return []

        approved_ids = self._requests.approve_many(
            ids,
            approver_id=approver.id,
            approved_at=self._clock(),
            house_id=house_id,
        )
        if approved_ids:
            self._audit.log(
                approver.id,
                AuditAction.REQUEST_BATCH_APPROVED,
                f"Batch approved {len(approved_ids)} request(s): {', '.join(f'#{i}' for i in approved_ids)}",
                origin,
            )
        return [r for r in (self._requests.get(i) for i in approved_ids) if r is not None]

    def reject(self, approver, request_id: int, reason: Optional[str], *, origin: Optional[str] = None) -> ExeatRequest:
        authorize(approver, STAFF_ROLES)
        req = self._get_for_decision(approver, request_id, "reject")
        reason = require_non_empty(reason, "Rejection reason")
        if not req.is_pending:
            raise ValidationError("Request has already been processed")

        if not self._requests.reject(req.id, rejector_id=approver.id, reason=reason, rejected_at=self._clock()):
            raise ValidationError("Request has already been processed")

        self._audit.log(
            approver.id,
            AuditAction.REQUEST_REJECTED,
            f"Rejected exeat request #{req.id}: {reason}",
            origin,
        )
        return self._get_or_404(req.id)

    def add_note(self, author, request_id: int, text: Optional[str], *, origin: Optional[str] = None) -> RequestNote:
        authorize(author, STAFF_ROLES)
        req = self._get_for_decision(author, request_id, "annotate")
        text = require_non_empty(text, "Note")

        note_id = self._requests.add_note(request_id=req.id, author_id=author.id, note=text, created_at=self._clock())
        self._audit.log(author.id, AuditAction.REQUEST_NOTE_ADDED, f"Added note to exeat request #{req.id}", origin)

        for note in self._requests.list_notes(req.id):
            if note.id == note_id:
                return note
        raise NotFoundError("Note not found")

    # ---------------------------------------------------------------- reads

    def expire_sweep(self, now: Optional[datetime] = None) -> int:
        """Flag pending requests past `expires_at`. Safe to run repeatedly."""
        flagged = self._requests.mark_expired(now or self._clock())
        if flagged:
            logger.info("Marked %d pending request(s) as expired", flagged)
        return flagged

    def get(self, caller, request_id: int) -> ExeatRequest:
        authorize(caller, ALL_ROLES)
        self.expire_sweep()
        req = self._get_or_404(request_id)
        if can_view_request(caller, req):
            return req
        if caller.role == Role.STUDENT:
            raise NotFoundError("Request not found")
        raise AuthorizationError("You can only view requests from your own house")

    def list_notes(self, caller, request_id: int) -> Sequence[RequestNote]:
        req = self.get(caller, request_id)
        return self._requests.list_notes(req.id)

    def list(self, caller, filters: Optional[RequestFilter] = None) -> Sequence[ExeatRequest]:
        authorize(caller, ALL_ROLES)
        self.expire_sweep()
        return self._requests.list(filters or RequestFilter(), RequestScope.for_user(caller))

    def stats(self, caller) -> RequestStats:
        authorize(caller, ALL_ROLES)
        self.expire_sweep()
        return self._requests.stats(RequestScope.for_user(caller))

    def house_stats(self, caller) -> Sequence[HouseStats]:
        authorize(caller, STAFF_ROLES)
        self.expire_sweep()
        return self._requests.house_stats(RequestScope.for_user(caller))
