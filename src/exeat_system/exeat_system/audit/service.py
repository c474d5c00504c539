from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence, Union

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_AUDIT_LIMIT, MAX_AUDIT_LIMIT
from ..core.enums import AuditAction
from ..core.exceptions import ValidationError
from ..core.permissions import HEADMASTER_ONLY, authorize
from .model import AuditActionStat, AuditLogEntry, AuditQuery
from .repository import AuditRepository

logger = logging.getLogger(__name__)


class AuditService:
    """Use case: record and review the audit trail."""

    def __init__(self, audit: AuditRepository):
        self._audit = audit

    def log(
        self,
        user_id: Optional[int],
        action: Union[AuditAction, str],
        details: str,
        ip_address: Optional[str] = None,
    ) -> None:
        """Best-effort write; a failing audit store never aborts the caller."""
        action_name = action.value if isinstance(action, AuditAction) else str(action)
        try:
            self._audit.insert(
                user_id=user_id,
                action=action_name,
                details=details,
                ip_address=ip_address,
                created_at=now_local(),
            )
        except Exception:
            logger.exception("Failed to write audit log %s for user %s", action_name, user_id)

    def query(
        self,
        caller,
        *,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> Sequence[AuditLogEntry]:
        authorize(caller, HEADMASTER_ONLY)

        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must be on or after start_date")

        limit = DEFAULT_AUDIT_LIMIT if limit is None else int(limit)
        if limit <= 0:
            raise ValidationError("limit must be positive")

        return self._audit.query(
            AuditQuery(
                user_id=user_id,
                action=(action or "").strip() or None,
                start_date=start_date,
                end_date=end_date,
                limit=min(limit, MAX_AUDIT_LIMIT),
            )
        )

    def stats(self, caller) -> Sequence[AuditActionStat]:
        authorize(caller, HEADMASTER_ONLY)
        return self._audit.action_stats()
