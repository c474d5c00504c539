from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import AuditActionStat, AuditLogEntry, AuditQuery


class AuditRepository(Protocol):
    """Append-only store: there is deliberately no update or delete."""

    def insert(
        self,
        *,
        user_id: Optional[int],
        action: str,
        details: Optional[str],
        ip_address: Optional[str],
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def query(self, q: AuditQuery) -> Sequence[AuditLogEntry]:
        """Newest first, at most `q.limit` rows."""

        raise NotImplementedError

    def action_stats(self) -> Sequence[AuditActionStat]:
        raise NotImplementedError
