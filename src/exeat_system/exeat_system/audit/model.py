from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class AuditLogEntry:
    id: int
    user_id: Optional[int]
    action: str
    details: Optional[str]
    ip_address: Optional[str]
    created_at: datetime
    user_name: Optional[str] = None
    user_role: Optional[str] = None


@dataclass(frozen=True)
class AuditQuery:
    user_id: Optional[int] = None
    action: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: int = 100


@dataclass(frozen=True)
class AuditActionStat:
    action: str
    count: int
    last_occurrence: Optional[datetime]
