from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import date_range_clause, db_cursor, fetchall
from .model import AuditActionStat, AuditLogEntry, AuditQuery
from .repository import AuditRepository


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert(
        self,
        *,
        user_id: Optional[int],
        action: str,
        details: Optional[str],
        ip_address: Optional[str],
        created_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_logs(user_id, action, details, ip_address, created_at)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (user_id, action, details, ip_address, created_at),
            )
            return int(cur.lastrowid)

    def query(self, q: AuditQuery) -> Sequence[AuditLogEntry]:
        clauses = ["1=1"]
        params: list[object] = []

        if q.user_id is not None:
            clauses.append("a.user_id=%s")
            params.append(int(q.user_id))
        if q.action:
            clauses.append("a.action=%s")
            params.append(q.action)
        range_clauses, range_params = date_range_clause("a.created_at", q.start_date, q.end_date)
        clauses.extend(range_clauses)
        params.extend(range_params)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT a.id, a.user_id, a.action, a.details, a.ip_address, a.created_at,
                       CONCAT(u.first_name, ' ', u.last_name) AS user_name,
                       u.role AS user_role
                FROM audit_logs a
                LEFT JOIN users u ON u.id = a.user_id
                WHERE {where}
                ORDER BY a.created_at DESC, a.id DESC
                LIMIT %s
                """,
                tuple(params + [int(q.limit)]),
            )
            return [
                AuditLogEntry(
                    id=int(r["id"]),
                    user_id=r.get("user_id"),
                    action=r["action"],
                    details=r.get("details"),
                    ip_address=r.get("ip_address"),
                    created_at=r["created_at"],
                    user_name=r.get("user_name"),
                    user_role=r.get("user_role"),
                )
                for r in fetchall(cur)
            ]

    def action_stats(self) -> Sequence[AuditActionStat]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT action, COUNT(*) AS count, MAX(created_at) AS last_occurrence
                FROM audit_logs
                GROUP BY action
                ORDER BY count DESC
                """
            )
            return [
                AuditActionStat(action=r["action"], count=int(r["count"]), last_occurrence=r.get("last_occurrence"))
                for r in fetchall(cur)
            ]
