from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

from ..core.enums import RequestStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    STATUS_COUNTS_SQL,
    counts,
    db_cursor,
    fetchall,
    fetchone,
    in_placeholders,
    mysql_time,
)
from .filters import RequestFilter, RequestScope
from .model import ExeatDetails, ExeatRequest, HouseStats, RequestNote, RequestStats
from .repository import RequestRepository

_SELECT = """
    SELECT r.id, r.student_id, r.house_id, r.departure_date, r.departure_time,
           r.duration, r.destination, r.reason, r.guardian_name, r.guardian_phone,
           r.status, r.semester, r.academic_year, r.expires_at, r.is_expired,
           r.approved_by, r.approved_at, r.rejected_by, r.rejected_at, r.rejection_reason,
           r.cancelled_by, r.cancelled_at, r.cancellation_reason, r.edited_at, r.created_at,
           CONCAT(s.first_name, ' ', s.last_name) AS student_name,
           s.student_id AS student_code,
           s.class_name,
           h.name AS house_name,
           CONCAT(a.first_name, ' ', a.last_name) AS approved_by_name,
           CONCAT(rj.first_name, ' ', rj.last_name) AS rejected_by_name
    FROM exeat_requests r
    JOIN users s ON s.id = r.student_id
    JOIN houses h ON h.id = r.house_id
    LEFT JOIN users a ON a.id = r.approved_by
    LEFT JOIN users rj ON rj.id = r.rejected_by
"""


def _row_to_request(r: Dict[str, Any]) -> ExeatRequest:
    return ExeatRequest(
        id=int(r["id"]),
        student_id=int(r["student_id"]),
        house_id=int(r["house_id"]),
        departure_date=r["departure_date"],
        departure_time=mysql_time(r["departure_time"]),
        duration=r["duration"],
        destination=r["destination"],
        reason=r["reason"],
        guardian_name=r.get("guardian_name"),
        guardian_phone=r.get("guardian_phone"),
        status=RequestStatus(r["status"]),
        semester=r["semester"],
        academic_year=r["academic_year"],
        expires_at=r["expires_at"],
        is_expired=bool(r.get("is_expired")),
        approved_by=r.get("approved_by"),
        approved_at=r.get("approved_at"),
        rejected_by=r.get("rejected_by"),
        rejected_at=r.get("rejected_at"),
        rejection_reason=r.get("rejection_reason"),
        cancelled_by=r.get("cancelled_by"),
        cancelled_at=r.get("cancelled_at"),
        cancellation_reason=r.get("cancellation_reason"),
        edited_at=r.get("edited_at"),
        created_at=r["created_at"],
        student_name=r.get("student_name"),
        student_code=r.get("student_code"),
        class_name=r.get("class_name"),
        house_name=r.get("house_name"),
        approved_by_name=r.get("approved_by_name"),
        rejected_by_name=r.get("rejected_by_name"),
    )


_STATUS_KEYS = ("total", "pending", "approved", "rejected", "expired")


def _row_to_stats(r: Optional[Dict[str, Any]]) -> RequestStats:
    return RequestStats(**counts(r, *_STATUS_KEYS))


class MySQLRequestRepository(RequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            # the student's row lock serialises concurrent submissions
            cur.execute("SELECT id FROM users WHERE id=%s FOR UPDATE", (int(student_id),))
            fetchone(cur)
            cur.execute(
                """
                SELECT COUNT(*) AS n
                FROM exeat_requests
                WHERE student_id=%s AND semester=%s AND academic_year=%s
                """,
                (int(student_id), semester, academic_year),
            )
            row = fetchone(cur)
            used = int(row["n"]) if row else 0
            if used >= int(max_requests):
                return None, used

            cur.execute(
                """
                INSERT INTO exeat_requests(
                    student_id, house_id, departure_date, departure_time, duration,
                    destination, reason, guardian_name, guardian_phone,
                    status, semester, academic_year, expires_at, is_expired, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,0,%s)
                """,
                (
                    int(student_id),
                    int(house_id),
                    details.departure_date,
                    details.departure_time,
                    details.duration,
                    details.destination,
                    details.reason,
                    details.guardian_name,
                    details.guardian_phone,
                    RequestStatus.PENDING.value,
                    semester,
                    academic_year,
                    expires_at,
                    created_at,
                ),
            )
            return int(cur.lastrowid), used

    def get(self, request_id: int) -> Optional[ExeatRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE r.id=%s", (int(request_id),))
            r = fetchone(cur)
            return _row_to_request(r) if r else None

    def list(self, filters: RequestFilter, scope: RequestScope) -> Sequence[ExeatRequest]:
        where, params = filters.to_sql(scope)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + f" WHERE {where} ORDER BY r.created_at DESC, r.id DESC", tuple(params))
            return [_row_to_request(r) for r in fetchall(cur)]

    def update_details(self, request_id: int, *, student_id: int, details: ExeatDetails, edited_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE exeat_requests
                SET departure_date=%s, departure_time=%s, duration=%s, destination=%s, reason=%s,
                    guardian_name=%s, guardian_phone=%s, edited_at=%s
                WHERE id=%s AND student_id=%s AND status=%s
                """,
                (
                    details.departure_date,
                    details.departure_time,
                    details.duration,
                    details.destination,
                    details.reason,
                    details.guardian_name,
                    details.guardian_phone,
                    edited_at,
                    int(request_id),
                    int(student_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def approve(self, request_id: int, *, approver_id: int, approved_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE exeat_requests
                SET status=%s, approved_by=%s, approved_at=%s
                WHERE id=%s AND status=%s
                """,
                (
                    RequestStatus.APPROVED.value,
                    int(approver_id),
                    approved_at,
                    int(request_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def approve_many(
        self,
        request_ids: Sequence[int],
        *,
        approver_id: int,
        approved_at: datetime,
        house_id: Optional[int] = None,
    ) -> Sequence[int]:
        ids = [int(i) for i in request_ids]
        if not ids:
            return []

        sql = f"SELECT id FROM exeat_requests WHERE id IN ({in_placeholders(ids)}) AND status=%s"
        params: list[object] = ids + [RequestStatus.PENDING.value]
        if house_id is not None:
            sql += " AND house_id=%s"
            params.append(int(house_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " FOR UPDATE", tuple(params))
            matched = [int(r["id"]) for r in fetchall(cur)]
            if not matched:
                return []
            cur.execute(
                f"""
                UPDATE exeat_requests
                SET status=%s, approved_by=%s, approved_at=%s
                WHERE id IN ({in_placeholders(matched)}) AND status=%s
                """,
                tuple(
                    [RequestStatus.APPROVED.value, int(approver_id), approved_at]
                    + matched
                    + [RequestStatus.PENDING.value]
                ),
            )
            return matched

    def reject(self, request_id: int, *, rejector_id: int, reason: str, rejected_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE exeat_requests
                SET status=%s, rejected_by=%s, rejected_at=%s, rejection_reason=%s
                WHERE id=%s AND status=%s
                """,
                (
                    RequestStatus.REJECTED.value,
                    int(rejector_id),
                    rejected_at,
                    reason,
                    int(request_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def cancel(self, request_id: int, *, student_id: int, reason: str, cancelled_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE exeat_requests
                SET status=%s, cancelled_by=%s, cancelled_at=%s, cancellation_reason=%s
                WHERE id=%s AND student_id=%s AND status=%s
                """,
                (
                    RequestStatus.REJECTED.value,
                    int(student_id),
                    cancelled_at,
                    reason,
                    int(request_id),
                    int(student_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def mark_expired(self, now: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE exeat_requests
                SET is_expired=1
                WHERE status=%s AND is_expired=0 AND expires_at<%s
                """,
                (RequestStatus.PENDING.value, now),
            )
            return int(cur.rowcount)

    def add_note(self, *, request_id: int, author_id: int, note: str, created_at: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO request_notes(request_id, author_id, note, created_at) VALUES(%s,%s,%s,%s)",
                (int(request_id), int(author_id), note, created_at),
            )
            return int(cur.lastrowid)

    def list_notes(self, request_id: int) -> Sequence[RequestNote]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT n.id, n.request_id, n.author_id, n.note, n.created_at,
                       CONCAT(u.first_name, ' ', u.last_name) AS author_name
                FROM request_notes n
                LEFT JOIN users u ON u.id = n.author_id
                WHERE n.request_id=%s
                ORDER BY n.created_at ASC, n.id ASC
                """,
                (int(request_id),),
            )
            return [
                RequestNote(
                    id=int(r["id"]),
                    request_id=int(r["request_id"]),
                    author_id=int(r["author_id"]),
                    note=r["note"],
                    created_at=r["created_at"],
                    author_name=r.get("author_name"),
                )
                for r in fetchall(cur)
            ]

    def stats(self, scope: RequestScope) -> RequestStats:
        clauses, params = scope.clauses()
        where = " AND ".join(clauses) if clauses else "1=1"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {STATUS_COUNTS_SQL} FROM exeat_requests r WHERE {where}", tuple(params))
            return _row_to_stats(fetchone(cur))

    def house_stats(self, scope: RequestScope) -> Sequence[HouseStats]:
        join_extra = ""
        where = "1=1"
        params: list[object] = []
        if scope.deny_all:
            where = "1=0"
        else:
            if scope.student_id is not None:
                join_extra = " AND r.student_id=%s"
                params.append(int(scope.student_id))
            if scope.house_id is not None:
                where = "h.id=%s"
                params.append(int(scope.house_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT h.id AS house_id, h.name AS house_name, {STATUS_COUNTS_SQL}
                FROM houses h
                LEFT JOIN exeat_requests r ON r.house_id = h.id{join_extra}
                WHERE {where}
                GROUP BY h.id, h.name
                ORDER BY total DESC, h.name
                """,
                tuple(params),
            )
            out = []
            for r in fetchall(cur):
                c = counts(r, *_STATUS_KEYS)
                out.append(
                    HouseStats(
                        house_id=int(r["house_id"]),
                        house_name=r["house_name"],
                        total_requests=c.pop("total"),
                        **c,
                    )
                )
            return out
