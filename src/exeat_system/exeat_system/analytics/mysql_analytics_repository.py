from __future__ import annotations

from typing import Any, List, Sequence, Tuple

from ..database.connection import DatabaseConnection
from ..database.mysql_base import STATUS_COUNTS_SQL, counts, date_range_clause, db_cursor, fetchall, fetchone
from .model import DateRange, HouseBreakdown, OverallStats, SemesterBreakdown, TopRequester
from .repository import AnalyticsRepository


def _period_sql(period: DateRange) -> Tuple[str, List[Any]]:
    clauses, params = date_range_clause("r.created_at", period.start_date, period.end_date)
    return (" AND ".join(clauses) if clauses else "1=1"), params


class MySQLAnalyticsRepository(AnalyticsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def overall(self, period: DateRange) -> OverallStats:
        where, params = _period_sql(period)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {STATUS_COUNTS_SQL},
                       AVG(CASE WHEN r.approved_at IS NOT NULL
                                THEN TIMESTAMPDIFF(SECOND, r.created_at, r.approved_at) / 3600 END) AS avg_hours
                FROM exeat_requests r
                WHERE {where}
                """,
                tuple(params),
            )
            row = fetchone(cur)
        c = counts(row, "total", "pending", "approved", "rejected", "expired")
        avg = (row or {}).get("avg_hours")
        return OverallStats(
            total_requests=c.pop("total"),
            avg_approval_hours=round(float(avg), 2) if avg is not None else None,
            **c,
        )

    def by_house(self, period: DateRange) -> Sequence[HouseBreakdown]:
        where, params = _period_sql(period)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT h.id AS house_id, h.name AS house_name, {STATUS_COUNTS_SQL}
                FROM houses h
                LEFT JOIN exeat_requests r ON r.house_id = h.id AND {where}
                GROUP BY h.id, h.name
                ORDER BY total DESC, h.name
                """,
                tuple(params),
            )
            rows = fetchall(cur)
        out = []
        for r in rows:
            c = counts(r, "total", "pending", "approved", "rejected")
            out.append(
                HouseBreakdown(
                    house_id=int(r["house_id"]),
                    house_name=r["house_name"],
                    total_requests=c.pop("total"),
                    **c,
                )
            )
        return out

    def by_semester(self, period: DateRange) -> Sequence[SemesterBreakdown]:
        where, params = _period_sql(period)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT r.semester, r.academic_year,
                       COUNT(*) AS total,
                       COALESCE(SUM(r.status='approved'), 0) AS approved
                FROM exeat_requests r
                WHERE {where}
                GROUP BY r.semester, r.academic_year
                ORDER BY r.academic_year DESC, r.semester DESC
                """,
                tuple(params),
            )
            return [
                SemesterBreakdown(semester=r["semester"], academic_year=r["academic_year"], **counts(r, "total", "approved"))
                for r in fetchall(cur)
            ]

    def top_requesters(self, period: DateRange, *, limit: int) -> Sequence[TopRequester]:
        where, params = _period_sql(period)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT CONCAT(u.first_name, ' ', u.last_name) AS student_name,
                       u.student_id AS student_code,
                       h.name AS house_name,
                       COUNT(r.id) AS request_count
                FROM users u
                JOIN exeat_requests r ON r.student_id = u.id
                LEFT JOIN houses h ON h.id = u.house_id
                WHERE u.role='student' AND {where}
                GROUP BY u.id, u.first_name, u.last_name, u.student_id, h.name
                ORDER BY request_count DESC, student_name
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [
                TopRequester(
                    student_name=r["student_name"],
                    student_code=r.get("student_code"),
                    house_name=r.get("house_name"),
                    request_count=int(r["request_count"]),
                )
                for r in fetchall(cur)
            ]
