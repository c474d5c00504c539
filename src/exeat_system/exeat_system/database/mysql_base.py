from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConflictError
from .connection import DatabaseConnection

LIKE_ESCAPE = "!"

# Per-status tallies over an `exeat_requests r` alias. Expired only counts
# requests still pending, since a decided request is never flagged.
STATUS_COUNTS_SQL = """
    COUNT(r.id) AS total,
    COALESCE(SUM(r.status='pending'), 0) AS pending,
    COALESCE(SUM(r.status='approved'), 0) AS approved,
    COALESCE(SUM(r.status='rejected'), 0) AS rejected,
    COALESCE(SUM(r.status='pending' AND r.is_expired=1), 0) AS expired
"""


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """One connection per unit of work: commit on success, roll back on error."""
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    return list(cur.fetchall() or [])


def in_placeholders(values: Sequence[Any]) -> str:
    # callers guarantee `values` is non-empty
    return ",".join(["%s"] * len(values))


def counts(row: Optional[Dict[str, Any]], *keys: str) -> Dict[str, int]:
    """SUM() comes back as Decimal (or NULL on an empty group); coerce to int."""
    row = row or {}
    return {k: int(row.get(k) or 0) for k in keys}


def date_range_clause(column: str, start: Optional[date], end: Optional[date]) -> Tuple[List[str], List[Any]]:
    """WHERE fragments for an inclusive calendar-day range on a DATETIME column."""
    clauses: List[str] = []
    params: List[Any] = []
    if start is not None:
        clauses.append(f"{column} >= %s")
        params.append(datetime.combine(start, time.min))
    if end is not None:
        clauses.append(f"{column} < %s")
        params.append(datetime.combine(end + timedelta(days=1), time.min))
    return clauses, params


def mysql_time(value: Any) -> Optional[time]:
    """Coerce a TIME column value.

    mysql-connector hands TIME back as a timedelta from midnight; some
    drivers return `datetime.time` or an 'HH:MM[:SS]' string.
    """
    if value is None or isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        secs = int(value.total_seconds()) % 86400
        return time(secs // 3600, (secs % 3600) // 60, secs % 60)
    if isinstance(value, str):
        parts = [int(p) for p in value.strip().split(":") if p]
        if len(parts) < 2:
            raise ValueError(f"Invalid time string: {value!r}")
        return time(*parts[:3])
    raise TypeError(f"Unsupported MySQL TIME value type: {type(value)!r}")


def like_contains(term: str) -> str:
    """LIKE pattern matching `term` literally anywhere; pair with ``ESCAPE '!'``."""
    escaped = term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
    for wildcard in ("%", "_"):
        escaped = escaped.replace(wildcard, LIKE_ESCAPE + wildcard)
    return f"%{escaped}%"


@contextmanager
def unique_violation_as_conflict(message: str):
    """Turn a duplicate-key error from a unique index into `ConflictError`."""
    try:
        yield
    except mysql.connector.IntegrityError as e:
        if e.errno == errorcode.ER_DUP_ENTRY:
            raise ConflictError(message) from e
        raise
