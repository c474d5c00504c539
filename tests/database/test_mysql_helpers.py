from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest
from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError, OperationalError

from src.exeat_system.exeat_system.core.exceptions import ConflictError
from src.exeat_system.exeat_system.database.mysql_base import (
    counts,
    date_range_clause,
    in_placeholders,
    like_contains,
    mysql_time,
    unique_violation_as_conflict,
)


def test_mysql_time_accepts_driver_shapes():
    assert mysql_time(None) is None
    assert mysql_time(time(14, 0)) == time(14, 0)
    assert mysql_time(timedelta(hours=14, minutes=30, seconds=5)) == time(14, 30, 5)
    assert mysql_time("09:15") == time(9, 15)
    assert mysql_time("09:15:30") == time(9, 15, 30)

    with pytest.raises(ValueError):
        mysql_time("9")
    with pytest.raises(TypeError):
        mysql_time(915)


def test_counts_coerces_decimal_and_null():
    row = {"total": 3, "pending": Decimal("2"), "approved": None}
    assert counts(row, "total", "pending", "approved", "rejected") == {
        "total": 3,
        "pending": 2,
        "approved": 0,
        "rejected": 0,
    }
    assert counts(None, "total") == {"total": 0}


def test_date_range_clause_end_is_inclusive():
    clauses, params = date_range_clause("r.created_at", date(2026, 1, 1), date(2026, 1, 31))

    assert clauses == ["r.created_at >= %s", "r.created_at < %s"]
    assert params == [datetime(2026, 1, 1), datetime(2026, 2, 1)]
    assert date_range_clause("a.created_at", None, None) == ([], [])


def test_in_placeholders():
    assert in_placeholders([4, 5, 6]) == "%s,%s,%s"


def test_like_contains_escapes_wildcards_and_escape_char():
    assert like_contains("kofi") == "%kofi%"
    assert like_contains("a_b") == "%a!_b%"
    assert like_contains("50%!") == "%50!%!!%"


def test_unique_violation_as_conflict_only_maps_duplicate_keys():
    with pytest.raises(ConflictError, match="taken"):
        with unique_violation_as_conflict("taken"):
            raise IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)

    with pytest.raises(IntegrityError):
        with unique_violation_as_conflict("taken"):
            raise IntegrityError(msg="Column cannot be null", errno=errorcode.ER_BAD_NULL_ERROR)

    with pytest.raises(OperationalError):
        with unique_violation_as_conflict("taken"):
            raise OperationalError(msg="Lost connection", errno=errorcode.CR_SERVER_LOST)
