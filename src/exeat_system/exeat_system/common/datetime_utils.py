from __future__ import annotations

from datetime import datetime


def now_local() -> datetime:
    """Current local time; services take a `clock` so tests can pin it."""
    return datetime.now()
