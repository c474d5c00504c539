from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from .model import SystemSetting


class SettingsRepository(Protocol):
    def list_all(self) -> Sequence[SystemSetting]:
        raise NotImplementedError

    def upsert(self, *, key: str, value: str, updated_by: int, updated_at: datetime) -> SystemSetting:
        """Insert-or-update keyed by setting name."""

        raise NotImplementedError
