from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import SystemSetting
from .repository import SettingsRepository


def _row_to_setting(r: Dict[str, Any]) -> SystemSetting:
    return SystemSetting(
        key=r["setting_key"],
        value=r["setting_value"],
        description=r.get("description"),
        updated_by=r.get("updated_by"),
        updated_at=r.get("updated_at"),
    )


class MySQLSettingsRepository(SettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[SystemSetting]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT setting_key, setting_value, description, updated_by, updated_at
                FROM system_settings
                ORDER BY setting_key
                """
            )
            return [_row_to_setting(r) for r in fetchall(cur)]

    def upsert(self, *, key: str, value: str, updated_by: int, updated_at: datetime) -> SystemSetting:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO system_settings(setting_key, setting_value, updated_by, updated_at)
                VALUES(%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    setting_value=VALUES(setting_value),
                    updated_by=VALUES(updated_by),
                    updated_at=VALUES(updated_at)
                """,
                (key, value, int(updated_by), updated_at),
            )
            cur.execute(
                """
                SELECT setting_key, setting_value, description, updated_by, updated_at
                FROM system_settings
                WHERE setting_key=%s
                """,
                (key,),
            )
            return _row_to_setting(fetchone(cur))
