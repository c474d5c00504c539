from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .house_model import House
from .house_repository import HouseRepository


class MySQLHouseRepository(HouseRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[House]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT id, name FROM houses ORDER BY id")
            rows = fetchall(cur)
            return [House(id=int(r["id"]), name=r["name"]) for r in rows]

    def get_by_id(self, house_id: int) -> Optional[House]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT id, name FROM houses WHERE id=%s", (int(house_id),))
            r = fetchone(cur)
            return House(id=int(r["id"]), name=r["name"]) if r else None
