from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, like_contains, unique_violation_as_conflict
from .model import StudentData, User
from .repository import UserRepository

_USER_COLUMNS = """
    u.id, u.email, u.password_hash, u.role, u.first_name, u.last_name,
    u.house_id, h.name AS house_name, u.student_id, u.staff_id, u.phone,
    u.class_name, u.guardian_name, u.guardian_phone, u.is_active,
    u.two_factor_secret, u.two_factor_enabled, u.last_login, u.created_at
"""

_USER_FROM = "FROM users u LEFT JOIN houses h ON h.id = u.house_id"

_DUPLICATE_STUDENT = "Student ID or email already exists"


def _row_to_user(row: Dict[str, Any]) -> User:
    return User(
        id=int(row["id"]),
        email=row["email"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        house_id=row.get("house_id"),
        house_name=row.get("house_name"),
        student_id=row.get("student_id"),
        staff_id=row.get("staff_id"),
        phone=row.get("phone"),
        class_name=row.get("class_name"),
        guardian_name=row.get("guardian_name"),
        guardian_phone=row.get("guardian_phone"),
        is_active=bool(row.get("is_active", True)),
        two_factor_secret=row.get("two_factor_secret"),
        two_factor_enabled=bool(row.get("two_factor_enabled", False)),
        last_login=row.get("last_login"),
        created_at=row.get("created_at"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} {_USER_FROM} WHERE u.id=%s", (int(user_id),))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} {_USER_FROM} WHERE u.email=%s", (email,))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def find_conflict(self, *, student_id: str, email: str, exclude_user_id: Optional[int] = None) -> Optional[User]:
        sql = f"SELECT {_USER_COLUMNS} {_USER_FROM} WHERE (u.student_id=%s OR u.email=%s)"
        params: list[object] = [student_id, email]
        if exclude_user_id is not None:
            sql += " AND u.id<>%s"
            params.append(int(exclude_user_id))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " LIMIT 1", tuple(params))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def create_user(
        self,
        *,
        role: Role,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        house_id: Optional[int] = None,
        student_id: Optional[str] = None,
        staff_id: Optional[str] = None,
        phone: Optional[str] = None,
        class_name: Optional[str] = None,
        guardian_name: Optional[str] = None,
        guardian_phone: Optional[str] = None,
    ) -> int:
        with unique_violation_as_conflict(_DUPLICATE_STUDENT), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(
                    role, email, password_hash, first_name, last_name, house_id,
                    student_id, staff_id, phone, class_name, guardian_name, guardian_phone, is_active
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (
                    role.value,
                    email,
                    password_hash,
                    first_name,
                    last_name,
                    house_id,
                    student_id,
                    staff_id,
                    phone,
                    class_name,
                    guardian_name,
                    guardian_phone,
                ),
            )
            return int(cur.lastrowid)

    def update_student(self, user_id: int, data: StudentData) -> bool:
        with unique_violation_as_conflict(_DUPLICATE_STUDENT), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE users
                SET student_id=%s, first_name=%s, last_name=%s, email=%s, phone=%s,
                    class_name=%s, house_id=%s, guardian_name=%s, guardian_phone=%s
                WHERE id=%s AND role='student'
                """,
                (
                    data.student_id,
                    data.first_name,
                    data.last_name,
                    data.email,
                    data.phone,
                    data.class_name,
                    int(data.house_id),
                    data.guardian_name,
                    data.guardian_phone,
                    int(user_id),
                ),
            )
            # rowcount is 0 when nothing changed, so look the row up instead
            cur.execute("SELECT id FROM users WHERE id=%s AND role='student'", (int(user_id),))
            return fetchone(cur) is not None

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET is_active=%s WHERE id=%s", (1 if is_active else 0, int(user_id)))
            return cur.rowcount > 0

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET password_hash=%s WHERE id=%s", (password_hash, int(user_id)))
            return cur.rowcount > 0

    def set_two_factor(self, user_id: int, *, secret: Optional[str], enabled: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET two_factor_secret=%s, two_factor_enabled=%s WHERE id=%s",
                (secret, 1 if enabled else 0, int(user_id)),
            )
            return cur.rowcount > 0

    def touch_last_login(self, user_id: int, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET last_login=%s WHERE id=%s", (at, int(user_id)))

    def list_students(self, *, house_id: Optional[int] = None) -> Sequence[User]:
        sql = f"SELECT {_USER_COLUMNS} {_USER_FROM} WHERE u.role='student'"
        params: list[object] = []
        if house_id is not None:
            sql += " AND u.house_id=%s"
            params.append(int(house_id))
        sql += " ORDER BY h.name, u.last_name, u.first_name"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_user(r) for r in fetchall(cur)]

    def list_users(
        self,
        *,
        role: Optional[Role] = None,
        house_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Sequence[User]:
        clauses = ["1=1"]
        params: list[object] = []

        if role is not None:
            clauses.append("u.role=%s")
            params.append(role.value)
        if house_id is not None:
            clauses.append("u.house_id=%s")
            params.append(int(house_id))
        if search:
            clauses.append("(u.first_name LIKE %s ESCAPE '!' OR u.last_name LIKE %s ESCAPE '!' OR u.email LIKE %s ESCAPE '!')")
            like = like_contains(search)
            params.extend([like, like, like])

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_USER_COLUMNS} {_USER_FROM} WHERE {where} ORDER BY u.role, u.last_name, u.first_name",
                tuple(params),
            )
            return [_row_to_user(r) for r in fetchall(cur)]
