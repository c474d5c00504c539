"""Idempotent schema/seed helpers used by `create_app()` and the scripts/ CLIs."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import mysql.connector

from ..users.passwords import hash_password

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "exeat_db")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on ';' outside quoted strings."""
    buf: list[str] = []
    quote = None
    escape = False

    for ch in sql:
        buf.append(ch)
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if quote:
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
            continue
        if ch == ";":
            stmt = "".join(buf[:-1]).strip()
            buf.clear()
            if stmt:
                yield stmt

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: Path) -> None:
    sql = _strip_comments(_strip_create_db_and_use(Path(path).read_text(encoding="utf-8")))
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    _run_script(db_config, Path(schema_path))
    logger.info("Applied schema %s", schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    _run_script(db_config, Path(seed_path))
    logger.info("Applied seed data %s", seed_path)


def ensure_demo_users(db_config: dict) -> None:
    """Create or refresh one account per role (password: `DEMO_PASSWORD`)."""
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor(dictionary=True)

        def house_id(name: str) -> int:
            cur.execute("SELECT id FROM houses WHERE name=%s", (name,))
            row = cur.fetchone()
            if not row:
                raise RuntimeError(f"Missing houses row for name={name}")
            return int(row["id"])

        def upsert_user(email: str, role: str, first_name: str, last_name: str, **extra) -> None:
            password_hash = hash_password(DEMO_PASSWORD)
            cur.execute("SELECT id FROM users WHERE email=%s", (email,))
            if cur.fetchone():
                cur.execute(
                    """
                    UPDATE users
                    SET password_hash=%s, role=%s, first_name=%s, last_name=%s,
                        house_id=%s, student_id=%s, staff_id=%s, class_name=%s, is_active=1
                    WHERE email=%s
                    """,
                    (
                        password_hash,
                        role,
                        first_name,
                        last_name,
                        extra.get("house_id"),
                        extra.get("student_id"),
                        extra.get("staff_id"),
                        extra.get("class_name"),
                        email,
                    ),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (email, password_hash, role, first_name, last_name,
                                       house_id, student_id, staff_id, class_name,
                                       guardian_name, guardian_phone)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        email,
                        password_hash,
                        role,
                        first_name,
                        last_name,
                        extra.get("house_id"),
                        extra.get("student_id"),
                        extra.get("staff_id"),
                        extra.get("class_name"),
                        extra.get("guardian_name"),
                        extra.get("guardian_phone"),
                    ),
                )

        first_house = house_id("Aggrey House")

        upsert_user("headmaster@school.edu", "headmaster", "Kwame", "Mensah", staff_id="HM001")
        upsert_user(
            "housemaster@school.edu",
            "housemaster",
            "Ama",
            "Owusu",
            house_id=first_house,
            staff_id="HSM001",
        )
        upsert_user(
            "student@school.edu",
            "student",
            "Kofi",
            "Asante",
            house_id=first_house,
            student_id="STU001",
            class_name="Form 2A",
            guardian_name="Yaw Asante",
            guardian_phone="+233200000001",
        )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
