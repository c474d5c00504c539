"""In-memory repositories implementing the repository Protocols, for service and API tests."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from werkzeug.security import generate_password_hash

from src.exeat_system.exeat_system.analytics.model import (
    HouseBreakdown,
    OverallStats,
    SemesterBreakdown,
    TopRequester,
)
from src.exeat_system.exeat_system.audit.model import AuditActionStat, AuditLogEntry
from src.exeat_system.exeat_system.core.enums import RequestStatus, Role
from src.exeat_system.exeat_system.requests.model import ExeatRequest, HouseStats, RequestNote, RequestStats
from src.exeat_system.exeat_system.settings.model import SystemSetting
from src.exeat_system.exeat_system.users.house_model import House
from src.exeat_system.exeat_system.users.model import User

PASSWORD = "secret123"
_PASSWORD_HASH = generate_password_hash(PASSWORD)

H1 = House(id=1, name="Aggrey House")
H2 = House(id=2, name="Guggisberg House")


def make_user(user_id: int, role: Role, *, house_id: Optional[int] = None, **kw) -> User:
    defaults = dict(
        email=f"user{user_id}@school.edu",
        password_hash=_PASSWORD_HASH,
        first_name=f"First{user_id}",
        last_name=f"Last{user_id}",
        student_id=f"STU{user_id:03d}" if role == Role.STUDENT else None,
    )
    defaults.update(kw)
    return User(id=user_id, role=role, house_id=house_id, **defaults)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeHouseRepo:
    def __init__(self, houses=(H1, H2)):
        self._houses = {h.id: h for h in houses}

    def list_all(self):
        return list(self._houses.values())

    def get_by_id(self, house_id):
        return self._houses.get(int(house_id))


class FakeUserRepo:
    def __init__(self, users=(), houses: Optional[FakeHouseRepo] = None):
        self._houses = houses or FakeHouseRepo()
        self._users: dict[int, User] = {}
        self._next_id = 1
        for u in users:
            self.add(u)

    def add(self, user: User) -> User:
        house = self._houses.get_by_id(user.house_id) if user.house_id is not None else None
        user = replace(user, house_name=house.name if house else None)
        self._users[user.id] = user
        self._next_id = max(self._next_id, user.id + 1)
        return user

    def _update(self, user_id, **changes) -> bool:
        user = self._users.get(int(user_id))
        if not user:
            return False
        self.add(replace(user, **changes))
        return True

    def get_by_id(self, user_id):
        return self._users.get(int(user_id))

    def get_by_email(self, email):
        return next((u for u in self._users.values() if u.email == email), None)

    def find_conflict(self, *, student_id, email, exclude_user_id=None):
        for u in self._users.values():
            if u.id == exclude_user_id:
                continue
            if (student_id and u.student_id == student_id) or u.email == email:
                return u
        return None

    def create_user(
        self,
        *,
        role,
        email,
        password_hash,
        first_name,
        last_name,
        house_id=None,
        student_id=None,
        staff_id=None,
        phone=None,
        class_name=None,
        guardian_name=None,
        guardian_phone=None,
    ):
        uid = self._next_id
        self.add(
            User(
                id=uid,
                email=email,
                password_hash=password_hash,
                role=role,
                first_name=first_name,
                last_name=last_name,
                house_id=house_id,
                student_id=student_id,
                staff_id=staff_id,
                phone=phone,
                class_name=class_name,
                guardian_name=guardian_name,
                guardian_phone=guardian_phone,
                created_at=datetime(2026, 1, 10, 9, 0, 0),
            )
        )
        return uid

    def update_student(self, user_id, data):
        user = self._users.get(int(user_id))
        if not user or user.role != Role.STUDENT:
            return False
        return self._update(
            user_id,
            student_id=data.student_id,
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            house_id=data.house_id,
            phone=data.phone,
            class_name=data.class_name,
            guardian_name=data.guardian_name,
            guardian_phone=data.guardian_phone,
        )

    def set_active(self, user_id, *, is_active):
        return self._update(user_id, is_active=is_active)

    def set_password_hash(self, user_id, password_hash):
        return self._update(user_id, password_hash=password_hash)

    def set_two_factor(self, user_id, *, secret, enabled):
        return self._update(user_id, two_factor_secret=secret, two_factor_enabled=enabled)

    def touch_last_login(self, user_id, at):
        self._update(user_id, last_login=at)

    def list_students(self, *, house_id=None):
        return [
            u
            for u in self._users.values()
            if u.role == Role.STUDENT and (house_id is None or u.house_id == house_id)
        ]

    def list_users(self, *, role=None, house_id=None, search=None):
        out = []
        for u in self._users.values():
            if role is not None and u.role != role:
                continue
            if house_id is not None and u.house_id != house_id:
                continue
            if search and search.lower() not in f"{u.full_name} {u.email}".lower():
                continue
            out.append(u)
        return out


class FakeRequestRepo:
    def __init__(self, users: Optional[FakeUserRepo] = None, houses: Optional[FakeHouseRepo] = None):
        self._users = users
        self._houses = houses or FakeHouseRepo()
        self._rows: dict[int, ExeatRequest] = {}
        self._notes: list[RequestNote] = []
        self._next_id = 1

    def _display(self, req: ExeatRequest) -> ExeatRequest:
        student = self._users.get_by_id(req.student_id) if self._users else None
        approver = self._users.get_by_id(req.approved_by) if self._users and req.approved_by else None
        rejecter = self._users.get_by_id(req.rejected_by) if self._users and req.rejected_by else None
        house = self._houses.get_by_id(req.house_id)
        return replace(
            req,
            student_name=student.full_name if student else None,
            student_code=student.student_id if student else None,
            class_name=student.class_name if student else None,
            house_name=house.name if house else None,
            approved_by_name=approver.full_name if approver else None,
            rejected_by_name=rejecter.full_name if rejecter else None,
        )

    def seed(self, **fields) -> ExeatRequest:
        """Insert a request directly, bypassing the service rules."""
        rid = fields.pop("id", self._next_id)
        self._next_id = max(self._next_id, rid + 1)
        defaults = dict(
            departure_date=datetime(2026, 3, 6).date(),
            departure_time=datetime(2026, 3, 6, 14, 0).time(),
            duration="2 days",
            destination="Home",
            reason="Family visit",
            status=RequestStatus.PENDING,
            semester="1",
            academic_year="2025/2026",
            expires_at=datetime(2026, 3, 3, 8, 0, 0),
            created_at=datetime(2026, 3, 1, 8, 0, 0),
        )
        defaults.update(fields)
        self._rows[rid] = ExeatRequest(id=rid, **defaults)
        return self._rows[rid]

    def create_within_quota(
        self, *, student_id, house_id, details, semester, academic_year, max_requests, expires_at, created_at
    ):
        used = self.count_for_semester(student_id=student_id, semester=semester, academic_year=academic_year)
        if used >= max_requests:
            return None, used
        rid = self._next_id
        self._next_id += 1
        self._rows[rid] = ExeatRequest(
            id=rid,
            student_id=student_id,
            house_id=house_id,
            departure_date=details.departure_date,
            departure_time=details.departure_time,
            duration=details.duration,
            destination=details.destination,
            reason=details.reason,
            guardian_name=details.guardian_name,
            guardian_phone=details.guardian_phone,
            status=RequestStatus.PENDING,
            semester=semester,
            academic_year=academic_year,
            expires_at=expires_at,
            created_at=created_at,
        )
        return rid, used

    def get(self, request_id):
        req = self._rows.get(int(request_id))
        return self._display(req) if req else None

    def list(self, filters, scope):
        rows = [self._display(r) for r in self._rows.values() if scope.allows(r)]
        rows = [r for r in rows if filters.matches(r)]
        return sorted(rows, key=lambda r: (r.created_at, r.id), reverse=True)

    def count_for_semester(self, *, student_id, semester, academic_year):
        return sum(
            1
            for r in self._rows.values()
            if r.student_id == student_id and r.semester == semester and r.academic_year == academic_year
        )

    def _transition(self, request_id, *, student_id=None, **changes) -> bool:
        req = self._rows.get(int(request_id))
        if not req or req.status != RequestStatus.PENDING:
            return False
        if student_id is not None and req.student_id != student_id:
            return False
        self._rows[req.id] = replace(req, **changes)
        return True

    def update_details(self, request_id, *, student_id, details, edited_at):
        return self._transition(
            request_id,
            student_id=student_id,
            departure_date=details.departure_date,
            departure_time=details.departure_time,
            duration=details.duration,
            destination=details.destination,
            reason=details.reason,
            guardian_name=details.guardian_name,
            guardian_phone=details.guardian_phone,
            edited_at=edited_at,
        )

    def approve(self, request_id, *, approver_id, approved_at):
        return self._transition(
            request_id, status=RequestStatus.APPROVED, approved_by=approver_id, approved_at=approved_at
        )

    def approve_many(self, request_ids, *, approver_id, approved_at, house_id=None):
        approved = []
        for rid in request_ids:
            req = self._rows.get(int(rid))
            if not req or (house_id is not None and req.house_id != house_id):
                continue
            if self.approve(rid, approver_id=approver_id, approved_at=approved_at):
                approved.append(int(rid))
        return approved

    def reject(self, request_id, *, rejector_id, reason, rejected_at):
        return self._transition(
            request_id,
            status=RequestStatus.REJECTED,
            rejected_by=rejector_id,
            rejected_at=rejected_at,
            rejection_reason=reason,
        )

    def cancel(self, request_id, *, student_id, reason, cancelled_at):
        return self._transition(
            request_id,
            student_id=student_id,
            status=RequestStatus.REJECTED,
            cancelled_by=student_id,
            cancelled_at=cancelled_at,
            cancellation_reason=reason,
        )

    def mark_expired(self, now):
        flagged = 0
        for rid, req in list(self._rows.items()):
            if req.status == RequestStatus.PENDING and not req.is_expired and req.expires_at < now:
                self._rows[rid] = replace(req, is_expired=True)
                flagged += 1
        return flagged

    def add_note(self, *, request_id, author_id, note, created_at):
        nid = len(self._notes) + 1
        author = self._users.get_by_id(author_id) if self._users else None
        self._notes.append(
            RequestNote(
                id=nid,
                request_id=int(request_id),
                author_id=author_id,
                note=note,
                created_at=created_at,
                author_name=author.full_name if author else None,
            )
        )
        return nid

    def list_notes(self, request_id):
        return sorted((n for n in self._notes if n.request_id == int(request_id)), key=lambda n: n.created_at)

    def stats(self, scope):
        rows = [r for r in self._rows.values() if scope.allows(r)]
        return RequestStats(
            total=len(rows),
            pending=sum(1 for r in rows if r.status == RequestStatus.PENDING),
            approved=sum(1 for r in rows if r.status == RequestStatus.APPROVED),
            rejected=sum(1 for r in rows if r.status == RequestStatus.REJECTED),
            expired=sum(1 for r in rows if r.status == RequestStatus.PENDING and r.is_expired),
        )

    def house_stats(self, scope):
        out = []
        for house in self._houses.list_all():
            if scope.deny_all or (scope.house_id is not None and house.id != scope.house_id):
                continue
            rows = [r for r in self._rows.values() if r.house_id == house.id and scope.allows(r)]
            out.append(
                HouseStats(
                    house_id=house.id,
                    house_name=house.name,
                    total_requests=len(rows),
                    pending=sum(1 for r in rows if r.status == RequestStatus.PENDING),
                    approved=sum(1 for r in rows if r.status == RequestStatus.APPROVED),
                    rejected=sum(1 for r in rows if r.status == RequestStatus.REJECTED),
                    expired=sum(1 for r in rows if r.status == RequestStatus.PENDING and r.is_expired),
                )
            )
        return out


class FakeSettingsRepo:
    def __init__(self, values: Optional[dict] = None):
        self._rows = {k: SystemSetting(key=k, value=str(v)) for k, v in (values or {}).items()}

    def list_all(self):
        return [self._rows[k] for k in sorted(self._rows)]

    def upsert(self, *, key, value, updated_by, updated_at):
        old = self._rows.get(key)
        self._rows[key] = SystemSetting(
            key=key,
            value=value,
            description=old.description if old else None,
            updated_by=updated_by,
            updated_at=updated_at,
        )
        return self._rows[key]


class FakeAuditRepo:
    def __init__(self):
        self.entries: list[AuditLogEntry] = []
        self.last_query = None

    def insert(self, *, user_id, action, details, ip_address, created_at):
        entry = AuditLogEntry(
            id=len(self.entries) + 1,
            user_id=user_id,
            action=action,
            details=details,
            ip_address=ip_address,
            created_at=created_at,
        )
        self.entries.append(entry)
        return entry.id

    def actions(self):
        return [e.action for e in self.entries]

    def query(self, q):
        self.last_query = q
        rows = [
            e
            for e in reversed(self.entries)
            if (q.user_id is None or e.user_id == q.user_id) and (q.action is None or e.action == q.action)
        ]
        return rows[: q.limit]

    def action_stats(self):
        stats: dict[str, AuditActionStat] = {}
        for e in self.entries:
            prev = stats.get(e.action)
            stats[e.action] = AuditActionStat(
                action=e.action,
                count=(prev.count if prev else 0) + 1,
                last_occurrence=e.created_at,
            )
        return sorted(stats.values(), key=lambda s: -s.count)


class BrokenAuditRepo(FakeAuditRepo):
    def insert(self, **kwargs):
        raise RuntimeError("audit store unavailable")


class FakeAnalyticsRepo:
    def __init__(self):
        self.periods = []

    def overall(self, period):
        self.periods.append(period)
        return OverallStats(total_requests=3, pending=1, approved=1, rejected=1, expired=0, avg_approval_hours=5.5)

    def by_house(self, period):
        return [HouseBreakdown(house_id=H1.id, house_name=H1.name, total_requests=3, pending=1, approved=1, rejected=1)]

    def by_semester(self, period):
        return [SemesterBreakdown(semester="1", academic_year="2025/2026", total=3, approved=1)]

    def top_requesters(self, period, *, limit):
        return [TopRequester(student_name="First3 Last3", student_code="STU003", house_name=H1.name, request_count=3)][
            :limit
        ]


class ScriptedCursor:
    def __init__(self, db: "ScriptedDB"):
        self._db = db
        self.lastrowid = None
        self.rowcount = 0

    def execute(self, sql, params=()):
        sql = " ".join(sql.split())
        self._db.executed.append((sql, tuple(params)))
        for fragment, exc in self._db.errors:
            if fragment in sql:
                raise exc
        self.lastrowid = self._db.lastrowid
        self.rowcount = 1

    def fetchone(self):
        return self._db.rows.pop(0) if self._db.rows else None

    def fetchall(self):
        rows, self._db.rows = self._db.rows, []
        return rows

    def close(self):
        pass


class ScriptedConnection:
    def __init__(self, db: "ScriptedDB"):
        self._db = db

    def cursor(self, dictionary=False):
        return ScriptedCursor(self._db)

    def commit(self):
        self._db.events.append("commit")

    def rollback(self):
        self._db.events.append("rollback")

    def close(self):
        self._db.events.append("close")


class ScriptedDB:
    """Stands in for `DatabaseConnection`: records statements, replays `rows`
    to fetchone() in order, and raises `errors[i][1]` for SQL containing `errors[i][0]`."""

    def __init__(self, rows=None, errors=None, lastrowid=None):
        self.rows = list(rows or [])
        self.errors = list(errors or [])
        self.lastrowid = lastrowid
        self.executed: list = []
        self.events: list = []
        self.connections = 0

    def connect(self):
        self.connections += 1
        return ScriptedConnection(self)
