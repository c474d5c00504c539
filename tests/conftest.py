from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import pytest

from src.exeat_system.exeat_system.container import Container, assemble_container
from src.exeat_system.exeat_system.core.enums import Role
from src.exeat_system.exeat_system.users.model import User

from tests.fakes import (
    H1,
    H2,
    FakeAnalyticsRepo,
    FakeAuditRepo,
    FakeClock,
    FakeHouseRepo,
    FakeRequestRepo,
    FakeSettingsRepo,
    FakeUserRepo,
    make_user,
)


@dataclass
class World:
    clock: FakeClock
    houses: FakeHouseRepo
    users: FakeUserRepo
    requests: FakeRequestRepo
    settings: FakeSettingsRepo
    audit: FakeAuditRepo
    analytics: FakeAnalyticsRepo
    container: Container

    headmaster: User
    housemaster_h1: User
    housemaster_h2: User
    student_h1: User
    student_h2: User


@pytest.fixture
def world() -> World:
    clock = FakeClock(datetime(2026, 3, 1, 8, 0, 0))
    houses = FakeHouseRepo()
    users = FakeUserRepo(
        [
            make_user(1, Role.HEADMASTER, first_name="Kwame", last_name="Mensah", email="head@school.edu"),
            make_user(2, Role.HOUSEMASTER, house_id=H1.id, first_name="Ama", last_name="Owusu"),
            make_user(3, Role.HOUSEMASTER, house_id=H2.id, first_name="Yaw", last_name="Boateng"),
            make_user(
                4,
                Role.STUDENT,
                house_id=H1.id,
                first_name="Kofi",
                last_name="Asante",
                email="kofi@school.edu",
                class_name="Form 2A",
                guardian_name="Yaw Asante",
                guardian_phone="+233200000001",
            ),
            make_user(5, Role.STUDENT, house_id=H2.id, first_name="Esi", last_name="Mensah"),
        ],
        houses=houses,
    )
    requests = FakeRequestRepo(users, houses)
    settings = FakeSettingsRepo()
    audit = FakeAuditRepo()
    analytics = FakeAnalyticsRepo()

    container = assemble_container(
        users_repo=users,
        houses_repo=houses,
        requests_repo=requests,
        settings_repo=settings,
        audit_repo=audit,
        analytics_repo=analytics,
        jwt_secret="test-jwt-secret",
        clock=clock,
    )

    return World(
        clock=clock,
        houses=houses,
        users=users,
        requests=requests,
        settings=settings,
        audit=audit,
        analytics=analytics,
        container=container,
        headmaster=users.get_by_id(1),
        housemaster_h1=users.get_by_id(2),
        housemaster_h2=users.get_by_id(3),
        student_h1=users.get_by_id(4),
        student_h2=users.get_by_id(5),
    )


@pytest.fixture
def app(world, monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    from src.exeat_system.exeat_system.main import create_app

    return create_app(world.container)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_header(world):
    def _header(user: User) -> dict:
        return {"Authorization": f"Bearer {world.container.token_service.issue(user)}"}

    return _header
