from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest

from src.exeat_system.exeat_system.core.enums import AuditAction, RequestStatus
from src.exeat_system.exeat_system.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from src.exeat_system.exeat_system.requests.filters import RequestFilter

from tests.fakes import H1, H2


def _submit(world, student=None, **overrides):
    payload = dict(
        departure_date="2026-03-06",
        departure_time="14:00",
        duration="2 days",
        destination="Accra",
        reason="Family visit",
    )
    payload.update(overrides)
    return world.container.request_service.create(student or world.student_h1, **payload)


def test_student_creates_pending_request_in_own_house(world):
    req = _submit(world)

    assert req.status == RequestStatus.PENDING
    assert req.house_id == H1.id
    assert req.departure_date == date(2026, 3, 6)
    assert req.departure_time == time(14, 0)
    assert req.semester == "1"
    assert req.academic_year == "2025/2026"
    assert req.expires_at == world.clock.now + timedelta(hours=48)
    assert AuditAction.REQUEST_CREATED.value in world.audit.actions()


def test_guardian_defaults_to_student_record(world):
    req = _submit(world)
    assert req.guardian_name == "Yaw Asante"
    assert req.guardian_phone == "+233200000001"

    req = _submit(world, guardian_name="Aunt Efua", guardian_phone="0244000000")
    assert req.guardian_name == "Aunt Efua"


def test_missing_required_field_is_rejected(world):
    with pytest.raises(ValidationError):
        _submit(world, destination="  ")
    with pytest.raises(ValidationError):
        _submit(world, departure_date="06/03/2026")
    assert world.requests.count_for_semester(student_id=4, semester="1", academic_year="2025/2026") == 0


def test_staff_cannot_submit_requests(world):
    with pytest.raises(AuthorizationError):
        _submit(world, student=world.housemaster_h1)


def test_quota_blocks_fourth_request_and_is_audited(world):
    world.settings.upsert(key="max_requests_per_semester", value="3", updated_by=1, updated_at=world.clock.now)

    for _ in range(3):
        _submit(world)

    with pytest.raises(QuotaExceededError):
        _submit(world)

    assert world.requests.count_for_semester(student_id=4, semester="1", academic_year="2025/2026") == 3
    assert world.audit.actions().count(AuditAction.REQUEST_DENIED_LIMIT.value) == 1


def test_quota_counts_rejected_and_cancelled_requests(world):
    world.settings.upsert(key="max_requests_per_semester", value="2", updated_by=1, updated_at=world.clock.now)
    first = _submit(world)
    world.container.request_service.cancel(world.student_h1, first.id)
    second = _submit(world)
    world.container.request_service.reject(world.housemaster_h1, second.id, "Exams week")

    with pytest.raises(QuotaExceededError):
        _submit(world)


def test_quota_is_per_semester(world):
    world.settings.upsert(key="max_requests_per_semester", value="1", updated_by=1, updated_at=world.clock.now)
    _submit(world)
    world.settings.upsert(key="current_semester", value="2", updated_by=1, updated_at=world.clock.now)

    req = _submit(world)
    assert req.semester == "2"


def test_other_house_housemaster_is_forbidden_then_own_housemaster_approves(world):
    svc = world.container.request_service
    req = _submit(world)

    with pytest.raises(AuthorizationError):
        svc.approve(world.housemaster_h2, req.id)
    assert world.requests.get(req.id).status == RequestStatus.PENDING

    approved = svc.approve(world.housemaster_h1, req.id)
    assert approved.status == RequestStatus.APPROVED
    assert approved.approved_by == world.housemaster_h1.id
    assert approved.approved_at == world.clock.now
    assert approved.approved_by_name == "Ama Owusu"

    with pytest.raises(ValidationError, match="already been processed"):
        svc.approve(world.headmaster, req.id)
    # scope is checked before status
    with pytest.raises(AuthorizationError):
        svc.approve(world.housemaster_h2, req.id)


def test_other_house_housemaster_cannot_reject_pending_or_decided(world):
    svc = world.container.request_service
    req = _submit(world)

    with pytest.raises(AuthorizationError):
        svc.reject(world.housemaster_h2, req.id, "Not my call")
    assert world.requests.get(req.id).status == RequestStatus.PENDING

    svc.approve(world.housemaster_h1, req.id)
    with pytest.raises(AuthorizationError):
        svc.reject(world.housemaster_h2, req.id, "Not my call")

    after = world.requests.get(req.id)
    assert after.status == RequestStatus.APPROVED
    assert after.rejected_by is None
    assert AuditAction.REQUEST_REJECTED.value not in world.audit.actions()


def test_approve_unknown_request_is_not_found(world):
    with pytest.raises(NotFoundError):
        world.container.request_service.approve(world.headmaster, 999)


def test_reject_requires_reason(world):
    svc = world.container.request_service
    req = _submit(world)

    with pytest.raises(ValidationError):
        svc.reject(world.headmaster, req.id, "   ")
    assert world.requests.get(req.id).status == RequestStatus.PENDING

    rejected = svc.reject(world.headmaster, req.id, "Exams week")
    assert rejected.status == RequestStatus.REJECTED
    assert rejected.rejection_reason == "Exams week"
    assert rejected.rejected_by == world.headmaster.id


def test_cancel_uses_default_reason_and_ends_as_rejected(world):
    svc = world.container.request_service
    req = _submit(world)

    cancelled = svc.cancel(world.student_h1, req.id)

    assert cancelled.status == RequestStatus.REJECTED
    assert cancelled.is_cancelled
    assert cancelled.cancellation_reason == "Cancelled by student"
    assert cancelled.cancelled_by == world.student_h1.id
    with pytest.raises(ValidationError):
        svc.cancel(world.student_h1, req.id)


def test_student_cannot_touch_another_students_request(world):
    svc = world.container.request_service
    req = _submit(world)

    with pytest.raises(NotFoundError):
        svc.cancel(world.student_h2, req.id)
    with pytest.raises(NotFoundError):
        svc.get(world.student_h2, req.id)


def test_edit_updates_pending_request(world):
    svc = world.container.request_service
    req = _submit(world)
    world.clock.now = world.clock.now + timedelta(hours=1)

    edited = svc.edit(
        world.student_h1,
        req.id,
        departure_date="2026-03-07",
        departure_time="09:30",
        duration="1 day",
        destination="Kumasi",
        reason="Medical appointment",
    )

    assert edited.destination == "Kumasi"
    assert edited.departure_date == date(2026, 3, 7)
    assert edited.edited_at == datetime(2026, 3, 1, 9, 0, 0)
    assert edited.guardian_name == "Yaw Asante"


def test_edit_rules(world):
    svc = world.container.request_service
    req = _submit(world)
    details = dict(
        departure_date="2026-03-07", departure_time="09:30", duration="1 day", destination="Kumasi", reason="x"
    )

    world.settings.upsert(key="allow_request_editing", value="false", updated_by=1, updated_at=world.clock.now)
    with pytest.raises(AuthorizationError):
        svc.edit(world.student_h1, req.id, **details)

    world.settings.upsert(key="allow_request_editing", value="true", updated_by=1, updated_at=world.clock.now)
    svc.approve(world.housemaster_h1, req.id)
    with pytest.raises(ValidationError):
        svc.edit(world.student_h1, req.id, **details)


def test_cancellation_can_be_disabled(world):
    req = _submit(world)
    world.settings.upsert(key="allow_request_cancellation", value="0", updated_by=1, updated_at=world.clock.now)

    with pytest.raises(AuthorizationError):
        world.container.request_service.cancel(world.student_h1, req.id)


def test_expire_sweep_flags_once_and_keeps_status(world):
    svc = world.container.request_service
    req = _submit(world)

    world.clock.now = req.expires_at + timedelta(minutes=1)
    assert svc.expire_sweep() == 1
    assert svc.expire_sweep() == 0

    flagged = world.requests.get(req.id)
    assert flagged.is_expired
    assert flagged.status == RequestStatus.PENDING
    assert svc.stats(world.headmaster).expired == 1

    # an expired request can still be decided
    assert svc.approve(world.housemaster_h1, req.id).status == RequestStatus.APPROVED


def test_listing_reports_lapsed_requests_as_expired(world):
    svc = world.container.request_service
    req = _submit(world)
    world.clock.now = req.expires_at + timedelta(seconds=1)

    [listed] = svc.list(world.headmaster)

    assert listed.id == req.id
    assert listed.is_expired
    assert listed.status == RequestStatus.PENDING


def test_expire_sweep_ignores_decided_requests(world):
    svc = world.container.request_service
    req = _submit(world)
    svc.approve(world.housemaster_h1, req.id)

    world.clock.now = req.expires_at + timedelta(days=1)
    assert svc.expire_sweep() == 0
    assert not world.requests.get(req.id).is_expired


def test_batch_approve_is_house_scoped_for_housemasters(world):
    svc = world.container.request_service
    own = _submit(world)
    other = _submit(world, student=world.student_h2)
    decided = _submit(world)
    svc.reject(world.housemaster_h1, decided.id, "No")

    approved = svc.batch_approve(world.housemaster_h1, [own.id, other.id, decided.id, 999])

    assert [r.id for r in approved] == [own.id]
    assert world.requests.get(other.id).status == RequestStatus.PENDING
    assert AuditAction.REQUEST_BATCH_APPROVED.value in world.audit.actions()


def test_batch_approve_headmaster_and_empty_list(world):
    svc = world.container.request_service
    a = _submit(world)
    b = _submit(world, student=world.student_h2)

    approved = svc.batch_approve(world.headmaster, [str(a.id), b.id])
    assert {r.id for r in approved} == {a.id, b.id}

    with pytest.raises(ValidationError):
        svc.batch_approve(world.headmaster, [])
    with pytest.raises(ValidationError, match="whole numbers"):
        svc.batch_approve(world.headmaster, [True])


def test_list_is_scoped_by_role(world):
    svc = world.container.request_service
    mine = _submit(world)
    theirs = _submit(world, student=world.student_h2)

    assert [r.id for r in svc.list(world.student_h1)] == [mine.id]
    assert [r.id for r in svc.list(world.housemaster_h2)] == [theirs.id]
    assert {r.id for r in svc.list(world.headmaster)} == {mine.id, theirs.id}

    # a student cannot widen their view with filters
    assert svc.list(world.student_h1, RequestFilter(student_id=world.student_h2.id)) == []


def test_list_filters_and_search(world):
    svc = world.container.request_service
    a = _submit(world)
    b = _submit(world, student=world.student_h2)
    svc.approve(world.headmaster, b.id)

    assert [r.id for r in svc.list(world.headmaster, RequestFilter(status=RequestStatus.APPROVED))] == [b.id]
    assert [r.id for r in svc.list(world.headmaster, RequestFilter(house_id=H1.id))] == [a.id]
    assert [r.id for r in svc.list(world.headmaster, RequestFilter(search="kofi"))] == [a.id]
    assert [r.id for r in svc.list(world.headmaster, RequestFilter(search="STU005"))] == [b.id]


def test_get_for_staff_outside_house_is_forbidden(world):
    req = _submit(world)
    with pytest.raises(AuthorizationError):
        world.container.request_service.get(world.housemaster_h2, req.id)


def test_notes_are_staff_only_and_ordered(world):
    svc = world.container.request_service
    req = _submit(world)
    svc.approve(world.housemaster_h1, req.id)

    svc.add_note(world.housemaster_h1, req.id, "Called guardian")
    world.clock.now = world.clock.now + timedelta(minutes=5)
    note = svc.add_note(world.headmaster, req.id, "Confirmed return")

    assert note.author_name == "Kwame Mensah"
    assert [n.note for n in svc.list_notes(world.headmaster, req.id)] == ["Called guardian", "Confirmed return"]

    with pytest.raises(AuthorizationError):
        svc.add_note(world.student_h1, req.id, "hi")
    with pytest.raises(AuthorizationError):
        svc.add_note(world.housemaster_h2, req.id, "not my house")
    with pytest.raises(ValidationError):
        svc.add_note(world.headmaster, req.id, "")


def test_stats_and_house_stats(world):
    svc = world.container.request_service
    a = _submit(world)
    _submit(world)
    b = _submit(world, student=world.student_h2)
    svc.approve(world.headmaster, a.id)
    svc.reject(world.headmaster, b.id, "No")

    overall = svc.stats(world.headmaster)
    assert (overall.total, overall.pending, overall.approved, overall.rejected) == (3, 1, 1, 1)
    assert svc.stats(world.student_h2).total == 1

    houses = svc.house_stats(world.housemaster_h1)
    assert [(h.house_id, h.total_requests) for h in houses] == [(H1.id, 2)]
    with pytest.raises(AuthorizationError):
        svc.house_stats(world.student_h1)
