from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.timeclock.timeclock.audit.memory_audit_repository import InMemoryAuditRepository
from src.timeclock.timeclock.audit.trail import ENTITY_WORK_SESSION, AuditTrail
from src.timeclock.timeclock.common.clock import FixedClock
from src.timeclock.timeclock.core.context import CallerContext
from src.timeclock.timeclock.core.enums import AuditAction, Role, SessionStatus
from src.timeclock.timeclock.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.timeclock.timeclock.database.memory import InMemoryStore
from src.timeclock.timeclock.sessions.memory_session_repository import InMemorySessionRepository
from src.timeclock.timeclock.sessions.service import SessionService

UTC = timezone.utc

ALICE = CallerContext(user_id=1, tenant_id=10, role=Role.EMPLOYEE)
BOB = CallerContext(user_id=2, tenant_id=10, role=Role.EMPLOYEE)
MANAGER = CallerContext(user_id=3, tenant_id=10, role=Role.MANAGER)
OUTSIDER = CallerContext(user_id=4, tenant_id=20, role=Role.ADMIN)


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=UTC)


def _build(clock: FixedClock | None = None):
    store = InMemoryStore(clock=clock or FixedClock(at(4, 9)))
    repo = InMemorySessionRepository(store)
    audit_repo = InMemoryAuditRepository(store)
    service = SessionService(repo, AuditTrail(audit_repo, clock=store.clock))
    return service, store, audit_repo


def test_full_day_with_lunch_break_totals_450_minutes():
    service, _, _ = _build()

    s = service.clock_in(ALICE, at=at(4, 9))
    service.start_break(ALICE, s.session_id, at=at(4, 12))
    service.end_break(ALICE, s.session_id, at=at(4, 12, 30))
    done = service.clock_out(ALICE, s.session_id, at=at(4, 17))

    assert done.status == SessionStatus.CLOCKED_OUT
    assert done.total_minutes == 450
    assert done.work_date == at(4, 9).date()
    assert len(done.breaks) == 1
    assert done.breaks[0].duration_minutes == 30


def test_second_clock_in_while_active_conflicts():
    service, _, _ = _build()
    service.clock_in(ALICE, at=at(4, 9))

    with pytest.raises(ConflictError):
        service.clock_in(ALICE, at=at(4, 10))


def test_second_session_on_same_utc_day_conflicts():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.clock_out(ALICE, s.session_id, at=at(4, 12))

    with pytest.raises(ConflictError):
        service.clock_in(ALICE, at=at(4, 13))


def test_clock_in_inside_previous_overnight_session_conflicts():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 20))
    service.clock_out(ALICE, s.session_id, at=at(5, 2))

    with pytest.raises(ConflictError, match="overlaps"):
        service.clock_in(ALICE, at=at(5, 1))

    nxt = service.clock_in(ALICE, at=at(5, 8))
    assert nxt.work_date == at(5, 8).date()


def test_users_do_not_conflict_with_each_other():
    service, _, _ = _build()
    service.clock_in(ALICE, at=at(4, 9))
    s = service.clock_in(BOB, at=at(4, 9))
    assert s.user_id == BOB.user_id


def test_clock_out_must_be_after_clock_in():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))

    with pytest.raises(ValidationError):
        service.clock_out(ALICE, s.session_id, at=at(4, 9))
    with pytest.raises(ValidationError):
        service.clock_out(ALICE, s.session_id, at=at(4, 8))


def test_clock_out_twice_is_invalid_state():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.clock_out(ALICE, s.session_id, at=at(4, 17))

    with pytest.raises(InvalidStateError):
        service.clock_out(ALICE, s.session_id, at=at(4, 18))


def test_clock_out_during_break_closes_the_break():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.start_break(ALICE, s.session_id, at=at(4, 12))

    done = service.clock_out(ALICE, s.session_id, at=at(4, 13))

    assert done.total_minutes == 180
    assert done.open_break is None
    assert done.breaks[0].end_time == at(4, 13)
    assert done.breaks[0].duration_minutes == 60


def test_clock_out_cannot_fall_inside_a_finished_break():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.start_break(ALICE, s.session_id, at=at(4, 12))
    service.end_break(ALICE, s.session_id, at=at(4, 12, 30))

    with pytest.raises(ValidationError, match="break ended"):
        service.clock_out(ALICE, s.session_id, at=at(4, 12, 15))

    current = service.get_session(ALICE, s.session_id)
    assert current.status == SessionStatus.WORKING
    assert current.clock_out is None

    done = service.clock_out(ALICE, s.session_id, at=at(4, 12, 30))
    assert done.total_minutes == 180


def test_break_transitions_are_guarded():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))

    with pytest.raises(InvalidStateError):
        service.end_break(ALICE, s.session_id, at=at(4, 10))

    on_break = service.start_break(ALICE, s.session_id, at=at(4, 10))
    assert on_break.status == SessionStatus.ON_BREAK

    with pytest.raises(InvalidStateError):
        service.start_break(ALICE, s.session_id, at=at(4, 10, 5))
    with pytest.raises(ValidationError):
        service.end_break(ALICE, s.session_id, at=at(4, 9, 59))

    back = service.end_break(ALICE, s.session_id, at=at(4, 10, 15))
    assert back.status == SessionStatus.WORKING

    with pytest.raises(ValidationError):
        service.start_break(ALICE, s.session_id, at=at(4, 10, 10))


def test_break_cannot_start_before_clock_in():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))

    with pytest.raises(ValidationError):
        service.start_break(ALICE, s.session_id, at=at(4, 8))


def test_other_employee_cannot_operate_session():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))

    with pytest.raises(AuthorizationError):
        service.clock_out(BOB, s.session_id, at=at(4, 17))
    with pytest.raises(AuthorizationError):
        service.get_session(BOB, s.session_id)

    assert service.clock_out(MANAGER, s.session_id, at=at(4, 17)).total_minutes == 480


def test_other_tenant_sees_not_found():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))

    with pytest.raises(NotFoundError):
        service.get_session(OUTSIDER, s.session_id)
    with pytest.raises(NotFoundError):
        service.clock_out(OUTSIDER, s.session_id, at=at(4, 17))


def test_active_session_lookup():
    service, _, _ = _build()
    assert service.get_active_session(ALICE) is None

    s = service.clock_in(ALICE, at=at(4, 9))
    assert service.get_active_session(ALICE).session_id == s.session_id

    service.clock_out(ALICE, s.session_id, at=at(4, 17))
    assert service.get_active_session(ALICE) is None


def test_list_sessions_is_scoped_for_employees():
    service, _, _ = _build()
    for day in (4, 5, 6):
        s = service.clock_in(ALICE, at=at(day, 9))
        service.clock_out(ALICE, s.session_id, at=at(day, 17))
    service.clock_in(BOB, at=at(4, 9))

    page = service.list_sessions(ALICE, user_id=BOB.user_id)
    assert page.total == 3
    assert all(s.user_id == ALICE.user_id for s in page.sessions)
    assert [s.work_date.day for s in page.sessions] == [6, 5, 4]

    page = service.list_sessions(MANAGER, user_id=BOB.user_id)
    assert page.total == 1

    page = service.list_sessions(MANAGER, limit=2, offset=1)
    assert page.total == 4
    assert len(page.sessions) == 2

    page = service.list_sessions(MANAGER, status=SessionStatus.WORKING)
    assert [s.user_id for s in page.sessions] == [BOB.user_id]


@pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (10, -1), ("x", 0)])
def test_list_sessions_rejects_bad_paging(limit, offset):
    service, _, _ = _build()
    with pytest.raises(ValidationError):
        service.list_sessions(ALICE, limit=limit, offset=offset)


def test_update_session_is_privileged_and_recomputes_total():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.start_break(ALICE, s.session_id, at=at(4, 12))
    service.end_break(ALICE, s.session_id, at=at(4, 12, 30))
    service.clock_out(ALICE, s.session_id, at=at(4, 17))

    with pytest.raises(AuthorizationError):
        service.update_session(ALICE, s.session_id, clock_out=at(4, 18))

    updated = service.update_session(MANAGER, s.session_id, clock_out=at(4, 18), notes="stayed late")
    assert updated.clock_out == at(4, 18)
    assert updated.total_minutes == 510
    assert updated.notes == "stayed late"

    with pytest.raises(ValidationError):
        service.update_session(MANAGER, s.session_id, clock_in=at(4, 19))
    with pytest.raises(ValidationError):
        service.update_session(MANAGER, s.session_id, clock_in=at(4, 13))


def test_update_session_rejects_overlap_with_another_session():
    service, _, _ = _build()
    first = service.clock_in(ALICE, at=at(4, 20))
    service.clock_out(ALICE, first.session_id, at=at(4, 23))
    second = service.clock_in(ALICE, at=at(5, 8))
    service.clock_out(ALICE, second.session_id, at=at(5, 16))

    with pytest.raises(ConflictError):
        service.update_session(MANAGER, first.session_id, clock_out=at(5, 9))


def test_delete_session_is_privileged():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))

    with pytest.raises(AuthorizationError):
        service.delete_session(ALICE, s.session_id)

    service.delete_session(MANAGER, s.session_id)
    with pytest.raises(NotFoundError):
        service.get_session(MANAGER, s.session_id)


def test_mutations_are_audited():
    service, _, audit_repo = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.start_break(ALICE, s.session_id, at=at(4, 12))
    service.end_break(ALICE, s.session_id, at=at(4, 12, 30))
    service.clock_out(ALICE, s.session_id, at=at(4, 17))

    history = audit_repo.list_for_entity(tenant_id=10, entity_type=ENTITY_WORK_SESSION, entity_id=s.session_id)
    assert [r.action for r in history] == [AuditAction.CREATED] + [AuditAction.UPDATED] * 3
    assert history[-1].new_values["total_minutes"] == 450
    assert history[-1].new_values["clock_out"] == at(4, 17).isoformat()


def test_audit_history_is_for_managers_in_the_same_tenant():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.clock_out(ALICE, s.session_id, at=at(4, 17))

    history = service.audit_history(MANAGER, s.session_id)
    assert [r.action for r in history] == [AuditAction.CREATED, AuditAction.UPDATED]
    assert all(r.entity_id == s.session_id for r in history)

    with pytest.raises(AuthorizationError):
        service.audit_history(ALICE, s.session_id)
    with pytest.raises(NotFoundError):
        service.audit_history(OUTSIDER, s.session_id)


class _BrokenAudit:
    def add(self, record):
        raise RuntimeError("audit store down")

    def list_for_entity(self, **kwargs):
        return []


def test_audit_failure_does_not_undo_the_operation(caplog):
    store = InMemoryStore(clock=FixedClock(at(4, 9)))
    repo = InMemorySessionRepository(store)
    service = SessionService(repo, AuditTrail(_BrokenAudit(), clock=store.clock))

    with caplog.at_level("ERROR"):
        s = service.clock_in(ALICE, at=at(4, 9))

    assert repo.get_by_id(s.session_id, ALICE.tenant_id) is not None
    assert "Audit write failed" in caplog.text


def test_validate_candidate_interval_reports_instead_of_raising():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.clock_out(ALICE, s.session_id, at=at(4, 17))

    result = service.validate_candidate_interval(ALICE, start=at(5, 10), end=at(5, 9))
    assert not result.is_valid
    assert result.warnings

    result = service.validate_candidate_interval(ALICE, start=at(4, 16), end=at(4, 18))
    assert not result.is_valid
    assert [c.session_id for c in result.conflicts] == [s.session_id]

    result = service.validate_candidate_interval(ALICE, start=at(4, 16), end=at(4, 18), exclude_id=s.session_id)
    assert result.is_valid

    result = service.validate_candidate_interval(ALICE, start=at(5, 6), end=at(5, 6) + timedelta(hours=13))
    assert result.is_valid
    assert result.warnings == ["Interval exceeds 12 hours"]


def test_validate_candidate_interval_flags_same_day_session():
    service, _, _ = _build()
    s = service.clock_in(ALICE, at=at(4, 9))
    service.clock_out(ALICE, s.session_id, at=at(4, 12))

    result = service.validate_candidate_interval(ALICE, start=at(4, 13), end=at(4, 15))
    assert not result.is_valid
    assert [c.session_id for c in result.conflicts] == [s.session_id]


def test_checking_another_users_time_requires_privilege():
    service, _, _ = _build()
    s = service.clock_in(BOB, at=at(4, 9))

    with pytest.raises(AuthorizationError):
        service.get_conflicts(ALICE, start=at(4, 10), user_id=BOB.user_id)

    found = service.get_conflicts(MANAGER, start=at(4, 10), user_id=BOB.user_id)
    assert [c.session_id for c in found] == [s.session_id]
