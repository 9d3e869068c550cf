from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from src.timeclock.timeclock.audit.memory_audit_repository import InMemoryAuditRepository
from src.timeclock.timeclock.audit.trail import AuditTrail
from src.timeclock.timeclock.common.clock import FixedClock
from src.timeclock.timeclock.core.context import CallerContext
from src.timeclock.timeclock.core.enums import Role, SummaryMode
from src.timeclock.timeclock.core.exceptions import ValidationError
from src.timeclock.timeclock.database.memory import InMemoryStore
from src.timeclock.timeclock.reports.service import ReportService
from src.timeclock.timeclock.sessions.memory_session_repository import InMemorySessionRepository
from src.timeclock.timeclock.sessions.service import SessionService

UTC = timezone.utc

ALICE = CallerContext(user_id=1, tenant_id=10, role=Role.EMPLOYEE)
BOB = CallerContext(user_id=2, tenant_id=10, role=Role.EMPLOYEE)
MANAGER = CallerContext(user_id=3, tenant_id=10, role=Role.MANAGER)


def _build(now: datetime, monthly_mode: SummaryMode = SummaryMode.ISO_WEEKS):
    clock = FixedClock(now)
    store = InMemoryStore(clock=clock)
    repo = InMemorySessionRepository(store)
    sessions = SessionService(repo, AuditTrail(InMemoryAuditRepository(store), clock=clock))
    reports = ReportService(repo, clock=clock, monthly_mode=monthly_mode)
    return sessions, reports


def _work(sessions: SessionService, caller: CallerContext, day: date, minutes: int) -> None:
    start = datetime(day.year, day.month, day.day, 9, tzinfo=UTC)
    s = sessions.clock_in(caller, at=start)
    sessions.clock_out(caller, s.session_id, at=start + timedelta(minutes=minutes))


def test_daily_summary_totals_one_day():
    sessions, reports = _build(datetime(2024, 3, 10, 12, tzinfo=UTC))
    _work(sessions, ALICE, date(2024, 3, 4), 450)
    _work(sessions, ALICE, date(2024, 3, 5), 60)

    daily = reports.daily_summary(ALICE, day=date(2024, 3, 4))

    assert daily.work_date == date(2024, 3, 4)
    assert daily.total_minutes == 450
    assert daily.total_hours == 7.5
    assert len(daily.sessions) == 1


def test_running_session_counts_up_to_now():
    sessions, reports = _build(datetime(2024, 3, 4, 12, tzinfo=UTC))
    sessions.clock_in(ALICE, at=datetime(2024, 3, 4, 9, tzinfo=UTC))

    assert reports.daily_summary(ALICE).total_minutes == 180


def test_weekly_total_is_the_sum_of_its_days():
    sessions, reports = _build(datetime(2024, 3, 12, tzinfo=UTC))
    for offset, minutes in enumerate([480, 450, 0, 300, 240, 0, 120]):
        if minutes:
            _work(sessions, ALICE, date(2024, 3, 4) + timedelta(days=offset), minutes)
    _work(sessions, ALICE, date(2024, 3, 11), 480)

    weekly = reports.weekly_summary(ALICE, year=2024, week=10)

    assert weekly.week_start == date(2024, 3, 4)
    assert weekly.week_end == date(2024, 3, 10)
    assert [d.work_date for d in weekly.daily_summaries] == [date(2024, 3, 4) + timedelta(days=i) for i in range(7)]
    assert weekly.total_minutes == sum(d.total_minutes for d in weekly.daily_summaries) == 1590
    assert weekly.total_hours == 26.5


def test_weekly_defaults_to_the_current_iso_week():
    sessions, reports = _build(datetime(2021, 1, 2, 12, tzinfo=UTC))

    weekly = reports.weekly_summary(ALICE)

    assert (weekly.year, weekly.week) == (2020, 53)
    assert weekly.week_start == date(2020, 12, 28)


def test_week_one_starts_on_the_monday_of_the_first_thursday():
    _, reports = _build(datetime(2021, 1, 10, tzinfo=UTC))
    assert reports.weekly_summary(ALICE, year=2021, week=1).week_start == date(2021, 1, 4)


def test_monthly_iso_weeks_include_boundary_days():
    sessions, reports = _build(datetime(2024, 5, 10, tzinfo=UTC), SummaryMode.ISO_WEEKS)
    _work(sessions, ALICE, date(2024, 4, 10), 120)
    _work(sessions, ALICE, date(2024, 5, 2), 60)

    monthly = reports.monthly_summary(ALICE, year=2024, month=4)

    assert [w.week for w in monthly.weekly_summaries] == [14, 15, 16, 17, 18]
    assert monthly.total_minutes == 180
    assert monthly.total_minutes == sum(w.total_minutes for w in monthly.weekly_summaries)


def test_monthly_calendar_days_clip_to_the_month():
    sessions, reports = _build(datetime(2024, 5, 10, tzinfo=UTC), SummaryMode.CALENDAR_DAYS)
    _work(sessions, ALICE, date(2024, 4, 10), 120)
    _work(sessions, ALICE, date(2024, 5, 2), 60)

    monthly = reports.monthly_summary(ALICE, year=2024, month=4)

    assert monthly.total_minutes == 120
    last_week = monthly.weekly_summaries[-1]
    assert last_week.week_start == date(2024, 4, 29)
    assert last_week.week_end == date(2024, 4, 30)


def test_monthly_covers_weeks_across_the_year_boundary():
    sessions, reports = _build(datetime(2021, 2, 1, tzinfo=UTC))
    _work(sessions, ALICE, date(2020, 12, 30), 60)
    _work(sessions, ALICE, date(2021, 1, 5), 90)

    monthly = reports.monthly_summary(ALICE, year=2021, month=1)

    assert (monthly.weekly_summaries[0].year, monthly.weekly_summaries[0].week) == (2020, 53)
    assert monthly.total_minutes == 150


def test_invalid_month_is_rejected():
    _, reports = _build(datetime(2024, 5, 10, tzinfo=UTC))
    with pytest.raises(ValidationError):
        reports.monthly_summary(ALICE, year=2024, month=0)


def test_employees_only_see_their_own_time():
    sessions, reports = _build(datetime(2024, 3, 10, tzinfo=UTC))
    _work(sessions, ALICE, date(2024, 3, 4), 100)
    _work(sessions, BOB, date(2024, 3, 4), 200)

    assert reports.daily_summary(ALICE, day=date(2024, 3, 4), user_id=BOB.user_id).total_minutes == 100
    assert reports.daily_summary(MANAGER, day=date(2024, 3, 4), user_id=BOB.user_id).total_minutes == 200
    assert reports.daily_summary(MANAGER, day=date(2024, 3, 4)).total_minutes == 300
