from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import (
    iso_week_number,
    iso_week_start,
    iter_days,
    iter_iso_weeks,
    minutes_to_hours,
    month_bounds,
    utc_day,
)
from ..core.constants import DAYS_PER_WEEK
from ..core.context import CallerContext
from ..core.enums import SummaryMode
from ..core.permissions import report_subject
from ..sessions.model import WorkSession
from ..sessions.repository import SessionRepository
from ..sessions.totals import session_minutes
from .model import DailySummary, MonthlySummary, WeeklySummary

logger = logging.getLogger(__name__)


class ReportService:
    """Daily -> weekly -> monthly rollups of worked minutes, on UTC days."""

    def __init__(
        self,
        sessions: SessionRepository,
        *,
        clock: Optional[Clock] = None,
        monthly_mode: SummaryMode = SummaryMode.ISO_WEEKS,
    ):
        self._sessions = sessions
        self._clock = clock or SystemClock()
        self._monthly_mode = SummaryMode(monthly_mode)

    def _today(self) -> date:
        return utc_day(self._clock.now())

    def _summarize(self, day: date, sessions: Iterable[WorkSession]) -> DailySummary:
        now = self._clock.now()
        rows = sorted((s for s in sessions if s.work_date == day), key=lambda s: s.clock_in)
        total = sum(session_minutes(s, now=now) for s in rows)
        return DailySummary(work_date=day, total_minutes=total, total_hours=minutes_to_hours(total), sessions=rows)

    def daily_summary(
        self,
        caller: CallerContext,
        *,
        day: Optional[date] = None,
        user_id: Optional[int] = None,
    ) -> DailySummary:
        day = day or self._today()
        logger.info("Getting daily summary for %s", day.isoformat())

        rows = self._sessions.list_for_period(
            tenant_id=caller.tenant_id,
            date_from=day,
            date_to=day,
            user_id=report_subject(caller, user_id),
        )
        return self._summarize(day, rows)

    def _week(self, caller: CallerContext, year: int, week: int, days: list[date], user_id: Optional[int]) -> WeeklySummary:
        dailies = [self.daily_summary(caller, day=d, user_id=user_id) for d in days]
        total = sum(d.total_minutes for d in dailies)
        return WeeklySummary(
            year=year,
            week=week,
            week_start=days[0],
            week_end=days[-1],
            total_minutes=total,
            total_hours=minutes_to_hours(total),
            daily_summaries=dailies,
        )

    def weekly_summary(
        self,
        caller: CallerContext,
        *,
        year: Optional[int] = None,
        week: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> WeeklySummary:
        """ISO-8601 week: Monday 00:00 UTC through Sunday end of day UTC.

        Week 1 is the week holding the first Thursday of ``year``, so it can
        start in late December of the previous year or as late as January 4.
        """
        if year is None or week is None:
            current_year, current_week = iso_week_number(self._today())
            year = current_year if year is None else year
            week = current_week if week is None else week
        logger.info("Getting weekly summary for week %s of %s", week, year)

        monday = iso_week_start(int(year), int(week))
        days = [monday + timedelta(days=i) for i in range(DAYS_PER_WEEK)]
        return self._week(caller, int(year), int(week), days, user_id)

    def monthly_summary(
        self,
        caller: CallerContext,
        *,
        year: Optional[int] = None,
        month: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> MonthlySummary:
        """Sum of the ISO weeks touching the month.

        In ``iso_weeks`` mode boundary weeks are counted whole, so days of the
        neighbouring months are included. ``calendar_days`` mode keeps only
        the month's own days in each week.
        """
        today = self._today()
        year = today.year if year is None else int(year)
        month = today.month if month is None else int(month)
        logger.info("Getting monthly summary for %s/%s", month, year)

        first, last = month_bounds(year, month)
        weeklies: list[WeeklySummary] = []
        for iso_year, iso_week in iter_iso_weeks(first, last):
            if self._monthly_mode == SummaryMode.ISO_WEEKS:
                weeklies.append(self.weekly_summary(caller, year=iso_year, week=iso_week, user_id=user_id))
                continue

            monday = iso_week_start(iso_year, iso_week)
            sunday = monday + timedelta(days=DAYS_PER_WEEK - 1)
            days = list(iter_days(max(monday, first), min(sunday, last)))
            weeklies.append(self._week(caller, iso_year, iso_week, days, user_id))

        total = sum(w.total_minutes for w in weeklies)
        return MonthlySummary(
            year=year,
            month=month,
            total_minutes=total,
            total_hours=minutes_to_hours(total),
            weekly_summaries=weeklies,
        )
