"""UTC calendar math.

Every boundary is computed from the UTC components of an instant, never from
local wall-clock time.
"""

from __future__ import annotations

import calendar
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional

from ..core.constants import DAYS_PER_WEEK, SECONDS_PER_MINUTE
from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 instant. Naive values are read as UTC."""
    v = (value or "").strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"Invalid timestamp {value!r}, expected ISO-8601")
    return to_utc(parsed)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_optional(value: Optional[datetime]) -> Optional[datetime]:
    return to_utc(value) if value is not None else None


def utc_day(instant: datetime) -> date:
    return to_utc(instant).date()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Elapsed minutes rounded half-up to the nearest whole minute."""
    seconds = (to_utc(end) - to_utc(start)).total_seconds()
    return math.floor(seconds / SECONDS_PER_MINUTE + 0.5)


def minutes_to_hours(minutes: int) -> float:
    return round(minutes / 60, 2)


def iso_week_start(year: int, week: int) -> date:
    """Monday of ISO week ``week`` in ISO year ``year``."""
    try:
        return date.fromisocalendar(year, week, 1)
    except ValueError:
        raise ValidationError(f"Week {week} does not exist in {year}")


def iso_week_bounds(year: int, week: int) -> tuple[datetime, datetime]:
    """Monday 00:00:00 UTC through Sunday 23:59:59.999999 UTC."""
    monday = iso_week_start(year, week)
    sunday = monday + timedelta(days=DAYS_PER_WEEK - 1)
    return start_of_day(monday), end_of_day(sunday)


def iso_week_number(day: date) -> tuple[int, int]:
    """(iso_year, iso_week) of a day: the week holding the nearest Thursday."""
    iso = day.isocalendar()
    return iso[0], iso[1]


def iter_days(first: date, last: date) -> Iterator[date]:
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def iter_iso_weeks(first: date, last: date) -> Iterator[tuple[int, int]]:
    """ISO (year, week) pairs from the week of ``first`` to the week of ``last``.

    Walks Mondays, so a month starting in week 53 of the previous ISO year or
    ending in week 1 of the next one is still covered in order.
    """
    monday = first - timedelta(days=first.weekday())
    while monday <= last:
        yield iso_week_number(monday)
        monday += timedelta(days=DAYS_PER_WEEK)
