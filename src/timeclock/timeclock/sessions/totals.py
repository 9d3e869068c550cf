"""Worked-time rule shared by clock-out, admin edits, corrections and reports.

worked = round(minutes(clock_in, clock_out)) - sum(closed break minutes), not below 0.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..common.datetime_utils import minutes_between
from .model import Break, WorkSession


def break_minutes(breaks: Iterable[Break], *, close_open_at: Optional[datetime] = None) -> int:
    """Sum of closed break durations.

    An open break only counts when ``close_open_at`` is given; it is then
    treated as closed at that instant.
    """
    total = 0
    for b in breaks:
        if not b.is_open:
            total += int(b.duration_minutes or 0)
        elif close_open_at is not None:
            total += max(minutes_between(b.start_time, close_open_at), 0)
    return total


def worked_minutes(clock_in: datetime, clock_out: datetime, excluded_minutes: int) -> int:
    return max(minutes_between(clock_in, clock_out) - int(excluded_minutes), 0)


def session_minutes(session: WorkSession, *, now: datetime) -> int:
    """Stored total for closed sessions, elapsed-so-far for running ones."""
    if session.total_minutes is not None:
        return int(session.total_minutes)
    end = session.clock_out or now
    if end <= session.clock_in:
        return 0
    return worked_minutes(session.clock_in, end, break_minutes(session.breaks, close_open_at=end))


def breaks_within(breaks: Iterable[Break], clock_in: datetime, clock_out: Optional[datetime]) -> bool:
    """True when every break lies inside ``[clock_in, clock_out]``.

    An open break is checked by its start only; it is closed at ``clock_out``.
    """
    for b in breaks:
        if b.start_time < clock_in:
            return False
        if clock_out is not None and (b.end_time or b.start_time) > clock_out:
            return False
    return True
