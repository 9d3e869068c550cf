from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from ..common.datetime_utils import to_utc, to_utc_optional
from ..sessions.model import WorkSession
from ..sessions.repository import SessionRepository
from .model import TimeConflict


def intervals_overlap(
    start: datetime,
    end: Optional[datetime],
    other_start: datetime,
    other_end: Optional[datetime],
) -> bool:
    """Half-open overlap test; a missing end extends to +infinity.

    Two open intervals always overlap.
    """
    if end is not None:
        if other_end is not None:
            return start < other_end and end > other_start
        return end > other_start
    if other_end is not None:
        return other_end > start
    return True


def find_conflicts(
    sessions: Iterable[WorkSession],
    start: datetime,
    end: Optional[datetime] = None,
    exclude_id: Optional[int] = None,
) -> list[TimeConflict]:
    """Sessions from a snapshot that overlap ``[start, end)``, ordered by start."""
    start = to_utc(start)
    end = to_utc_optional(end)

    conflicts = [
        TimeConflict(session_id=s.session_id, start_time=s.clock_in, end_time=s.clock_out, notes=s.notes)
        for s in sessions
        if s.session_id != exclude_id and intervals_overlap(start, end, to_utc(s.clock_in), to_utc_optional(s.clock_out))
    ]
    conflicts.sort(key=lambda c: (c.start_time, c.session_id))
    return conflicts


class ConflictDetector:
    """Overlap checks against the stored sessions of one user in one tenant."""

    def __init__(self, sessions: SessionRepository):
        self._sessions = sessions

    def find_conflicts(
        self,
        *,
        user_id: int,
        tenant_id: int,
        start: datetime,
        end: Optional[datetime] = None,
        exclude_id: Optional[int] = None,
    ) -> list[TimeConflict]:
        existing = self._sessions.list_for_user(user_id=user_id, tenant_id=tenant_id)
        return find_conflicts(existing, start, end, exclude_id)

    def has_same_day_session(
        self,
        *,
        user_id: int,
        tenant_id: int,
        work_date: date,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """Coarse policy: one session per user per UTC calendar day."""
        existing = self._sessions.find_for_user_and_date(user_id=user_id, tenant_id=tenant_id, work_date=work_date)
        return any(s.session_id != exclude_id for s in existing)
