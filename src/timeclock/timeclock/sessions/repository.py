from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import SessionStatus
from .model import SessionFilter, WorkSession


class SessionRepository(Protocol):
    """Persistence interface for work sessions and their breaks.

    Every lookup is scoped by ``tenant_id``. Writes that guard a state
    transition return False when the stored state no longer allows it.
    """

    def get_by_id(self, session_id: int, tenant_id: int) -> Optional[WorkSession]:
        raise NotImplementedError

    def get_active_for_user(self, *, user_id: int, tenant_id: int) -> Optional[WorkSession]:
        raise NotImplementedError

    def list_for_user(self, *, user_id: int, tenant_id: int) -> Sequence[WorkSession]:
        raise NotImplementedError

    def find_for_user_and_date(self, *, user_id: int, tenant_id: int, work_date: date) -> Sequence[WorkSession]:
        raise NotImplementedError

    def list_sessions(self, *, tenant_id: int, filters: SessionFilter) -> Sequence[WorkSession]:
        raise NotImplementedError

    def count_sessions(self, *, tenant_id: int, filters: SessionFilter) -> int:
        raise NotImplementedError

    def list_for_period(
        self,
        *,
        tenant_id: int,
        date_from: date,
        date_to: date,
        user_id: Optional[int] = None,
    ) -> Sequence[WorkSession]:
        """Sessions whose work_date falls in [date_from, date_to], oldest first."""

        raise NotImplementedError

    def create_session(
        self,
        *,
        user_id: int,
        tenant_id: int,
        work_date: date,
        clock_in: datetime,
        notes: Optional[str] = None,
    ) -> Optional[int]:
        """Insert a WORKING session.

        Must be atomic per user: returns None instead of inserting when the
        user already holds a non-terminal session or a session on
        ``work_date``.
        """

        raise NotImplementedError

    def start_break(self, *, session_id: int, start_time: datetime) -> Optional[int]:
        """Open a break and flip WORKING -> ON_BREAK."""

        raise NotImplementedError

    def end_break(self, *, session_id: int, break_id: int, end_time: datetime, duration_minutes: int) -> bool:
        """Close the open break and flip ON_BREAK -> WORKING."""

        raise NotImplementedError

    def close_session(
        self,
        *,
        session_id: int,
        clock_out: datetime,
        total_minutes: int,
        notes: Optional[str],
        open_break_id: Optional[int] = None,
        open_break_minutes: Optional[int] = None,
    ) -> bool:
        """Clock out, closing ``open_break_id`` at ``clock_out`` in the same write."""

        raise NotImplementedError

    def update_session(
        self,
        *,
        session_id: int,
        work_date: date,
        clock_in: datetime,
        clock_out: Optional[datetime],
        status: SessionStatus,
        total_minutes: Optional[int],
        notes: Optional[str],
    ) -> bool:
        """Administrative overwrite of a session's bounds."""

        raise NotImplementedError

    def delete_session(self, session_id: int) -> bool:
        raise NotImplementedError
