from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import SessionStatus
from ..database.memory import InMemoryStore
from .model import Break, SessionFilter, WorkSession
from .repository import SessionRepository


def _matches(s: WorkSession, filters: SessionFilter) -> bool:
    if filters.user_id is not None and s.user_id != filters.user_id:
        return False
    if filters.status is not None and s.status != filters.status:
        return False
    if filters.date_from is not None and s.work_date < filters.date_from:
        return False
    if filters.date_to is not None and s.work_date > filters.date_to:
        return False
    return True


class InMemorySessionRepository(SessionRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    def _tenant_rows(self, tenant_id: int) -> list[WorkSession]:
        return [s for s in self._store.sessions.values() if s.tenant_id == tenant_id]

    def get_by_id(self, session_id: int, tenant_id: int) -> Optional[WorkSession]:
        s = self._store.sessions.get(int(session_id))
        if s is None or s.tenant_id != tenant_id:
            return None
        return s

    def get_active_for_user(self, *, user_id: int, tenant_id: int) -> Optional[WorkSession]:
        for s in self._tenant_rows(tenant_id):
            if s.user_id == user_id and s.is_active:
                return s
        return None

    def list_for_user(self, *, user_id: int, tenant_id: int) -> Sequence[WorkSession]:
        rows = [s for s in self._tenant_rows(tenant_id) if s.user_id == user_id]
        return sorted(rows, key=lambda s: s.clock_in)

    def find_for_user_and_date(self, *, user_id: int, tenant_id: int, work_date: date) -> Sequence[WorkSession]:
        return [s for s in self.list_for_user(user_id=user_id, tenant_id=tenant_id) if s.work_date == work_date]

    def list_sessions(self, *, tenant_id: int, filters: SessionFilter) -> Sequence[WorkSession]:
        rows = [s for s in self._tenant_rows(tenant_id) if _matches(s, filters)]
        rows.sort(key=lambda s: s.clock_in, reverse=True)
        return rows[filters.offset : filters.offset + filters.limit]

    def count_sessions(self, *, tenant_id: int, filters: SessionFilter) -> int:
        return sum(1 for s in self._tenant_rows(tenant_id) if _matches(s, filters))

    def list_for_period(
        self,
        *,
        tenant_id: int,
        date_from: date,
        date_to: date,
        user_id: Optional[int] = None,
    ) -> Sequence[WorkSession]:
        filters = SessionFilter(user_id=user_id, date_from=date_from, date_to=date_to)
        rows = [s for s in self._tenant_rows(tenant_id) if _matches(s, filters)]
        return sorted(rows, key=lambda s: s.clock_in)

    def create_session(
        self,
        *,
        user_id: int,
        tenant_id: int,
        work_date: date,
        clock_in: datetime,
        notes: Optional[str] = None,
    ) -> Optional[int]:
        with self._store.transaction():
            for s in self._tenant_rows(tenant_id):
                if s.user_id == user_id and (s.is_active or s.work_date == work_date):
                    return None

            session_id = self._store.next_id("work_sessions")
            now = self._store.now()
            self._store.sessions[session_id] = WorkSession(
                session_id=session_id,
                user_id=user_id,
                tenant_id=tenant_id,
                work_date=work_date,
                clock_in=clock_in,
                clock_out=None,
                status=SessionStatus.WORKING,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            return session_id

    def start_break(self, *, session_id: int, start_time: datetime) -> Optional[int]:
        with self._store.transaction():
            s = self._store.sessions.get(session_id)
            if s is None or s.status != SessionStatus.WORKING:
                return None
            break_id = self._store.next_id("breaks")
            b = Break(break_id=break_id, session_id=session_id, start_time=start_time)
            self._store.sessions[session_id] = replace(
                s,
                status=SessionStatus.ON_BREAK,
                breaks=s.breaks + (b,),
                updated_at=self._store.now(),
            )
            return break_id

    @staticmethod
    def _close_break(breaks: tuple[Break, ...], break_id: int, end_time: datetime, minutes: int) -> tuple[Break, ...]:
        return tuple(
            replace(b, end_time=end_time, duration_minutes=minutes) if b.break_id == break_id else b for b in breaks
        )

    def end_break(self, *, session_id: int, break_id: int, end_time: datetime, duration_minutes: int) -> bool:
        with self._store.transaction():
            s = self._store.sessions.get(session_id)
            if s is None or s.status != SessionStatus.ON_BREAK:
                return False
            if not any(b.break_id == break_id and b.is_open for b in s.breaks):
                return False
            self._store.sessions[session_id] = replace(
                s,
                status=SessionStatus.WORKING,
                breaks=self._close_break(s.breaks, break_id, end_time, duration_minutes),
                updated_at=self._store.now(),
            )
            return True

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
        with self._store.transaction():
            s = self._store.sessions.get(session_id)
            if s is None or not s.is_active:
                return False
            breaks = s.breaks
            if open_break_id is not None:
                breaks = self._close_break(breaks, open_break_id, clock_out, int(open_break_minutes or 0))
            self._store.sessions[session_id] = replace(
                s,
                clock_out=clock_out,
                status=SessionStatus.CLOCKED_OUT,
                total_minutes=total_minutes,
                notes=notes,
                breaks=breaks,
                updated_at=self._store.now(),
            )
            return True

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
        with self._store.transaction():
            s = self._store.sessions.get(session_id)
            if s is None:
                return False
            self._store.sessions[session_id] = replace(
                s,
                work_date=work_date,
                clock_in=clock_in,
                clock_out=clock_out,
                status=status,
                total_minutes=total_minutes,
                notes=notes,
                updated_at=self._store.now(),
            )
            return True

    def delete_session(self, session_id: int) -> bool:
        with self._store.transaction():
            return self._store.sessions.pop(int(session_id), None) is not None
