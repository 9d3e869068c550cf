from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..core.enums import SessionStatus


@dataclass(frozen=True)
class Break:
    """Sub-interval of a work session excluded from its total."""

    break_id: int
    session_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class WorkSession:
    """One clock-in to clock-out attendance record."""

    session_id: int
    user_id: int
    tenant_id: int
    work_date: date
    clock_in: datetime
    clock_out: Optional[datetime]
    status: SessionStatus
    total_minutes: Optional[int] = None
    notes: Optional[str] = None
    breaks: tuple[Break, ...] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status != SessionStatus.CLOCKED_OUT

    @property
    def open_break(self) -> Optional[Break]:
        for b in self.breaks:
            if b.is_open:
                return b
        return None

    @property
    def closed_break_minutes(self) -> int:
        return sum(int(b.duration_minutes or 0) for b in self.breaks if not b.is_open)


@dataclass(frozen=True)
class SessionFilter:
    user_id: Optional[int] = None
    status: Optional[SessionStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True)
class SessionPage:
    sessions: list[WorkSession]
    total: int
    limit: int
    offset: int
