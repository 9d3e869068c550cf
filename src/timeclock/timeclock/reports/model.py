from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from ..sessions.model import WorkSession


@dataclass(frozen=True)
class DailySummary:
    work_date: date
    total_minutes: int
    total_hours: float
    sessions: list[WorkSession] = field(default_factory=list)


@dataclass(frozen=True)
class WeeklySummary:
    year: int
    week: int
    week_start: date
    week_end: date
    total_minutes: int
    total_hours: float
    daily_summaries: list[DailySummary] = field(default_factory=list)


@dataclass(frozen=True)
class MonthlySummary:
    year: int
    month: int
    total_minutes: int
    total_hours: float
    weekly_summaries: list[WeeklySummary] = field(default_factory=list)
