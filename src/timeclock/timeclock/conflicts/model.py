from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class TimeConflict:
    """An existing session that collides with a candidate interval."""

    session_id: int
    start_time: datetime
    end_time: Optional[datetime]
    notes: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    conflicts: list[TimeConflict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
