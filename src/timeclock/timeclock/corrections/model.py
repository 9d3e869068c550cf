from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import CorrectionStatus


@dataclass(frozen=True)
class TimeCorrectionRequest:
    """Proposed change to a work session's recorded clock in/out times."""

    request_id: int
    session_id: int
    requester_id: int
    tenant_id: int
    original_clock_in: datetime
    original_clock_out: Optional[datetime]
    requested_clock_in: Optional[datetime]
    requested_clock_out: Optional[datetime]
    reason: str
    status: CorrectionStatus
    reviewer_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == CorrectionStatus.PENDING


@dataclass(frozen=True)
class CorrectionFilter:
    user_id: Optional[int] = None
    session_id: Optional[int] = None
    status: Optional[CorrectionStatus] = None
    created_from: Optional[date] = None
    created_to: Optional[date] = None
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True)
class CorrectionPage:
    requests: list[TimeCorrectionRequest]
    total: int
    limit: int
    offset: int
