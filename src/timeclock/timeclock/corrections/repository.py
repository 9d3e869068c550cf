from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import CorrectionStatus, SessionStatus
from .model import CorrectionFilter, TimeCorrectionRequest


class CorrectionRepository(Protocol):
    def create_request(
        self,
        *,
        session_id: int,
        requester_id: int,
        tenant_id: int,
        original_clock_in: datetime,
        original_clock_out: Optional[datetime],
        requested_clock_in: Optional[datetime],
        requested_clock_out: Optional[datetime],
        reason: str,
    ) -> int:
        raise NotImplementedError

    def get_by_id(self, request_id: int, tenant_id: int) -> Optional[TimeCorrectionRequest]:
        raise NotImplementedError

    def list_requests(self, *, tenant_id: int, filters: CorrectionFilter) -> Sequence[TimeCorrectionRequest]:
        """Newest first."""

        raise NotImplementedError

    def count_requests(self, *, tenant_id: int, filters: CorrectionFilter) -> int:
        raise NotImplementedError

    def list_pending(self, *, tenant_id: int, exclude_requester_id: int) -> Sequence[TimeCorrectionRequest]:
        """Oldest first, so reviewers work the queue in order."""

        raise NotImplementedError

    def list_for_session(self, *, tenant_id: int, session_id: int) -> Sequence[TimeCorrectionRequest]:
        raise NotImplementedError

    def update_request(
        self,
        *,
        request_id: int,
        requested_clock_in: Optional[datetime],
        requested_clock_out: Optional[datetime],
        reason: str,
    ) -> bool:
        """Only applies while the request is still PENDING."""

        raise NotImplementedError

    def decide(
        self,
        *,
        request_id: int,
        status: CorrectionStatus,
        reviewer_id: Optional[int] = None,
        reviewed_at: Optional[datetime] = None,
        review_notes: Optional[str] = None,
    ) -> bool:
        """Move a PENDING request to a final status."""

        raise NotImplementedError

    def approve_and_apply(
        self,
        *,
        request_id: int,
        reviewer_id: int,
        reviewed_at: datetime,
        review_notes: Optional[str],
        session_id: int,
        work_date: date,
        clock_in: datetime,
        clock_out: Optional[datetime],
        session_status: SessionStatus,
        total_minutes: Optional[int],
        open_break_id: Optional[int] = None,
        open_break_minutes: Optional[int] = None,
    ) -> bool:
        """Rewrite the session and approve the request as one transaction.

        Returns False, with nothing written, when the request is no longer
        PENDING.
        """

        raise NotImplementedError
