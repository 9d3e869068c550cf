from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..common.datetime_utils import utc_day
from ..core.enums import CorrectionStatus, SessionStatus
from ..database.memory import InMemoryStore
from .model import CorrectionFilter, TimeCorrectionRequest
from .repository import CorrectionRepository


def _matches(r: TimeCorrectionRequest, filters: CorrectionFilter) -> bool:
    if filters.user_id is not None and r.requester_id != filters.user_id:
        return False
    if filters.session_id is not None and r.session_id != filters.session_id:
        return False
    if filters.status is not None and r.status != filters.status:
        return False
    created = utc_day(r.created_at) if r.created_at else None
    if filters.created_from is not None and (created is None or created < filters.created_from):
        return False
    if filters.created_to is not None and (created is None or created > filters.created_to):
        return False
    return True


class InMemoryCorrectionRepository(CorrectionRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    def _tenant_rows(self, tenant_id: int) -> list[TimeCorrectionRequest]:
        return [r for r in self._store.corrections.values() if r.tenant_id == tenant_id]

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
        with self._store.transaction():
            request_id = self._store.next_id("time_correction_requests")
            now = self._store.now()
            self._store.corrections[request_id] = TimeCorrectionRequest(
                request_id=request_id,
                session_id=session_id,
                requester_id=requester_id,
                tenant_id=tenant_id,
                original_clock_in=original_clock_in,
                original_clock_out=original_clock_out,
                requested_clock_in=requested_clock_in,
                requested_clock_out=requested_clock_out,
                reason=reason,
                status=CorrectionStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            return request_id

    def get_by_id(self, request_id: int, tenant_id: int) -> Optional[TimeCorrectionRequest]:
        r = self._store.corrections.get(int(request_id))
        if r is None or r.tenant_id != tenant_id:
            return None
        return r

    def list_requests(self, *, tenant_id: int, filters: CorrectionFilter) -> Sequence[TimeCorrectionRequest]:
        rows = [r for r in self._tenant_rows(tenant_id) if _matches(r, filters)]
        rows.sort(key=lambda r: (r.created_at, r.request_id), reverse=True)
        return rows[filters.offset : filters.offset + filters.limit]

    def count_requests(self, *, tenant_id: int, filters: CorrectionFilter) -> int:
        return sum(1 for r in self._tenant_rows(tenant_id) if _matches(r, filters))

    def list_pending(self, *, tenant_id: int, exclude_requester_id: int) -> Sequence[TimeCorrectionRequest]:
        rows = [
            r
            for r in self._tenant_rows(tenant_id)
            if r.status == CorrectionStatus.PENDING and r.requester_id != exclude_requester_id
        ]
        return sorted(rows, key=lambda r: (r.created_at, r.request_id))

    def list_for_session(self, *, tenant_id: int, session_id: int) -> Sequence[TimeCorrectionRequest]:
        rows = [r for r in self._tenant_rows(tenant_id) if r.session_id == session_id]
        return sorted(rows, key=lambda r: (r.created_at, r.request_id), reverse=True)

    def update_request(
        self,
        *,
        request_id: int,
        requested_clock_in: Optional[datetime],
        requested_clock_out: Optional[datetime],
        reason: str,
    ) -> bool:
        with self._store.transaction():
            r = self._store.corrections.get(request_id)
            if r is None or r.status != CorrectionStatus.PENDING:
                return False
            self._store.corrections[request_id] = replace(
                r,
                requested_clock_in=requested_clock_in,
                requested_clock_out=requested_clock_out,
                reason=reason,
                updated_at=self._store.now(),
            )
            return True

    def decide(
        self,
        *,
        request_id: int,
        status: CorrectionStatus,
        reviewer_id: Optional[int] = None,
        reviewed_at: Optional[datetime] = None,
        review_notes: Optional[str] = None,
    ) -> bool:
        with self._store.transaction():
            r = self._store.corrections.get(request_id)
            if r is None or r.status != CorrectionStatus.PENDING:
                return False
            self._store.corrections[request_id] = replace(
                r,
                status=status,
                reviewer_id=reviewer_id,
                reviewed_at=reviewed_at,
                review_notes=review_notes,
                updated_at=self._store.now(),
            )
            return True

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
        with self._store.transaction():
            r = self._store.corrections.get(request_id)
            s = self._store.sessions.get(session_id)
            if r is None or s is None or r.status != CorrectionStatus.PENDING:
                return False

            now = self._store.now()
            breaks = tuple(
                replace(b, end_time=clock_out, duration_minutes=int(open_break_minutes or 0))
                if b.break_id == open_break_id
                else b
                for b in s.breaks
            )
            self._store.sessions[session_id] = replace(
                s,
                work_date=work_date,
                clock_in=clock_in,
                clock_out=clock_out,
                status=session_status,
                total_minutes=total_minutes,
                breaks=breaks,
                updated_at=now,
            )
            self._store.corrections[request_id] = replace(
                r,
                status=CorrectionStatus.APPROVED,
                reviewer_id=reviewer_id,
                reviewed_at=reviewed_at,
                review_notes=review_notes,
                updated_at=now,
            )
            return True
