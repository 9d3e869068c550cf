from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from ..audit.trail import ENTITY_CORRECTION_REQUEST, ENTITY_WORK_SESSION, AuditTrail
from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import minutes_between, to_utc_optional, utc_day
from ..common.sentinels import UNSET, is_set
from ..common.validators import page_window, require_max_length, require_non_empty
from ..conflicts.detector import ConflictDetector
from ..core.context import CallerContext
from ..core.enums import AuditAction, CorrectionStatus, SessionStatus
from ..core.exceptions import AuthorizationError, ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..core.permissions import (
    can_modify_correction,
    can_review_corrections,
    can_submit_correction,
    can_view_correction,
    can_view_session,
)
from ..sessions.model import WorkSession
from ..sessions.repository import SessionRepository
from ..sessions.totals import break_minutes, breaks_within, worked_minutes
from .model import CorrectionFilter, CorrectionPage, TimeCorrectionRequest
from .repository import CorrectionRepository

logger = logging.getLogger(__name__)


def _check_requested_times(
    session: WorkSession,
    requested_clock_in: Optional[datetime],
    requested_clock_out: Optional[datetime],
) -> None:
    """Order the requested times against each other or the bound left unchanged."""
    if requested_clock_in is None and requested_clock_out is None:
        raise ValidationError("At least one time correction (clock in or clock out) must be requested")

    if requested_clock_in is not None and requested_clock_out is not None:
        if requested_clock_out <= requested_clock_in:
            raise ValidationError("Requested clock out time must be after clock in time")
    elif requested_clock_in is not None:
        if session.clock_out is not None and session.clock_out <= requested_clock_in:
            raise ValidationError("Requested clock in time must be before existing clock out time")
    elif requested_clock_out <= session.clock_in:
        raise ValidationError("Requested clock out time must be after existing clock in time")

    _check_breaks(
        session,
        requested_clock_in if requested_clock_in is not None else session.clock_in,
        requested_clock_out if requested_clock_out is not None else session.clock_out,
    )


def _check_breaks(session: WorkSession, clock_in: datetime, clock_out: Optional[datetime]) -> None:
    if not breaks_within(session.breaks, clock_in, clock_out):
        raise ValidationError("Breaks must fall within the corrected clock in and clock out times")


def _reason(value: Optional[str]) -> str:
    return require_max_length(require_non_empty(value, "Reason"), "Reason")


class CorrectionService:
    """Review workflow for time corrections: PENDING -> APPROVED | REJECTED | CANCELLED."""

    def __init__(
        self,
        corrections: CorrectionRepository,
        sessions: SessionRepository,
        audit: AuditTrail,
        *,
        conflicts: Optional[ConflictDetector] = None,
        clock: Optional[Clock] = None,
    ):
        self._corrections = corrections
        self._sessions = sessions
        self._audit = audit
        self._conflicts = conflicts or ConflictDetector(sessions)
        self._clock = clock or SystemClock()

    def _load(self, caller: CallerContext, request_id: int) -> TimeCorrectionRequest:
        req = self._corrections.get_by_id(int(request_id), caller.tenant_id)
        if not req:
            raise NotFoundError("Time correction request not found")
        return req

    def _load_session(self, caller: CallerContext, session_id: int) -> WorkSession:
        session = self._sessions.get_by_id(int(session_id), caller.tenant_id)
        if not session:
            raise NotFoundError("Work session not found")
        return session

    def _record(
        self,
        caller: CallerContext,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
    ) -> None:
        self._audit.record(
            actor_id=caller.user_id,
            tenant_id=caller.tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            old_values=old_values,
            new_values=new_values,
        )

    def submit(
        self,
        caller: CallerContext,
        *,
        session_id: int,
        reason: str,
        requested_clock_in: Optional[datetime] = None,
        requested_clock_out: Optional[datetime] = None,
    ) -> TimeCorrectionRequest:
        logger.info("Creating time correction request for work session %s", session_id)

        if requested_clock_in is None and requested_clock_out is None:
            raise ValidationError("At least one time correction (clock in or clock out) must be requested")
        reason = _reason(reason)

        session = self._load_session(caller, session_id)
        if not can_submit_correction(caller, session.user_id):
            raise AuthorizationError("You can only create correction requests for your own work sessions")

        requested_clock_in = to_utc_optional(requested_clock_in)
        requested_clock_out = to_utc_optional(requested_clock_out)
        _check_requested_times(session, requested_clock_in, requested_clock_out)

        request_id = self._corrections.create_request(
            session_id=session.session_id,
            requester_id=caller.user_id,
            tenant_id=caller.tenant_id,
            original_clock_in=session.clock_in,
            original_clock_out=session.clock_out,
            requested_clock_in=requested_clock_in,
            requested_clock_out=requested_clock_out,
            reason=reason,
        )

        self._record(
            caller,
            ENTITY_CORRECTION_REQUEST,
            request_id,
            AuditAction.CREATED,
            new_values={
                "session_id": session.session_id,
                "requested_clock_in": requested_clock_in,
                "requested_clock_out": requested_clock_out,
                "reason": reason,
            },
        )
        logger.info("Time correction request created: %s", request_id)
        return self._load(caller, request_id)

    def update(
        self,
        caller: CallerContext,
        request_id: int,
        *,
        requested_clock_in: Any = UNSET,
        requested_clock_out: Any = UNSET,
        reason: Any = UNSET,
    ) -> TimeCorrectionRequest:
        """Edit a pending request. Arguments left UNSET keep their value; None clears it."""
        logger.info("Updating time correction request %s", request_id)

        req = self._load(caller, request_id)
        if not can_modify_correction(caller, req.requester_id):
            raise AuthorizationError("You can only update your own correction requests")
        if not req.is_pending:
            raise InvalidStateError("Can only update pending correction requests")

        new_in = to_utc_optional(requested_clock_in) if is_set(requested_clock_in) else req.requested_clock_in
        new_out = to_utc_optional(requested_clock_out) if is_set(requested_clock_out) else req.requested_clock_out
        new_reason = _reason(reason) if is_set(reason) else req.reason

        session = self._load_session(caller, req.session_id)
        _check_requested_times(session, new_in, new_out)

        ok = self._corrections.update_request(
            request_id=req.request_id,
            requested_clock_in=new_in,
            requested_clock_out=new_out,
            reason=new_reason,
        )
        if not ok:
            raise InvalidStateError("Can only update pending correction requests")

        self._record(
            caller,
            ENTITY_CORRECTION_REQUEST,
            req.request_id,
            AuditAction.UPDATED,
            old_values={
                "requested_clock_in": req.requested_clock_in,
                "requested_clock_out": req.requested_clock_out,
                "reason": req.reason,
            },
            new_values={"requested_clock_in": new_in, "requested_clock_out": new_out, "reason": new_reason},
        )
        logger.info("Time correction request updated: %s", req.request_id)
        return self._load(caller, req.request_id)

    def cancel(self, caller: CallerContext, request_id: int) -> TimeCorrectionRequest:
        logger.info("Cancelling time correction request %s", request_id)

        req = self._load(caller, request_id)
        if not can_modify_correction(caller, req.requester_id):
            raise AuthorizationError("You can only cancel your own correction requests")
        if not req.is_pending:
            raise InvalidStateError("Can only cancel pending correction requests")

        if not self._corrections.decide(request_id=req.request_id, status=CorrectionStatus.CANCELLED):
            raise InvalidStateError("Can only cancel pending correction requests")

        self._record(
            caller,
            ENTITY_CORRECTION_REQUEST,
            req.request_id,
            AuditAction.UPDATED,
            old_values={"status": CorrectionStatus.PENDING},
            new_values={"status": CorrectionStatus.CANCELLED},
        )
        logger.info("Time correction request cancelled: %s", req.request_id)
        return self._load(caller, req.request_id)

    def _check_reviewer(self, caller: CallerContext, req: TimeCorrectionRequest, verb: str) -> None:
        if not can_review_corrections(caller):
            raise AuthorizationError(f"Only managers and administrators can {verb} correction requests")
        if req.requester_id == caller.user_id:
            raise AuthorizationError(f"You cannot {verb} your own correction requests")
        if not req.is_pending:
            raise InvalidStateError(f"Can only {verb} pending correction requests")

    def approve(self, caller: CallerContext, request_id: int, *, notes: Optional[str] = None) -> TimeCorrectionRequest:
        logger.info("Approving time correction request %s", request_id)

        req = self._load(caller, request_id)
        self._check_reviewer(caller, req, "approve")
        notes = require_max_length((notes or "").strip() or None, "Review notes")

        session = self._load_session(caller, req.session_id)
        new_in = req.requested_clock_in if req.requested_clock_in is not None else session.clock_in
        new_out = req.requested_clock_out if req.requested_clock_out is not None else session.clock_out
        if new_out is not None and new_out <= new_in:
            raise ValidationError("Clock out time must be after clock in time")
        _check_breaks(session, new_in, new_out)

        work_date = utc_day(new_in)
        if self._conflicts.has_same_day_session(
            user_id=session.user_id,
            tenant_id=caller.tenant_id,
            work_date=work_date,
            exclude_id=session.session_id,
        ):
            raise ConflictError(f"A work session already exists for {work_date.isoformat()}")
        if self._conflicts.find_conflicts(
            user_id=session.user_id,
            tenant_id=caller.tenant_id,
            start=new_in,
            end=new_out,
            exclude_id=session.session_id,
        ):
            raise ConflictError("Corrected times overlap with another work session")

        open_break = session.open_break if new_out is not None else None
        open_break_minutes = None
        if open_break is not None:
            open_break_minutes = max(minutes_between(open_break.start_time, new_out), 0)

        total = None
        status = session.status
        if new_out is not None:
            total = worked_minutes(new_in, new_out, break_minutes(session.breaks, close_open_at=new_out))
            status = SessionStatus.CLOCKED_OUT

        ok = self._corrections.approve_and_apply(
            request_id=req.request_id,
            reviewer_id=caller.user_id,
            reviewed_at=self._clock.now(),
            review_notes=notes,
            session_id=session.session_id,
            work_date=work_date,
            clock_in=new_in,
            clock_out=new_out,
            session_status=status,
            total_minutes=total,
            open_break_id=open_break.break_id if open_break else None,
            open_break_minutes=open_break_minutes,
        )
        if not ok:
            raise InvalidStateError("Can only approve pending correction requests")

        self._record(
            caller,
            ENTITY_CORRECTION_REQUEST,
            req.request_id,
            AuditAction.UPDATED,
            old_values={"status": CorrectionStatus.PENDING},
            new_values={"status": CorrectionStatus.APPROVED, "reviewer_id": caller.user_id, "review_notes": notes},
        )
        self._record(
            caller,
            ENTITY_WORK_SESSION,
            session.session_id,
            AuditAction.UPDATED,
            old_values={
                "clock_in": session.clock_in,
                "clock_out": session.clock_out,
                "total_minutes": session.total_minutes,
            },
            new_values={"clock_in": new_in, "clock_out": new_out, "total_minutes": total},
        )
        logger.info("Time correction request approved: %s", req.request_id)
        return self._load(caller, req.request_id)

    def reject(self, caller: CallerContext, request_id: int, *, notes: str) -> TimeCorrectionRequest:
        logger.info("Rejecting time correction request %s", request_id)

        req = self._load(caller, request_id)
        self._check_reviewer(caller, req, "reject")
        notes = require_max_length(require_non_empty(notes, "Review notes"), "Review notes")

        ok = self._corrections.decide(
            request_id=req.request_id,
            status=CorrectionStatus.REJECTED,
            reviewer_id=caller.user_id,
            reviewed_at=self._clock.now(),
            review_notes=notes,
        )
        if not ok:
            raise InvalidStateError("Can only reject pending correction requests")

        self._record(
            caller,
            ENTITY_CORRECTION_REQUEST,
            req.request_id,
            AuditAction.UPDATED,
            old_values={"status": CorrectionStatus.PENDING},
            new_values={"status": CorrectionStatus.REJECTED, "reviewer_id": caller.user_id, "review_notes": notes},
        )
        logger.info("Time correction request rejected: %s", req.request_id)
        return self._load(caller, req.request_id)

    # Queries

    def get_request(self, caller: CallerContext, request_id: int) -> TimeCorrectionRequest:
        req = self._load(caller, request_id)
        if not can_view_correction(caller, req.requester_id):
            raise AuthorizationError("You can only view your own correction requests")
        return req

    def list_requests(
        self,
        caller: CallerContext,
        *,
        user_id: Optional[int] = None,
        session_id: Optional[int] = None,
        status: Optional[CorrectionStatus] = None,
        created_from: Optional[date] = None,
        created_to: Optional[date] = None,
        limit: Any = None,
        offset: Any = None,
    ) -> CorrectionPage:
        lim, off = page_window(limit, offset)
        filters = CorrectionFilter(
            user_id=user_id if caller.is_privileged else caller.user_id,
            session_id=session_id,
            status=status,
            created_from=created_from,
            created_to=created_to,
            limit=lim,
            offset=off,
        )
        rows = self._corrections.list_requests(tenant_id=caller.tenant_id, filters=filters)
        total = self._corrections.count_requests(tenant_id=caller.tenant_id, filters=filters)
        return CorrectionPage(requests=list(rows), total=int(total), limit=lim, offset=off)

    def pending_approvals(self, caller: CallerContext) -> CorrectionPage:
        if not can_review_corrections(caller):
            raise AuthorizationError("Only managers and administrators can view pending approvals")

        rows = list(self._corrections.list_pending(tenant_id=caller.tenant_id, exclude_requester_id=caller.user_id))
        return CorrectionPage(requests=rows, total=len(rows), limit=len(rows), offset=0)

    def correction_history(self, caller: CallerContext, session_id: int) -> CorrectionPage:
        session = self._load_session(caller, session_id)
        if not can_view_session(caller, session.user_id):
            raise AuthorizationError("You can only view correction history for your own work sessions")

        rows = list(self._corrections.list_for_session(tenant_id=caller.tenant_id, session_id=session.session_id))
        return CorrectionPage(requests=rows, total=len(rows), limit=len(rows), offset=0)
