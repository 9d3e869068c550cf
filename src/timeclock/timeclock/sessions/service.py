from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional, Sequence

from ..audit.model import AuditRecord
from ..audit.trail import ENTITY_WORK_SESSION, AuditTrail
from ..common.datetime_utils import minutes_between, to_utc, to_utc_optional, utc_day
from ..common.sentinels import UNSET, is_set
from ..common.validators import page_window, require_max_length
from ..conflicts.detector import ConflictDetector
from ..conflicts.model import TimeConflict, ValidationResult
from ..core.constants import LONG_INTERVAL_WARNING_MINUTES
from ..core.context import CallerContext
from ..core.enums import AuditAction, SessionStatus
from ..core.exceptions import AuthorizationError, ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..core.permissions import can_administer_sessions, can_operate_session, can_view_session
from .model import SessionFilter, SessionPage, WorkSession
from .repository import SessionRepository
from .totals import break_minutes, breaks_within, worked_minutes

logger = logging.getLogger(__name__)


def _bounds(session: WorkSession) -> dict[str, Any]:
    return {
        "clock_in": session.clock_in,
        "clock_out": session.clock_out,
        "status": session.status,
        "total_minutes": session.total_minutes,
    }


class SessionService:
    """Work session state machine: WORKING <-> ON_BREAK -> CLOCKED_OUT."""

    def __init__(
        self,
        sessions: SessionRepository,
        audit: AuditTrail,
        *,
        conflicts: Optional[ConflictDetector] = None,
        long_interval_warning_minutes: int = LONG_INTERVAL_WARNING_MINUTES,
    ):
        self._sessions = sessions
        self._audit = audit
        self._conflicts = conflicts or ConflictDetector(sessions)
        self._long_interval_warning_minutes = int(long_interval_warning_minutes)

    # Lookups

    def _load(self, caller: CallerContext, session_id: int) -> WorkSession:
        session = self._sessions.get_by_id(int(session_id), caller.tenant_id)
        if not session:
            raise NotFoundError("Work session not found")
        return session

    def _load_for_operation(self, caller: CallerContext, session_id: int) -> WorkSession:
        session = self._load(caller, session_id)
        if not can_operate_session(caller, session.user_id):
            raise AuthorizationError("You can only modify your own work sessions")
        return session

    def get_session(self, caller: CallerContext, session_id: int) -> WorkSession:
        session = self._load(caller, session_id)
        if not can_view_session(caller, session.user_id):
            raise AuthorizationError("You can only view your own work sessions")
        return session

    def get_active_session(self, caller: CallerContext) -> Optional[WorkSession]:
        return self._sessions.get_active_for_user(user_id=caller.user_id, tenant_id=caller.tenant_id)

    def list_sessions(
        self,
        caller: CallerContext,
        *,
        user_id: Optional[int] = None,
        status: Optional[SessionStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Any = None,
        offset: Any = None,
    ) -> SessionPage:
        if date_from and date_to and date_to < date_from:
            raise ValidationError("date_to must be on or after date_from")

        lim, off = page_window(limit, offset)
        filters = SessionFilter(
            user_id=user_id if caller.is_privileged else caller.user_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            limit=lim,
            offset=off,
        )
        rows = self._sessions.list_sessions(tenant_id=caller.tenant_id, filters=filters)
        total = self._sessions.count_sessions(tenant_id=caller.tenant_id, filters=filters)
        return SessionPage(sessions=list(rows), total=int(total), limit=lim, offset=off)

    # State machine

    def clock_in(self, caller: CallerContext, *, at: datetime, notes: Optional[str] = None) -> WorkSession:
        at = to_utc(at)
        notes = require_max_length(notes, "Notes")
        logger.info("Clock in for user %s in tenant %s at %s", caller.user_id, caller.tenant_id, at.isoformat())

        if self._sessions.get_active_for_user(user_id=caller.user_id, tenant_id=caller.tenant_id):
            raise ConflictError("You already have an active work session")

        work_date = utc_day(at)
        if self._conflicts.has_same_day_session(user_id=caller.user_id, tenant_id=caller.tenant_id, work_date=work_date):
            raise ConflictError(f"A work session already exists for {work_date.isoformat()}")

        if self._conflicts.find_conflicts(user_id=caller.user_id, tenant_id=caller.tenant_id, start=at):
            raise ConflictError("Clock in time overlaps with an existing work session")

        session_id = self._sessions.create_session(
            user_id=caller.user_id,
            tenant_id=caller.tenant_id,
            work_date=work_date,
            clock_in=at,
            notes=notes,
        )
        if session_id is None:
            raise ConflictError("You already have an active work session")

        self._audit.record(
            actor_id=caller.user_id,
            tenant_id=caller.tenant_id,
            entity_type=ENTITY_WORK_SESSION,
            entity_id=session_id,
            action=AuditAction.CREATED,
            new_values={"clock_in": at, "work_date": work_date, "status": SessionStatus.WORKING},
        )
        logger.info("Work session created: %s", session_id)
        return self._load(caller, session_id)

    def clock_out(
        self,
        caller: CallerContext,
        session_id: int,
        *,
        at: datetime,
        notes: Optional[str] = None,
    ) -> WorkSession:
        at = to_utc(at)
        notes = require_max_length(notes, "Notes")
        logger.info("Clock out of work session %s at %s", session_id, at.isoformat())

        session = self._load_for_operation(caller, session_id)
        if session.status == SessionStatus.CLOCKED_OUT:
            raise InvalidStateError("Work session is already clocked out")

        open_break = session.open_break
        open_break_minutes = None
        if open_break is not None:
            if at < open_break.start_time:
                raise ValidationError("Clock out time must not be before the open break started")
            open_break_minutes = minutes_between(open_break.start_time, at)

        if at <= session.clock_in:
            raise ValidationError("Clock out time must be after clock in time")
        if any(b.end_time is not None and at < b.end_time for b in session.breaks):
            raise ValidationError("Clock out time must not be before a break ended")

        excluded = break_minutes(session.breaks, close_open_at=at)
        total = worked_minutes(session.clock_in, at, excluded)

        ok = self._sessions.close_session(
            session_id=session.session_id,
            clock_out=at,
            total_minutes=total,
            notes=notes if notes is not None else session.notes,
            open_break_id=open_break.break_id if open_break else None,
            open_break_minutes=open_break_minutes,
        )
        if not ok:
            raise InvalidStateError("Work session is already clocked out")

        self._audit.record(
            actor_id=caller.user_id,
            tenant_id=caller.tenant_id,
            entity_type=ENTITY_WORK_SESSION,
            entity_id=session.session_id,
            action=AuditAction.UPDATED,
            old_values=_bounds(session),
            new_values={"clock_out": at, "status": SessionStatus.CLOCKED_OUT, "total_minutes": total},
        )
        logger.info("Work session %s clocked out with %s minutes", session.session_id, total)
        return self._load(caller, session.session_id)

    def start_break(self, caller: CallerContext, session_id: int, *, at: datetime) -> WorkSession:
        at = to_utc(at)
        session = self._load_for_operation(caller, session_id)
        if session.status != SessionStatus.WORKING:
            raise InvalidStateError("A break can only start while the session is working")
        if at < session.clock_in:
            raise ValidationError("Break cannot start before clock in time")
        if any(b.end_time is not None and at < b.end_time for b in session.breaks):
            raise ValidationError("Break cannot start before the previous break ended")

        break_id = self._sessions.start_break(session_id=session.session_id, start_time=at)
        if break_id is None:
            raise InvalidStateError("A break can only start while the session is working")

        self._audit.record(
            actor_id=caller.user_id,
            tenant_id=caller.tenant_id,
            entity_type=ENTITY_WORK_SESSION,
            entity_id=session.session_id,
            action=AuditAction.UPDATED,
            old_values={"status": session.status},
            new_values={"status": SessionStatus.ON_BREAK, "break_id": break_id, "break_start": at},
        )
        logger.info("Break %s started on work session %s", break_id, session.session_id)
        return self._load(caller, session.session_id)

    def end_break(self, caller: CallerContext, session_id: int, *, at: datetime) -> WorkSession:
        at = to_utc(at)
        session = self._load_for_operation(caller, session_id)
        open_break = session.open_break
        if session.status != SessionStatus.ON_BREAK or open_break is None:
            raise InvalidStateError("There is no open break to end")
        if at < open_break.start_time:
            raise ValidationError("Break end time must be after break start time")

        duration = minutes_between(open_break.start_time, at)
        ok = self._sessions.end_break(
            session_id=session.session_id,
            break_id=open_break.break_id,
            end_time=at,
            duration_minutes=duration,
        )
        if not ok:
            raise InvalidStateError("There is no open break to end")

        self._audit.record(
            actor_id=caller.user_id,
            tenant_id=caller.tenant_id,
            entity_type=ENTITY_WORK_SESSION,
            entity_id=session.session_id,
            action=AuditAction.UPDATED,
            old_values={"status": SessionStatus.ON_BREAK},
            new_values={
                "status": SessionStatus.WORKING,
                "break_id": open_break.break_id,
                "break_end": at,
                "duration_minutes": duration,
            },
        )
        logger.info("Break %s ended after %s minutes", open_break.break_id, duration)
        return self._load(caller, session.session_id)

    # Administration

    def update_session(
        self,
        caller: CallerContext,
        session_id: int,
        *,
        clock_in: Any = UNSET,
        clock_out: Any = UNSET,
        notes: Any = UNSET,
    ) -> WorkSession:
        if not can_administer_sessions(caller):
            raise AuthorizationError("Only managers and administrators can update work sessions")

        session = self._load(caller, session_id)
        logger.info("Updating work session %s", session.session_id)

        new_in = to_utc(clock_in) if is_set(clock_in) and clock_in is not None else session.clock_in
        new_out = to_utc_optional(clock_out) if is_set(clock_out) else session.clock_out
        new_notes = require_max_length(notes, "Notes") if is_set(notes) else session.notes

        if is_set(clock_in) and clock_in is None:
            raise ValidationError("Clock in time is required")
        if new_out is not None and new_out <= new_in:
            raise ValidationError("Clock out time must be after clock in time")
        if new_out is None and session.status == SessionStatus.CLOCKED_OUT:
            raise InvalidStateError("A clocked out session cannot be reopened")
        if new_out is not None and session.open_break is not None:
            raise InvalidStateError("End the open break before setting a clock out time")
        if not breaks_within(session.breaks, new_in, new_out):
            raise ValidationError("Breaks must fall within the session's clock in and clock out times")

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
            raise ConflictError("Work session overlaps with existing work sessions")

        status = SessionStatus.CLOCKED_OUT if new_out is not None else session.status
        total = worked_minutes(new_in, new_out, break_minutes(session.breaks)) if new_out is not None else None

        ok = self._sessions.update_session(
            session_id=session.session_id,
            work_date=work_date,
            clock_in=new_in,
            clock_out=new_out,
            status=status,
            total_minutes=total,
            notes=new_notes,
        )
        if not ok:
            raise NotFoundError("Work session not found")

        self._audit.record(
            actor_id=caller.user_id,
            tenant_id=caller.tenant_id,
            entity_type=ENTITY_WORK_SESSION,
            entity_id=session.session_id,
            action=AuditAction.UPDATED,
            old_values={**_bounds(session), "notes": session.notes},
            new_values={
                "clock_in": new_in,
                "clock_out": new_out,
                "status": status,
                "total_minutes": total,
                "notes": new_notes,
            },
        )
        logger.info("Work session updated: %s", session.session_id)
        return self._load(caller, session.session_id)

    def delete_session(self, caller: CallerContext, session_id: int) -> None:
        if not can_administer_sessions(caller):
            raise AuthorizationError("Only managers and administrators can delete work sessions")

        session = self._load(caller, session_id)
        logger.info("Deleting work session %s", session.session_id)
        if not self._sessions.delete_session(session.session_id):
            raise NotFoundError("Work session not found")

        self._audit.record(
            actor_id=caller.user_id,
            tenant_id=caller.tenant_id,
            entity_type=ENTITY_WORK_SESSION,
            entity_id=session.session_id,
            action=AuditAction.DELETED,
            old_values={**_bounds(session), "user_id": session.user_id},
        )

    def audit_history(self, caller: CallerContext, session_id: int) -> Sequence[AuditRecord]:
        """Audit entries for one session, oldest first."""
        if not can_administer_sessions(caller):
            raise AuthorizationError("Only managers and administrators can view the audit history")
        session = self._load(caller, session_id)
        return self._audit.history(
            tenant_id=caller.tenant_id,
            entity_type=ENTITY_WORK_SESSION,
            entity_id=session.session_id,
        )

    # Candidate intervals

    def _subject(self, caller: CallerContext, user_id: Optional[int]) -> int:
        if user_id is not None and int(user_id) != caller.user_id:
            if not caller.is_privileged:
                raise AuthorizationError("You can only check your own time")
            return int(user_id)
        return caller.user_id

    def get_conflicts(
        self,
        caller: CallerContext,
        *,
        start: datetime,
        end: Optional[datetime] = None,
        exclude_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> list[TimeConflict]:
        return self._conflicts.find_conflicts(
            user_id=self._subject(caller, user_id),
            tenant_id=caller.tenant_id,
            start=start,
            end=end,
            exclude_id=exclude_id,
        )

    def validate_candidate_interval(
        self,
        caller: CallerContext,
        *,
        start: datetime,
        end: Optional[datetime] = None,
        exclude_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> ValidationResult:
        """Dry-run of the checks a write of ``[start, end)`` would face."""
        start = to_utc(start)
        end = to_utc_optional(end)
        subject = self._subject(caller, user_id)

        if end is not None and end <= start:
            return ValidationResult(is_valid=False, warnings=["End time must be after start time"])

        conflicts = self._conflicts.find_conflicts(
            user_id=subject,
            tenant_id=caller.tenant_id,
            start=start,
            end=end,
            exclude_id=exclude_id,
        )
        seen = {c.session_id for c in conflicts}
        for s in self._sessions.find_for_user_and_date(user_id=subject, tenant_id=caller.tenant_id, work_date=utc_day(start)):
            if s.session_id != exclude_id and s.session_id not in seen:
                conflicts.append(TimeConflict(session_id=s.session_id, start_time=s.clock_in, end_time=s.clock_out, notes=s.notes))

        warnings: list[str] = []
        if end is not None and minutes_between(start, end) > self._long_interval_warning_minutes:
            hours = self._long_interval_warning_minutes // 60
            warnings.append(f"Interval exceeds {hours} hours")

        return ValidationResult(is_valid=not conflicts, conflicts=conflicts, warnings=warnings)
