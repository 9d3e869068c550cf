"""Authorization predicates, one per guarded operation."""

from __future__ import annotations

from .context import CallerContext


def can_view_session(caller: CallerContext, owner_id: int) -> bool:
    return caller.is_privileged or caller.user_id == owner_id


def can_operate_session(caller: CallerContext, owner_id: int) -> bool:
    """Clock-out and break toggling."""
    return caller.is_privileged or caller.user_id == owner_id


def can_administer_sessions(caller: CallerContext) -> bool:
    return caller.is_privileged


def can_submit_correction(caller: CallerContext, session_owner_id: int) -> bool:
    return caller.is_privileged or caller.user_id == session_owner_id


def can_modify_correction(caller: CallerContext, requester_id: int) -> bool:
    """Update and cancel are reserved to the original requester."""
    return caller.user_id == requester_id


def can_view_correction(caller: CallerContext, requester_id: int) -> bool:
    return caller.is_privileged or caller.user_id == requester_id


def can_review_corrections(caller: CallerContext) -> bool:
    return caller.is_privileged


def report_subject(caller: CallerContext, user_id: int | None) -> int | None:
    """User whose time a report covers; None means tenant-wide."""
    if not caller.is_privileged:
        return caller.user_id
    return user_id
