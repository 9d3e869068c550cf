from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role supplied by the identity layer."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class SessionStatus(str, Enum):
    """Work session state machine."""

    WORKING = "WORKING"
    ON_BREAK = "ON_BREAK"
    CLOCKED_OUT = "CLOCKED_OUT"


class CorrectionStatus(str, Enum):
    """Correction request review flow. Everything except PENDING is final."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class AuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


class SummaryMode(str, Enum):
    """How a month is decomposed into weeks for the monthly report."""

    ISO_WEEKS = "iso_weeks"
    CALENDAR_DAYS = "calendar_days"
