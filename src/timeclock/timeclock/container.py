from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .audit.memory_audit_repository import InMemoryAuditRepository
from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.repository import AuditRepository
from .audit.trail import AuditTrail
from .common.clock import Clock, SystemClock
from .conflicts.detector import ConflictDetector
from .core.constants import LONG_INTERVAL_WARNING_MINUTES
from .core.enums import SummaryMode
from .corrections.memory_correction_repository import InMemoryCorrectionRepository
from .corrections.mysql_correction_repository import MySQLCorrectionRepository
from .corrections.repository import CorrectionRepository
from .corrections.service import CorrectionService
from .database.connection import DBConfig, DatabaseConnection
from .database.memory import InMemoryStore
from .reports.service import ReportService
from .sessions.memory_session_repository import InMemorySessionRepository
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.repository import SessionRepository
from .sessions.service import SessionService

STORAGE_MYSQL = "mysql"
STORAGE_MEMORY = "memory"


@dataclass(frozen=True)
class Container:
    clock: Clock

    sessions_repo: SessionRepository
    corrections_repo: CorrectionRepository
    audit_repo: AuditRepository

    audit_trail: AuditTrail
    conflict_detector: ConflictDetector
    session_service: SessionService
    correction_service: CorrectionService
    report_service: ReportService


def build_container(
    *,
    db_config: Optional[dict] = None,
    storage_backend: str = STORAGE_MYSQL,
    clock: Optional[Clock] = None,
    monthly_mode: SummaryMode = SummaryMode.ISO_WEEKS,
    long_interval_warning_minutes: int = LONG_INTERVAL_WARNING_MINUTES,
) -> Container:
    clock = clock or SystemClock()

    backend = (storage_backend or STORAGE_MYSQL).lower()
    if backend == STORAGE_MEMORY:
        store = InMemoryStore(clock=clock)
        sessions_repo = InMemorySessionRepository(store)
        corrections_repo = InMemoryCorrectionRepository(store)
        audit_repo = InMemoryAuditRepository(store)
    elif backend == STORAGE_MYSQL:
        conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config or {}))
        sessions_repo = MySQLSessionRepository(conn)
        corrections_repo = MySQLCorrectionRepository(conn)
        audit_repo = MySQLAuditRepository(conn)
    else:
        raise ValueError(f"Unknown storage backend {storage_backend!r}")

    audit_trail = AuditTrail(audit_repo, clock=clock)
    conflict_detector = ConflictDetector(sessions_repo)
    session_service = SessionService(
        sessions_repo,
        audit_trail,
        conflicts=conflict_detector,
        long_interval_warning_minutes=long_interval_warning_minutes,
    )
    correction_service = CorrectionService(
        corrections_repo,
        sessions_repo,
        audit_trail,
        conflicts=conflict_detector,
        clock=clock,
    )
    report_service = ReportService(sessions_repo, clock=clock, monthly_mode=monthly_mode)

    return Container(
        clock=clock,
        sessions_repo=sessions_repo,
        corrections_repo=corrections_repo,
        audit_repo=audit_repo,
        audit_trail=audit_trail,
        conflict_detector=conflict_detector,
        session_service=session_service,
        correction_service=correction_service,
        report_service=report_service,
    )
