from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import CorrectionStatus, SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, to_db_datetime
from .model import CorrectionFilter, TimeCorrectionRequest
from .repository import CorrectionRepository

_COLUMNS = """
    request_id, session_id, requester_id, tenant_id, original_clock_in, original_clock_out,
    requested_clock_in, requested_clock_out, reason, status, reviewer_id, reviewed_at,
    review_notes, created_at, updated_at
"""


def _to_request(r: Dict[str, Any]) -> TimeCorrectionRequest:
    return TimeCorrectionRequest(
        request_id=int(r["request_id"]),
        session_id=int(r["session_id"]),
        requester_id=int(r["requester_id"]),
        tenant_id=int(r["tenant_id"]),
        original_clock_in=from_db_datetime(r["original_clock_in"]),
        original_clock_out=from_db_datetime(r.get("original_clock_out")),
        requested_clock_in=from_db_datetime(r.get("requested_clock_in")),
        requested_clock_out=from_db_datetime(r.get("requested_clock_out")),
        reason=r["reason"],
        status=CorrectionStatus(r["status"]),
        reviewer_id=int(r["reviewer_id"]) if r.get("reviewer_id") is not None else None,
        reviewed_at=from_db_datetime(r.get("reviewed_at")),
        review_notes=r.get("review_notes"),
        created_at=from_db_datetime(r.get("created_at")),
        updated_at=from_db_datetime(r.get("updated_at")),
    )


def _where(tenant_id: int, filters: CorrectionFilter) -> tuple[str, list]:
    clauses = ["tenant_id=%s"]
    params: list = [tenant_id]
    if filters.user_id is not None:
        clauses.append("requester_id=%s")
        params.append(int(filters.user_id))
    if filters.session_id is not None:
        clauses.append("session_id=%s")
        params.append(int(filters.session_id))
    if filters.status is not None:
        clauses.append("status=%s")
        params.append(CorrectionStatus(filters.status).value)
    if filters.created_from is not None:
        clauses.append("DATE(created_at) >= %s")
        params.append(filters.created_from)
    if filters.created_to is not None:
        clauses.append("DATE(created_at) <= %s")
        params.append(filters.created_to)
    return " AND ".join(clauses), params


class MySQLCorrectionRepository(CorrectionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _select(self, where: str, params: Sequence[Any], suffix: str = "") -> list[TimeCorrectionRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM time_correction_requests WHERE {where} {suffix}", tuple(params))
            return [_to_request(r) for r in fetchall(cur)]

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO time_correction_requests(
                    tenant_id, session_id, requester_id, original_clock_in, original_clock_out,
                    requested_clock_in, requested_clock_out, reason, status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    tenant_id,
                    session_id,
                    requester_id,
                    to_db_datetime(original_clock_in),
                    to_db_datetime(original_clock_out),
                    to_db_datetime(requested_clock_in),
                    to_db_datetime(requested_clock_out),
                    reason,
                    CorrectionStatus.PENDING.value,
                ),
            )
            return int(cur.lastrowid)

    def get_by_id(self, request_id: int, tenant_id: int) -> Optional[TimeCorrectionRequest]:
        rows = self._select("request_id=%s AND tenant_id=%s", (int(request_id), int(tenant_id)))
        return rows[0] if rows else None

    def list_requests(self, *, tenant_id: int, filters: CorrectionFilter) -> Sequence[TimeCorrectionRequest]:
        where, params = _where(tenant_id, filters)
        params.extend([int(filters.limit), int(filters.offset)])
        return self._select(where, params, "ORDER BY created_at DESC, request_id DESC LIMIT %s OFFSET %s")

    def count_requests(self, *, tenant_id: int, filters: CorrectionFilter) -> int:
        where, params = _where(tenant_id, filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM time_correction_requests WHERE {where}", tuple(params))
            r = fetchone(cur)
            return int(r["total"]) if r else 0

    def list_pending(self, *, tenant_id: int, exclude_requester_id: int) -> Sequence[TimeCorrectionRequest]:
        return self._select(
            "tenant_id=%s AND status=%s AND requester_id<>%s",
            (tenant_id, CorrectionStatus.PENDING.value, exclude_requester_id),
            "ORDER BY created_at, request_id",
        )

    def list_for_session(self, *, tenant_id: int, session_id: int) -> Sequence[TimeCorrectionRequest]:
        return self._select(
            "tenant_id=%s AND session_id=%s",
            (tenant_id, session_id),
            "ORDER BY created_at DESC, request_id DESC",
        )

    def update_request(
        self,
        *,
        request_id: int,
        requested_clock_in: Optional[datetime],
        requested_clock_out: Optional[datetime],
        reason: str,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_correction_requests
                SET requested_clock_in=%s, requested_clock_out=%s, reason=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    to_db_datetime(requested_clock_in),
                    to_db_datetime(requested_clock_out),
                    reason,
                    int(request_id),
                    CorrectionStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def decide(
        self,
        *,
        request_id: int,
        status: CorrectionStatus,
        reviewer_id: Optional[int] = None,
        reviewed_at: Optional[datetime] = None,
        review_notes: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_correction_requests
                SET status=%s, reviewer_id=%s, reviewed_at=%s, review_notes=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    CorrectionStatus(status).value,
                    reviewer_id,
                    to_db_datetime(reviewed_at),
                    review_notes,
                    int(request_id),
                    CorrectionStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

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
        # Request and session rows change in one transaction; db_cursor rolls
        # both back if any statement fails.
        with db_cursor(self._conn_factory) as (conn, cur):
            cur.execute(
                "SELECT status FROM time_correction_requests WHERE request_id=%s FOR UPDATE",
                (int(request_id),),
            )
            r = fetchone(cur)
            if not r or r["status"] != CorrectionStatus.PENDING.value:
                return False

            cur.execute(
                """
                UPDATE work_sessions
                SET work_date=%s, clock_in=%s, clock_out=%s, status=%s, total_minutes=%s
                WHERE session_id=%s
                """,
                (
                    work_date,
                    to_db_datetime(clock_in),
                    to_db_datetime(clock_out),
                    SessionStatus(session_status).value,
                    total_minutes,
                    int(session_id),
                ),
            )
            if cur.rowcount == 0:
                conn.rollback()
                return False

            if open_break_id is not None:
                cur.execute(
                    """
                    UPDATE session_breaks
                    SET end_time=%s, duration_minutes=%s
                    WHERE break_id=%s AND session_id=%s AND end_time IS NULL
                    """,
                    (to_db_datetime(clock_out), int(open_break_minutes or 0), int(open_break_id), int(session_id)),
                )

            cur.execute(
                """
                UPDATE time_correction_requests
                SET status=%s, reviewer_id=%s, reviewed_at=%s, review_notes=%s
                WHERE request_id=%s
                """,
                (
                    CorrectionStatus.APPROVED.value,
                    int(reviewer_id),
                    to_db_datetime(reviewed_at),
                    review_notes,
                    int(request_id),
                ),
            )
            return True
