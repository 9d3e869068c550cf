from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from mysql.connector import errors as mysql_errors

from ..core.enums import SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    db_cursor,
    fetchall,
    fetchone,
    from_db_date,
    from_db_datetime,
    in_placeholders,
    to_db_datetime,
)
from .model import Break, SessionFilter, WorkSession
from .repository import SessionRepository

_SESSION_COLUMNS = """
    session_id, user_id, tenant_id, work_date, clock_in, clock_out, status,
    total_minutes, notes, created_at, updated_at
"""

_ACTIVE = (SessionStatus.WORKING.value, SessionStatus.ON_BREAK.value)


def _to_break(r: Dict[str, Any]) -> Break:
    return Break(
        break_id=int(r["break_id"]),
        session_id=int(r["session_id"]),
        start_time=from_db_datetime(r["start_time"]),
        end_time=from_db_datetime(r.get("end_time")),
        duration_minutes=int(r["duration_minutes"]) if r.get("duration_minutes") is not None else None,
    )


def _to_session(r: Dict[str, Any], breaks: Sequence[Break] = ()) -> WorkSession:
    return WorkSession(
        session_id=int(r["session_id"]),
        user_id=int(r["user_id"]),
        tenant_id=int(r["tenant_id"]),
        work_date=from_db_date(r["work_date"]),
        clock_in=from_db_datetime(r["clock_in"]),
        clock_out=from_db_datetime(r.get("clock_out")),
        status=SessionStatus(r["status"]),
        total_minutes=int(r["total_minutes"]) if r.get("total_minutes") is not None else None,
        notes=r.get("notes"),
        breaks=tuple(breaks),
        created_at=from_db_datetime(r.get("created_at")),
        updated_at=from_db_datetime(r.get("updated_at")),
    )


def _where(tenant_id: int, filters: SessionFilter) -> tuple[str, list]:
    clauses = ["tenant_id=%s"]
    params: list = [tenant_id]
    if filters.user_id is not None:
        clauses.append("user_id=%s")
        params.append(int(filters.user_id))
    if filters.status is not None:
        clauses.append("status=%s")
        params.append(SessionStatus(filters.status).value)
    if filters.date_from is not None:
        clauses.append("work_date >= %s")
        params.append(filters.date_from)
    if filters.date_to is not None:
        clauses.append("work_date <= %s")
        params.append(filters.date_to)
    return " AND ".join(clauses), params


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _hydrate(self, cur, rows: List[Dict[str, Any]]) -> List[WorkSession]:
        if not rows:
            return []
        ids = [int(r["session_id"]) for r in rows]
        cur.execute(
            f"""
            SELECT break_id, session_id, start_time, end_time, duration_minutes
            FROM session_breaks
            WHERE session_id IN ({in_placeholders(len(ids))})
            ORDER BY start_time, break_id
            """,
            tuple(ids),
        )
        by_session: Dict[int, List[Break]] = {}
        for b in fetchall(cur):
            by_session.setdefault(int(b["session_id"]), []).append(_to_break(b))
        return [_to_session(r, by_session.get(int(r["session_id"]), [])) for r in rows]

    def _select(self, where: str, params: Sequence[Any], suffix: str = "") -> List[WorkSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_SESSION_COLUMNS} FROM work_sessions WHERE {where} {suffix}", tuple(params))
            return self._hydrate(cur, fetchall(cur))

    def get_by_id(self, session_id: int, tenant_id: int) -> Optional[WorkSession]:
        rows = self._select("session_id=%s AND tenant_id=%s", (int(session_id), int(tenant_id)))
        return rows[0] if rows else None

    def get_active_for_user(self, *, user_id: int, tenant_id: int) -> Optional[WorkSession]:
        rows = self._select(
            "tenant_id=%s AND user_id=%s AND status IN (%s,%s)",
            (tenant_id, user_id, *_ACTIVE),
            "ORDER BY clock_in DESC LIMIT 1",
        )
        return rows[0] if rows else None

    def list_for_user(self, *, user_id: int, tenant_id: int) -> Sequence[WorkSession]:
        return self._select("tenant_id=%s AND user_id=%s", (tenant_id, user_id), "ORDER BY clock_in")

    def find_for_user_and_date(self, *, user_id: int, tenant_id: int, work_date: date) -> Sequence[WorkSession]:
        return self._select(
            "tenant_id=%s AND user_id=%s AND work_date=%s",
            (tenant_id, user_id, work_date),
            "ORDER BY clock_in",
        )

    def list_sessions(self, *, tenant_id: int, filters: SessionFilter) -> Sequence[WorkSession]:
        where, params = _where(tenant_id, filters)
        params.extend([int(filters.limit), int(filters.offset)])
        return self._select(where, params, "ORDER BY clock_in DESC LIMIT %s OFFSET %s")

    def count_sessions(self, *, tenant_id: int, filters: SessionFilter) -> int:
        where, params = _where(tenant_id, filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM work_sessions WHERE {where}", tuple(params))
            r = fetchone(cur)
            return int(r["total"]) if r else 0

    def list_for_period(
        self,
        *,
        tenant_id: int,
        date_from: date,
        date_to: date,
        user_id: Optional[int] = None,
    ) -> Sequence[WorkSession]:
        where, params = _where(tenant_id, SessionFilter(user_id=user_id, date_from=date_from, date_to=date_to))
        return self._select(where, params, "ORDER BY clock_in")

    def create_session(
        self,
        *,
        user_id: int,
        tenant_id: int,
        work_date: date,
        clock_in: datetime,
        notes: Optional[str] = None,
    ) -> Optional[int]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                # Lock the user's rows so two concurrent clock-ins serialize here.
                cur.execute(
                    """
                    SELECT session_id
                    FROM work_sessions
                    WHERE tenant_id=%s AND user_id=%s AND (status IN (%s,%s) OR work_date=%s)
                    FOR UPDATE
                    """,
                    (tenant_id, user_id, *_ACTIVE, work_date),
                )
                if fetchall(cur):
                    return None
                cur.execute(
                    """
                    INSERT INTO work_sessions(tenant_id, user_id, work_date, clock_in, status, notes)
                    VALUES(%s,%s,%s,%s,%s,%s)
                    """,
                    (tenant_id, user_id, work_date, to_db_datetime(clock_in), SessionStatus.WORKING.value, notes),
                )
                return int(cur.lastrowid)
        except mysql_errors.IntegrityError:
            # uq_work_sessions_user_day caught a race the lock did not.
            return None

    def start_break(self, *, session_id: int, start_time: datetime) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE work_sessions SET status=%s WHERE session_id=%s AND status=%s",
                (SessionStatus.ON_BREAK.value, int(session_id), SessionStatus.WORKING.value),
            )
            if cur.rowcount == 0:
                return None
            cur.execute(
                "INSERT INTO session_breaks(session_id, start_time) VALUES(%s,%s)",
                (int(session_id), to_db_datetime(start_time)),
            )
            return int(cur.lastrowid)

    def end_break(self, *, session_id: int, break_id: int, end_time: datetime, duration_minutes: int) -> bool:
        with db_cursor(self._conn_factory) as (conn, cur):
            cur.execute(
                """
                UPDATE session_breaks
                SET end_time=%s, duration_minutes=%s
                WHERE break_id=%s AND session_id=%s AND end_time IS NULL
                """,
                (to_db_datetime(end_time), int(duration_minutes), int(break_id), int(session_id)),
            )
            if cur.rowcount == 0:
                return False
            cur.execute(
                "UPDATE work_sessions SET status=%s WHERE session_id=%s AND status=%s",
                (SessionStatus.WORKING.value, int(session_id), SessionStatus.ON_BREAK.value),
            )
            if cur.rowcount == 0:
                conn.rollback()
                return False
            return True

    def close_session(
        self,
        *,
        session_id: int,
        clock_out: datetime,
        total_minutes: int,
        notes: Optional[str],
        open_break_id: Optional[int] = None,
        open_break_minutes: Optional[int] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE work_sessions
                SET clock_out=%s, status=%s, total_minutes=%s, notes=%s
                WHERE session_id=%s AND status IN (%s,%s)
                """,
                (
                    to_db_datetime(clock_out),
                    SessionStatus.CLOCKED_OUT.value,
                    int(total_minutes),
                    notes,
                    int(session_id),
                    *_ACTIVE,
                ),
            )
            if cur.rowcount == 0:
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
            return True

    def update_session(
        self,
        *,
        session_id: int,
        work_date: date,
        clock_in: datetime,
        clock_out: Optional[datetime],
        status: SessionStatus,
        total_minutes: Optional[int],
        notes: Optional[str],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE work_sessions
                SET work_date=%s, clock_in=%s, clock_out=%s, status=%s, total_minutes=%s, notes=%s
                WHERE session_id=%s
                """,
                (
                    work_date,
                    to_db_datetime(clock_in),
                    to_db_datetime(clock_out),
                    SessionStatus(status).value,
                    total_minutes,
                    notes,
                    int(session_id),
                ),
            )
            return cur.rowcount > 0

    def delete_session(self, session_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM work_sessions WHERE session_id=%s", (int(session_id),))
            return cur.rowcount > 0
