from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence

from ..core.enums import AuditAction
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, from_db_datetime, to_db_datetime
from .model import AuditRecord
from .repository import AuditRepository


def _dump(values: Optional[dict]) -> Optional[str]:
    return json.dumps(values) if values is not None else None


def _load(value: Any) -> Optional[dict]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


def _to_record(r: Dict[str, Any]) -> AuditRecord:
    return AuditRecord(
        audit_id=int(r["audit_id"]),
        actor_id=int(r["actor_id"]),
        tenant_id=int(r["tenant_id"]),
        entity_type=r["entity_type"],
        entity_id=int(r["entity_id"]),
        action=AuditAction(r["action"]),
        old_values=_load(r.get("old_values")),
        new_values=_load(r.get("new_values")),
        created_at=from_db_datetime(r.get("created_at")),
    )


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(self, record: AuditRecord) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_logs(tenant_id, actor_id, entity_type, entity_id, action, old_values, new_values, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,COALESCE(%s, CURRENT_TIMESTAMP(6)))
                """,
                (
                    record.tenant_id,
                    record.actor_id,
                    record.entity_type,
                    record.entity_id,
                    record.action.value,
                    _dump(record.old_values),
                    _dump(record.new_values),
                    to_db_datetime(record.created_at),
                ),
            )
            return int(cur.lastrowid)

    def list_for_entity(self, *, tenant_id: int, entity_type: str, entity_id: int) -> Sequence[AuditRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT audit_id, tenant_id, actor_id, entity_type, entity_id, action, old_values, new_values, created_at
                FROM audit_logs
                WHERE tenant_id=%s AND entity_type=%s AND entity_id=%s
                ORDER BY created_at, audit_id
                """,
                (tenant_id, entity_type, int(entity_id)),
            )
            return [_to_record(r) for r in fetchall(cur)]
