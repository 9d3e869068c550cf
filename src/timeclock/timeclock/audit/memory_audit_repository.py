from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from ..database.memory import InMemoryStore
from .model import AuditRecord
from .repository import AuditRepository


class InMemoryAuditRepository(AuditRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    def add(self, record: AuditRecord) -> int:
        with self._store.transaction():
            audit_id = self._store.next_id("audit_logs")
            self._store.audit.append(replace(record, audit_id=audit_id))
            return audit_id

    def list_for_entity(self, *, tenant_id: int, entity_type: str, entity_id: int) -> Sequence[AuditRecord]:
        return [
            r
            for r in self._store.audit
            if r.tenant_id == tenant_id and r.entity_type == entity_type and r.entity_id == entity_id
        ]
