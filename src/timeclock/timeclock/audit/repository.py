from __future__ import annotations

from typing import Protocol, Sequence

from .model import AuditRecord


class AuditRepository(Protocol):
    def add(self, record: AuditRecord) -> int:
        raise NotImplementedError

    def list_for_entity(self, *, tenant_id: int, entity_type: str, entity_id: int) -> Sequence[AuditRecord]:
        raise NotImplementedError
