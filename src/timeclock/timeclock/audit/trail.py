from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from ..common.clock import Clock, SystemClock
from ..core.enums import AuditAction
from .model import AuditRecord
from .repository import AuditRepository

logger = logging.getLogger(__name__)

ENTITY_WORK_SESSION = "WorkSession"
ENTITY_CORRECTION_REQUEST = "TimeCorrectionRequest"


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


class AuditTrail:
    """Fire-and-forget audit emission.

    A failed write is logged and swallowed; the primary operation has
    already been committed and must not be undone by it.
    """

    def __init__(self, audit: AuditRepository, *, clock: Optional[Clock] = None):
        self._audit = audit
        self._clock = clock or SystemClock()

    def record(
        self,
        *,
        actor_id: int,
        tenant_id: int,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
    ) -> bool:
        record = AuditRecord(
            actor_id=int(actor_id),
            tenant_id=int(tenant_id),
            entity_type=entity_type,
            entity_id=int(entity_id),
            action=action,
            old_values=_jsonable(old_values) if old_values is not None else None,
            new_values=_jsonable(new_values) if new_values is not None else None,
            created_at=self._clock.now(),
        )
        try:
            self._audit.add(record)
        except Exception:
            logger.exception(
                "Audit write failed for %s %s (%s) by user %s",
                entity_type,
                entity_id,
                action.value,
                actor_id,
            )
            return False
        return True

    def history(self, *, tenant_id: int, entity_type: str, entity_id: int):
        return self._audit.list_for_entity(tenant_id=tenant_id, entity_type=entity_type, entity_id=entity_id)
