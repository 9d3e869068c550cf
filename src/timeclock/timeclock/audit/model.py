from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AuditAction


@dataclass(frozen=True)
class AuditRecord:
    actor_id: int
    tenant_id: int
    entity_type: str
    entity_id: int
    action: AuditAction
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    audit_id: Optional[int] = None
