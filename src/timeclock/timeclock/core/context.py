from __future__ import annotations

from dataclasses import dataclass

from .enums import Role


@dataclass(frozen=True)
class CallerContext:
    """Identity of the caller, as established by the identity layer.

    The core trusts these values; tenant isolation is applied by every
    repository lookup using ``tenant_id``.
    """

    user_id: int
    tenant_id: int
    role: Role

    @property
    def is_privileged(self) -> bool:
        return is_privileged(self.role)


def is_privileged(role: Role) -> bool:
    return role in {Role.MANAGER, Role.ADMIN}
