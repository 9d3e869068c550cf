from __future__ import annotations

from typing import Final


class _Unset:
    """Marks an argument the caller did not supply.

    Distinguishes "leave as is" from an explicit ``None`` in partial updates.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


def is_set(value: object) -> bool:
    return value is not UNSET
