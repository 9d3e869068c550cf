from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from ..core.constants import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT, MAX_TEXT_LENGTH
from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_datetime


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_max_length(value: Optional[str], field_name: str, max_len: int = MAX_TEXT_LENGTH) -> Optional[str]:
    if value is not None and len(value) > max_len:
        raise ValidationError(f"{field_name} must be at most {max_len} characters")
    return value


def optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    value = value.strip()
    return require_max_length(value, field_name) or None


def require_datetime(value: Any, field_name: str) -> datetime:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required")
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be an ISO-8601 string")
    return parse_iso_datetime(value)


def optional_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_datetime(value, field_name)


def parse_int(value: Any, field_name: str, *, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field_name} must be >= {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field_name} must be <= {maximum}")
    return number


def optional_int(value: Any, field_name: str, *, minimum: Optional[int] = None, maximum: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return None
    return parse_int(value, field_name, minimum=minimum, maximum=maximum)


def page_window(limit: Any = None, offset: Any = None) -> tuple[int, int]:
    """Normalize pagination input: limit in 1..100 (default 20), offset >= 0."""
    lim = optional_int(limit, "limit", minimum=1, maximum=MAX_LIST_LIMIT)
    off = optional_int(offset, "offset", minimum=0)
    return (lim if lim is not None else DEFAULT_LIST_LIMIT), (off or 0)
