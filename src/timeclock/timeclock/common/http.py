"""Request/response helpers shared by the Flask controllers."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from ..core.context import CallerContext
from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .sentinels import UNSET

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[DomainError], int, str]] = [
    (ValidationError, 400, "validation_error"),
    (AuthenticationError, 401, "unauthenticated"),
    (AuthorizationError, 403, "forbidden"),
    (NotFoundError, 404, "not_found"),
    (ConflictError, 409, "conflict"),
    (InvalidStateError, 422, "invalid_state"),
]


def to_json(value: Any) -> Any:
    """Dataclasses, enums and datetimes -> JSON-ready primitives."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_json(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def ok(data: Any = None, status: int = 200):
    return jsonify({"success": True, "data": to_json(data)}), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def field(body: dict, name: str) -> Any:
    """``UNSET`` when the key is absent, so partial updates can tell it from null."""
    return body[name] if name in body else UNSET


def current_caller(app: Flask) -> CallerContext:
    """Build the caller from the trusted identity headers set by the gateway."""
    user_header = app.config.get("USER_ID_HEADER", "X-User-Id")
    tenant_header = app.config.get("TENANT_ID_HEADER", "X-Tenant-Id")
    role_header = app.config.get("USER_ROLE_HEADER", "X-User-Role")

    raw_user = request.headers.get(user_header)
    raw_tenant = request.headers.get(tenant_header)
    if not raw_user or not raw_tenant:
        raise AuthenticationError(f"Missing {user_header} or {tenant_header} header")
    try:
        user_id = int(raw_user)
        tenant_id = int(raw_tenant)
    except ValueError:
        raise AuthenticationError("Identity headers must be integers")

    raw_role = (request.headers.get(role_header) or Role.EMPLOYEE.value).strip().upper()
    try:
        role = Role(raw_role)
    except ValueError:
        raise AuthenticationError(f"Unknown role {raw_role!r}")
    return CallerContext(user_id=user_id, tenant_id=tenant_id, role=role)


def register_error_handlers(app: Flask) -> None:
    def _error(kind: str, message: str, status: int):
        return jsonify({"success": False, "error": kind, "message": message}), status

    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        for cls, status, kind in _STATUS_BY_ERROR:
            if isinstance(e, cls):
                return _error(kind, str(e), status)
        return _error("domain_error", str(e), 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return _error((e.name or "http_error").lower().replace(" ", "_"), e.description or "", e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error("internal_error", "Internal server error", 500)
