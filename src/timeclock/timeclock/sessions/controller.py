from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_caller, field, json_body, ok
from ..common.sentinels import UNSET, is_set
from ..common.validators import optional_datetime, optional_int, optional_text, require_datetime
from ..container import Container
from ..core.enums import SessionStatus
from ..core.exceptions import ValidationError


def _status(value: Optional[str]) -> Optional[SessionStatus]:
    if not value:
        return None
    try:
        return SessionStatus(value.strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown session status {value!r}")


def _optional_date(name: str):
    value = request.args.get(name)
    return parse_iso_date(value) if value else None


def _partial_datetime(value: Any, name: str) -> Any:
    return optional_datetime(value, name) if is_set(value) else UNSET


def register(app: Flask, container: Container) -> None:
    service = container.session_service

    def _at(body: dict) -> datetime:
        return optional_datetime(body.get("timestamp"), "timestamp") or container.clock.now()

    @app.route("/api/v1/sessions/clock-in", methods=["POST"], endpoint="sessions_clock_in")
    def clock_in():
        body = json_body()
        session = service.clock_in(current_caller(app), at=_at(body), notes=optional_text(body.get("notes"), "notes"))
        return ok(session, 201)

    @app.route("/api/v1/sessions/<int:session_id>/clock-out", methods=["POST"], endpoint="sessions_clock_out")
    def clock_out(session_id: int):
        body = json_body()
        session = service.clock_out(
            current_caller(app),
            session_id,
            at=_at(body),
            notes=optional_text(body.get("notes"), "notes"),
        )
        return ok(session)

    @app.route("/api/v1/sessions/<int:session_id>/breaks/start", methods=["POST"], endpoint="sessions_break_start")
    def break_start(session_id: int):
        return ok(service.start_break(current_caller(app), session_id, at=_at(json_body())))

    @app.route("/api/v1/sessions/<int:session_id>/breaks/end", methods=["POST"], endpoint="sessions_break_end")
    def break_end(session_id: int):
        return ok(service.end_break(current_caller(app), session_id, at=_at(json_body())))

    @app.route("/api/v1/sessions", methods=["GET"], endpoint="sessions_list")
    def list_sessions():
        page = service.list_sessions(
            current_caller(app),
            user_id=optional_int(request.args.get("user_id"), "user_id"),
            status=_status(request.args.get("status")),
            date_from=_optional_date("date_from"),
            date_to=_optional_date("date_to"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset"),
        )
        return ok(page)

    @app.route("/api/v1/sessions/active", methods=["GET"], endpoint="sessions_active")
    def active_session():
        return ok(service.get_active_session(current_caller(app)))

    @app.route("/api/v1/sessions/<int:session_id>", methods=["GET"], endpoint="sessions_get")
    def get_session(session_id: int):
        return ok(service.get_session(current_caller(app), session_id))

    @app.route("/api/v1/sessions/<int:session_id>", methods=["PUT"], endpoint="sessions_update")
    def update_session(session_id: int):
        body = json_body()
        notes = field(body, "notes")
        session = service.update_session(
            current_caller(app),
            session_id,
            clock_in=_partial_datetime(field(body, "clock_in"), "clock_in"),
            clock_out=_partial_datetime(field(body, "clock_out"), "clock_out"),
            notes=optional_text(notes, "notes") if is_set(notes) else UNSET,
        )
        return ok(session)

    @app.route("/api/v1/sessions/<int:session_id>", methods=["DELETE"], endpoint="sessions_delete")
    def delete_session(session_id: int):
        service.delete_session(current_caller(app), session_id)
        return ok({"session_id": session_id})

    @app.route("/api/v1/sessions/<int:session_id>/audit", methods=["GET"], endpoint="sessions_audit")
    def audit_history(session_id: int):
        return ok(service.audit_history(current_caller(app), session_id))

    @app.route("/api/v1/sessions/validate", methods=["POST"], endpoint="sessions_validate")
    def validate_interval():
        body = json_body()
        result = service.validate_candidate_interval(
            current_caller(app),
            start=require_datetime(body.get("start"), "start"),
            end=optional_datetime(body.get("end"), "end"),
            exclude_id=optional_int(body.get("exclude_id"), "exclude_id"),
            user_id=optional_int(body.get("user_id"), "user_id"),
        )
        return ok(result)

    @app.route("/api/v1/sessions/conflicts", methods=["GET"], endpoint="sessions_conflicts")
    def conflicts():
        found = service.get_conflicts(
            current_caller(app),
            start=require_datetime(request.args.get("start"), "start"),
            end=optional_datetime(request.args.get("end"), "end"),
            exclude_id=optional_int(request.args.get("exclude_id"), "exclude_id"),
            user_id=optional_int(request.args.get("user_id"), "user_id"),
        )
        return ok(found)
