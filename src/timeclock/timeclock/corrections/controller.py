from __future__ import annotations

from typing import Optional

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_caller, field, json_body, ok
from ..common.sentinels import UNSET, is_set
from ..common.validators import optional_datetime, optional_int, parse_int
from ..container import Container
from ..core.enums import CorrectionStatus
from ..core.exceptions import ValidationError


def _status(value: Optional[str]) -> Optional[CorrectionStatus]:
    if not value:
        return None
    try:
        return CorrectionStatus(value.strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown correction status {value!r}")


def _optional_date(name: str):
    value = request.args.get(name)
    return parse_iso_date(value) if value else None


def register(app: Flask, container: Container) -> None:
    service = container.correction_service

    @app.route("/api/v1/corrections", methods=["POST"], endpoint="corrections_submit")
    def submit():
        body = json_body()
        req = service.submit(
            current_caller(app),
            session_id=parse_int(body.get("session_id"), "session_id"),
            reason=body.get("reason"),
            requested_clock_in=optional_datetime(body.get("requested_clock_in"), "requested_clock_in"),
            requested_clock_out=optional_datetime(body.get("requested_clock_out"), "requested_clock_out"),
        )
        return ok(req, 201)

    @app.route("/api/v1/corrections", methods=["GET"], endpoint="corrections_list")
    def list_requests():
        page = service.list_requests(
            current_caller(app),
            user_id=optional_int(request.args.get("user_id"), "user_id"),
            session_id=optional_int(request.args.get("session_id"), "session_id"),
            status=_status(request.args.get("status")),
            created_from=_optional_date("created_from"),
            created_to=_optional_date("created_to"),
            limit=request.args.get("limit"),
            offset=request.args.get("offset"),
        )
        return ok(page)

    @app.route("/api/v1/corrections/pending", methods=["GET"], endpoint="corrections_pending")
    def pending():
        return ok(service.pending_approvals(current_caller(app)))

    @app.route("/api/v1/corrections/<int:request_id>", methods=["GET"], endpoint="corrections_get")
    def get_request(request_id: int):
        return ok(service.get_request(current_caller(app), request_id))

    @app.route("/api/v1/corrections/<int:request_id>", methods=["PUT"], endpoint="corrections_update")
    def update(request_id: int):
        body = json_body()
        clock_in = field(body, "requested_clock_in")
        clock_out = field(body, "requested_clock_out")
        req = service.update(
            current_caller(app),
            request_id,
            requested_clock_in=optional_datetime(clock_in, "requested_clock_in") if is_set(clock_in) else UNSET,
            requested_clock_out=optional_datetime(clock_out, "requested_clock_out") if is_set(clock_out) else UNSET,
            reason=field(body, "reason"),
        )
        return ok(req)

    @app.route("/api/v1/corrections/<int:request_id>", methods=["DELETE"], endpoint="corrections_cancel")
    def cancel(request_id: int):
        return ok(service.cancel(current_caller(app), request_id))

    @app.route("/api/v1/corrections/<int:request_id>/approve", methods=["POST"], endpoint="corrections_approve")
    def approve(request_id: int):
        body = json_body()
        return ok(service.approve(current_caller(app), request_id, notes=body.get("notes")))

    @app.route("/api/v1/corrections/<int:request_id>/reject", methods=["POST"], endpoint="corrections_reject")
    def reject(request_id: int):
        body = json_body()
        return ok(service.reject(current_caller(app), request_id, notes=body.get("notes")))

    @app.route("/api/v1/sessions/<int:session_id>/corrections", methods=["GET"], endpoint="corrections_history")
    def history(session_id: int):
        return ok(service.correction_history(current_caller(app), session_id))
