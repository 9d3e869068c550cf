from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_caller, ok
from ..common.validators import optional_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.report_service

    def _user_id():
        return optional_int(request.args.get("user_id"), "user_id")

    @app.route("/api/v1/reports/daily", methods=["GET"], endpoint="reports_daily")
    def daily():
        raw = request.args.get("date")
        summary = service.daily_summary(
            current_caller(app),
            day=parse_iso_date(raw) if raw else None,
            user_id=_user_id(),
        )
        return ok(summary)

    @app.route("/api/v1/reports/weekly", methods=["GET"], endpoint="reports_weekly")
    def weekly():
        summary = service.weekly_summary(
            current_caller(app),
            year=optional_int(request.args.get("year"), "year", minimum=1, maximum=9999),
            week=optional_int(request.args.get("week"), "week", minimum=1, maximum=53),
            user_id=_user_id(),
        )
        return ok(summary)

    @app.route("/api/v1/reports/monthly", methods=["GET"], endpoint="reports_monthly")
    def monthly():
        summary = service.monthly_summary(
            current_caller(app),
            year=optional_int(request.args.get("year"), "year", minimum=1, maximum=9999),
            month=optional_int(request.args.get("month"), "month", minimum=1, maximum=12),
            user_id=_user_id(),
        )
        return ok(summary)
