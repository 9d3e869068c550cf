from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .common.clock import Clock
from .common.http import register_error_handlers
from .container import STORAGE_MYSQL, build_container
from .core.constants import LONG_INTERVAL_WARNING_MINUTES
from .corrections.controller import register as register_corrections
from .database.bootstrap import apply_schema, list_tables
from .reports.controller import register as register_reports
from .sessions.controller import register as register_sessions

logger = logging.getLogger(__name__)


def create_app(*, settings_module: Optional[str] = None, clock: Optional[Clock] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["USER_ID_HEADER"] = getattr(settings, "USER_ID_HEADER", "X-User-Id")
    app.config["TENANT_ID_HEADER"] = getattr(settings, "TENANT_ID_HEADER", "X-Tenant-Id")
    app.config["USER_ROLE_HEADER"] = getattr(settings, "USER_ROLE_HEADER", "X-User-Role")

    db_config = getattr(settings, "DB_CONFIG", {})
    storage_backend = str(getattr(settings, "STORAGE_BACKEND", STORAGE_MYSQL)).lower()
    logger.info("Starting timeclock with settings=%s storage=%s", settings_module, storage_backend)

    if storage_backend == STORAGE_MYSQL and bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config)
        logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))

    container = build_container(
        db_config=db_config,
        storage_backend=storage_backend,
        clock=clock,
        monthly_mode=getattr(settings, "MONTHLY_SUMMARY_MODE", "iso_weeks"),
        long_interval_warning_minutes=int(
            getattr(settings, "LONG_INTERVAL_WARNING_MINUTES", LONG_INTERVAL_WARNING_MINUTES)
        ),
    )
    app.extensions["timeclock"] = container

    register_error_handlers(app)
    register_sessions(app, container)
    register_corrections(app, container)
    register_reports(app, container)

    @app.route("/health", methods=["GET"], endpoint="health")
    def health():
        return jsonify({"status": "ok", "storage": storage_backend})

    return app
