"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text

from crm_signup.api.deps import json_response, timing
from crm_signup.core.extensions import db, get_registration_guard

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and registration guard health."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"

    guard_status = "ok"
    in_flight = None
    try:
        in_flight = get_registration_guard().count()
    except Exception:  # pragma: no cover - depends on Redis availability
        current_app.logger.exception("healthcheck.guard_error")
        guard_status = "fail"

    payload = {
        "status": "ok" if db_status == guard_status == "ok" else "degraded",
        "db": db_status,
        "guard": guard_status,
        "guard_backend": current_app.config.get("REGISTRATION_GUARD_BACKEND", "memory"),
        "in_flight": in_flight,
        "version": current_app.config.get("APP_VERSION", "dev"),
        "commit": current_app.config.get("APP_COMMIT", "unknown"),
    }
    return json_response(payload)
