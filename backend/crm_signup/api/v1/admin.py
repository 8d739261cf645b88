"""Operator endpoints for the registration guard and journal."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app

from crm_signup.api.deps import (
    ADMIN_SCOPE,
    json_response,
    parse_pagination,
    require_scope,
    service_context,
    timing,
)
from crm_signup.core.extensions import get_registration_guard
from crm_signup.schemas import AttemptListQuerySchema, RegistrationAttemptSchema, build_meta
from crm_signup.services.registration.journal import RegistrationAttemptQueryService

log = logging.getLogger(__name__)

bp = Blueprint("admin", __name__)

attempt_schema = RegistrationAttemptSchema()


@bp.get("/registrations/in-flight")
@require_scope(ADMIN_SCOPE)
@timing
def list_in_flight():
    """Snapshot of dedup keys currently held by the guard."""

    guard = get_registration_guard()
    keys = sorted(guard.in_flight())
    return json_response({"data": keys, "meta": {"count": len(keys)}})


@bp.delete("/registrations/in-flight")
@require_scope(ADMIN_SCOPE)
@timing
def clear_in_flight():
    """
    Drop every held key.

    Only meant for recovery after a crash left stale keys; running it while
    registrations are in progress lets duplicates through.
    """

    ctx = service_context()
    removed = get_registration_guard().clear_all()
    log.warning(
        "admin.registrations.cleared removed=%s actor=%s env=%s",
        removed,
        ctx.actor_id,
        current_app.config.get("ENV_NAME"),
    )
    return json_response({"data": {"removed": removed}})


@bp.get("/registrations/attempts")
@require_scope(ADMIN_SCOPE)
@timing
def list_attempts():
    """Paginated registration journal, newest first."""

    pagination, filters = parse_pagination(schema_cls=AttemptListQuerySchema)
    page = RegistrationAttemptQueryService(ctx=service_context()).list_attempts(
        page=pagination.page,
        limit=pagination.limit,
        sort=pagination.sort,
        state=filters.get("state"),
        email=filters.get("email"),
    )
    return json_response(
        {
            "data": attempt_schema.dump(page.items, many=True),
            "meta": build_meta(total=page.total, page=page.page, limit=page.limit),
        }
    )
