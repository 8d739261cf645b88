"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from crm_signup.core.errors import Forbidden
from crm_signup.core.extensions import get_directory_clients, get_registration_guard
from crm_signup.core.logger import ensure_request_id
from crm_signup.schemas.common import PaginationQuerySchema
from crm_signup.services._shared.base import ServiceContext
from crm_signup.services._shared.ports import NullRegistrationJournal, RegistrationJournal
from crm_signup.services.registration.availability import AvailabilityChecker, FailurePolicy
from crm_signup.services.registration.identity import IdentityUniquenessChecker
from crm_signup.services.registration.journal import SqlRegistrationJournal
from crm_signup.services.registration.service import CompanyRegistrationService, TrialPlan
from crm_signup.services.registration.subdomain import SubdomainGenerator

F = TypeVar("F", bound=Callable[..., Any])

ADMIN_SCOPE = "registrations:admin"


@dataclass(slots=True)
class Pagination:
    """Container holding pagination arguments parsed from the request."""

    page: int
    limit: int
    sort: list[str]


def parse_pagination(
    default_limit: int = 20,
    max_limit: int = 200,
    *,
    schema_cls: type[PaginationQuerySchema] = PaginationQuerySchema,
) -> tuple[Pagination, dict[str, Any]]:
    """
    Parse pagination parameters from ``request.args`` using Marshmallow.

    :returns: The pagination and any remaining loaded filter values.
    """

    schema = schema_cls(default_limit=default_limit, max_limit=max_limit)
    data = schema.load(request.args)
    pagination = Pagination(
        page=data.pop("page"), limit=data.pop("limit"), sort=data.pop("sort")
    )
    return pagination, data


def require_scope(required: str) -> Callable[[F], F]:
    """Ensure the verified JWT contains the requested scope claim."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            verify_jwt_in_request(optional=False)
            claims = get_jwt() or {}
            scopes = set(claims.get("scopes", []))
            if required not in scopes:
                raise Forbidden("Insufficient scope")
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def service_context() -> ServiceContext:
    """Request-scoped context; the actor is only known on authenticated routes."""

    try:
        identity = get_jwt_identity()
    except RuntimeError:
        # No verified token on this request
        identity = None
    actor = str(identity) if identity is not None else None
    return ServiceContext(actor_id=actor, request_id=ensure_request_id())


def build_registration_service() -> CompanyRegistrationService:
    """Wire :class:`CompanyRegistrationService` from the application config."""

    cfg = current_app.config
    directories = get_directory_clients()
    tenants = directories.tenants
    users = directories.users
    credentials = directories.credentials

    journal: RegistrationJournal = NullRegistrationJournal()
    if cfg.get("REGISTRATION_JOURNAL_ENABLED", True):
        journal = SqlRegistrationJournal()

    return CompanyRegistrationService(
        tenants=tenants,
        users=users,
        credentials=credentials,
        guard=get_registration_guard(),
        subdomains=SubdomainGenerator(max_attempts=int(cfg.get("SUBDOMAIN_MAX_ATTEMPTS", 100))),
        availability=AvailabilityChecker(
            tenants,
            max_attempts=int(cfg.get("AVAILABILITY_MAX_ATTEMPTS", 3)),
            backoff_ms=int(cfg.get("AVAILABILITY_BACKOFF_MS", 1000)),
            policy=FailurePolicy.parse(cfg.get("AVAILABILITY_FAILURE_POLICY"), FailurePolicy.OPEN),
        ),
        identity=IdentityUniquenessChecker(
            users,
            policy=FailurePolicy.parse(
                cfg.get("IDENTITY_LOOKUP_FAILURE_POLICY"), FailurePolicy.OPEN
            ),
        ),
        probe_policy=FailurePolicy.parse(
            cfg.get("COMPANY_PROBE_FAILURE_POLICY"), FailurePolicy.CLOSED
        ),
        journal=journal,
        trial=TrialPlan(
            days=int(cfg.get("TRIAL_DAYS", 14)),
            max_users=int(cfg.get("TRIAL_MAX_USERS", 5)),
            max_storage_gb=int(cfg.get("TRIAL_MAX_STORAGE_GB", 10)),
        ),
        deadline_seconds=cfg.get("REGISTRATION_DEADLINE_SECONDS"),
        ctx=service_context(),
    )


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
