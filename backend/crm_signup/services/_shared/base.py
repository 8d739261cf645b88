from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from crm_signup.core import errors as api_errors
from crm_signup.repositories.base import Pagination
from crm_signup.services._shared.errors import (
    DependencyConflictError,
    DependencyUnavailableError,
    DirectoryConflictError,
    DirectoryUnavailableError,
    DuplicateInProgressError,
    RegistrationError,
    RegistrationGuardError,
    ServiceError,
    ValidationFailedError,
)
from crm_signup.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param actor_id: Authenticated operator identifier (admin endpoints).
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Centralize error translation to API errors.
    * Offer shared validation helpers (pagination/sorting).
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        return SQLAlchemyReadOnlyUnitOfWork()

    # ----------------------- Validation utilities ---------------------------

    def ensure_pagination(
        self, *, page: int, limit: int, sort: Iterable[str] | None = None
    ) -> Pagination:
        """
        Build a Pagination value object with basic clamping.

        :param page: 1-based page number.
        :type page: int
        :param limit: Page size.
        :type limit: int
        :param sort: Sort tokens like ["-created_at", "state"].
        :type sort: Iterable[str] | None
        :returns: Pagination instance.
        :rtype: Pagination
        """
        page = max(1, int(page))
        limit = max(1, int(limit))
        return Pagination(page=page, limit=limit, sort=list(sort or []))

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, RegistrationError):
            details: dict[str, Any] = {"kind": exc.kind.value}
            if exc.aborted_in:
                details["aborted_in"] = exc.aborted_in
            if exc.partial_resources:
                details["partial_resources"] = list(exc.partial_resources)
            details.update(exc.details)

            if isinstance(exc, DuplicateInProgressError):
                # → 409 Conflict
                return api_errors.Conflict(
                    str(exc), code="registration_in_progress", details=details
                )
            if isinstance(exc, ValidationFailedError):
                # → 400 Bad Request
                return api_errors.BadRequest(str(exc), code="validation_failed", details=details)
            if isinstance(exc, DependencyUnavailableError):
                # → 503 Service Unavailable
                return api_errors.ServiceUnavailable(str(exc), details=details)
            if isinstance(exc, DependencyConflictError):
                # → 409 Conflict
                return api_errors.Conflict(str(exc), code="dependency_conflict", details=details)
            # → 500 Internal Server Error
            return api_errors.APIError(
                message=str(exc),
                status_code=500,
                code="internal_server_error",
                details=details,
            )

        if isinstance(exc, DirectoryUnavailableError):
            return api_errors.ServiceUnavailable("A required service is temporarily unavailable")

        if isinstance(exc, DirectoryConflictError):
            return api_errors.Conflict(str(exc), code="dependency_conflict")

        if isinstance(exc, RegistrationGuardError):
            return api_errors.ServiceUnavailable("Registration registry is temporarily unavailable")

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
