"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP. They serve as stable contracts between the outbound
directory adapters, the registration orchestrator and the API layer.

The translation to HTTP responses (RFC 7807) is handled by
``crm_signup/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


# --------------------------------------------------------------------------- #
# Outbound directory failures (raised by adapters, consumed by services)
# --------------------------------------------------------------------------- #


class DirectoryError(ServiceError):
    """
    A collaborating service call did not produce a usable answer.

    :param service: Logical collaborator name (``"tenant"``, ``"users"``...).
    :type service: str
    :param message: Short description, safe to log.
    :type message: str
    :param status_code: HTTP status returned, when one was received.
    :type status_code: int | None
    """

    def __init__(self, service: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message
        self.status_code = status_code


class DirectoryUnavailableError(DirectoryError):
    """Transport failure, timeout or 5xx: the collaborator could not be reached."""


class DirectoryConflictError(DirectoryError):
    """The collaborator rejected the write on a uniqueness rule it enforces."""


class DirectoryRejectedError(DirectoryError):
    """Any other refusal (4xx, ``success: false`` envelope, malformed body)."""


class RegistrationGuardError(ServiceError):
    """The in-flight registry's backing store could not be reached."""


# --------------------------------------------------------------------------- #
# Registration taxonomy
# --------------------------------------------------------------------------- #


class RegistrationErrorKind(str, Enum):
    """Stable error kinds surfaced by the registration orchestrator."""

    DUPLICATE_IN_PROGRESS = "duplicate_in_progress"
    VALIDATION_FAILED = "validation_failed"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    DEPENDENCY_CONFLICT = "dependency_conflict"
    UNEXPECTED_FAILURE = "unexpected_failure"


class RegistrationError(ServiceError):
    """
    Abort of a company registration.

    :param message: Client-safe description. Never carries identifiers.
    :type message: str
    :param aborted_in: Name of the state the execution was in when it aborted.
    :type aborted_in: str | None
    :param partial_resources: Kinds of resources created before the abort,
        oldest first (e.g. ``("tenant",)``).
    :type partial_resources: Iterable[str]
    :param details: Optional safe structured payload (field errors).
    :type details: dict[str, object] | None
    """

    kind: RegistrationErrorKind = RegistrationErrorKind.UNEXPECTED_FAILURE

    def __init__(
        self,
        message: str,
        *,
        aborted_in: str | None = None,
        partial_resources: Iterable[str] = (),
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.aborted_in = aborted_in
        self.partial_resources = tuple(partial_resources)
        self.details = details or {}

    @property
    def has_partial_state(self) -> bool:
        """``True`` when resources were created before the abort."""
        return bool(self.partial_resources)

    def __str__(self) -> str:
        return self.message


class DuplicateInProgressError(RegistrationError):
    """Another execution holds the same (email, company) key."""

    kind = RegistrationErrorKind.DUPLICATE_IN_PROGRESS


class ValidationFailedError(RegistrationError):
    """Structural or uniqueness validation failed; nothing was created."""

    kind = RegistrationErrorKind.VALIDATION_FAILED


class DependencyUnavailableError(RegistrationError):
    """A collaborator could not be reached (after retries where applicable)."""

    kind = RegistrationErrorKind.DEPENDENCY_UNAVAILABLE


class DependencyConflictError(RegistrationError):
    """A collaborator rejected a write on its own uniqueness constraint."""

    kind = RegistrationErrorKind.DEPENDENCY_CONFLICT


class UnexpectedFailureError(RegistrationError):
    """Anything else."""

    kind = RegistrationErrorKind.UNEXPECTED_FAILURE
