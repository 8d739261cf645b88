"""
CompanyRegistrationService
==========================

Process-level service that signs up a new company across three services:

- Admits at most one in-flight execution per (e-mail, company) key.
- Validates identity uniqueness and probes the base subdomain.
- Allocates a free subdomain (numbered variants, then a fallback).
- Creates the tenant, the user profile and the credentials, in that order.
- Aborts on the first creation failure and reports which resources already
  exist. Nothing is rolled back; an optional ``compensator`` receives the
  created resources newest first.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from crm_signup.services._shared.base import BaseService, ServiceContext
from crm_signup.services._shared.errors import (
    DependencyConflictError,
    DependencyUnavailableError,
    DirectoryConflictError,
    DirectoryError,
    DirectoryUnavailableError,
    DuplicateInProgressError,
    RegistrationError,
    UnexpectedFailureError,
    ValidationFailedError,
)
from crm_signup.services._shared.ports import (
    CredentialStore,
    NullRegistrationJournal,
    RegistrationGuard,
    RegistrationJournal,
    TenantDirectory,
    UserDirectory,
)
from crm_signup.services.registration.availability import AvailabilityChecker, FailurePolicy
from crm_signup.services.registration.dto import (
    CompensationRecord,
    PlanDefaults,
    RegistrationRequest,
    RegistrationResult,
    RegistrationState,
)
from crm_signup.services.registration.identity import IdentityUniquenessChecker
from crm_signup.services.registration.subdomain import SubdomainGenerator

log = logging.getLogger(__name__)

T = TypeVar("T")

Compensator = Callable[[Sequence[CompensationRecord]], None]

_REQUIRED_FIELDS = ("email", "username", "password", "company_name")


@dataclass(slots=True)
class TrialPlan:
    """
    Plan attributes applied to every self-registered tenant.

    :param days: Trial length in days.
    :param max_users: Seat limit during the trial.
    :param max_storage_gb: Storage quota during the trial.
    """

    days: int = 14
    max_users: int = 5
    max_storage_gb: int = 10

    def defaults_for(self, email: str, now: datetime) -> PlanDefaults:
        return PlanDefaults(
            contact_email=email,
            billing_email=email,
            is_trial=True,
            max_users=self.max_users,
            max_storage_gb=self.max_storage_gb,
            trial_ends_at=now + timedelta(days=self.days),
        )


@dataclass(slots=True)
class _Execution:
    """Execution-local progress of one admitted registration."""

    started: float
    state: RegistrationState = RegistrationState.ADMITTED
    subdomain: str | None = None
    resources: list[CompensationRecord] = field(default_factory=list)
    handle: int | None = None

    @property
    def resource_kinds(self) -> tuple[str, ...]:
        return tuple(r.kind for r in self.resources)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompanyRegistrationService(BaseService):
    """
    Orchestrates the company self-registration flow.

    :param tenants: Tenant directory port.
    :type tenants: TenantDirectory
    :param users: User directory port.
    :type users: UserDirectory
    :param credentials: Credential store port.
    :type credentials: CredentialStore
    :param guard: In-flight deduplication registry, shared across requests.
    :type guard: RegistrationGuard
    :param subdomains: Candidate generator.
    :type subdomains: SubdomainGenerator | None
    :param availability: Subdomain availability checker (retrying).
    :type availability: AvailabilityChecker | None
    :param identity: Username/e-mail uniqueness checker.
    :type identity: IdentityUniquenessChecker | None
    :param probe_policy: Outcome when the validation probe cannot reach the
        tenant directory (``closed`` aborts, ``open`` defers to allocation).
    :type probe_policy: FailurePolicy
    :param journal: Attempt journal; failures are logged, never raised.
    :type journal: RegistrationJournal | None
    :param compensator: Receives created resources, newest first, on abort.
    :type compensator: Callable[[Sequence[CompensationRecord]], None] | None
    :param trial: Plan attributes for new tenants.
    :type trial: TrialPlan | None
    :param deadline_seconds: Overall budget checked between steps.
    :type deadline_seconds: float | None
    :param monotonic: Clock used for the deadline and timings.
    :param now: Wall clock used for the trial end date.
    """

    def __init__(
        self,
        *,
        tenants: TenantDirectory,
        users: UserDirectory,
        credentials: CredentialStore,
        guard: RegistrationGuard,
        subdomains: SubdomainGenerator | None = None,
        availability: AvailabilityChecker | None = None,
        identity: IdentityUniquenessChecker | None = None,
        probe_policy: FailurePolicy = FailurePolicy.CLOSED,
        journal: RegistrationJournal | None = None,
        compensator: Compensator | None = None,
        trial: TrialPlan | None = None,
        deadline_seconds: float | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
        ctx: ServiceContext | None = None,
    ) -> None:
        super().__init__(ctx=ctx)
        self._tenants = tenants
        self._users = users
        self._credentials = credentials
        self._guard = guard
        self._subdomains = subdomains or SubdomainGenerator()
        self._availability = availability or AvailabilityChecker(tenants)
        self._identity = identity or IdentityUniquenessChecker(users)
        self._probe_policy = probe_policy
        self._journal = journal or NullRegistrationJournal()
        self._compensator = compensator
        self._trial = trial or TrialPlan()
        self._deadline = deadline_seconds if deadline_seconds and deadline_seconds > 0 else None
        self._monotonic = monotonic
        self._now = now

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def register_company(self, request: RegistrationRequest) -> RegistrationResult:
        """
        Register a company: tenant, user profile and credentials.

        :param request: Registration input.
        :type request: :class:`RegistrationRequest`
        :returns: Unified result of the three creations.
        :rtype: :class:`RegistrationResult`
        :raises ValidationFailedError: Blank fields, taken username or e-mail.
        :raises DuplicateInProgressError: Same (e-mail, company) in flight.
        :raises DependencyUnavailableError: A collaborator could not be reached.
        :raises DependencyConflictError: A collaborator rejected a duplicate.
        :raises UnexpectedFailureError: Anything else.
        """
        self._check_structure(request)

        key = request.dedup_key
        if not self._admit(key):
            log.info(
                "registration.duplicate_in_progress",
                extra={"error_kind": DuplicateInProgressError.kind.value},
            )
            raise DuplicateInProgressError(
                "A registration for this e-mail and company is already in progress"
            )

        try:
            return self._run(request, _Execution(started=self._monotonic()))
        finally:
            self._release(key)

    def username_available(self, username: str) -> bool:
        if not username or not username.strip():
            return False
        return self._identity.username_available(username)

    def email_available(self, email: str) -> bool:
        if not email or not email.strip():
            return False
        return self._identity.email_available(email)

    def company_available(self, company_name: str) -> bool:
        """
        Whether the base subdomain of ``company_name`` is free right now.

        ``False`` never blocks :meth:`register_company`, which falls back to
        numbered variants. An unreachable tenant directory answers ``False``.
        """
        if not company_name or not company_name.strip():
            return False
        answer = self._availability.probe(self._subdomains.base_candidate(company_name))
        return bool(answer)

    # ------------------------------------------------------------------ #
    # Guard
    # ------------------------------------------------------------------ #

    def _admit(self, key: str) -> bool:
        try:
            return self._guard.try_admit(key)
        except Exception as exc:
            log.error(
                "registration_guard.admit_failed error=%s",
                exc,
                extra={"error_kind": DependencyUnavailableError.kind.value},
            )
            raise DependencyUnavailableError(
                "Registration is temporarily unavailable; please try again later"
            ) from exc

    def _release(self, key: str) -> None:
        # Never masks the outcome; an unreleased key expires with its lease
        try:
            self._guard.release(key)
        except Exception:
            log.exception("registration_guard.release_failed")

    # ------------------------------------------------------------------ #
    # State machine
    # ------------------------------------------------------------------ #

    def _run(self, request: RegistrationRequest, run: _Execution) -> RegistrationResult:
        run.handle = self._journal_call(lambda: self._journal.open(request))
        try:
            subdomain = self._validate(request, run)
            profile = request.profile()

            self._check_deadline(run)
            run.subdomain = subdomain
            plan = self._trial.defaults_for(profile.email, self._now())
            tenant = self._create(
                run,
                "tenant",
                lambda: self._tenants.create_tenant(
                    name=request.company_name.strip(), subdomain=subdomain, plan=plan
                ),
            )
            self._advance(run, RegistrationState.TENANT_CREATED, "tenant", tenant.id)

            self._check_deadline(run)
            user = self._create(
                run,
                "user",
                lambda: self._users.create_user(profile=profile, tenant_id=tenant.id),
            )
            self._advance(run, RegistrationState.USER_CREATED, "user", user.id)

            self._check_deadline(run)
            creds = self._create(
                run,
                "credentials",
                lambda: self._credentials.create_credentials(
                    username=profile.username,
                    email=profile.email,
                    password=request.password,
                    profile=profile,
                    tenant_id=tenant.id,
                    user_id=user.id,
                ),
            )
            self._advance(run, RegistrationState.CREDENTIALS_CREATED, "credentials", creds.id)
        except RegistrationError as exc:
            self._abort(run, exc)
            raise
        except Exception as exc:
            err = UnexpectedFailureError(
                self._abort_message("Registration failed unexpectedly.", run)
            )
            log.exception("registration.unexpected_error state=%s", run.state.value)
            self._abort(run, err)
            raise err from exc

        run.state = RegistrationState.COMPLETED
        self._journal_record(run)
        log.info(
            "registration.completed subdomain=%s",
            tenant.subdomain,
            extra={
                "registration_state": run.state.value,
                "elapsed_ms": round((self._monotonic() - run.started) * 1000, 2),
            },
        )
        return RegistrationResult(tenant=tenant, user=user, credentials=creds)

    def _check_structure(self, request: RegistrationRequest) -> None:
        errors = {
            name: ["Must not be blank."]
            for name in _REQUIRED_FIELDS
            if not (getattr(request, name) or "").strip()
        }
        if errors:
            raise ValidationFailedError(
                "Registration request is invalid", details={"errors": errors}
            )

    def _validate(self, request: RegistrationRequest, run: _Execution) -> str:
        """Run uniqueness checks and the base probe; return the subdomain to use."""
        if not self._identity.email_available(request.email):
            raise ValidationFailedError(
                "Email is already registered", details={"errors": {"email": ["Already taken."]}}
            )
        if not self._identity.username_available(request.username):
            raise ValidationFailedError(
                "Username is already taken", details={"errors": {"username": ["Already taken."]}}
            )

        base = self._subdomains.base_candidate(request.company_name)
        answer = self._availability.probe(base)
        if answer is None and self._probe_policy is FailurePolicy.CLOSED:
            raise DependencyUnavailableError(
                "The tenant service is unavailable; please try again later"
            )

        run.state = RegistrationState.VALIDATED
        self._journal_record(run)
        log.info(
            "registration.validated base=%s probe=%s",
            base,
            answer,
            extra={"registration_state": run.state.value, "candidate": base},
        )
        return self._allocate_subdomain(base, answer, run)

    def _allocate_subdomain(self, base: str, base_answer: bool | None, run: _Execution) -> str:
        """
        First free candidate among ``base``, ``base-1``, ``base-2``...

        ``base_answer`` is the probe's answer for ``base``; ``None`` means the
        base still has to be checked.
        """
        if base_answer is None:
            base_answer = self._availability.is_available(base)
        if base_answer:
            return base

        attempt = 1
        while True:
            self._check_deadline(run)
            candidate = self._subdomains.next_candidate(base, attempt)
            if self._subdomains.is_fallback(attempt):
                log.warning(
                    "registration.subdomain_fallback base=%s candidate=%s unchecked=true",
                    base,
                    candidate,
                    extra={"candidate": candidate, "attempt": attempt},
                )
                return candidate
            if self._availability.is_available(candidate):
                log.info(
                    "registration.subdomain_variant candidate=%s",
                    candidate,
                    extra={"candidate": candidate, "attempt": attempt},
                )
                return candidate
            attempt += 1

    def _create(self, run: _Execution, kind: str, call: Callable[[], T]) -> T:
        """Invoke one creation capability and classify its failure."""
        try:
            return call()
        except DirectoryUnavailableError as exc:
            raise DependencyUnavailableError(
                self._abort_message(f"Could not create {kind}: service unavailable.", run)
            ) from exc
        except DirectoryConflictError as exc:
            raise DependencyConflictError(
                self._abort_message(f"Could not create {kind}: it conflicts with an existing one.", run)
            ) from exc
        except DirectoryError as exc:
            raise UnexpectedFailureError(
                self._abort_message(f"Could not create {kind}: request was rejected.", run)
            ) from exc

    def _advance(
        self, run: _Execution, state: RegistrationState, kind: str, resource_id: str
    ) -> None:
        run.resources.append(CompensationRecord(kind=kind, resource_id=str(resource_id)))
        run.state = state
        self._journal_record(run)
        log.info("registration.%s", state.value, extra={"registration_state": state.value})

    def _abort(self, run: _Execution, exc: RegistrationError) -> None:
        if exc.aborted_in is None:
            exc.aborted_in = run.state.value
        if not exc.partial_resources:
            exc.partial_resources = run.resource_kinds

        level = log.error if run.resources else log.warning
        level(
            "registration.aborted in=%s kind=%s partial=%s",
            exc.aborted_in,
            exc.kind.value,
            ",".join(run.resource_kinds) or "-",
            extra={"registration_state": exc.aborted_in, "error_kind": exc.kind.value},
        )
        run.state = RegistrationState.ABORTED
        self._journal_record(run, error_kind=exc.kind.value)

        if self._compensator is not None and run.resources:
            try:
                self._compensator(list(reversed(run.resources)))
            except Exception:
                log.exception("registration.compensation_failed")

    def _check_deadline(self, run: _Execution) -> None:
        if self._deadline is None:
            return
        if self._monotonic() - run.started > self._deadline:
            raise DependencyUnavailableError(
                self._abort_message("Registration timed out waiting for a dependency.", run)
            )

    @staticmethod
    def _abort_message(summary: str, run: _Execution) -> str:
        if not run.resources:
            return summary
        return (
            f"{summary} Partial registration state may exist "
            f"({', '.join(run.resource_kinds)} already created)."
        )

    # ------------------------------------------------------------------ #
    # Journal
    # ------------------------------------------------------------------ #

    def _journal_record(self, run: _Execution, *, error_kind: str | None = None) -> None:
        if run.handle is None:
            return
        handle = run.handle
        self._journal_call(
            lambda: self._journal.record(
                handle,
                state=run.state,
                subdomain=run.subdomain,
                resources=tuple(run.resources),
                error_kind=error_kind,
            )
        )

    @staticmethod
    def _journal_call(call: Callable[[], T]) -> T | None:
        try:
            return call()
        except Exception:
            log.warning("registration.journal_failed", exc_info=True)
            return None
