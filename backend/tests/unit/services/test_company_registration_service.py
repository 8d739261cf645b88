"""Unit tests for CompanyRegistrationService orchestration."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import fakeredis
import pytest
import redis
from crm_signup.infra.redis.redis_registration_guard import RedisRegistrationGuard
from crm_signup.services._shared.errors import (
    DependencyConflictError,
    DependencyUnavailableError,
    DirectoryConflictError,
    DirectoryRejectedError,
    DuplicateInProgressError,
    RegistrationErrorKind,
    UnexpectedFailureError,
    ValidationFailedError,
)
from crm_signup.services._shared.ports import (
    InMemoryRegistrationGuard,
    InMemoryRegistrationJournal,
)
from crm_signup.services.registration.availability import AvailabilityChecker, FailurePolicy
from crm_signup.services.registration.dto import CompensationRecord, RegistrationState
from crm_signup.services.registration.service import CompanyRegistrationService, TrialPlan
from crm_signup.services.registration.subdomain import SubdomainGenerator
from tests.factories.registration import RegistrationRequestFactory
from tests.helpers.fakes import (
    Clock,
    FakeCredentialStore,
    FakeTenantDirectory,
    FakeUserDirectory,
    Recorder,
    unavailable,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def deps():
    """Fresh collaborators for one test."""
    return SimpleNamespace(
        tenants=FakeTenantDirectory(),
        users=FakeUserDirectory(),
        credentials=FakeCredentialStore(),
        guard=InMemoryRegistrationGuard(),
        journal=InMemoryRegistrationJournal(),
        sleep=Recorder(),
    )


@pytest.fixture()
def make_service(deps):
    """Build a service over ``deps``; keyword overrides are passed through."""

    def _make(**overrides) -> CompanyRegistrationService:
        kwargs = dict(
            tenants=deps.tenants,
            users=deps.users,
            credentials=deps.credentials,
            guard=deps.guard,
            subdomains=SubdomainGenerator(clock=lambda: 1_700_001_234),
            availability=AvailabilityChecker(deps.tenants, backoff_ms=0, sleep=deps.sleep),
            journal=deps.journal,
            now=lambda: NOW,
        )
        kwargs.update(overrides)
        return CompanyRegistrationService(**kwargs)

    return _make


class TestHappyPath:
    """Completed registrations."""

    def test_creates_tenant_user_and_credentials(self, deps, make_service):
        request = RegistrationRequestFactory(
            email="Ada@Example.com", username="ada", company_name="Acme Co"
        )

        result = make_service().register_company(request)

        assert result.success is True
        assert result.message == "Registration completed successfully"
        assert result.subdomain == "acme-co"
        assert result.tenant.id == "t-1"
        assert result.user.id == "u-1"
        assert result.credentials.id == "c-1"

        assert deps.tenants.created[0]["name"] == "Acme Co"
        assert deps.users.created[0]["tenant_id"] == "t-1"
        assert deps.credentials.created[0] == {
            "username": "ada",
            "email": "ada@example.com",
            "password": request.password,
            "tenant_id": "t-1",
        }

    def test_plan_defaults_follow_trial_plan(self, deps, make_service):
        request = RegistrationRequestFactory(email=" Owner@Example.com ")

        make_service(trial=TrialPlan(days=30, max_users=3, max_storage_gb=1)).register_company(
            request
        )

        plan = deps.tenants.created[0]["plan"]
        assert plan.contact_email == "owner@example.com"
        assert plan.billing_email == "owner@example.com"
        assert plan.is_trial is True
        assert plan.max_users == 3
        assert plan.max_storage_gb == 1
        assert plan.trial_ends_at == NOW + timedelta(days=30)

    def test_profile_forwarded_to_user_directory(self, deps, make_service):
        request = RegistrationRequestFactory(
            first_name="Ada", last_name="Lovelace", company_name="  Acme Co "
        )

        make_service().register_company(request)

        profile = deps.users.created[0]["profile"]
        assert profile.display_name == "Ada Lovelace"
        assert profile.company == "Acme Co"
        assert profile.gdpr_consent is True

    def test_checks_identity_before_probing_subdomain(self, deps, make_service):
        make_service().register_company(
            RegistrationRequestFactory(email="a@example.com", username="ada")
        )
        assert deps.users.lookups == [("email", "a@example.com"), ("username", "ada")]
        assert len(deps.tenants.check_calls) == 1

    def test_guard_released_after_success(self, deps, make_service):
        service = make_service()
        request = RegistrationRequestFactory()

        service.register_company(request)

        assert deps.guard.count() == 0
        assert deps.guard.try_admit(request.dedup_key)

    def test_journal_tracks_completed_run(self, deps, make_service):
        make_service().register_company(RegistrationRequestFactory(company_name="Acme Co"))

        (entry,) = deps.journal.entries()
        assert entry.state is RegistrationState.COMPLETED
        assert entry.state.is_terminal
        assert entry.subdomain == "acme-co"
        assert [r.kind for r in entry.resources] == ["tenant", "user", "credentials"]
        assert entry.error_kind is None


class TestSubdomainAllocation:
    """Variants and fallback when the base is taken."""

    def test_taken_base_gets_first_free_variant(self, deps, make_service):
        deps.tenants.taken = {"acme-co", "acme-co-1"}

        result = make_service().register_company(
            RegistrationRequestFactory(company_name="Acme Co")
        )

        assert result.subdomain == "acme-co-2"
        assert deps.tenants.check_calls == ["acme-co", "acme-co-1", "acme-co-2"]

    def test_fallback_after_max_attempts_is_not_checked(self, deps, make_service):
        deps.tenants.taken = {"acme-co", "acme-co-1", "acme-co-2"}
        service = make_service(
            subdomains=SubdomainGenerator(max_attempts=3, clock=lambda: 1_700_001_234)
        )

        result = service.register_company(RegistrationRequestFactory(company_name="Acme Co"))

        assert result.subdomain == "company-1234"
        assert "company-1234" not in deps.tenants.check_calls

    def test_variant_check_outage_fails_open(self, deps, make_service):
        deps.tenants.taken = {"acme-co"}
        # probe answers, then every retry of "acme-co-1" fails
        service = make_service()
        original = deps.tenants.check_subdomain_available

        def flaky(candidate):
            if candidate != "acme-co":
                deps.tenants.check_calls.append(candidate)
                raise unavailable()
            return original(candidate)

        deps.tenants.check_subdomain_available = flaky

        result = service.register_company(RegistrationRequestFactory(company_name="Acme Co"))

        assert result.subdomain == "acme-co-1"
        assert deps.tenants.check_calls.count("acme-co-1") == 3


class TestValidation:
    """Nothing is created when validation fails."""

    @pytest.mark.parametrize("blank", ["email", "username", "password", "company_name"])
    def test_blank_field_rejected_before_admission(self, deps, make_service, blank):
        request = RegistrationRequestFactory(**{blank: "   "})

        with pytest.raises(ValidationFailedError) as info:
            make_service().register_company(request)

        assert blank in info.value.details["errors"]
        assert deps.users.lookups == []
        assert deps.journal.entries() == []
        assert deps.guard.count() == 0

    def test_taken_email(self, deps, make_service):
        deps.users.emails = {"ada@example.com"}

        with pytest.raises(ValidationFailedError, match="Email") as info:
            make_service().register_company(RegistrationRequestFactory(email="ada@example.com"))

        assert info.value.kind is RegistrationErrorKind.VALIDATION_FAILED
        assert info.value.aborted_in == "admitted"
        assert info.value.partial_resources == ()
        assert deps.tenants.check_calls == []
        assert deps.tenants.created == []
        assert deps.guard.count() == 0

    def test_taken_username(self, deps, make_service):
        deps.users.usernames = {"ada"}

        with pytest.raises(ValidationFailedError, match="Username"):
            make_service().register_company(RegistrationRequestFactory(username="ada"))

        assert deps.tenants.created == []

    def test_identity_outage_passes_under_open_policy(self, deps, make_service):
        deps.users.lookup_error = unavailable("users")

        result = make_service().register_company(RegistrationRequestFactory())

        assert result.success is True

    def test_unreachable_probe_aborts_when_closed(self, deps, make_service):
        deps.tenants.check_errors = [unavailable()]

        with pytest.raises(DependencyUnavailableError) as info:
            make_service().register_company(RegistrationRequestFactory())

        assert info.value.aborted_in == "admitted"
        assert deps.tenants.created == []
        assert len(deps.tenants.check_calls) == 1

    def test_unreachable_probe_defers_to_allocation_when_open(self, deps, make_service):
        deps.tenants.check_errors = [unavailable()] * 4

        result = make_service(probe_policy=FailurePolicy.OPEN).register_company(
            RegistrationRequestFactory(company_name="Acme Co")
        )

        assert result.subdomain == "acme-co"
        assert len(deps.tenants.check_calls) == 4


class TestDeduplication:
    """At most one in-flight execution per (e-mail, company) key."""

    def test_concurrent_duplicate_is_rejected(self, deps, make_service):
        service = make_service()
        request = RegistrationRequestFactory()
        deps.tenants.gate = threading.Event()
        outcome = {}

        def first():
            outcome["result"] = service.register_company(request)

        worker = threading.Thread(target=first)
        worker.start()
        try:
            assert deps.tenants.entered.wait(timeout=5)
            with pytest.raises(DuplicateInProgressError) as info:
                service.register_company(request)
            assert info.value.kind is RegistrationErrorKind.DUPLICATE_IN_PROGRESS
            assert deps.guard.in_flight() == frozenset({request.dedup_key})
        finally:
            deps.tenants.gate.set()
            worker.join(timeout=5)

        assert outcome["result"].success is True
        assert len(deps.tenants.created) == 1
        assert deps.guard.count() == 0

    def test_key_ignores_email_case_and_whitespace(self, deps, make_service):
        a = RegistrationRequestFactory(email="Ada@Example.com", company_name="Acme")
        b = RegistrationRequestFactory(email=" ada@example.com ", company_name=" Acme ")
        deps.guard.try_admit(a.dedup_key)

        with pytest.raises(DuplicateInProgressError):
            make_service().register_company(b)

    def test_other_keys_are_not_blocked(self, deps, make_service):
        deps.guard.try_admit(RegistrationRequestFactory(company_name="Other").dedup_key)

        result = make_service().register_company(RegistrationRequestFactory(company_name="Acme"))

        assert result.success is True
        assert deps.guard.count() == 1

    def test_same_key_admitted_again_after_completion(self, deps, make_service):
        service = make_service()
        request = RegistrationRequestFactory(company_name="Acme")
        service.register_company(request)

        # second run hits the taken subdomain but is admitted
        result = service.register_company(request)
        assert result.subdomain == "acme-1"


class FlakyReleaseGuard(InMemoryRegistrationGuard):
    """Admits normally; every release hits a dropped connection."""

    def release(self, key: str) -> None:
        raise redis.ConnectionError("connection reset")


class TestGuardBackendFailures:
    """Registry outages are classified and never hide a finished run."""

    def test_admission_outage_is_dependency_unavailable(self, deps, make_service):
        server = fakeredis.FakeServer()
        guard = RedisRegistrationGuard(r=fakeredis.FakeRedis(server=server))
        server.connected = False

        with pytest.raises(DependencyUnavailableError) as info:
            make_service(guard=guard).register_company(RegistrationRequestFactory())

        assert info.value.kind is RegistrationErrorKind.DEPENDENCY_UNAVAILABLE
        assert info.value.partial_resources == ()
        assert deps.tenants.check_calls == []
        assert deps.tenants.created == []

    def test_failed_release_keeps_completed_result(self, deps, make_service, caplog):
        result = make_service(guard=FlakyReleaseGuard()).register_company(
            RegistrationRequestFactory(company_name="Acme Co")
        )

        assert result.success is True
        assert result.tenant.id == "t-1"
        assert result.credentials.id == "c-1"
        assert "registration_guard.release_failed" in caplog.text

    def test_failed_release_keeps_original_error(self, deps, make_service):
        deps.credentials.create_error = DirectoryConflictError("auth", "conflict", status_code=409)

        with pytest.raises(DependencyConflictError) as info:
            make_service(guard=FlakyReleaseGuard()).register_company(
                RegistrationRequestFactory()
            )

        assert info.value.partial_resources == ("tenant", "user")


class TestPartialFailures:
    """Aborts after some resources exist are reported, never rolled back."""

    def test_tenant_outage(self, deps, make_service):
        deps.tenants.create_error = unavailable()

        with pytest.raises(DependencyUnavailableError) as info:
            make_service().register_company(RegistrationRequestFactory())

        err = info.value
        assert err.aborted_in == "validated"
        assert err.partial_resources == ()
        assert "Partial registration state" not in err.message
        assert deps.guard.count() == 0

    def test_user_failure_reports_tenant(self, deps, make_service):
        deps.users.create_error = unavailable("users")

        with pytest.raises(DependencyUnavailableError) as info:
            make_service().register_company(RegistrationRequestFactory())

        err = info.value
        assert err.aborted_in == "tenant_created"
        assert err.partial_resources == ("tenant",)
        assert err.has_partial_state
        assert "Partial registration state may exist (tenant already created)." in err.message
        assert "t-1" not in err.message
        assert deps.credentials.created == []

    def test_credentials_conflict_reports_tenant_and_user(self, deps, make_service):
        deps.credentials.create_error = DirectoryConflictError(
            "credentials", "conflict", status_code=409
        )

        with pytest.raises(DependencyConflictError) as info:
            make_service().register_company(RegistrationRequestFactory())

        assert info.value.aborted_in == "user_created"
        assert info.value.partial_resources == ("tenant", "user")
        assert "(tenant, user already created)" in info.value.message

    def test_rejected_creation_is_unexpected(self, deps, make_service):
        deps.tenants.create_error = DirectoryRejectedError(
            "tenant", "rejected with 400", status_code=400
        )

        with pytest.raises(UnexpectedFailureError):
            make_service().register_company(RegistrationRequestFactory())

    def test_programming_error_is_wrapped(self, deps, make_service):
        boom = RuntimeError("boom")
        deps.users.create_error = boom

        with pytest.raises(UnexpectedFailureError) as info:
            make_service().register_company(RegistrationRequestFactory())

        assert info.value.__cause__ is boom
        assert info.value.partial_resources == ("tenant",)
        assert "boom" not in info.value.message
        assert deps.guard.count() == 0

    def test_journal_marks_abort_with_resources(self, deps, make_service):
        deps.credentials.create_error = unavailable("credentials")

        with pytest.raises(DependencyUnavailableError):
            make_service().register_company(RegistrationRequestFactory())

        (entry,) = deps.journal.entries()
        assert entry.state is RegistrationState.ABORTED
        assert entry.error_kind == "dependency_unavailable"
        assert [(r.kind, r.resource_id) for r in entry.resources] == [
            ("tenant", "t-1"),
            ("user", "u-1"),
        ]

    def test_compensator_receives_newest_first(self, deps, make_service):
        deps.credentials.create_error = unavailable("credentials")
        compensator = Recorder()

        with pytest.raises(DependencyUnavailableError):
            make_service(compensator=compensator).register_company(RegistrationRequestFactory())

        assert compensator.calls == [
            ([CompensationRecord("user", "u-1"), CompensationRecord("tenant", "t-1")],)
        ]

    def test_compensator_not_called_without_resources(self, deps, make_service):
        deps.tenants.create_error = unavailable()
        compensator = Recorder()

        with pytest.raises(DependencyUnavailableError):
            make_service(compensator=compensator).register_company(RegistrationRequestFactory())

        assert compensator.calls == []

    def test_failing_compensator_keeps_original_error(self, deps, make_service):
        deps.users.create_error = unavailable("users")

        def explode(_records):
            raise RuntimeError("cleanup failed")

        with pytest.raises(DependencyUnavailableError):
            make_service(compensator=Recorder(explode)).register_company(
                RegistrationRequestFactory()
            )


class TestJournalAndDeadline:
    def test_journal_outage_does_not_change_outcome(self, deps, make_service):
        class BrokenJournal:
            def open(self, request):
                raise RuntimeError("db down")

            def record(self, handle, **kwargs):
                raise RuntimeError("db down")

        result = make_service(journal=BrokenJournal()).register_company(
            RegistrationRequestFactory()
        )

        assert result.success is True

    def test_deadline_aborts_between_steps(self, deps, make_service):
        service = make_service(deadline_seconds=15, monotonic=Clock(step=10))

        with pytest.raises(DependencyUnavailableError, match="timed out") as info:
            service.register_company(RegistrationRequestFactory())

        assert info.value.aborted_in == "tenant_created"
        assert info.value.partial_resources == ("tenant",)
        assert deps.users.created == []

    def test_non_positive_deadline_disables_it(self, deps, make_service):
        service = make_service(deadline_seconds=0, monotonic=Clock(step=1000))
        assert service.register_company(RegistrationRequestFactory()).success is True


class TestAvailabilityHelpers:
    def test_username_and_email(self, deps, make_service):
        deps.users.usernames = {"ada"}
        deps.users.emails = {"ada@example.com"}
        service = make_service()

        assert service.username_available("ada") is False
        assert service.username_available("grace") is True
        assert service.email_available("ADA@example.com") is False
        assert service.email_available("  ") is False

    def test_company_uses_base_subdomain(self, deps, make_service):
        deps.tenants.taken = {"acme-co"}
        service = make_service()

        assert service.company_available("Acme Co") is False
        assert service.company_available("Globex") is True
        assert service.company_available("") is False

    def test_company_unreachable_is_not_available(self, deps, make_service):
        deps.tenants.check_errors = [unavailable()]
        assert make_service().company_available("Acme Co") is False
        assert deps.sleep.calls == []
