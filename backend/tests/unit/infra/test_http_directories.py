"""Unit tests for the HTTP adapters of the tenant, users and credential services."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
import requests
import responses
from crm_signup.infra.http import HttpCredentialStore, HttpTenantDirectory, HttpUserDirectory
from crm_signup.services._shared.errors import (
    DirectoryConflictError,
    DirectoryRejectedError,
    DirectoryUnavailableError,
)
from crm_signup.services.registration.dto import PlanDefaults, UserProfile

TENANTS = "http://tenant-service.test"
USERS = "http://users-service.test"
AUTH = "http://auth-service.test"


def _envelope(data, *, success=True, message="ok"):
    return {"success": success, "data": data, "message": message}


def _sent_json(call) -> dict:
    return json.loads(call.request.body)


@pytest.fixture()
def plan() -> PlanDefaults:
    return PlanDefaults(
        contact_email="ada@example.com",
        billing_email="ada@example.com",
        trial_ends_at=datetime(2024, 1, 15, 12, 30, 5, 123456, tzinfo=timezone.utc),
    )


@pytest.fixture()
def profile() -> UserProfile:
    return UserProfile(
        username="ada",
        email="ada@example.com",
        company="Acme Co",
        first_name="Ada",
        display_name="Ada",
    )


class TestHttpTenantDirectory:
    @pytest.fixture()
    def tenants(self):
        return HttpTenantDirectory(TENANTS, timeout=1)

    @responses.activate
    def test_create_tenant_sends_camel_case_plan(self, tenants, plan):
        responses.post(
            f"{TENANTS}/api/v1/tenants",
            json=_envelope({"id": 7, "name": "Acme Co", "subdomain": "acme-co", "isTrial": True}),
            status=201,
        )

        tenant = tenants.create_tenant(name="Acme Co", subdomain="acme-co", plan=plan)

        assert tenant.id == "7"
        assert tenant.subdomain == "acme-co"
        assert tenant.is_trial is True
        assert _sent_json(responses.calls[0]) == {
            "name": "Acme Co",
            "subdomain": "acme-co",
            "contactEmail": "ada@example.com",
            "billingEmail": "ada@example.com",
            "isTrial": True,
            "trialEndsAt": "2024-01-15T12:30:05",
            "maxUsers": 5,
            "maxStorageGb": 10,
        }

    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (409, DirectoryConflictError),
            (400, DirectoryRejectedError),
            (422, DirectoryRejectedError),
            (500, DirectoryUnavailableError),
            (503, DirectoryUnavailableError),
        ],
    )
    @responses.activate
    def test_create_tenant_status_mapping(self, tenants, plan, status, error):
        responses.post(
            f"{TENANTS}/api/v1/tenants", json=_envelope(None, success=False), status=status
        )
        with pytest.raises(error) as info:
            tenants.create_tenant(name="Acme", subdomain="acme", plan=plan)
        assert info.value.status_code == status
        assert info.value.service == "tenant"

    @responses.activate
    def test_create_tenant_refused_envelope(self, tenants, plan):
        responses.post(
            f"{TENANTS}/api/v1/tenants",
            json=_envelope(None, success=False, message="Subdomain exists"),
            status=200,
        )
        with pytest.raises(DirectoryRejectedError):
            tenants.create_tenant(name="Acme", subdomain="acme", plan=plan)

    @responses.activate
    def test_create_tenant_without_id(self, tenants, plan):
        responses.post(f"{TENANTS}/api/v1/tenants", json=_envelope({"name": "Acme"}))
        with pytest.raises(DirectoryRejectedError, match="no id"):
            tenants.create_tenant(name="Acme", subdomain="acme", plan=plan)

    @responses.activate
    def test_non_json_body(self, tenants, plan):
        responses.post(f"{TENANTS}/api/v1/tenants", body="<html>oops</html>", status=200)
        with pytest.raises(DirectoryRejectedError, match="not JSON"):
            tenants.create_tenant(name="Acme", subdomain="acme", plan=plan)

    @pytest.mark.parametrize(
        "exc", [requests.ConnectionError("refused"), requests.Timeout("slow")]
    )
    @responses.activate
    def test_transport_errors_are_unavailable(self, tenants, plan, exc):
        responses.post(f"{TENANTS}/api/v1/tenants", body=exc)
        with pytest.raises(DirectoryUnavailableError):
            tenants.create_tenant(name="Acme", subdomain="acme", plan=plan)

    @pytest.mark.parametrize("answer", [True, False])
    @responses.activate
    def test_check_subdomain(self, tenants, answer):
        responses.get(
            f"{TENANTS}/api/v1/tenants/check-subdomain/acme-co", json=_envelope(answer)
        )
        assert tenants.check_subdomain_available("acme-co") is answer

    @responses.activate
    def test_check_subdomain_without_boolean(self, tenants):
        responses.get(
            f"{TENANTS}/api/v1/tenants/check-subdomain/acme", json=_envelope({"available": 1})
        )
        with pytest.raises(DirectoryRejectedError):
            tenants.check_subdomain_available("acme")

    @responses.activate
    def test_check_subdomain_server_error(self, tenants):
        responses.get(f"{TENANTS}/api/v1/tenants/check-subdomain/acme", status=502)
        with pytest.raises(DirectoryUnavailableError):
            tenants.check_subdomain_available("acme")

    def test_requires_base_url(self):
        with pytest.raises(ValueError, match="tenant"):
            HttpTenantDirectory("")


class TestHttpUserDirectory:
    @pytest.fixture()
    def users(self):
        return HttpUserDirectory(f"{USERS}/", timeout=1)

    @responses.activate
    def test_find_by_username(self, users):
        responses.get(
            f"{USERS}/api/v1/users/username/ada",
            json=_envelope({"id": "u-1", "username": "ada", "email": "ada@example.com",
                            "displayName": "Ada L."}),
        )
        user = users.find_user_by_username("ada")
        assert user.id == "u-1"
        assert user.full_name == "Ada L."

    @responses.activate
    def test_not_found_is_none(self, users):
        responses.get(f"{USERS}/api/v1/users/username/ghost", status=404)
        assert users.find_user_by_username("ghost") is None

    @responses.activate
    def test_refused_lookup_is_none(self, users):
        responses.get(
            f"{USERS}/api/v1/users/username/ghost", json=_envelope(None, success=False)
        )
        assert users.find_user_by_username("ghost") is None

    @responses.activate
    def test_email_is_path_quoted(self, users):
        responses.get(f"{USERS}/api/v1/users/email/a%2Bb%40example.com", status=404)
        assert users.find_user_by_email("a+b@example.com") is None
        assert responses.calls[0].request.url.endswith("/email/a%2Bb%40example.com")

    @responses.activate
    def test_lookup_server_error(self, users):
        responses.get(f"{USERS}/api/v1/users/email/a%40example.com", status=500)
        with pytest.raises(DirectoryUnavailableError):
            users.find_user_by_email("a@example.com")

    @responses.activate
    def test_create_user_drops_empty_fields(self, users, profile):
        responses.post(
            f"{USERS}/api/v1/users",
            json=_envelope({"id": 11, "username": "ada", "email": "ada@example.com"}),
            status=201,
        )

        user = users.create_user(profile=profile, tenant_id="t-1")

        assert user.id == "11"
        sent = _sent_json(responses.calls[0])
        assert sent["tenantId"] == "t-1"
        assert sent["displayName"] == "Ada"
        assert sent["gdprConsent"] is True
        assert "lastName" not in sent
        assert "phoneNumber" not in sent

    @responses.activate
    def test_create_user_conflict(self, users, profile):
        responses.post(f"{USERS}/api/v1/users", json=_envelope(None, success=False), status=409)
        with pytest.raises(DirectoryConflictError):
            users.create_user(profile=profile, tenant_id="t-1")


class TestHttpCredentialStore:
    @pytest.fixture()
    def store(self):
        return HttpCredentialStore(AUTH, timeout=1)

    @responses.activate
    def test_create_credentials(self, store, profile):
        responses.post(
            f"{AUTH}/api/v1/auth/credentials",
            json=_envelope({"id": "c-1", "username": "ada"}),
            status=201,
        )

        creds = store.create_credentials(
            username="ada",
            email="ada@example.com",
            password="Str0ng!Passw0rd",
            profile=profile,
            tenant_id="t-1",
            user_id="u-1",
        )

        assert creds.id == "c-1"
        assert creds.email == "ada@example.com"
        assert (creds.tenant_id, creds.user_id) == ("t-1", "u-1")
        sent = _sent_json(responses.calls[0])
        assert sent["password"] == "Str0ng!Passw0rd"
        assert sent["userId"] == "u-1"
        assert sent["company"] == "Acme Co"

    @responses.activate
    def test_response_without_id(self, store, profile):
        responses.post(f"{AUTH}/api/v1/auth/credentials", json=_envelope({}))
        with pytest.raises(DirectoryRejectedError):
            store.create_credentials(
                username="ada",
                email="ada@example.com",
                password="x",
                profile=profile,
                tenant_id="t-1",
                user_id="u-1",
            )


class TestCorrelation:
    @responses.activate
    def test_forwards_request_id(self, app):
        responses.get(f"{TENANTS}/api/v1/tenants/check-subdomain/acme", json=_envelope(True))

        with app.app_context(), app.test_request_context(headers={"X-Request-ID": "req-123"}):
            HttpTenantDirectory(TENANTS).check_subdomain_available("acme")

        assert responses.calls[0].request.headers["X-Request-ID"] == "req-123"

    @responses.activate
    def test_no_request_id_outside_requests(self):
        responses.get(f"{TENANTS}/api/v1/tenants/check-subdomain/acme", json=_envelope(True))

        HttpTenantDirectory(TENANTS).check_subdomain_available("acme")

        assert "X-Request-ID" not in responses.calls[0].request.headers
