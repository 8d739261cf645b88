"""HTTP adapter for the tenant service."""

from __future__ import annotations

from typing import Any

from crm_signup.infra.http.base import JsonServiceClient
from crm_signup.services._shared.errors import DirectoryRejectedError
from crm_signup.services._shared.ports import TenantDirectory
from crm_signup.services.registration.dto import PlanDefaults, TenantRecord


def _iso(value) -> str | None:
    # The tenant service parses local date-times without offset
    return value.replace(tzinfo=None, microsecond=0).isoformat() if value else None


class HttpTenantDirectory(JsonServiceClient, TenantDirectory):
    """``/api/v1/tenants`` endpoints of the tenant service."""

    service = "tenant"

    def create_tenant(self, *, name: str, subdomain: str, plan: PlanDefaults) -> TenantRecord:
        payload = {
            "name": name,
            "subdomain": subdomain,
            "contactEmail": plan.contact_email,
            "billingEmail": plan.billing_email,
            "isTrial": plan.is_trial,
            "trialEndsAt": _iso(plan.trial_ends_at),
            "maxUsers": plan.max_users,
            "maxStorageGb": plan.max_storage_gb,
        }
        data = self.command("POST", self._url("/api/v1/tenants"), payload)
        return _to_tenant(data, fallback_subdomain=subdomain, service=self.service)

    def check_subdomain_available(self, candidate: str) -> bool:
        resp = self._send("GET", self._url("/api/v1/tenants/check-subdomain", candidate))
        self._raise_for_status(resp)
        body = self._body(resp)
        data = body.get("data")
        if body.get("success") is False or not isinstance(data, bool):
            raise DirectoryRejectedError(
                self.service, "availability answer missing", status_code=resp.status_code
            )
        return data


def _to_tenant(data: dict[str, Any], *, fallback_subdomain: str, service: str) -> TenantRecord:
    if not data.get("id"):
        raise DirectoryRejectedError(service, "tenant response has no id")
    return TenantRecord(
        id=str(data["id"]),
        name=str(data.get("name") or ""),
        subdomain=str(data.get("subdomain") or fallback_subdomain),
        status=data.get("status"),
        is_trial=data.get("isTrial"),
        trial_ends_at=data.get("trialEndsAt"),
    )
