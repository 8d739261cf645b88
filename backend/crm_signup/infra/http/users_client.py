"""HTTP adapter for the users (profile) service."""

from __future__ import annotations

from typing import Any

from crm_signup.infra.http.base import JsonServiceClient
from crm_signup.services._shared.errors import DirectoryRejectedError
from crm_signup.services._shared.ports import UserDirectory
from crm_signup.services.registration.dto import UserProfile, UserRecord


def profile_payload(profile: UserProfile) -> dict[str, Any]:
    """Wire representation of the profile fields (camelCase, nulls dropped)."""
    payload = {
        "username": profile.username,
        "email": profile.email,
        "firstName": profile.first_name,
        "lastName": profile.last_name,
        "displayName": profile.display_name,
        "phoneNumber": profile.phone_number,
        "jobTitle": profile.job_title,
        "department": profile.department,
        "company": profile.company,
        "timezone": profile.timezone,
        "language": profile.language,
        "marketingConsent": profile.marketing_consent,
        "gdprConsent": profile.gdpr_consent,
    }
    return {k: v for k, v in payload.items() if v is not None}


class HttpUserDirectory(JsonServiceClient, UserDirectory):
    """``/api/v1/users`` endpoints of the users service."""

    service = "users"

    def create_user(self, *, profile: UserProfile, tenant_id: str) -> UserRecord:
        payload = {**profile_payload(profile), "tenantId": tenant_id}
        data = self.command("POST", self._url("/api/v1/users"), payload)
        return self._to_user(data)

    def find_user_by_username(self, username: str) -> UserRecord | None:
        data = self.query(self._url("/api/v1/users/username", username))
        return self._to_user(data) if data else None

    def find_user_by_email(self, email: str) -> UserRecord | None:
        data = self.query(self._url("/api/v1/users/email", email))
        return self._to_user(data) if data else None

    def _to_user(self, data: dict[str, Any]) -> UserRecord:
        if not isinstance(data, dict) or not data.get("id"):
            raise DirectoryRejectedError(self.service, "user response has no id")
        return UserRecord(
            id=str(data["id"]),
            username=str(data.get("username") or ""),
            email=str(data.get("email") or ""),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            full_name=data.get("fullName") or data.get("displayName"),
        )
