"""HTTP adapter for the credential (auth) service."""

from __future__ import annotations

from crm_signup.infra.http.base import JsonServiceClient
from crm_signup.infra.http.users_client import profile_payload
from crm_signup.services._shared.errors import DirectoryRejectedError
from crm_signup.services._shared.ports import CredentialStore
from crm_signup.services.registration.dto import CredentialRecord, UserProfile


class HttpCredentialStore(JsonServiceClient, CredentialStore):
    """``POST /api/v1/auth/credentials`` of the credential service."""

    service = "credentials"

    def create_credentials(
        self,
        *,
        username: str,
        email: str,
        password: str,
        profile: UserProfile,
        tenant_id: str,
        user_id: str,
    ) -> CredentialRecord:
        payload = {
            **profile_payload(profile),
            "username": username,
            "email": email,
            "password": password,
            "tenantId": tenant_id,
            "userId": user_id,
        }
        data = self.command("POST", self._url("/api/v1/auth/credentials"), payload)
        if not data.get("id"):
            raise DirectoryRejectedError(self.service, "credential response has no id")
        return CredentialRecord(
            id=str(data["id"]),
            username=str(data.get("username") or username),
            email=str(data.get("email") or email),
            tenant_id=str(data["tenantId"]) if data.get("tenantId") else tenant_id,
            user_id=str(data["userId"]) if data.get("userId") else user_id,
        )
