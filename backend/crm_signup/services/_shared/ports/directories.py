from __future__ import annotations

from typing import Protocol

from crm_signup.services.registration.dto import (
    CredentialRecord,
    PlanDefaults,
    TenantRecord,
    UserProfile,
    UserRecord,
)


class TenantDirectory(Protocol):
    """
    Port to the service owning tenants.

    Every method raises a :class:`~crm_signup.services._shared.errors.DirectoryError`
    subclass when no usable answer is obtained.
    """

    def create_tenant(self, *, name: str, subdomain: str, plan: PlanDefaults) -> TenantRecord: ...

    def check_subdomain_available(self, candidate: str) -> bool: ...


class UserDirectory(Protocol):
    """
    Port to the service owning user profiles.

    Lookups return ``None`` for "not found"; only transport-level trouble
    raises.
    """

    def create_user(self, *, profile: UserProfile, tenant_id: str) -> UserRecord: ...

    def find_user_by_username(self, username: str) -> UserRecord | None: ...

    def find_user_by_email(self, email: str) -> UserRecord | None: ...


class CredentialStore(Protocol):
    """Port to the service owning login credentials."""

    def create_credentials(
        self,
        *,
        username: str,
        email: str,
        password: str,
        profile: UserProfile,
        tenant_id: str,
        user_id: str,
    ) -> CredentialRecord: ...
