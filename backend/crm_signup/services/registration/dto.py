"""
DTOs for CompanyRegistrationService.

Contracts for orchestrating a company self-registration flow that creates a
tenant, a user profile and login credentials in three different services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# --------------------------------------------------------------------------- #
# Input
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class RegistrationRequest:
    """
    Input payload for the company registration process.

    :param email: Contact e-mail, unique across the user directory.
    :type email: str
    :param username: Login handle, unique across the user directory.
    :type username: str
    :param password: Raw password, forwarded once to the credential store.
    :type password: str
    :param company_name: Organization name; the tenant subdomain derives from it.
    :type company_name: str
    :param first_name: Optional given name.
    :type first_name: str | None
    :param last_name: Optional family name.
    :type last_name: str | None
    :param phone_number: Optional phone number.
    :type phone_number: str | None
    :param job_title: Optional job title.
    :type job_title: str | None
    :param department: Optional department.
    :type department: str | None
    :param timezone: IANA timezone preference.
    :type timezone: str
    :param language: Language preference.
    :type language: str
    :param marketing_consent: Whether marketing e-mails were accepted.
    :type marketing_consent: bool
    """

    email: str
    username: str
    password: str = field(repr=False)
    company_name: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    job_title: str | None = None
    department: str | None = None
    timezone: str = "UTC"
    language: str = "en"
    marketing_consent: bool = False

    @property
    def dedup_key(self) -> str:
        """Composite identity serializing identical concurrent submissions."""
        return f"{self.email.strip().lower()}|{self.company_name.strip()}"

    @property
    def full_name(self) -> str | None:
        parts = [p.strip() for p in (self.first_name, self.last_name) if p and p.strip()]
        return " ".join(parts) or None

    def profile(self) -> UserProfile:
        """Project the profile fields shared by the user and credential calls."""
        return UserProfile(
            username=self.username.strip(),
            email=self.email.strip().lower(),
            first_name=self.first_name,
            last_name=self.last_name,
            display_name=self.full_name,
            phone_number=self.phone_number,
            job_title=self.job_title,
            department=self.department,
            company=self.company_name.strip(),
            timezone=self.timezone,
            language=self.language,
            marketing_consent=self.marketing_consent,
        )


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Profile fields forwarded to the user directory and credential store."""

    username: str
    email: str
    company: str
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    phone_number: str | None = None
    job_title: str | None = None
    department: str | None = None
    timezone: str = "UTC"
    language: str = "en"
    marketing_consent: bool = False
    # Registration implies acceptance of the privacy policy
    gdpr_consent: bool = True


@dataclass(frozen=True, slots=True)
class PlanDefaults:
    """
    Plan attributes sent with every new tenant.

    :param contact_email: Tenant contact address (the registrant's e-mail).
    :param billing_email: Address for invoices (same as contact by default).
    :param is_trial: Whether the tenant starts in trial mode.
    :param max_users: Seat limit during the trial.
    :param max_storage_gb: Storage quota during the trial.
    :param trial_ends_at: End of the trial period (UTC).
    """

    contact_email: str
    billing_email: str
    is_trial: bool = True
    max_users: int = 5
    max_storage_gb: int = 10
    trial_ends_at: datetime | None = None


# --------------------------------------------------------------------------- #
# Records returned by collaborators (opaque beyond these fields)
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class TenantRecord:
    id: str
    name: str
    subdomain: str
    status: str | None = None
    is_trial: bool | None = None
    trial_ends_at: str | None = None


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: str
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    id: str
    username: str
    email: str
    tenant_id: str | None = None
    user_id: str | None = None


# --------------------------------------------------------------------------- #
# Orchestration state
# --------------------------------------------------------------------------- #


class RegistrationState(str, Enum):
    """Progress of one registration execution."""

    ADMITTED = "admitted"
    VALIDATED = "validated"
    TENANT_CREATED = "tenant_created"
    USER_CREATED = "user_created"
    CREDENTIALS_CREATED = "credentials_created"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RegistrationState.COMPLETED, RegistrationState.ABORTED)


@dataclass(frozen=True, slots=True)
class CompensationRecord:
    """
    Undo record appended after each successful creation step.

    :param kind: Resource kind (``"tenant"``, ``"user"``, ``"credentials"``).
    :param resource_id: Identifier returned by the owning service.
    """

    kind: str
    resource_id: str


# --------------------------------------------------------------------------- #
# Output
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    """
    Unified outcome of a completed registration.

    :param tenant: Tenant created by the tenant directory.
    :type tenant: :class:`TenantRecord`
    :param user: User profile created by the user directory.
    :type user: :class:`UserRecord`
    :param credentials: Credentials created by the credential store.
    :type credentials: :class:`CredentialRecord`
    :param success: Always ``True`` for a returned result; aborts raise.
    :type success: bool
    :param message: Human-readable summary.
    :type message: str
    """

    tenant: TenantRecord
    user: UserRecord
    credentials: CredentialRecord
    success: bool = True
    message: str = "Registration completed successfully"

    @property
    def subdomain(self) -> str:
        return self.tenant.subdomain
