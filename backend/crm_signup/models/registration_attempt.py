"""Journal row tracking one admitted company registration."""

from __future__ import annotations

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from crm_signup.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

_STATES = (
    "admitted",
    "validated",
    "tenant_created",
    "user_created",
    "credentials_created",
    "completed",
    "aborted",
)


class RegistrationAttempt(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Operator-facing record of a registration execution.

    The row is written on admission and updated after every transition so
    that an aborted execution shows which remote resources exist and need
    manual cleanup. It never stores the password.

    Fields
    ------
    email : str
        Registrant e-mail, normalized (lowercase, trimmed).
    company_name : str
        Company name as submitted (trimmed).
    state : str
        Last state reached (see :class:`RegistrationState`).
    subdomain : str | None
        Subdomain sent to the tenant directory.
    error_kind : str | None
        Error kind for aborted executions.
    tenant_id, user_id, credentials_id : str | None
        Identifiers of remote resources created so far.
    """

    __tablename__ = "registration_attempts"

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[str] = mapped_column(String(32), nullable=False, default="admitted")
    subdomain: Mapped[str | None] = mapped_column(String(63), nullable=True)
    error_kind: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    credentials_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_registration_attempts_email", "email"),
        Index("ix_registration_attempts_state", "state"),
    )

    @validates("email")
    def _normalize_email(self, _key: str, value: str) -> str:
        return value.strip().lower()

    @validates("state")
    def _validate_state(self, _key: str, value: str) -> str:
        if value not in _STATES:
            raise ValueError(f"Unknown registration state: {value!r}")
        return value

    @property
    def has_partial_state(self) -> bool:
        """Aborted after at least one remote resource was created."""
        return self.state == "aborted" and any(
            (self.tenant_id, self.user_id, self.credentials_id)
        )
