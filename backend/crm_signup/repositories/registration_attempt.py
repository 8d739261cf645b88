"""Repository for the registration attempt journal."""

from __future__ import annotations

from sqlalchemy import func, select

from crm_signup.models.registration_attempt import RegistrationAttempt
from crm_signup.repositories.base import BaseRepository


class RegistrationAttemptRepository(BaseRepository[RegistrationAttempt]):
    """Persistence-only repository for :class:`RegistrationAttempt`."""

    model = RegistrationAttempt

    def _sortable_fields(self):
        return {
            "id": RegistrationAttempt.id,
            "created_at": RegistrationAttempt.created_at,
            "updated_at": RegistrationAttempt.updated_at,
            "state": RegistrationAttempt.state,
            "email": RegistrationAttempt.email,
        }

    def _filterable_fields(self):
        return {
            "state": RegistrationAttempt.state,
            "email": RegistrationAttempt.email,
            "error_kind": RegistrationAttempt.error_kind,
        }

    def _updatable_fields(self):
        return {"state", "subdomain", "error_kind", "tenant_id", "user_id", "credentials_id"}

    def count_by_state(self) -> dict[str, int]:
        """Return ``{state: count}`` for every state present in the journal."""
        stmt = select(RegistrationAttempt.state, func.count()).group_by(RegistrationAttempt.state)
        return {state: int(n) for state, n in self.session.execute(stmt).all()}

    def list_partial(self, *, limit: int = 100) -> list[RegistrationAttempt]:
        """
        Aborted attempts that left remote resources behind, newest first.

        :param limit: Maximum number of rows.
        :type limit: int
        """
        stmt = (
            select(RegistrationAttempt)
            .where(RegistrationAttempt.state == "aborted")
            .where(RegistrationAttempt.tenant_id.is_not(None))
            .order_by(RegistrationAttempt.id.desc())
            .limit(max(1, int(limit)))
        )
        return list(self.session.execute(stmt).scalars().all())
