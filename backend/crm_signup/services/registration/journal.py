"""
SQL-backed registration journal and its read side.

Each write runs in its own read-write Unit of Work so the journal row is
committed even when the registration aborts right after.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from crm_signup.models.registration_attempt import RegistrationAttempt
from crm_signup.repositories.base import Page
from crm_signup.services._shared.base import BaseService
from crm_signup.services._shared.ports import RegistrationJournal
from crm_signup.services.registration.dto import (
    CompensationRecord,
    RegistrationRequest,
    RegistrationState,
)

_RESOURCE_COLUMNS = {
    "tenant": "tenant_id",
    "user": "user_id",
    "credentials": "credentials_id",
}


class SqlRegistrationJournal(BaseService, RegistrationJournal):
    """Persist registration progress in ``registration_attempts``."""

    def open(self, request: RegistrationRequest) -> int:
        with self.rw_uow() as uow:
            attempt = uow.registration_attempts.add(
                RegistrationAttempt(
                    email=request.email,
                    company_name=request.company_name.strip(),
                    state=RegistrationState.ADMITTED.value,
                )
            )
            return attempt.id

    def record(
        self,
        handle: int,
        *,
        state: RegistrationState,
        subdomain: str | None = None,
        resources: Sequence[CompensationRecord] = (),
        error_kind: str | None = None,
    ) -> None:
        with self.rw_uow() as uow:
            repo = uow.registration_attempts
            attempt = repo.get(handle)
            if attempt is None:
                return
            fields: dict[str, str | None] = {"state": state.value, "error_kind": error_kind}
            if subdomain:
                fields["subdomain"] = subdomain
            for record in resources:
                column = _RESOURCE_COLUMNS.get(record.kind)
                if column:
                    fields[column] = record.resource_id
            repo.update(attempt, **fields)


class RegistrationAttemptQueryService(BaseService):
    """Read-only queries over the journal for operators."""

    def list_attempts(
        self,
        *,
        page: int,
        limit: int,
        sort: Iterable[str] | None = None,
        state: str | None = None,
        email: str | None = None,
    ) -> Page[RegistrationAttempt]:
        """
        Paginate journal rows, newest first unless ``sort`` says otherwise.

        :param state: Optional state filter.
        :param email: Optional e-mail filter (normalized).
        """
        pagination = self.ensure_pagination(page=page, limit=limit, sort=sort or ["-id"])
        filters = {"state": state, "email": email.strip().lower() if email else None}
        with self.ro_uow() as uow:
            return uow.registration_attempts.paginate(pagination, filters=filters)

    def partial_attempts(self, *, limit: int = 100) -> list[RegistrationAttempt]:
        with self.ro_uow() as uow:
            return uow.registration_attempts.list_partial(limit=limit)

    def state_counts(self) -> dict[str, int]:
        with self.ro_uow() as uow:
            return uow.registration_attempts.count_by_state()
