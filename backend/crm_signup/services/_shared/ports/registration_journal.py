from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Protocol

from crm_signup.services.registration.dto import (
    CompensationRecord,
    RegistrationRequest,
    RegistrationState,
)


@dataclass(frozen=True)
class JournalEntryView:
    """
    Read-model for one registration attempt.

    :ivar handle: Journal-assigned identifier.
    :ivar email: Registrant e-mail.
    :ivar company_name: Requested company name.
    :ivar state: Last state reached.
    :ivar subdomain: Subdomain sent to the tenant directory, if any.
    :ivar error_kind: Error kind when the attempt aborted.
    :ivar resources: Resources created so far, oldest first.
    """

    handle: int
    email: str
    company_name: str
    state: RegistrationState
    subdomain: str | None = None
    error_kind: str | None = None
    resources: tuple[CompensationRecord, ...] = field(default_factory=tuple)


class RegistrationJournal(Protocol):
    """
    Append-mostly log of admitted registrations.

    Implementations may raise; the orchestrator logs and carries on, so a
    journal outage never changes a registration outcome.
    """

    def open(self, request: RegistrationRequest) -> int:
        """Create the entry for a freshly admitted execution."""

    def record(
        self,
        handle: int,
        *,
        state: RegistrationState,
        subdomain: str | None = None,
        resources: Sequence[CompensationRecord] = (),
        error_kind: str | None = None,
    ) -> None:
        """Store the latest state, subdomain and created resources."""


class NullRegistrationJournal(RegistrationJournal):
    """Journal that remembers nothing."""

    def open(self, request: RegistrationRequest) -> int:
        return 0

    def record(
        self,
        handle: int,
        *,
        state: RegistrationState,
        subdomain: str | None = None,
        resources: Sequence[CompensationRecord] = (),
        error_kind: str | None = None,
    ) -> None:
        return None


class InMemoryRegistrationJournal(RegistrationJournal):
    """
    Thread-safe in-memory journal.

    .. note::
       Used in unit tests and as the journal of CLI-driven runs without a DB.
    """

    def __init__(self) -> None:
        self._entries: dict[int, JournalEntryView] = {}
        self._seq = 0
        self._lock = threading.Lock()

    def open(self, request: RegistrationRequest) -> int:
        with self._lock:
            self._seq += 1
            self._entries[self._seq] = JournalEntryView(
                handle=self._seq,
                email=request.email.strip().lower(),
                company_name=request.company_name.strip(),
                state=RegistrationState.ADMITTED,
            )
            return self._seq

    def record(
        self,
        handle: int,
        *,
        state: RegistrationState,
        subdomain: str | None = None,
        resources: Sequence[CompensationRecord] = (),
        error_kind: str | None = None,
    ) -> None:
        with self._lock:
            current = self._entries[handle]
            self._entries[handle] = replace(
                current,
                state=state,
                subdomain=subdomain or current.subdomain,
                resources=tuple(resources),
                error_kind=error_kind,
            )

    def get(self, handle: int) -> JournalEntryView | None:
        return self._entries.get(handle)

    def entries(self) -> list[JournalEntryView]:
        with self._lock:
            return [self._entries[k] for k in sorted(self._entries)]
