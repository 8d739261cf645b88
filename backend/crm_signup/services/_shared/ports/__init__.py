"""
crm_signup.services._shared.ports
=================================

Collection of *ports* (hexagonal interfaces) the registration orchestrator
depends on.

Modules
-------
- :mod:`directories`:
    :class:`~.TenantDirectory`, :class:`~.UserDirectory` and
    :class:`~.CredentialStore`, the three collaborating services.

- :mod:`registration_guard`:
    :class:`~.RegistrationGuard`, the in-flight deduplication registry, and
    its process-local :class:`~.InMemoryRegistrationGuard`.

- :mod:`registration_journal`:
    :class:`~.RegistrationJournal`, the attempt log used to locate partial
    registrations, with null and in-memory implementations.

Design Notes
------------
Concrete adapters (HTTP clients, Redis, SQL) live under ``crm_signup.infra``
and the SQL journal under ``crm_signup.services.registration.journal``.
"""

from __future__ import annotations

from .directories import CredentialStore, TenantDirectory, UserDirectory
from .registration_guard import InMemoryRegistrationGuard, RegistrationGuard
from .registration_journal import (
    InMemoryRegistrationJournal,
    JournalEntryView,
    NullRegistrationJournal,
    RegistrationJournal,
)

__all__ = [
    "TenantDirectory",
    "UserDirectory",
    "CredentialStore",
    "RegistrationGuard",
    "InMemoryRegistrationGuard",
    "RegistrationJournal",
    "NullRegistrationJournal",
    "InMemoryRegistrationJournal",
    "JournalEntryView",
]
