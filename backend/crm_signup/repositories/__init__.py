"""Repository package exposing persistence-layer access for the journal."""

from __future__ import annotations

from crm_signup.repositories.base import (
    BaseRepository,
    Page,
    Pagination,
    apply_sorting,
    paginate_select,
)
from crm_signup.repositories.registration_attempt import RegistrationAttemptRepository

__all__ = [
    "BaseRepository",
    "Page",
    "Pagination",
    "apply_sorting",
    "paginate_select",
    "RegistrationAttemptRepository",
]
