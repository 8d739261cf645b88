"""Marshmallow schemas exposed by the API layer."""

from __future__ import annotations

from crm_signup.schemas.common import PaginationQuerySchema, SortQuerySchema, build_meta
from crm_signup.schemas.registration import (
    AttemptListQuerySchema,
    AvailabilityQuerySchema,
    CompleteRegistrationSchema,
    RegistrationAttemptSchema,
    RegistrationResultSchema,
    username_from_email,
)

__all__ = [
    "PaginationQuerySchema",
    "SortQuerySchema",
    "build_meta",
    "AttemptListQuerySchema",
    "AvailabilityQuerySchema",
    "CompleteRegistrationSchema",
    "RegistrationAttemptSchema",
    "RegistrationResultSchema",
    "username_from_email",
]
