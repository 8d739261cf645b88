"""Marshmallow schemas for company self-registration."""

from __future__ import annotations

import re
from typing import Any

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    post_load,
    pre_load,
    validate,
    validates,
)

from crm_signup.schemas.common import PaginationQuerySchema
from crm_signup.services.registration.dto import RegistrationRequest, RegistrationState

PASSWORD_PATTERN = (
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&#\-_+=])[A-Za-z\d@$!%*?&#\-_+=]+$"
)
NAME_PATTERN = r"^[a-zA-Z\s'-]+$"
USERNAME_PATTERN = r"^[a-zA-Z0-9._-]+$"
PHONE_PATTERN = r"^[+]?[0-9\s()-]+$"

_USERNAME_STRIP = re.compile(r"[^a-zA-Z0-9._-]")


def username_from_email(email: str) -> str:
    """
    Derive a login handle from the e-mail local part.

    Keeps ``[a-zA-Z0-9._-]``, lower-cases, prefixes ``user`` when the result
    does not start alphanumeric, caps at 50 and pads short handles with
    ``123``.
    """
    local = email.split("@", 1)[0]
    handle = _USERNAME_STRIP.sub("", local).lower()
    if not handle or not handle[0].isalnum():
        handle = f"user{handle}"
    handle = handle[:50]
    if len(handle) < 3:
        handle = f"{handle}123"
    return handle


class CompleteRegistrationSchema(Schema):
    """Input payload for ``POST /auth/register/complete``."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(
        required=True,
        load_only=True,
        validate=[
            validate.Length(min=8, max=128),
            validate.Regexp(
                PASSWORD_PATTERN,
                error=(
                    "Password must contain at least one uppercase letter, one lowercase "
                    "letter, one digit and one special character."
                ),
            ),
        ],
    )
    username = fields.String(
        load_default=None,
        validate=[validate.Length(min=3, max=50), validate.Regexp(USERNAME_PATTERN)],
    )
    company_name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    first_name = fields.String(
        load_default=None, validate=[validate.Length(max=100), validate.Regexp(NAME_PATTERN)]
    )
    last_name = fields.String(
        load_default=None, validate=[validate.Length(max=100), validate.Regexp(NAME_PATTERN)]
    )
    phone_number = fields.String(
        load_default=None, validate=[validate.Length(max=20), validate.Regexp(PHONE_PATTERN)]
    )
    job_title = fields.String(load_default=None, validate=validate.Length(max=150))
    department = fields.String(load_default=None, validate=validate.Length(max=100))
    timezone = fields.String(load_default="UTC", validate=validate.Length(max=50))
    language = fields.String(load_default="en", validate=validate.Length(max=10))
    marketing_consent = fields.Boolean(load_default=False)
    accept_terms = fields.Boolean(required=True, load_only=True)
    accept_privacy = fields.Boolean(required=True, load_only=True)

    @pre_load
    def strip_strings(self, data: Any, **_: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str) and key != "password":
                value = value.strip()
                if value == "" and key not in ("email", "company_name"):
                    value = None
            if value is None and key in ("username", "timezone", "language"):
                continue
            cleaned[key] = value
        return cleaned

    @validates("company_name")
    def validate_company_name(self, value: str, **_: Any) -> None:
        if not value.strip():
            raise ValidationError("Company name cannot be blank.")

    @validates("accept_terms")
    def validate_accept_terms(self, value: bool, **_: Any) -> None:
        if value is not True:
            raise ValidationError("You must accept the terms and conditions.")

    @validates("accept_privacy")
    def validate_accept_privacy(self, value: bool, **_: Any) -> None:
        if value is not True:
            raise ValidationError("You must accept the privacy policy.")

    @post_load
    def make_request(self, data: dict[str, Any], **_: Any) -> RegistrationRequest:
        data.pop("accept_terms", None)
        data.pop("accept_privacy", None)
        if not data.get("username"):
            data["username"] = username_from_email(data["email"])
        return RegistrationRequest(**data)


# --------------------------------------------------------------------------- #
# Output
# --------------------------------------------------------------------------- #


class TenantOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    subdomain = fields.String()
    status = fields.String(allow_none=True)
    is_trial = fields.Boolean(allow_none=True)
    trial_ends_at = fields.String(allow_none=True)


class UserOutSchema(Schema):
    id = fields.String()
    username = fields.String()
    email = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    full_name = fields.String(allow_none=True)


class CredentialOutSchema(Schema):
    id = fields.String()
    username = fields.String()
    email = fields.String()
    tenant_id = fields.String(allow_none=True)
    user_id = fields.String(allow_none=True)


class RegistrationResultSchema(Schema):
    """Response payload of a completed registration."""

    success = fields.Boolean()
    message = fields.String()
    subdomain = fields.String()
    tenant = fields.Nested(TenantOutSchema)
    user = fields.Nested(UserOutSchema)
    credentials = fields.Nested(CredentialOutSchema)


class AvailabilityQuerySchema(Schema):
    """Query string of the ``check-email`` and ``check-company`` endpoints."""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(validate=validate.Length(max=254))
    company_name = fields.String(validate=validate.Length(min=1, max=255))


# --------------------------------------------------------------------------- #
# Journal (admin)
# --------------------------------------------------------------------------- #


class AttemptListQuerySchema(PaginationQuerySchema):
    """Pagination plus optional ``state``/``email`` filters."""

    state = fields.String(
        load_default=None,
        validate=validate.OneOf([s.value for s in RegistrationState]),
    )
    email = fields.String(load_default=None, validate=validate.Length(max=254))


class RegistrationAttemptSchema(Schema):
    """Journal row as exposed to operators."""

    id = fields.Integer()
    email = fields.String()
    company_name = fields.String()
    state = fields.String()
    subdomain = fields.String(allow_none=True)
    error_kind = fields.String(allow_none=True)
    tenant_id = fields.String(allow_none=True)
    user_id = fields.String(allow_none=True)
    credentials_id = fields.String(allow_none=True)
    has_partial_state = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
