"""Company self-registration endpoints."""

from __future__ import annotations

from flask import Blueprint, request

from crm_signup.api.deps import build_registration_service, json_response, timing
from crm_signup.core.errors import BadRequest
from crm_signup.schemas import (
    AvailabilityQuerySchema,
    CompleteRegistrationSchema,
    RegistrationResultSchema,
)

bp = Blueprint("registration", __name__)

registration_schema = CompleteRegistrationSchema()
result_schema = RegistrationResultSchema()
availability_query_schema = AvailabilityQuerySchema()


def _availability(available: bool, subject: str) -> dict:
    message = f"{subject} is available" if available else f"{subject} is not available"
    return {"data": available, "message": message}


@bp.post("/register/complete")
@timing
def register_complete():
    """Register a company: tenant, user profile and credentials."""

    registration = registration_schema.load(request.get_json(silent=True) or {})
    result = build_registration_service().register_company(registration)
    body = {"data": result_schema.dump(result), "message": result.message}
    return json_response(body, status=201)


@bp.get("/check-username/<string:username>")
@timing
def check_username(username: str):
    available = build_registration_service().username_available(username)
    return json_response(_availability(available, "Username"))


@bp.get("/check-email")
@timing
def check_email():
    args = availability_query_schema.load(request.args)
    email = args.get("email")
    if not email:
        raise BadRequest("Query parameter 'email' is required")
    available = build_registration_service().email_available(email)
    return json_response(_availability(available, "Email"))


@bp.get("/check-company")
@timing
def check_company():
    """
    Whether the company's base subdomain is free.

    ``false`` does not block registration: ``register/complete`` then
    allocates a numbered variant (``acme-1``, ``acme-2``...).
    """

    args = availability_query_schema.load(request.args)
    company_name = args.get("company_name")
    if not company_name:
        raise BadRequest("Query parameter 'company_name' is required")
    available = build_registration_service().company_available(company_name)
    body = _availability(available, "Company name")
    if not available:
        body["message"] += "; registration will use a numbered subdomain"
    return json_response(body)
