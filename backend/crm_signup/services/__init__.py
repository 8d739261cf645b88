"""Service layer public API.

Re-exports
----------
- Base primitives (from ``crm_signup.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Company registration (from ``crm_signup.services.registration``)
    * :class:`CompanyRegistrationService`
    * DTOs: :class:`RegistrationRequest`, :class:`RegistrationResult`
"""

from __future__ import annotations

from crm_signup.services._shared.base import BaseService, ServiceContext
from crm_signup.services.registration.dto import RegistrationRequest, RegistrationResult
from crm_signup.services.registration.service import CompanyRegistrationService

__all__ = [
    "BaseService",
    "ServiceContext",
    "CompanyRegistrationService",
    "RegistrationRequest",
    "RegistrationResult",
]
