"""Username and e-mail uniqueness checks against the user directory."""

from __future__ import annotations

import logging
from collections.abc import Callable

from crm_signup.services._shared.errors import DependencyUnavailableError, DirectoryError
from crm_signup.services._shared.ports import UserDirectory
from crm_signup.services.registration.availability import FailurePolicy
from crm_signup.services.registration.dto import UserRecord

log = logging.getLogger(__name__)


class IdentityUniquenessChecker:
    """
    Interpret user-directory lookups as availability answers.

    A found record means "taken" and a not-found answer means "available".
    No retries. A failed lookup counts as "available" under the default
    ``open`` policy; under ``closed`` it raises
    :class:`DependencyUnavailableError`.

    :param directory: User directory port.
    :type directory: UserDirectory
    :param policy: Outcome when a lookup fails.
    :type policy: FailurePolicy
    """

    def __init__(
        self, directory: UserDirectory, *, policy: FailurePolicy = FailurePolicy.OPEN
    ) -> None:
        self._directory = directory
        self.policy = policy

    def username_available(self, username: str) -> bool:
        return self._available("username", username.strip(), self._directory.find_user_by_username)

    def email_available(self, email: str) -> bool:
        return self._available("email", email.strip().lower(), self._directory.find_user_by_email)

    def _available(
        self, field: str, value: str, lookup: Callable[[str], UserRecord | None]
    ) -> bool:
        try:
            return lookup(value) is None
        except DirectoryError as exc:
            if self.policy is FailurePolicy.OPEN:
                log.warning(
                    "identity.lookup_failed field=%s policy=open error=%s",
                    field,
                    exc,
                    extra={"service": exc.service},
                )
                return True
            log.error(
                "identity.lookup_failed field=%s policy=closed error=%s",
                field,
                exc,
                extra={"service": exc.service},
            )
            raise DependencyUnavailableError(
                f"Could not verify {field} availability; please try again later"
            ) from exc
