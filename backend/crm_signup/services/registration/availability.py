"""
Subdomain availability checks against the tenant directory.

Two entry points with independent budgets:

- :meth:`AvailabilityChecker.is_available` retries with linear backoff and,
  under the default ``open`` policy, reports "available" once retries are
  exhausted. Tenant creation rejects the subdomain later if it was taken,
  so an outage of the check endpoint never blocks registrations.
- :meth:`AvailabilityChecker.probe` makes exactly one call and reports
  ``None`` when the directory could not be reached.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum

from crm_signup.services._shared.errors import DependencyUnavailableError, DirectoryError
from crm_signup.services._shared.ports import TenantDirectory

log = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    """What a checker concludes when the directory gives no usable answer."""

    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: str | FailurePolicy | None, default: FailurePolicy) -> FailurePolicy:
        """
        Read a policy from configuration.

        :raises ValueError: For values other than ``open``/``closed``.
        """
        if value is None or value == "":
            return default
        if isinstance(value, FailurePolicy):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown failure policy {value!r}; use 'open' or 'closed'") from None


class AvailabilityChecker:
    """
    Retry wrapper around :meth:`TenantDirectory.check_subdomain_available`.

    :param directory: Tenant directory port.
    :type directory: TenantDirectory
    :param max_attempts: Total calls per :meth:`is_available`.
    :type max_attempts: int
    :param backoff_ms: Sleep before retry ``n`` is ``n * backoff_ms``.
    :type backoff_ms: int
    :param policy: Outcome once every attempt failed.
    :type policy: FailurePolicy
    :param sleep: Blocking sleep taking seconds.
    :type sleep: Callable[[float], None]
    """

    def __init__(
        self,
        directory: TenantDirectory,
        *,
        max_attempts: int = 3,
        backoff_ms: int = 1000,
        policy: FailurePolicy = FailurePolicy.OPEN,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._directory = directory
        self.max_attempts = max_attempts
        self.backoff_ms = max(0, backoff_ms)
        self.policy = policy
        self._sleep = sleep

    def is_available(self, candidate: str) -> bool:
        """
        Ask whether ``candidate`` is free, retrying transient failures.

        :param candidate: Subdomain candidate.
        :type candidate: str
        :returns: The directory's answer; ``True`` after exhaustion under the
            ``open`` policy.
        :rtype: bool
        :raises DependencyUnavailableError: After exhaustion under the
            ``closed`` policy.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return bool(self._directory.check_subdomain_available(candidate))
            except DirectoryError as exc:
                log.warning(
                    "availability.check_failed candidate=%s attempt=%s/%s error=%s",
                    candidate,
                    attempt,
                    self.max_attempts,
                    exc,
                    extra={"candidate": candidate, "attempt": attempt, "service": exc.service},
                )
                if attempt < self.max_attempts:
                    self._sleep(attempt * self.backoff_ms / 1000.0)

        if self.policy is FailurePolicy.OPEN:
            log.warning(
                "availability.fail_open candidate=%s attempts=%s",
                candidate,
                self.max_attempts,
                extra={"candidate": candidate, "attempt": self.max_attempts},
            )
            return True

        raise DependencyUnavailableError(
            "Subdomain availability could not be verified; please try again later"
        )

    def probe(self, candidate: str) -> bool | None:
        """
        Single unretried availability call.

        :returns: The directory's answer, or ``None`` when unreachable.
        :rtype: bool | None
        """
        try:
            return bool(self._directory.check_subdomain_available(candidate))
        except DirectoryError as exc:
            log.warning(
                "availability.probe_failed candidate=%s error=%s",
                candidate,
                exc,
                extra={"candidate": candidate, "service": exc.service},
            )
            return None
