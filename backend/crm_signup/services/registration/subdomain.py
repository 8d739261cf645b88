"""
Subdomain candidates derived from a company name.

Pure and deterministic apart from the injected clock used by the fallback
candidate.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable

MIN_LENGTH = 3
MAX_LENGTH = 50
DEFAULT_BASE = "company"
SHORT_SUFFIX = "-company"
FALLBACK_PREFIX = "company-"

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


class SubdomainGenerator:
    """
    Turn company names into DNS-label-safe subdomain candidates.

    :param max_attempts: Attempt number at which numbered variants stop and
        the fallback candidate is produced.
    :type max_attempts: int
    :param clock: Returns the current epoch time in seconds.
    :type clock: Callable[[], float]
    """

    def __init__(self, *, max_attempts: int = 100, clock: Callable[[], float] = time.time) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self._clock = clock

    def base_candidate(self, company_name: str | None) -> str:
        """
        Sanitize ``company_name`` into the base candidate.

        Lower-case, keep ``[a-z0-9-]``, turn whitespace runs into one hyphen,
        collapse hyphens and trim them at both ends. The result is capped at
        50 characters and padded with ``-company`` when shorter than 3.

        :param company_name: Raw company name.
        :type company_name: str | None
        :returns: Base candidate, never empty.
        :rtype: str
        """
        value = (company_name or "").strip().lower()
        value = _INVALID_CHARS.sub("", value)
        value = _WHITESPACE.sub("-", value)
        value = _HYPHENS.sub("-", value).strip("-")
        if not value:
            return DEFAULT_BASE

        value = value[:MAX_LENGTH].rstrip("-")
        if len(value) < MIN_LENGTH:
            value = f"{value}{SHORT_SUFFIX}"
        return value

    def next_candidate(self, base: str, attempt: int) -> str:
        """
        Derive the candidate for collision number ``attempt``.

        :param base: Base candidate from :meth:`base_candidate`.
        :type base: str
        :param attempt: 1-based collision counter.
        :type attempt: int
        :returns: ``base-<attempt>`` below ``max_attempts``, else the fallback.
        :rtype: str
        :raises ValueError: When ``attempt`` is lower than 1.
        """
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        if attempt >= self.max_attempts:
            return self.fallback_candidate()

        suffix = f"-{attempt}"
        head = base[: MAX_LENGTH - len(suffix)].rstrip("-") or DEFAULT_BASE
        return f"{head}{suffix}"

    def fallback_candidate(self) -> str:
        """``company-<epoch seconds mod 10000>``; not availability-checked by callers."""
        return f"{FALLBACK_PREFIX}{int(self._clock()) % 10000}"

    def is_fallback(self, attempt: int) -> bool:
        return attempt >= self.max_attempts
