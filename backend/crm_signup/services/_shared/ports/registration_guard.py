from __future__ import annotations

import logging
import threading
from typing import Protocol

log = logging.getLogger(__name__)


class RegistrationGuard(Protocol):
    """
    Registry admitting at most one in-flight registration per dedup key.

    ``try_admit``/``release`` MUST be linearizable: a ``release`` is visible
    to any ``try_admit`` of the same key issued afterwards. Backends that can
    fail raise :class:`~crm_signup.services._shared.errors.RegistrationGuardError`.
    """

    def try_admit(self, key: str) -> bool:
        """Atomically claim ``key``. :returns: True only for the sole owner."""

    def release(self, key: str) -> None:
        """Drop ``key``. Idempotent: releasing an absent key is a no-op."""

    def in_flight(self) -> frozenset[str]:
        """Best-effort snapshot of held keys (observability only)."""

    def count(self) -> int:
        """Best-effort number of held keys."""

    def clear_all(self) -> int:
        """
        Drop every key. Recovery escape hatch after a crash left stale entries.

        Using it while registrations are running re-opens the door to
        concurrent duplicates.

        :returns: Number of keys removed.
        """


class InMemoryRegistrationGuard(RegistrationGuard):
    """
    Process-local guard backed by a lock-protected set.

    .. note::
       Only correct while a single process serves registrations. Use
       :class:`crm_signup.infra.redis.redis_registration_guard.RedisRegistrationGuard`
       behind several workers.
    """

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def try_admit(self, key: str) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    def in_flight(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._keys)

    def count(self) -> int:
        with self._lock:
            return len(self._keys)

    def clear_all(self) -> int:
        with self._lock:
            removed = len(self._keys)
            self._keys.clear()
        log.warning("registration_guard.cleared removed=%s backend=memory", removed)
        return removed
