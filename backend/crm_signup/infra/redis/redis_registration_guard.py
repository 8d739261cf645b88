# comments in English; reST docstrings
from __future__ import annotations

import logging
import threading
import uuid

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError, WatchError  # type: ignore[import-untyped]

from crm_signup.services._shared.errors import RegistrationGuardError
from crm_signup.services._shared.ports import RegistrationGuard

log = logging.getLogger(__name__)


class RedisRegistrationGuard(RegistrationGuard):
    """
    Redis-backed in-flight registry shared by every worker.

    Each admitted key is stored as ``reg:inflight:<key>`` with ``SET NX EX``
    so a crashed worker cannot hold a key longer than the lease.

    :param r: A Redis client (already connected).
    :param lease_seconds: Expiry of an admitted key.
    """

    PREFIX = "reg:inflight:"

    def __init__(self, r: redis.Redis, *, lease_seconds: int = 300) -> None:
        self.r = r
        self.lease_seconds = max(1, int(lease_seconds))
        # Owner tokens of keys admitted by this process
        self._tokens: dict[str, str] = {}
        self._lock = threading.Lock()

    # -------------------- helpers --------------------

    @classmethod
    def _k(cls, key: str) -> str:
        return f"{cls.PREFIX}{key}"

    @classmethod
    def _strip(cls, raw: bytes | str) -> str:
        name = raw.decode() if isinstance(raw, bytes) else raw
        return name[len(cls.PREFIX) :]

    def _scan(self) -> list[bytes | str]:
        try:
            return list(self.r.scan_iter(match=f"{self.PREFIX}*", count=500))
        except RedisError as exc:
            raise RegistrationGuardError(f"scan failed: {exc}") from exc

    # -------------------- API ------------------------

    def try_admit(self, key: str) -> bool:
        token = uuid.uuid4().hex
        try:
            admitted = self.r.set(self._k(key), token, nx=True, ex=self.lease_seconds)
        except RedisError as exc:
            raise RegistrationGuardError(f"admit failed: {exc}") from exc
        if not admitted:
            return False
        with self._lock:
            self._tokens[key] = token
        return True

    def release(self, key: str) -> None:
        """
        Delete ``key``. When this process admitted it, delete only if the
        stored token still matches so an expired-and-readmitted lease owned
        by another worker survives.

        :raises RegistrationGuardError: Redis could not be reached; the key
            then expires with its lease.
        """
        with self._lock:
            token = self._tokens.pop(key, None)
        name = self._k(key)
        try:
            if token is None:
                self.r.delete(name)
                return
            self._compare_and_delete(name, token)
        except RedisError as exc:
            raise RegistrationGuardError(f"release failed: {exc}") from exc

    def _compare_and_delete(self, name: str, token: str) -> None:
        with self.r.pipeline() as pipe:
            try:
                pipe.watch(name)
                current = pipe.get(name)
                if isinstance(current, bytes):
                    current = current.decode()
                if current != token:
                    pipe.unwatch()
                    if current is not None:
                        log.warning("registration_guard.lease_lost backend=redis")
                    return
                pipe.multi()
                pipe.delete(name)
                pipe.execute()
            except WatchError:
                # Key changed between GET and DEL: someone else owns it now
                log.warning("registration_guard.lease_lost backend=redis")

    def in_flight(self) -> frozenset[str]:
        return frozenset(self._strip(raw) for raw in self._scan())

    def count(self) -> int:
        return len(self._scan())

    def clear_all(self) -> int:
        names = self._scan()
        try:
            removed = int(self.r.delete(*names)) if names else 0
        except RedisError as exc:
            raise RegistrationGuardError(f"clear failed: {exc}") from exc
        with self._lock:
            self._tokens.clear()
        log.warning("registration_guard.cleared removed=%s backend=redis", removed)
        return removed
