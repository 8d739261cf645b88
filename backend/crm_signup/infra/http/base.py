"""
Shared plumbing for the JSON directory clients.

Every collaborator wraps its payloads in the envelope
``{"success": bool, "data": ..., "message": str, "error": ...}``. This module
turns transport problems and envelope refusals into
:class:`~crm_signup.services._shared.errors.DirectoryError` subclasses so the
service layer never sees :mod:`requests` exceptions.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import requests

from crm_signup.core.logger import correlation_headers
from crm_signup.services._shared.errors import (
    DirectoryConflictError,
    DirectoryRejectedError,
    DirectoryUnavailableError,
)

log = logging.getLogger(__name__)


class JsonServiceClient:
    """
    Minimal synchronous JSON client for one collaborating service.

    :param base_url: Service root, e.g. ``http://tenant-service:8081``.
    :type base_url: str
    :param timeout: Per-request transport timeout in seconds.
    :type timeout: float
    :param session: Optional shared :class:`requests.Session`.
    :type session: requests.Session | None
    """

    #: Logical name used in errors and logs
    service = "directory"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError(f"{self.service} base URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _url(self, path: str, *segments: str) -> str:
        """Join ``path`` and URL-quoted ``segments`` onto the base URL."""
        tail = "".join(f"/{quote(str(s), safe='')}" for s in segments)
        return f"{self.base_url}{path}{tail}"

    def _send(self, method: str, url: str, *, json: Any = None) -> requests.Response:
        headers = {"Accept": "application/json", **correlation_headers()}
        started = time.perf_counter()
        try:
            resp = self._session.request(
                method, url, json=json, headers=headers, timeout=self.timeout
            )
        except requests.Timeout as exc:
            raise DirectoryUnavailableError(self.service, "request timed out") from exc
        except requests.RequestException as exc:
            raise DirectoryUnavailableError(self.service, "service unreachable") from exc

        log.debug(
            "%s %s -> %s",
            method,
            url,
            resp.status_code,
            extra={
                "service": self.service,
                "status_code": resp.status_code,
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return resp

    # ------------------------------------------------------------------ #
    # Envelope handling
    # ------------------------------------------------------------------ #

    def _body(self, resp: requests.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as exc:
            raise DirectoryRejectedError(
                self.service, "response is not JSON", status_code=resp.status_code
            ) from exc
        if not isinstance(body, dict):
            raise DirectoryRejectedError(
                self.service, "unexpected response shape", status_code=resp.status_code
            )
        return body

    @staticmethod
    def _reason(body: dict[str, Any], default: str) -> str:
        error = body.get("error")
        if isinstance(error, dict):
            error = error.get("message") or error.get("code")
        return str(body.get("message") or error or default)

    def _raise_for_status(self, resp: requests.Response) -> None:
        status = resp.status_code
        if status < 400:
            return
        if status >= 500:
            raise DirectoryUnavailableError(
                self.service, f"server error {status}", status_code=status
            )
        if status == 409:
            raise DirectoryConflictError(self.service, "conflict", status_code=status)
        raise DirectoryRejectedError(self.service, f"rejected with {status}", status_code=status)

    def command(self, method: str, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Send a write and return the envelope's ``data`` object.

        :raises DirectoryUnavailableError: Transport failure, timeout or 5xx.
        :raises DirectoryConflictError: HTTP 409.
        :raises DirectoryRejectedError: Other 4xx, ``success: false`` or a
            body without a ``data`` object.
        """
        resp = self._send(method, url, json=payload)
        self._raise_for_status(resp)
        body = self._body(resp)
        if body.get("success") is False:
            reason = self._reason(body, "request refused")
            log.warning("%s refused write: %s", self.service, reason, extra={"service": self.service})
            raise DirectoryRejectedError(self.service, "request refused", status_code=resp.status_code)
        data = body.get("data")
        if not isinstance(data, dict):
            raise DirectoryRejectedError(
                self.service, "response has no data", status_code=resp.status_code
            )
        return data

    def query(self, url: str) -> dict[str, Any] | None:
        """
        Send a lookup; ``None`` on 404 or ``success: false``.

        :raises DirectoryUnavailableError: Transport failure, timeout or 5xx.
        :raises DirectoryRejectedError: Other 4xx or an unreadable body.
        """
        resp = self._send("GET", url)
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp)
        body = self._body(resp)
        if body.get("success") is False:
            return None
        return body.get("data")
