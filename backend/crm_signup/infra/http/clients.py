"""Per-application bundle of directory clients sharing one connection pool."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from crm_signup.infra.http.credentials_client import HttpCredentialStore
from crm_signup.infra.http.tenant_client import HttpTenantDirectory
from crm_signup.infra.http.users_client import HttpUserDirectory


@dataclass(frozen=True, slots=True)
class DirectoryClients:
    """
    The three collaborator clients of one app.

    Built once at startup; every request reuses :attr:`session` and its
    keep-alive connections.
    """

    session: requests.Session
    tenants: HttpTenantDirectory
    users: HttpUserDirectory
    credentials: HttpCredentialStore

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> DirectoryClients:
        """
        :param cfg: Flask config (service URLs, ``DIRECTORY_HTTP_TIMEOUT``,
            ``DIRECTORY_HTTP_POOL_SIZE``).
        """
        timeout = float(cfg.get("DIRECTORY_HTTP_TIMEOUT", 5))
        pool_size = max(1, int(cfg.get("DIRECTORY_HTTP_POOL_SIZE", 10)))

        session = requests.Session()
        adapter = HTTPAdapter(pool_connections=3, pool_maxsize=pool_size)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return cls(
            session=session,
            tenants=HttpTenantDirectory(
                cfg["TENANT_SERVICE_URL"], timeout=timeout, session=session
            ),
            users=HttpUserDirectory(cfg["USERS_SERVICE_URL"], timeout=timeout, session=session),
            credentials=HttpCredentialStore(
                cfg["CREDENTIALS_SERVICE_URL"], timeout=timeout, session=session
            ),
        )
