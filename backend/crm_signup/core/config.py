"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_float(name: str, default: float | None = None) -> float | None:
    """Parse an optional float from an environment variable.

    Blank values are treated as unset so ``FOO=`` disables a feature.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return float(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str
        Key used by ``flask-jwt-extended`` to verify admin tokens.
    SQLALCHEMY_DATABASE_URI: str
        Database holding the registration journal.
    TENANT_SERVICE_URL / USERS_SERVICE_URL / CREDENTIALS_SERVICE_URL: str
        Base URLs of the three collaborating services.
    DIRECTORY_HTTP_TIMEOUT: float
        Per-call transport timeout (seconds) for outbound requests.
    DIRECTORY_HTTP_POOL_SIZE: int
        Keep-alive connections per collaborator host; size it to the
        gunicorn thread count.
    AVAILABILITY_MAX_ATTEMPTS: int
        Attempts made by the subdomain availability checker.
    AVAILABILITY_BACKOFF_MS: int
        Linear backoff unit; the wait after attempt ``n`` is ``n * unit``.
    SUBDOMAIN_MAX_ATTEMPTS: int
        Numbered variants tried before the fallback candidate is used.
    AVAILABILITY_FAILURE_POLICY: str
        ``"open"`` treats exhausted availability retries as *available*.
    IDENTITY_LOOKUP_FAILURE_POLICY: str
        ``"open"`` treats a failing username/e-mail lookup as *available*.
    COMPANY_PROBE_FAILURE_POLICY: str
        ``"closed"`` aborts validation when the tenant directory cannot be
        reached by the single-shot company probe.
    REGISTRATION_GUARD_BACKEND: str
        ``"memory"`` (single process) or ``"redis"`` (shared across workers).
    REGISTRATION_GUARD_LEASE_SECONDS: int
        TTL of a Redis guard entry; bounds how long a crashed worker can hold
        a key.
    REGISTRATION_DEADLINE_SECONDS: float | None
        Overall budget for one registration (default 240). Must stay below
        the Redis lease so a key cannot expire under a running request; a
        blank value disables it for the in-memory guard only.
    REGISTRATION_JOURNAL_ENABLED: bool
        Persist a row per admitted registration attempt.
    TRIAL_DAYS / TRIAL_MAX_USERS / TRIAL_MAX_STORAGE_GB: int
        Plan defaults sent with every new tenant.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    ENV_NAME = "base"
    API_BASE_PREFIX = "/api"
    APP_VERSION = os.getenv("APP_VERSION", "dev")

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")

    # Journal DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Collaborating services
    TENANT_SERVICE_URL = os.getenv("TENANT_SERVICE_URL", "http://localhost:8081")
    USERS_SERVICE_URL = os.getenv("USERS_SERVICE_URL", "http://localhost:8082")
    CREDENTIALS_SERVICE_URL = os.getenv("CREDENTIALS_SERVICE_URL", "http://localhost:8083")
    DIRECTORY_HTTP_TIMEOUT = float(os.getenv("DIRECTORY_HTTP_TIMEOUT", "5"))
    DIRECTORY_HTTP_POOL_SIZE = int(os.getenv("DIRECTORY_HTTP_POOL_SIZE", "10"))

    # Orchestration policies
    AVAILABILITY_MAX_ATTEMPTS = int(os.getenv("AVAILABILITY_MAX_ATTEMPTS", "3"))
    AVAILABILITY_BACKOFF_MS = int(os.getenv("AVAILABILITY_BACKOFF_MS", "1000"))
    SUBDOMAIN_MAX_ATTEMPTS = int(os.getenv("SUBDOMAIN_MAX_ATTEMPTS", "100"))
    AVAILABILITY_FAILURE_POLICY = os.getenv("AVAILABILITY_FAILURE_POLICY", "open")
    IDENTITY_LOOKUP_FAILURE_POLICY = os.getenv("IDENTITY_LOOKUP_FAILURE_POLICY", "open")
    COMPANY_PROBE_FAILURE_POLICY = os.getenv("COMPANY_PROBE_FAILURE_POLICY", "closed")
    REGISTRATION_DEADLINE_SECONDS = env_float("REGISTRATION_DEADLINE_SECONDS", 240.0)

    # Deduplication guard
    REGISTRATION_GUARD_BACKEND = os.getenv("REGISTRATION_GUARD_BACKEND", "memory")
    REDIS_URL = os.getenv("REDIS_URL")
    REGISTRATION_GUARD_LEASE_SECONDS = int(os.getenv("REGISTRATION_GUARD_LEASE_SECONDS", "300"))

    REGISTRATION_JOURNAL_ENABLED = env_bool("REGISTRATION_JOURNAL_ENABLED", True)

    # Plan defaults for newly created tenants
    TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "14"))
    TRIAL_MAX_USERS = int(os.getenv("TRIAL_MAX_USERS", "5"))
    TRIAL_MAX_STORAGE_GB = int(os.getenv("TRIAL_MAX_STORAGE_GB", "10"))

    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Backoff is shortened so a missing local tenant service does not stall
    every registration for several seconds.
    """

    ENV_NAME = "development"
    DEBUG = env_bool("FLASK_DEBUG", True)
    AVAILABILITY_BACKOFF_MS = int(os.getenv("AVAILABILITY_BACKOFF_MS", "200"))


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Collaborators live on fixed fake hosts mocked with ``responses``.
    - No backoff sleeps and an in-process guard.
    """

    ENV_NAME = "testing"
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    TENANT_SERVICE_URL = "http://tenant-service.test"
    USERS_SERVICE_URL = "http://users-service.test"
    CREDENTIALS_SERVICE_URL = "http://auth-service.test"
    AVAILABILITY_BACKOFF_MS = 0
    REGISTRATION_GUARD_BACKEND = "memory"
    REDIS_URL = None
    JWT_SECRET_KEY = "testing-jwt-secret-with-enough-length"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Production runs several gunicorn workers, so the guard must be shared.
    """

    ENV_NAME = "production"
    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    REGISTRATION_GUARD_BACKEND = os.getenv("REGISTRATION_GUARD_BACKEND", "redis")


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
