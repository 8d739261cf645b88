"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

if TYPE_CHECKING:
    from crm_signup.infra.http.clients import DirectoryClients
    from crm_signup.services._shared.ports import RegistrationGuard

convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
redis_client: redis.Redis | None = None

GUARD_EXTENSION_KEY = "registration_guard"
DIRECTORIES_EXTENSION_KEY = "directory_clients"


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT, the registration guard and
    the collaborator HTTP clients.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`crm_signup.models` package to ensure SQLAlchemy metadata is
        ready for migrations.

    Raises
    ------
    RuntimeError
        When the Redis guard backend is selected but Redis is not reachable,
        no ``REDIS_URL`` is configured for it, or the registration deadline
        does not fit inside the guard lease.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from crm_signup import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)

    global redis_client
    redis_url = app.config.get("REDIS_URL")
    if redis_url:
        redis_client = redis.Redis.from_url(redis_url)
        try:
            redis_client.ping()
        except RedisError as exc:
            raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
        app.extensions["redis_client"] = redis_client
    else:
        redis_client = None
        app.extensions.pop("redis_client", None)

    app.extensions[GUARD_EXTENSION_KEY] = _build_guard(app)

    from crm_signup.infra.http.clients import DirectoryClients

    app.extensions[DIRECTORIES_EXTENSION_KEY] = DirectoryClients.from_config(app.config)


def _build_guard(app: Flask) -> RegistrationGuard:
    """Select the guard adapter named by ``REGISTRATION_GUARD_BACKEND``."""
    from crm_signup.services._shared.ports import InMemoryRegistrationGuard

    backend = str(app.config.get("REGISTRATION_GUARD_BACKEND", "memory")).strip().lower()
    if backend == "memory":
        return InMemoryRegistrationGuard()
    if backend == "redis":
        if redis_client is None:
            raise RuntimeError("REGISTRATION_GUARD_BACKEND=redis requires REDIS_URL to be set.")
        from crm_signup.infra.redis.redis_registration_guard import RedisRegistrationGuard

        lease = int(app.config.get("REGISTRATION_GUARD_LEASE_SECONDS", 300))
        deadline = app.config.get("REGISTRATION_DEADLINE_SECONDS")
        if not deadline or float(deadline) >= lease:
            raise RuntimeError(
                "REGISTRATION_DEADLINE_SECONDS must be set below "
                f"REGISTRATION_GUARD_LEASE_SECONDS ({lease}) for the redis guard."
            )
        return RedisRegistrationGuard(r=redis_client, lease_seconds=lease)
    raise RuntimeError(f"Unknown REGISTRATION_GUARD_BACKEND {backend!r}")


def get_registration_guard() -> RegistrationGuard:
    """Return the process-wide guard bound to the current application."""
    guard = current_app.extensions.get(GUARD_EXTENSION_KEY)
    if guard is None:
        raise RuntimeError("Registration guard is not initialized. Call init_app() first.")
    return guard


def get_directory_clients() -> DirectoryClients:
    """Return the collaborator clients built for the current application."""
    clients = current_app.extensions.get(DIRECTORIES_EXTENSION_KEY)
    if clients is None:
        raise RuntimeError("Directory clients are not initialized. Call init_app() first.")
    return clients
