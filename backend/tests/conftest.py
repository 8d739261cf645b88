"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so journal rows never leak between cases. Collaborating
services are never contacted: HTTP traffic is intercepted with ``responses``.
"""

from __future__ import annotations

import os

import pytest
import responses
from crm_signup.core.config import TestingConfig
from crm_signup.core.extensions import GUARD_EXTENSION_KEY
from crm_signup.core.extensions import db as _db  # Flask-SQLAlchemy instance
from crm_signup.factory import create_app  # application factory under test
from crm_signup.services._shared.ports import InMemoryRegistrationGuard
from flask_jwt_extended import create_access_token
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

ADMIN_SCOPE = "registrations:admin"


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    app = create_app(TestingConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Parameters
    ----------
    app: flask.Flask
        Application fixture ensuring the Flask context is available.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Parameters
    ----------
    db: flask_sqlalchemy.SQLAlchemy
        Database extension whose ``session`` attribute is temporarily
        reassigned.
    connection: sqlalchemy.engine.Connection
        Shared connection maintaining the outer transaction.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        Scoped session bound to the shared connection; automatically rolled
        back after each test.

    Notes
    -----
    The journal commits through its own Unit of Work. Starting a SAVEPOINT
    per test and reinstalling it whenever SQLAlchemy ends one keeps those
    commits inside the outer transaction.
    """
    # 1) Top-level transaction
    top_trans = connection.begin()

    # 2) Scoped session bound to the connection
    SessionFactory = sessionmaker(bind=connection, future=True)
    scoped = scoped_session(SessionFactory)

    # 3) SAVEPOINT per test
    nested = connection.begin_nested()

    # 4) Re-create SAVEPOINT when the previous nested transaction ends
    @event.listens_for(scoped(), "after_transaction_end")
    def _restart_savepoint(sess, trans):  # pragma: no cover
        if trans.nested and not trans._parent.nested:
            nonlocal nested
            nested = connection.begin_nested()

    # 5) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield


# -- HTTP layer ----------------------------------------------------------------
@pytest.fixture()
def guard(app):
    """Install a fresh in-process guard so held keys never leak between tests."""
    fresh = InMemoryRegistrationGuard()
    previous = app.extensions[GUARD_EXTENSION_KEY]
    app.extensions[GUARD_EXTENSION_KEY] = fresh
    yield fresh
    app.extensions[GUARD_EXTENSION_KEY] = previous


@pytest.fixture()
def client(app, guard):
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture()
def mocked_http():
    """Intercept outbound ``requests`` calls; unmatched calls raise."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _token(app, scopes: list[str]) -> str:
    with app.app_context():
        return create_access_token(identity="operator-1", additional_claims={"scopes": scopes})


@pytest.fixture()
def admin_headers(app) -> dict[str, str]:
    """Authorization header carrying the operator scope."""
    return {"Authorization": f"Bearer {_token(app, [ADMIN_SCOPE])}"}


@pytest.fixture()
def user_headers(app) -> dict[str, str]:
    """Authorization header of a token without operator scope."""
    return {"Authorization": f"Bearer {_token(app, ['registrations:read'])}"}
