"""Factory Boy helpers wired to the journal's SQLAlchemy session."""

from __future__ import annotations

import factory


class SQLAlchemySession:
    """Hold the session handed over by the pytest fixture layer."""

    _session = None

    @classmethod
    def set(cls, session):
        cls._session = session

    @classmethod
    def get(cls):
        """Return the registered SQLAlchemy session.

        Raises
        ------
        RuntimeError
            If factories are used without the ``session`` fixture wiring.
        """
        if cls._session is None:
            raise RuntimeError("Factories session not set. Did you pass the 'session' fixture?")
        return cls._session


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Persist models through the transactional test session."""

    class Meta:
        abstract = True
        # A callable keeps Factory Boy lazy so it picks up the per-test session
        sqlalchemy_session_factory = SQLAlchemySession.get
        sqlalchemy_session_persistence = "flush"
