"""Unit tests for the read-write and read-only Units of Work."""

import pytest
from crm_signup.models.registration_attempt import RegistrationAttempt
from crm_signup.uow import SQLAlchemyReadOnlyUnitOfWork as ROuow
from crm_signup.uow import SQLAlchemyUnitOfWork as RWuow
from sqlalchemy import func, select


def _count(session) -> int:
    return session.execute(select(func.count()).select_from(RegistrationAttempt)).scalar_one()


class TestSQLAlchemyUnitOfWork:
    def test_commits_on_success(self, session):
        with RWuow() as uow:
            uow.registration_attempts.add(
                RegistrationAttempt(email="rw@example.com", company_name="Acme")
            )

        assert _count(session) == 1

    def test_rolls_back_on_error(self, session):
        with pytest.raises(RuntimeError, match="boom"), RWuow() as uow:
            uow.registration_attempts.add(
                RegistrationAttempt(email="rw@example.com", company_name="Acme")
            )
            raise RuntimeError("boom")

        assert _count(session) == 0


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_allows_reads(self, session):
        with RWuow() as uow:
            uow.registration_attempts.add(
                RegistrationAttempt(email="ro@example.com", company_name="Acme")
            )

        with ROuow() as uow:
            assert uow.registration_attempts.count_by_state() == {"admitted": 1}

    def test_blocks_orm_flush_writes(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            uow.session.add(RegistrationAttempt(email="x@example.com", company_name="Acme"))
            uow.session.flush()
        session.rollback()

    def test_disallows_commit(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()
