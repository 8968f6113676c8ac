# Overview: Pytest coverage for optimistic version checks and retry behaviour.

"""
Concurrency Tests

A competing writer is simulated by bumping version_id with raw SQL from
inside the unit of work, after the account was loaded. The ORM flush then
matches zero rows and raises StaleDataError, which run_with_retry turns
into a fresh attempt (or ConcurrentModificationError once the attempts are
spent).
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from identity.extensions import db
from identity.services.account_service import mutate_account
from identity.services.concurrency import ConcurrentModificationError, run_with_retry
from identity.validation import ValidationError


def _bump_version(account_id):
    db.session.execute(
        text("UPDATE accounts SET version_id = version_id + 1 WHERE id = :id"),
        {"id": account_id},
    )


class TestOptimisticLocking:

    def test_version_increments_on_update(self, db_session, buyer):
        before = buyer.version_id
        mutate_account(buyer.id, lambda account: setattr(account, "bio", "v2"))
        assert buyer.version_id == before + 1

    def test_conflict_is_retried_with_fresh_read(self, db_session, buyer):
        calls = []

        def mutator(account):
            calls.append(account.version_id)
            if len(calls) == 1:
                _bump_version(account.id)
            account.bio = "written after retry"

        mutate_account(buyer.id, mutator, action="profile_updated", attempts=3)

        assert len(calls) == 2
        assert buyer.bio == "written after retry"
        assert [e.action for e in buyer.activity_log].count("profile_updated") == 1

    def test_persistent_conflict_raises(self, db_session, buyer):
        def mutator(account):
            _bump_version(account.id)
            account.bio = "never lands"

        with pytest.raises(ConcurrentModificationError):
            mutate_account(buyer.id, mutator, attempts=2)

        assert buyer.bio is None

    def test_concurrent_activity_append_conflicts(self, db_session, buyer):
        """An activity append alone bumps the version, so racing appends cannot both win."""
        def mutator(account):
            _bump_version(account.id)

        with pytest.raises(ConcurrentModificationError):
            mutate_account(buyer.id, mutator, action="login", attempts=1)

        assert len(buyer.activity_log) == 1


class TestRunWithRetry:

    def test_returns_result(self, db_session):
        assert run_with_retry(lambda: 42) == 42

    def test_business_errors_not_retried(self, db_session):
        calls = []

        def op():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            run_with_retry(op, attempts=3)
        assert len(calls) == 1

    def test_stale_data_retried(self, db_session):
        calls = []

        def op():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("conflict")
            return "ok"

        assert run_with_retry(op, attempts=3, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_operational_error_reraised_when_exhausted(self, db_session):
        def op():
            raise OperationalError("UPDATE accounts", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            run_with_retry(op, attempts=2, backoff_base=0)
