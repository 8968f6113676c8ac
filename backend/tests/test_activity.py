# Overview: Pytest coverage for the bounded per-account activity log.

from datetime import datetime, timedelta

from identity.models import ActivityLogEntry
from identity.services import activity_service
from identity.services.account_service import authenticate
from identity.services.activity_service import ACTIVITY_LOG_LIMIT, get_activity, log_activity
from identity.services.credential_service import request_password_reset

from conftest import PASSWORD, Clock


class TestActivityBound:
    """Only the most recent ACTIVITY_LOG_LIMIT entries survive, oldest evicted first."""

    def test_log_never_exceeds_limit(self, db_session, buyer):
        # buyer already holds the account_created entry
        for i in range(ACTIVITY_LOG_LIMIT + 5):
            log_activity(buyer, "test_event", f"event {i}")
        db_session.commit()

        assert len(buyer.activity_log) == ACTIVITY_LOG_LIMIT
        stored = db_session.query(ActivityLogEntry).filter_by(account_id=buyer.id).count()
        assert stored == ACTIVITY_LOG_LIMIT

    def test_oldest_entries_evicted_first(self, db_session, buyer, monkeypatch):
        clock = Clock(datetime(2026, 3, 1, 12, 0, 0))
        monkeypatch.setattr(activity_service, "utcnow", clock)
        for i in range(ACTIVITY_LOG_LIMIT + 5):
            clock.advance(timedelta(seconds=1))
            log_activity(buyer, "test_event", f"event {i}")
        db_session.commit()

        stamps = [e.occurred_at for e in buyer.activity_log]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == ACTIVITY_LOG_LIMIT
        assert stamps[0] == datetime(2026, 3, 1, 12, 0, 6)

        descriptions = [e.description for e in buyer.activity_log]
        assert "Registered as buyer" not in descriptions
        assert descriptions[0] == "event 5"
        assert descriptions[-1] == f"event {ACTIVITY_LOG_LIMIT + 4}"

    def test_bound_holds_across_commits(self, db_session, buyer):
        for batch in range(3):
            for i in range(40):
                log_activity(buyer, "test_event", f"batch {batch} event {i}")
            db_session.commit()

        assert len(buyer.activity_log) == ACTIVITY_LOG_LIMIT
        assert buyer.activity_log[-1].description == "batch 2 event 39"

    def test_logs_are_per_account(self, db_session, buyer, other_buyer):
        for i in range(ACTIVITY_LOG_LIMIT):
            log_activity(buyer, "test_event", f"event {i}")
        db_session.commit()

        assert len(other_buyer.activity_log) == 1


class TestActivityEntries:

    def test_append_stamps_last_activity(self, db_session, buyer):
        entry = log_activity(buyer, "profile_viewed", ip_address="192.0.2.10", user_agent="Mozilla/5.0")
        db_session.commit()

        assert entry.occurred_at is not None
        assert buyer.last_activity_at == entry.occurred_at
        assert entry.ip_address == "192.0.2.10"

    def test_get_activity_newest_first(self, db_session, buyer):
        log_activity(buyer, "first")
        log_activity(buyer, "second")
        db_session.commit()

        recent = get_activity(buyer, limit=2)
        assert [e.action for e in recent] == ["second", "first"]
        assert get_activity(buyer)[-1].action == "account_created"

    def test_login_records_request_context(self, db_session, buyer):
        authenticate(buyer.email, PASSWORD, ip_address="198.51.100.23", user_agent="curl/8.0")

        entry = get_activity(buyer, limit=1)[0]
        assert entry.action == "login"
        assert entry.ip_address == "198.51.100.23"
        assert entry.user_agent == "curl/8.0"

    def test_raw_tokens_never_logged(self, db_session, buyer):
        _, raw_token = request_password_reset(buyer.email)

        for entry in buyer.activity_log:
            assert raw_token not in (entry.description or "")
        assert buyer.activity_log[-1].action == "password_reset_requested"
