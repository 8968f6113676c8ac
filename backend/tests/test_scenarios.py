# Overview: End-to-end account lifecycle scenarios across services.

from datetime import datetime, timedelta

import pytest

from identity.services.account_service import register_account, soft_delete_account
from identity.services.credential_service import (
    TokenExpiredError,
    change_password,
    reset_password,
    request_password_reset,
    verify_password,
    was_password_changed_after,
)
from identity.services.verification_service import approve_vendor, register_vendor
from identity.services.visibility_service import AccountNotFoundError, find_account_by_email
from identity.time_utils import to_epoch_seconds

from conftest import TEST_ROUNDS


def _register_basic():
    return register_account(
        email="a@b.com",
        password="Secret123",
        password_confirm="Secret123",
        first_name="Alex",
        last_name="Buyer",
        rounds=TEST_ROUNDS,
    )


class TestAccountLifecycle:

    def test_registration(self, db_session):
        account = _register_basic()

        assert account.id is not None
        assert account.role == "buyer"
        assert account.account_status == "active"
        assert account.password_hash != "Secret123"
        assert verify_password(account, "Secret123")

    def test_reset_token_expires_after_ten_minutes(self, db_session, clock):
        account = _register_basic()
        _, raw_token = request_password_reset("a@b.com")

        clock.advance(timedelta(minutes=10, seconds=1))

        with pytest.raises(TokenExpiredError):
            reset_password("a@b.com", raw_token, "Secret456", "Secret456", rounds=TEST_ROUNDS)
        assert verify_password(account, "Secret123")

    def test_vendor_review(self, db_session, admin):
        vendor = register_vendor(
            email="sales@acmeshoes.com",
            password="Secret123",
            password_confirm="Secret123",
            first_name="Wile",
            last_name="Coyote",
            business_name="Acme Shoes",
            rounds=TEST_ROUNDS,
        )
        assert vendor.vendor_profile.verification_status == "pending"

        approve_vendor(vendor.id, reviewer_id=admin.id)

        assert vendor.vendor_profile.verification_status == "verified"
        assert vendor.vendor_profile.verification_date is not None

    def test_soft_deleted_account_hidden_by_email(self, db_session):
        account = _register_basic()
        soft_delete_account(account.id)

        with pytest.raises(AccountNotFoundError):
            find_account_by_email("a@b.com")
        assert find_account_by_email("a@b.com", include_hidden=True).id == account.id


class TestChangeSkewResolution:
    """The one-second backdate holds at whole-second and sub-second clock resolution."""

    def test_sub_second_change_time(self, db_session, clock):
        account = _register_basic()
        clock.now = datetime(2026, 3, 1, 12, 0, 0, 700000)

        change_password(account.id, "Secret123", "Secret456", "Secret456", rounds=TEST_ROUNDS)
        changed = account.password_changed_at

        assert changed == datetime(2026, 3, 1, 11, 59, 59, 700000)
        # Credential minted in the same wall-clock second as the change
        assert was_password_changed_after(account, to_epoch_seconds(datetime(2026, 3, 1, 12, 0, 0))) is False
        # Sub-second datetime references compare exactly
        assert was_password_changed_after(account, changed - timedelta(microseconds=1)) is True
        assert was_password_changed_after(account, changed) is False
        # Two whole seconds earlier is unambiguously stale
        assert was_password_changed_after(account, to_epoch_seconds(datetime(2026, 3, 1, 11, 59, 58))) is True
