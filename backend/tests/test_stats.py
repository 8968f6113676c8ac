# Overview: Pytest coverage for atomic account aggregate updates.

import pytest
from sqlalchemy.exc import IntegrityError

from identity.services.account_service import update_profile
from identity.services.stats_service import adjust_stats, record_order, record_review, record_sale
from identity.services.visibility_service import AccountNotFoundError
from identity.validation import ValidationError


class TestAtomicIncrements:

    def test_record_order(self, db_session, buyer):
        record_order(buyer.id, 2599)
        record_order(buyer.id, 1000)

        assert buyer.total_orders == 2
        assert buyer.total_spent_cents == 3599

    def test_record_sale(self, db_session, vendor):
        record_sale(vendor.id, quantity=3, revenue_cents=4500)
        assert vendor.products_sold == 3
        assert vendor.total_sales_revenue_cents == 4500

    def test_review_average(self, db_session, vendor):
        record_review(vendor.id, 5)
        record_review(vendor.id, 4)
        record_review(vendor.id, 3)

        assert vendor.review_count == 3
        assert vendor.average_rating == pytest.approx(4.0)

    def test_rating_bounds(self, db_session, vendor):
        with pytest.raises(ValidationError):
            record_review(vendor.id, 6)
        assert vendor.review_count == 0

    def test_increment_applies_to_stored_value_not_loaded_copy(self, db_session, buyer):
        """The UPDATE adds to the row's current value, even when the loaded object is stale."""
        record_order(buyer.id, 100)
        loaded_total = buyer.total_orders

        # A second writer bumps the row without this session's object knowing
        adjust_stats(buyer.id, total_orders=5)
        record_order(buyer.id, 100)

        assert loaded_total == 1
        assert buyer.total_orders == 7

    def test_stats_do_not_bump_version(self, db_session, buyer):
        version = buyer.version_id
        record_order(buyer.id, 100)

        assert buyer.version_id == version
        # Ordinary mutations still pass their version check afterwards
        update_profile(buyer.id, {"bio": "Still here"})
        assert buyer.bio == "Still here"


class TestStatGuards:

    def test_negative_result_rejected_by_database(self, db_session, buyer):
        with pytest.raises(IntegrityError):
            adjust_stats(buyer.id, total_orders=-1)
        assert buyer.total_orders == 0

    def test_refund_within_bounds(self, db_session, buyer):
        record_order(buyer.id, 5000)
        adjust_stats(buyer.id, total_orders=-1, total_spent_cents=-5000)

        assert buyer.total_orders == 0
        assert buyer.total_spent_cents == 0

    def test_unknown_stat_rejected(self, db_session, buyer):
        with pytest.raises(ValidationError):
            adjust_stats(buyer.id, average_rating=1)

    def test_non_integer_delta_rejected(self, db_session, buyer):
        with pytest.raises(ValidationError):
            adjust_stats(buyer.id, total_orders=1.5)

    def test_negative_order_amount_rejected(self, db_session, buyer):
        with pytest.raises(ValidationError):
            record_order(buyer.id, -1)

    def test_unknown_account(self, db_session):
        with pytest.raises(AccountNotFoundError):
            record_order(987654, 100)
