# Overview: Atomic store-level updates of account aggregates for order/review collaborators.

"""
Account Statistics

WHY: Order completions and reviews for the same account arrive
concurrently. Read-modify-write in application memory would lose updates,
so every change is a single UPDATE ... SET col = col + :delta executed by
the database.

These updates leave version_id alone: they never conflict
with credential or profile edits, which only write the columns they change.
CHECK constraints on the accounts table keep every aggregate non-negative.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..extensions import db
from ..models import Account
from ..validation import ValidationError, validate_range
from .visibility_service import AccountNotFoundError


logger = logging.getLogger(__name__)

COUNTER_COLUMNS = (
    "total_orders",
    "total_spent_cents",
    "review_count",
    "products_sold",
    "total_sales_revenue_cents",
)


def _execute(account_id: int, values: dict) -> None:
    stmt = (
        update(Account)
        .where(Account.id == account_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.session.execute(stmt)
    except Exception:
        db.session.rollback()
        raise
    if result.rowcount == 0:
        db.session.rollback()
        raise AccountNotFoundError(f"Account {account_id} not found")
    db.session.commit()


def adjust_stats(account_id: int, **deltas) -> None:
    """
    Add deltas to counter columns in one statement.

    Negative deltas are allowed (refunds, cancellations); a result below
    zero violates a CHECK constraint and the database rejects it.
    """
    unknown = set(deltas) - set(COUNTER_COLUMNS)
    if unknown:
        raise ValidationError(f"Unknown stat: {', '.join(sorted(unknown))}")

    values = {}
    for column, delta in deltas.items():
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError(f"{column} delta must be an integer")
        if delta:
            values[column] = getattr(Account, column) + delta
    if not values:
        return

    _execute(account_id, values)


def record_order(account_id: int, amount_cents: int) -> None:
    """Buyer side of a completed order."""
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents < 0:
        raise ValidationError("amount_cents must be a non-negative integer")
    adjust_stats(account_id, total_orders=1, total_spent_cents=amount_cents)


def record_sale(vendor_id: int, quantity: int, revenue_cents: int) -> None:
    """Vendor side of a completed order."""
    for name, value in (("quantity", quantity), ("revenue_cents", revenue_cents)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{name} must be a non-negative integer")
    adjust_stats(vendor_id, products_sold=quantity, total_sales_revenue_cents=revenue_cents)


def record_review(vendor_id: int, rating: float) -> None:
    """
    Fold one rating into average_rating and bump review_count.

    The new average is computed from the row's current values inside the
    same UPDATE, so concurrent reviews cannot overwrite each other.
    """
    validate_range(rating, "rating", minimum=0, maximum=5)
    _execute(
        vendor_id,
        {
            "average_rating": (Account.average_rating * Account.review_count + float(rating))
            / (Account.review_count + 1),
            "review_count": Account.review_count + 1,
        },
    )
    logger.debug("review recorded account_id=%s", vendor_id)
