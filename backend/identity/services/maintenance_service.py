# Overview: Service-layer operations for maintenance; housekeeping of stale credential state.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Account
from identity.time_utils import utcnow


def purge_expired_tokens() -> int:
    """
    Clear reset and verification slots whose expiry has passed.

    Expired tokens already fail consumption; this only drops the dead
    digests. Runs over every account, hidden ones included. Returns the
    number of slots cleared.
    """
    now = utcnow()
    cleared = 0

    reset = db.session.execute(
        update(Account)
        .where(Account.password_reset_expires_at.is_not(None), Account.password_reset_expires_at <= now)
        .values(password_reset_token_digest=None, password_reset_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    cleared += reset.rowcount

    verification = db.session.execute(
        update(Account)
        .where(Account.email_verification_expires_at.is_not(None), Account.email_verification_expires_at <= now)
        .values(email_verification_token_digest=None, email_verification_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    cleared += verification.rowcount

    db.session.commit()
    return cleared
