"""
Account Visibility: the single choke point for reading accounts.

WHY: Soft-deleted and deactivated accounts must never leak into normal
lookups (login, profile, vendor listings). Every read of the accounts
table goes through accounts_query(); no other module queries Account
directly.

SECURITY INVARIANTS:
1. Default reads exclude account_status == "deleted" and is_active == False
2. Seeing hidden accounts requires an explicit include_hidden=True
3. unfiltered_accounts_query() is the one named path for admin tooling
   and uniqueness checks (email stays unique across deleted accounts)

USAGE:
    from identity.services.visibility_service import accounts_query

    account = accounts_query().filter(Account.email == email).first()
    anyone = accounts_query(include_hidden=True).filter_by(id=account_id).first()
"""

from __future__ import annotations

from sqlalchemy import and_

from ..extensions import db
from ..models import Account
from ..validation import ValidationError, normalize_email


def visibility_predicate():
    """SQL predicate for accounts visible to ordinary callers."""
    return and_(
        Account.account_status != "deleted",
        Account.is_active.is_(True),
    )


def unfiltered_accounts_query():
    """
    Every account, hidden or not.

    Reserved for administrative recovery tools and uniqueness checks.
    """
    return db.session.query(Account)


def accounts_query(include_hidden: bool = False):
    """
    Base query for account lookups.

    include_hidden=False (the default) applies the visibility predicate.
    """
    if include_hidden:
        return unfiltered_accounts_query()
    return db.session.query(Account).filter(visibility_predicate())


class AccountNotFoundError(Exception):
    """Raised when no account (visible to this caller) matches a lookup."""
    pass


def get_account(account_id: int, include_hidden: bool = False) -> Account:
    account = accounts_query(include_hidden).filter(Account.id == account_id).first()
    if account is None:
        raise AccountNotFoundError(f"Account {account_id} not found")
    return account


def find_account_by_email(email: str, include_hidden: bool = False, required: bool = True) -> Account | None:
    """
    Look up by email, normalized exactly as registration stores it.

    An address that fails validation cannot belong to any account and
    counts as a miss. required=False returns None instead of raising.
    """
    try:
        normalized = normalize_email(email)
    except ValidationError:
        account = None
    else:
        account = accounts_query(include_hidden).filter(Account.email == normalized).first()
    if account is None and required:
        raise AccountNotFoundError("Account not found")
    return account
