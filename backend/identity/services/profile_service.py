"""
Profile Projector

The only form of an account handed to a non-privileged caller is
public_profile(). It starts from the full record view and drops every
secret-bearing field.
"""

from __future__ import annotations

from ..models import Account


# Removed from every public projection
PRIVATE_FIELDS = (
    "password_hash",
    "password_reset_token_digest",
    "password_reset_expires_at",
    "email_verification_token_digest",
    "email_verification_expires_at",
    "two_factor_secret",
    "activity_log",
)


def full_name(account: Account) -> str:
    return f"{account.first_name} {account.last_name}"


def account_view(account: Account) -> dict:
    """Full privileged view with the derived full_name."""
    view = account.to_dict()
    view["full_name"] = full_name(account)
    return view


def public_profile(account: Account) -> dict:
    profile = account_view(account)
    for field in PRIVATE_FIELDS:
        profile.pop(field, None)
    return profile
