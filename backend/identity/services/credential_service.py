# Overview: Service-layer operations for credentials; password hashing and single-use tokens.

"""
Credential Manager

WHY: Every credential an account holds (password, reset token, email
verification token) is handled here so the rules live in one place.

SECURITY NOTES:
- Passwords hashed with bcrypt; cost factor is an explicit argument
- Minimum 8 characters, maximum 72 bytes (bcrypt hard limit)
- The confirmation value is only compared, never stored
- Tokens are 32 random bytes; only their SHA-256 digest is persisted
- A raw token is returned exactly once, to the immediate caller, and is
  never logged
- One pending token per slot: issuing a new one replaces the old digest
- A password change stamps password_changed_at one second in the past so
  credentials issued in the same instant count as pre-change
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt

from ..extensions import db
from ..models import Account
from ..validation import ValidationError
from .activity_service import log_activity
from .concurrency import DEFAULT_ATTEMPTS, run_with_retry
from .visibility_service import find_account_by_email, get_account
from identity.time_utils import to_epoch_seconds, utcnow


logger = logging.getLogger(__name__)

# Configuration constants
PASSWORD_MIN_LENGTH = 8
MAX_BCRYPT_BYTES = 72
DEFAULT_BCRYPT_ROUNDS = 12
PASSWORD_CHANGE_SKEW = timedelta(seconds=1)
PASSWORD_RESET_TTL = timedelta(minutes=10)
EMAIL_VERIFICATION_TTL = timedelta(hours=24)
TOKEN_BYTES = 32


class TokenSlot(str, enum.Enum):
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


# slot -> (digest column, expiry column)
_SLOT_COLUMNS = {
    TokenSlot.PASSWORD_RESET: ("password_reset_token_digest", "password_reset_expires_at"),
    TokenSlot.EMAIL_VERIFICATION: ("email_verification_token_digest", "email_verification_expires_at"),
}


class TokenError(Exception):
    """Base class for token consumption failures."""
    pass


class TokenAbsentError(TokenError):
    """No token is pending in this slot (never issued, or already used)."""
    pass


class TokenInvalidError(TokenError):
    """The presented token does not match the pending one."""
    pass


class TokenExpiredError(TokenError):
    """The pending token matched but its expiry has passed."""
    pass


# =============================================================================
# PASSWORDS
# =============================================================================


def validate_password(password, confirmation) -> None:
    """
    Raise ValidationError unless password is acceptable and confirmed.

    Requirements:
    - A string of at least PASSWORD_MIN_LENGTH characters
    - At most MAX_BCRYPT_BYTES bytes once UTF-8 encoded
    - Equal to confirmation
    """
    if not isinstance(password, str) or not password:
        raise ValidationError("Please provide a password")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        raise ValidationError(f"Password too long (max {MAX_BCRYPT_BYTES} bytes)")
    if confirmation is None:
        raise ValidationError("Please confirm your password")
    if not hmac.compare_digest(password.encode("utf-8"), str(confirmation).encode("utf-8")):
        raise ValidationError("Passwords do not match")


def hash_password(password: str, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Salted bcrypt hash, stored as a string."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def set_password(
    account: Account,
    password: str,
    confirmation: str,
    *,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
) -> None:
    """
    Validate, hash and store a new password on account.

    For an account that already exists, password_changed_at is stamped
    PASSWORD_CHANGE_SKEW in the past and any pending reset token is
    cleared. New (never persisted) accounts get no change timestamp.

    Does not commit.
    """
    validate_password(password, confirmation)
    account.password_hash = hash_password(password, rounds=rounds)

    if account.id is not None:
        account.password_changed_at = utcnow() - PASSWORD_CHANGE_SKEW
        clear_token_slot(account, TokenSlot.PASSWORD_RESET)


def verify_password(account: Account, candidate) -> bool:
    """
    Constant-time check of candidate against the stored bcrypt hash.

    Returns False on mismatch. Raises ValidationError only when candidate
    is not a string.
    """
    if not isinstance(candidate, str):
        raise ValidationError("Password must be a string")
    encoded = candidate.encode("utf-8")
    # bcrypt rejects inputs past its limit; such a candidate cannot match
    if len(encoded) > MAX_BCRYPT_BYTES:
        return False
    return bcrypt.checkpw(encoded, account.password_hash.encode("utf-8"))


def was_password_changed_after(account: Account, reference) -> bool:
    """
    True iff the password was changed strictly after reference.

    reference is a datetime (naive = UTC) or epoch seconds, e.g. a JWT
    "iat" claim. Epoch references are compared at whole-second resolution.
    Always False for an account whose password never changed.
    """
    changed_at = account.password_changed_at
    if changed_at is None:
        return False

    if isinstance(reference, datetime):
        if reference.tzinfo is not None:
            reference = reference.astimezone(timezone.utc).replace(tzinfo=None)
        return changed_at > reference

    return int(reference) < to_epoch_seconds(changed_at)


# =============================================================================
# SINGLE-USE TOKENS
# =============================================================================


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Sent to the caller, never stored."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """
    SHA-256 hex digest for storage.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def clear_token_slot(account: Account, slot: TokenSlot) -> None:
    """Forget any pending token in slot. Does not commit."""
    digest_attr, expires_attr = _SLOT_COLUMNS[slot]
    setattr(account, digest_attr, None)
    setattr(account, expires_attr, None)


def _issue_token(account: Account, slot: TokenSlot, ttl: timedelta) -> str:
    digest_attr, expires_attr = _SLOT_COLUMNS[slot]
    raw_token = generate_token()
    setattr(account, digest_attr, hash_token(raw_token))
    setattr(account, expires_attr, utcnow() + ttl)
    logger.info("%s token issued account_id=%s", slot.value, account.id)
    return raw_token


def issue_password_reset_token(account: Account, *, ttl: timedelta = PASSWORD_RESET_TTL) -> str:
    """Replace the reset slot with a fresh token. Returns the raw value. Does not commit."""
    return _issue_token(account, TokenSlot.PASSWORD_RESET, ttl)


def issue_email_verification_token(account: Account, *, ttl: timedelta = EMAIL_VERIFICATION_TTL) -> str:
    """Replace the verification slot with a fresh token. Returns the raw value. Does not commit."""
    return _issue_token(account, TokenSlot.EMAIL_VERIFICATION, ttl)


def consume_token(account: Account, raw_token, slot) -> None:
    """
    Check raw_token against the pending token in slot and clear the slot.

    Raises:
        TokenAbsentError: nothing pending (never issued or already consumed)
        TokenInvalidError: digest mismatch
        TokenExpiredError: token matched but expiry has passed

    Does not commit.
    """
    slot = TokenSlot(slot)
    digest_attr, expires_attr = _SLOT_COLUMNS[slot]

    stored_digest = getattr(account, digest_attr)
    if not stored_digest:
        raise TokenAbsentError(f"No {slot.value} token is pending")

    if not isinstance(raw_token, str) or not hmac.compare_digest(hash_token(raw_token), stored_digest):
        raise TokenInvalidError(f"Invalid {slot.value} token")

    expires_at = getattr(account, expires_attr)
    if expires_at is None or expires_at <= utcnow():
        raise TokenExpiredError(f"{slot.value} token has expired")

    clear_token_slot(account, slot)


# =============================================================================
# WORKFLOWS (commit, log activity, retry on version conflict)
# =============================================================================


def change_password(
    account_id: int,
    current_password: str,
    new_password: str,
    confirmation: str,
    *,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ip_address: str | None = None,
    user_agent: str | None = None,
    attempts: int = DEFAULT_ATTEMPTS,
) -> Account:
    """Change password after re-checking the current one."""
    def _op():
        account = get_account(account_id)
        if not verify_password(account, current_password):
            raise ValidationError("Current password is incorrect")
        set_password(account, new_password, confirmation, rounds=rounds)
        log_activity(account, "password_changed", "Password changed", ip_address, user_agent)
        db.session.commit()
        return account

    account = run_with_retry(_op, attempts=attempts)
    logger.info("password changed account_id=%s", account.id)
    return account


def request_password_reset(
    email: str,
    *,
    ttl: timedelta = PASSWORD_RESET_TTL,
    ip_address: str | None = None,
    user_agent: str | None = None,
    attempts: int = DEFAULT_ATTEMPTS,
) -> tuple[Account, str] | None:
    """
    Issue a reset token for the visible account with this email.

    Returns (account, raw_token), or None when no visible account matches,
    so callers can answer identically either way.
    """
    def _op():
        account = find_account_by_email(email, required=False)
        if account is None:
            return None
        raw_token = issue_password_reset_token(account, ttl=ttl)
        log_activity(account, "password_reset_requested", "Password reset requested", ip_address, user_agent)
        db.session.commit()
        return account, raw_token

    result = run_with_retry(_op, attempts=attempts)
    if result is None:
        logger.info("password reset requested for unknown email")
    return result


def reset_password(
    email: str,
    raw_token: str,
    new_password: str,
    confirmation: str,
    *,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ip_address: str | None = None,
    user_agent: str | None = None,
    attempts: int = DEFAULT_ATTEMPTS,
) -> Account:
    """Consume a reset token and set the new password in one transaction."""
    def _op():
        account = find_account_by_email(email, required=False)
        if account is None:
            raise TokenInvalidError("Invalid password_reset token")
        consume_token(account, raw_token, TokenSlot.PASSWORD_RESET)
        set_password(account, new_password, confirmation, rounds=rounds)
        log_activity(account, "password_reset", "Password reset with emailed token", ip_address, user_agent)
        db.session.commit()
        return account

    try:
        account = run_with_retry(_op, attempts=attempts)
    except TokenError as exc:
        logger.warning("password reset rejected: %s", exc.__class__.__name__)
        raise
    logger.info("password reset completed account_id=%s", account.id)
    return account


def request_email_verification(
    account_id: int,
    *,
    ttl: timedelta = EMAIL_VERIFICATION_TTL,
    attempts: int = DEFAULT_ATTEMPTS,
) -> tuple[Account, str]:
    def _op():
        account = get_account(account_id)
        if account.email_verified:
            raise ValidationError("Email is already verified")
        raw_token = issue_email_verification_token(account, ttl=ttl)
        log_activity(account, "email_verification_requested", "Verification email requested")
        db.session.commit()
        return account, raw_token

    return run_with_retry(_op, attempts=attempts)


def verify_email(account_id: int, raw_token: str, *, attempts: int = DEFAULT_ATTEMPTS) -> Account:
    def _op():
        account = get_account(account_id)
        consume_token(account, raw_token, TokenSlot.EMAIL_VERIFICATION)
        account.email_verified = True
        log_activity(account, "email_verified", f"Verified {account.email}")
        db.session.commit()
        return account

    return run_with_retry(_op, attempts=attempts)


def enable_two_factor(account_id: int, secret: str, *, attempts: int = DEFAULT_ATTEMPTS) -> Account:
    """Store the two-factor secret slot and flip the flag. The verification flow lives elsewhere."""
    if not secret or not str(secret).strip():
        raise ValidationError("Two-factor secret is required")

    def _op():
        account = get_account(account_id)
        account.two_factor_secret = str(secret).strip()
        account.two_factor_enabled = True
        log_activity(account, "two_factor_enabled", "Two-factor authentication enabled")
        db.session.commit()
        return account

    return run_with_retry(_op, attempts=attempts)


def disable_two_factor(account_id: int, *, attempts: int = DEFAULT_ATTEMPTS) -> Account:
    def _op():
        account = get_account(account_id)
        account.two_factor_secret = None
        account.two_factor_enabled = False
        log_activity(account, "two_factor_disabled", "Two-factor authentication disabled")
        db.session.commit()
        return account

    return run_with_retry(_op, attempts=attempts)
