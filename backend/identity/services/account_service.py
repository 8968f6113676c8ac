# Overview: Service-layer operations for accounts; encapsulates business logic and database work.

"""
Account Service

WHY: Registration, profile edits, address book, favorites and account
status all change the same row, so they share one mutation path
(mutate_account) that re-reads through the visibility filter, applies the
change, logs activity and commits under an optimistic version check.

LIFECYCLE:
- Created on registration (role defaults to buyer)
- Never physically removed on user-initiated deletion: account_status
  becomes "deleted", deleted_at is stamped, pending tokens are cleared
- Deleted and inactive accounts disappear from default lookups; admin
  tooling passes include_hidden=True

Validation and hashing happen here, before anything reaches the session.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Account, ShippingAddress, VendorProfile
from ..models.accounts import ACCOUNT_STATUSES, ADDRESS_LABELS, LANGUAGES, ROLES, THEMES
from ..validation import (
    DuplicateIdentityError,
    ModelValidationPolicy,
    ValidationError,
    normalize_email,
    normalize_phone,
    require_text,
    validate_choice,
    validate_payload,
)
from .activity_service import log_activity
from .concurrency import DEFAULT_ATTEMPTS, run_with_retry
from .credential_service import (
    DEFAULT_BCRYPT_ROUNDS,
    TokenSlot,
    clear_token_slot,
    set_password,
    verify_password,
)
from .visibility_service import (
    AccountNotFoundError,  # noqa: F401  re-exported for callers
    accounts_query,
    find_account_by_email,
    get_account,
    unfiltered_accounts_query,
)
from identity.time_utils import utcnow


logger = logging.getLogger(__name__)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"first_name", "last_name", "phone", "bio", "profile_image"},
)


# =============================================================================
# LOOKUPS
# =============================================================================


def list_accounts(
    *,
    role: str | None = None,
    status: str | None = None,
    include_hidden: bool = False,
) -> list[Account]:
    query = accounts_query(include_hidden)
    if role is not None:
        query = query.filter(Account.role == validate_choice(role, ROLES, "role"))
    if status is not None:
        query = query.filter(Account.account_status == validate_choice(status, ACCOUNT_STATUSES, "account_status"))
    return query.order_by(Account.created_at.desc(), Account.id.desc()).all()


def _ensure_email_available(email: str, exclude_account_id: int | None = None) -> None:
    # Unfiltered: a deleted account still owns its email
    query = unfiltered_accounts_query().filter(Account.email == email)
    if exclude_account_id is not None:
        query = query.filter(Account.id != exclude_account_id)
    if query.first() is not None:
        raise DuplicateIdentityError("An account with that email already exists")


def _is_unique_violation(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed", PostgreSQL: "violates unique constraint"
    return "unique" in str(exc.orig).lower()


def commit_or_conflict() -> None:
    """Commit; a unique-key collision becomes DuplicateIdentityError, other integrity errors propagate."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if not _is_unique_violation(exc):
            raise
        raise DuplicateIdentityError("Email or registration number already in use") from exc


# =============================================================================
# REGISTRATION & AUTHENTICATION
# =============================================================================


def build_account(
    *,
    email: str,
    password: str,
    password_confirm: str,
    first_name: str,
    last_name: str,
    role: str = "buyer",
    phone: str | None = None,
    bio: str | None = None,
    profile_image: str | None = None,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
) -> Account:
    """
    Validate input and return a new, unsaved Account with its password hashed.

    Order: validate fields -> check uniqueness -> hash password.
    password_confirm is only compared; it is not kept anywhere.
    """
    role = validate_choice(role, ROLES, "role")
    email = normalize_email(email)
    first_name = require_text(first_name, "First name")
    last_name = require_text(last_name, "Last name")
    phone = normalize_phone(phone)
    patch = validate_payload(
        model=Account,
        payload={"bio": bio, "profile_image": profile_image},
        policy=PROFILE_POLICY,
    )

    _ensure_email_available(email)

    account = Account(
        email=email,
        role=role,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        bio=patch["bio"],
        profile_image=patch["profile_image"],
        is_active=True,
        account_status="active",
        favorite_product_ids=[],
        favorite_vendor_ids=[],
    )
    set_password(account, password, password_confirm, rounds=rounds)
    return account


def register_account(
    *,
    email: str,
    password: str,
    password_confirm: str,
    first_name: str,
    last_name: str,
    role: str = "buyer",
    phone: str | None = None,
    bio: str | None = None,
    profile_image: str | None = None,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Account:
    """
    Create and persist a new account.

    A vendor registered here starts with an empty, pending vendor profile;
    verification_service.register_vendor takes business details up front.

    Raises:
        ValidationError: malformed email, weak or mismatched password, bad field
        DuplicateIdentityError: email already registered (deleted accounts included)
    """
    account = build_account(
        email=email,
        password=password,
        password_confirm=password_confirm,
        first_name=first_name,
        last_name=last_name,
        role=role,
        phone=phone,
        bio=bio,
        profile_image=profile_image,
        rounds=rounds,
    )
    if account.role == "vendor":
        account.vendor_profile = VendorProfile(verification_status="pending", categories=[])

    db.session.add(account)
    log_activity(account, "account_created", f"Registered as {account.role}", ip_address, user_agent)
    commit_or_conflict()

    logger.info("account registered account_id=%s role=%s", account.id, account.role)
    return account


def authenticate(
    email: str,
    password: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    attempts: int = DEFAULT_ATTEMPTS,
) -> Account | None:
    """
    Check credentials for a visible, active-status account.

    Returns the account on success (last_login_at stamped), None otherwise.
    Failed attempts against a known account are recorded in its activity log.
    """
    def _op():
        account = find_account_by_email(email, required=False)
        if account is None:
            return None

        if not verify_password(account, password):
            log_activity(account, "login_failed", "Invalid credentials", ip_address, user_agent)
            db.session.commit()
            return None

        if account.account_status != "active":
            log_activity(account, "login_blocked", f"Account is {account.account_status}", ip_address, user_agent)
            db.session.commit()
            return None

        account.last_login_at = utcnow()
        log_activity(account, "login", "Logged in", ip_address, user_agent)
        db.session.commit()
        return account

    account = run_with_retry(_op, attempts=attempts)
    if account is None:
        logger.info("authentication failed")
    return account


# =============================================================================
# MUTATIONS
# =============================================================================


def mutate_account(
    account_id: int,
    mutator,
    *,
    action: str | None = None,
    description: str | None = None,
    include_hidden: bool = False,
    attempts: int = DEFAULT_ATTEMPTS,
    ip_address: str | None = None,
    user_agent: str | None = None,
):
    """
    Re-read the account, apply mutator(account), log and commit.

    Retries the whole unit on a version conflict. Returns whatever the
    mutator returns, or the account when the mutator returns None.
    """
    def _op():
        account = get_account(account_id, include_hidden=include_hidden)
        result = mutator(account)
        if action is not None:
            log_activity(account, action, description, ip_address, user_agent)
        commit_or_conflict()
        return account if result is None else result

    return run_with_retry(_op, attempts=attempts)


def update_profile(account_id: int, fields: dict, **context) -> Account:
    """Patch first_name, last_name, phone, bio and profile_image."""
    patch = validate_payload(model=Account, payload=fields, policy=PROFILE_POLICY)
    if "phone" in patch:
        patch["phone"] = normalize_phone(patch["phone"])

    def _apply(account):
        for key, value in patch.items():
            setattr(account, key, value)

    return mutate_account(
        account_id,
        _apply,
        action="profile_updated",
        description=f"Updated {', '.join(sorted(patch))}" if patch else "No changes",
        **context,
    )


def change_email(account_id: int, new_email: str, **context) -> Account:
    """Switch email; verification starts over."""
    email = normalize_email(new_email)

    def _apply(account):
        _ensure_email_available(email, exclude_account_id=account.id)
        account.email = email
        account.email_verified = False
        clear_token_slot(account, TokenSlot.EMAIL_VERIFICATION)

    return mutate_account(account_id, _apply, action="email_changed", description="Email address changed", **context)


def update_preferences(account_id: int, **preferences) -> Account:
    cleaned = {}
    for key in ("newsletter", "marketing_emails", "order_notifications"):
        if key in preferences:
            if not isinstance(preferences[key], bool):
                raise ValidationError(f"{key} must be true or false")
            cleaned[key] = preferences.pop(key)
    if "language" in preferences:
        cleaned["language"] = validate_choice(preferences.pop("language"), LANGUAGES, "language")
    if "theme" in preferences:
        cleaned["theme"] = validate_choice(preferences.pop("theme"), THEMES, "theme")
    if "currency" in preferences:
        currency = str(preferences.pop("currency") or "").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError("currency must be a 3-letter code")
        cleaned["currency"] = currency
    if preferences:
        raise ValidationError(f"Unknown preference: {', '.join(sorted(preferences))}")

    def _apply(account):
        for key, value in cleaned.items():
            setattr(account, key, value)

    return mutate_account(account_id, _apply, action="preferences_updated")


# =============================================================================
# ADDRESSES
# =============================================================================


def set_primary_address(
    account_id: int,
    *,
    street: str | None = None,
    city: str | None = None,
    state: str | None = None,
    postal_code: str | None = None,
    country: str | None = None,
    is_default: bool = False,
) -> Account:
    def _apply(account):
        account.address_street = street
        account.address_city = city
        account.address_state = state
        account.address_postal_code = postal_code
        account.address_country = country
        account.address_is_default = bool(is_default)

    return mutate_account(account_id, _apply, action="address_updated", description="Primary address updated")


def add_shipping_address(
    account_id: int,
    *,
    label: str = "home",
    street: str | None = None,
    city: str | None = None,
    state: str | None = None,
    postal_code: str | None = None,
    country: str | None = None,
    phone: str | None = None,
    is_default: bool = False,
) -> ShippingAddress:
    label = validate_choice(label, ADDRESS_LABELS, "label")
    phone = normalize_phone(phone)

    def _apply(account):
        if is_default:
            for existing in account.shipping_addresses:
                existing.is_default = False
        address = ShippingAddress(
            label=label,
            street=street,
            city=city,
            state=state,
            postal_code=postal_code,
            country=country,
            phone=phone,
            is_default=bool(is_default),
        )
        account.shipping_addresses.append(address)
        return address

    return mutate_account(account_id, _apply, action="shipping_address_added", description=f"Added {label} address")


def _find_shipping_address(account: Account, address_id: int) -> ShippingAddress:
    for address in account.shipping_addresses:
        if address.id == address_id:
            return address
    raise ValidationError(f"Shipping address {address_id} not found")


def remove_shipping_address(account_id: int, address_id: int) -> Account:
    def _apply(account):
        account.shipping_addresses.remove(_find_shipping_address(account, address_id))

    return mutate_account(account_id, _apply, action="shipping_address_removed")


def set_default_shipping_address(account_id: int, address_id: int) -> Account:
    def _apply(account):
        target = _find_shipping_address(account, address_id)
        for address in account.shipping_addresses:
            address.is_default = address is target

    return mutate_account(account_id, _apply, action="shipping_address_default")


# =============================================================================
# FAVORITES (weak references: plain ids, no existence checks)
# =============================================================================


def _toggle_reference(account_id: int, column: str, ref_id: int, present: bool) -> Account:
    if isinstance(ref_id, bool) or not isinstance(ref_id, int):
        raise ValidationError("Reference id must be an integer")

    def _apply(account):
        current = list(getattr(account, column) or [])
        if present and ref_id not in current:
            current.append(ref_id)
        elif not present and ref_id in current:
            current.remove(ref_id)
        # Reassign so the JSON column is flagged dirty
        setattr(account, column, current)

    return mutate_account(account_id, _apply)


def add_favorite_product(account_id: int, product_id: int) -> Account:
    return _toggle_reference(account_id, "favorite_product_ids", product_id, True)


def remove_favorite_product(account_id: int, product_id: int) -> Account:
    return _toggle_reference(account_id, "favorite_product_ids", product_id, False)


def add_favorite_vendor(account_id: int, vendor_account_id: int) -> Account:
    return _toggle_reference(account_id, "favorite_vendor_ids", vendor_account_id, True)


def remove_favorite_vendor(account_id: int, vendor_account_id: int) -> Account:
    return _toggle_reference(account_id, "favorite_vendor_ids", vendor_account_id, False)


# =============================================================================
# STATUS
# =============================================================================


def _clear_pending_tokens(account: Account) -> None:
    for slot in TokenSlot:
        clear_token_slot(account, slot)


def soft_delete_account(account_id: int, **context) -> Account:
    """User-initiated deletion. The row stays for order history."""
    def _apply(account):
        account.account_status = "deleted"
        account.deleted_at = utcnow()
        _clear_pending_tokens(account)

    account = mutate_account(account_id, _apply, action="account_deleted", description="Account deleted", **context)
    logger.info("account soft-deleted account_id=%s", account_id)
    return account


def restore_account(account_id: int, **context) -> Account:
    """Admin recovery of a soft-deleted account."""
    def _apply(account):
        if account.account_status != "deleted":
            raise ValidationError("Only deleted accounts can be restored")
        account.account_status = "active"
        account.deleted_at = None

    account = mutate_account(
        account_id, _apply, action="account_restored", description="Account restored",
        include_hidden=True, **context,
    )
    logger.info("account restored account_id=%s", account_id)
    return account


def suspend_account(account_id: int, reason: str, **context) -> Account:
    reason = require_text(reason, "Suspension reason")

    def _apply(account):
        if account.account_status != "active":
            raise ValidationError(f"Cannot suspend an account that is {account.account_status}")
        account.account_status = "suspended"
        account.suspension_reason = reason
        account.suspended_at = utcnow()

    account = mutate_account(account_id, _apply, action="account_suspended", description=reason, **context)
    logger.info("account suspended account_id=%s", account_id)
    return account


def reinstate_account(account_id: int, **context) -> Account:
    def _apply(account):
        if account.account_status != "suspended":
            raise ValidationError("Only suspended accounts can be reinstated")
        account.account_status = "active"
        account.suspension_reason = None
        account.suspended_at = None

    return mutate_account(account_id, _apply, action="account_reinstated", description="Suspension lifted", **context)


def archive_account(account_id: int, **context) -> Account:
    def _apply(account):
        if account.account_status == "deleted":
            raise ValidationError("Deleted accounts cannot be archived")
        account.account_status = "archived"

    return mutate_account(account_id, _apply, action="account_archived", description="Account archived", **context)


def set_account_active(account_id: int, active: bool, **context) -> Account:
    def _apply(account):
        account.is_active = bool(active)

    return mutate_account(
        account_id,
        _apply,
        action="account_activated" if active else "account_deactivated",
        include_hidden=True,
        **context,
    )
