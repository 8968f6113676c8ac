# Overview: Service-layer operations for vendor verification; a small admin-driven state machine.

"""
Vendor Verification Workflow

WHY: Vendors sell only after an administrator has reviewed their business
details and documents. The review outcome is a one-way decision.

STATES:
    pending  -> verified   (approve_vendor)
    pending  -> rejected   (reject_vendor)
    verified -> pending    (reset_verification, admin re-review only)
    rejected -> pending    (reset_verification, admin re-review only)

Any other transition is a programming error and raises
VerificationTransitionError. Entering verified or rejected stamps
verification_date. Documents are append-only and accepted only while
the profile is pending.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Account, VendorProfile, VerificationDocument
from ..models.vendors import BANK_ACCOUNT_TYPES, BUSINESS_TYPES, DEFAULT_COMMISSION_RATE, VERIFICATION_STATUSES
from ..validation import (
    DuplicateIdentityError,
    ValidationError,
    normalize_url,
    require_text,
    validate_choice,
    validate_range,
)
from .account_service import build_account, commit_or_conflict, mutate_account
from .activity_service import log_activity
from .credential_service import DEFAULT_BCRYPT_ROUNDS
from .visibility_service import accounts_query
from identity.time_utils import utcnow


logger = logging.getLogger(__name__)

# Normal (non-admin-reset) transitions
VERIFICATION_TRANSITIONS = {
    "pending": {"verified", "rejected"},
    "verified": set(),
    "rejected": set(),
}

VENDOR_DETAIL_FIELDS = (
    "business_registration",
    "registration_number",
    "business_type",
    "tax_id",
    "business_license",
    "years_in_business",
    "website_url",
    "categories",
    "commission_rate",
    "bank_name",
    "account_holder_name",
    "bank_account_number",
    "routing_number",
    "bank_account_type",
)


class VerificationTransitionError(RuntimeError):
    """Raised on an illegal verification state change."""
    pass


def _clean_vendor_details(details: dict) -> dict:
    unknown = set(details) - set(VENDOR_DETAIL_FIELDS) - {"business_name"}
    if unknown:
        raise ValidationError(f"Unknown vendor field: {', '.join(sorted(unknown))}")

    cleaned: dict = {}
    for key, value in details.items():
        if key == "business_name":
            cleaned[key] = require_text(value, "Business name")
        elif key == "business_type":
            cleaned[key] = validate_choice(value, BUSINESS_TYPES, "business_type")
        elif key == "years_in_business":
            if value is not None:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValidationError("years_in_business must be an integer")
                validate_range(value, "years_in_business", minimum=0)
            cleaned[key] = value
        elif key == "website_url":
            cleaned[key] = normalize_url(value, "website URL")
        elif key == "commission_rate":
            cleaned[key] = float(validate_range(value, "commission_rate", minimum=0, maximum=100))
        elif key == "categories":
            if value is None:
                value = []
            if not isinstance(value, (list, tuple)) or not all(isinstance(c, str) for c in value):
                raise ValidationError("categories must be a list of strings")
            cleaned[key] = [c.strip() for c in value if c.strip()]
        elif key == "bank_account_type":
            cleaned[key] = None if value is None else validate_choice(value, BANK_ACCOUNT_TYPES, "bank_account_type")
        else:
            cleaned[key] = value.strip() if isinstance(value, str) and value.strip() else None
    return cleaned


def _ensure_registration_number_available(number: str | None, exclude_profile_id: int | None = None) -> None:
    if not number:
        return
    query = db.session.query(VendorProfile).filter(VendorProfile.registration_number == number)
    if exclude_profile_id is not None:
        query = query.filter(VendorProfile.id != exclude_profile_id)
    if query.first() is not None:
        raise DuplicateIdentityError(f"Registration number '{number}' is already registered")


def _require_vendor_profile(account: Account) -> VendorProfile:
    if account.role != "vendor" or account.vendor_profile is None:
        raise ValidationError("Account is not a vendor")
    return account.vendor_profile


# =============================================================================
# VENDOR PROFILES
# =============================================================================


def register_vendor(
    *,
    email: str,
    password: str,
    password_confirm: str,
    first_name: str,
    last_name: str,
    business_name: str,
    phone: str | None = None,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ip_address: str | None = None,
    user_agent: str | None = None,
    **vendor_details,
) -> Account:
    """
    Register a new vendor account with a pending vendor profile.

    Raises:
        ValidationError: bad account or vendor field
        DuplicateIdentityError: email or registration number already taken
    """
    details = _clean_vendor_details({"business_name": business_name, **vendor_details})
    details.setdefault("commission_rate", DEFAULT_COMMISSION_RATE)
    details.setdefault("categories", [])
    _ensure_registration_number_available(details.get("registration_number"))

    account = build_account(
        email=email,
        password=password,
        password_confirm=password_confirm,
        first_name=first_name,
        last_name=last_name,
        role="vendor",
        phone=phone,
        rounds=rounds,
    )
    account.vendor_profile = VendorProfile(verification_status="pending", **details)

    db.session.add(account)
    log_activity(account, "account_created", f"Registered vendor {details['business_name']}", ip_address, user_agent)
    commit_or_conflict()

    logger.info("vendor registered account_id=%s", account.id)
    return account


def create_vendor_profile(account_id: int, business_name: str, **vendor_details) -> Account:
    """Promote an existing buyer to vendor. The new profile starts pending."""
    details = _clean_vendor_details({"business_name": business_name, **vendor_details})
    details.setdefault("commission_rate", DEFAULT_COMMISSION_RATE)
    details.setdefault("categories", [])

    def _apply(account):
        if account.vendor_profile is not None:
            raise ValidationError("Account already has a vendor profile")
        if account.role == "admin":
            raise ValidationError("Admin accounts cannot become vendors")
        _ensure_registration_number_available(details.get("registration_number"))
        account.role = "vendor"
        account.vendor_profile = VendorProfile(verification_status="pending", **details)

    return mutate_account(account_id, _apply, action="vendor_profile_created", description=details["business_name"])


def update_vendor_profile(account_id: int, **vendor_details) -> Account:
    """Edit business details. Verification status is not writable here."""
    details = _clean_vendor_details(vendor_details)

    def _apply(account):
        profile = _require_vendor_profile(account)
        if "registration_number" in details:
            _ensure_registration_number_available(details["registration_number"], exclude_profile_id=profile.id)
        for key, value in details.items():
            setattr(profile, key, value)

    return mutate_account(
        account_id,
        _apply,
        action="vendor_profile_updated",
        description=f"Updated {', '.join(sorted(details))}" if details else "No changes",
    )


def add_verification_document(account_id: int, document_type: str, document_url: str) -> VerificationDocument:
    """Append a document while the profile awaits a decision."""
    document_type = require_text(document_type, "Document type")
    document_url = require_text(document_url, "Document location")

    def _apply(account):
        profile = _require_vendor_profile(account)
        if profile.verification_status != "pending":
            raise ValidationError("Documents cannot be added after a verification decision")
        document = VerificationDocument(document_type=document_type, document_url=document_url)
        profile.documents.append(document)
        return document

    return mutate_account(
        account_id, _apply, action="verification_document_added", description=document_type,
    )


# =============================================================================
# STATE MACHINE
# =============================================================================


def _transition(account_id: int, target: str, *, note: str | None, reviewer_id: int | None, **context) -> Account:
    def _apply(account):
        profile = _require_vendor_profile(account)
        current = profile.verification_status
        if target not in VERIFICATION_TRANSITIONS[current]:
            raise VerificationTransitionError(
                f"Cannot move vendor verification from {current} to {target}"
            )
        profile.verification_status = target
        profile.verification_date = utcnow()
        profile.review_note = note

    description = f"Verification {target}"
    if reviewer_id is not None:
        description += f" by admin {reviewer_id}"
    account = mutate_account(account_id, _apply, action=f"vendor_{target}", description=description, **context)
    logger.info("vendor verification %s account_id=%s reviewer_id=%s", target, account_id, reviewer_id)
    return account


def approve_vendor(account_id: int, *, reviewer_id: int | None = None, note: str | None = None, **context) -> Account:
    return _transition(account_id, "verified", note=note, reviewer_id=reviewer_id, **context)


def reject_vendor(account_id: int, reason: str, *, reviewer_id: int | None = None, **context) -> Account:
    reason = require_text(reason, "Rejection reason")
    return _transition(account_id, "rejected", note=reason, reviewer_id=reviewer_id, **context)


def reset_verification(account_id: int, *, reviewer_id: int | None = None, note: str | None = None, **context) -> Account:
    """Admin re-review: move a decided profile back to pending."""
    def _apply(account):
        profile = _require_vendor_profile(account)
        if profile.verification_status == "pending":
            raise VerificationTransitionError("Verification is already pending")
        profile.verification_status = "pending"
        profile.verification_date = None
        profile.review_note = note

    account = mutate_account(
        account_id, _apply, action="vendor_verification_reset",
        description=f"Reset for re-review by admin {reviewer_id}" if reviewer_id is not None else "Reset for re-review",
        **context,
    )
    logger.info("vendor verification reset account_id=%s reviewer_id=%s", account_id, reviewer_id)
    return account


def list_vendors_by_status(status: str, include_hidden: bool = False) -> list[Account]:
    status = validate_choice(status, VERIFICATION_STATUSES, "verification_status")
    return (
        accounts_query(include_hidden)
        .join(VendorProfile, VendorProfile.account_id == Account.id)
        .filter(Account.role == "vendor", VendorProfile.verification_status == status)
        .order_by(VendorProfile.created_at, Account.id)
        .all()
    )
