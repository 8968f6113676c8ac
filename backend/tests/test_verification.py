# Overview: Pytest coverage for vendor profiles and the verification state machine.

"""
Vendor Verification Tests

Proves the review workflow is a one-way decision:
    pending -> verified | rejected
and that only reset_verification returns a decided vendor to pending.
"""

import pytest

from identity.models.vendors import DEFAULT_COMMISSION_RATE
from identity.services.account_service import register_account, soft_delete_account
from identity.services.verification_service import (
    VerificationTransitionError,
    add_verification_document,
    approve_vendor,
    create_vendor_profile,
    list_vendors_by_status,
    register_vendor,
    reject_vendor,
    reset_verification,
    update_vendor_profile,
)
from identity.validation import DuplicateIdentityError, ValidationError

from conftest import PASSWORD, TEST_ROUNDS


class TestVendorRegistration:

    def test_new_vendor_is_pending(self, db_session, vendor):
        profile = vendor.vendor_profile

        assert vendor.role == "vendor"
        assert profile.verification_status == "pending"
        assert profile.verification_date is None
        assert profile.commission_rate == DEFAULT_COMMISSION_RATE
        assert profile.categories == ["home", "garden"]
        assert profile.documents == []

    def test_vendor_role_via_register_account(self, db_session):
        account = register_account(
            email="solo@makers.io",
            password=PASSWORD,
            password_confirm=PASSWORD,
            first_name="Solo",
            last_name="Maker",
            role="vendor",
            rounds=TEST_ROUNDS,
        )
        assert account.vendor_profile.verification_status == "pending"

    def test_duplicate_registration_number(self, db_session, vendor):
        with pytest.raises(DuplicateIdentityError):
            register_vendor(
                email="copy@makers.io",
                password=PASSWORD,
                password_confirm=PASSWORD,
                first_name="Copy",
                last_name="Cat",
                business_name="Copy Works",
                registration_number="REG-1001",
                rounds=TEST_ROUNDS,
            )

    def test_business_name_required(self, db_session):
        with pytest.raises(ValidationError):
            register_vendor(
                email="blank@makers.io",
                password=PASSWORD,
                password_confirm=PASSWORD,
                first_name="Blank",
                last_name="Name",
                business_name="   ",
                rounds=TEST_ROUNDS,
            )

    def test_commission_rate_bounds(self, db_session, vendor):
        with pytest.raises(ValidationError):
            update_vendor_profile(vendor.id, commission_rate=150)
        update_vendor_profile(vendor.id, commission_rate=12.5)
        assert vendor.vendor_profile.commission_rate == 12.5

    def test_verification_status_not_editable(self, db_session, vendor):
        with pytest.raises(ValidationError):
            update_vendor_profile(vendor.id, verification_status="verified")
        assert vendor.vendor_profile.verification_status == "pending"

    def test_update_details(self, db_session, vendor):
        update_vendor_profile(
            vendor.id,
            website_url="https://craftworks.io",
            years_in_business=4,
            bank_account_type="checking",
        )
        profile = vendor.vendor_profile
        assert profile.website_url == "https://craftworks.io"
        assert profile.years_in_business == 4
        assert profile.bank_account_type == "checking"

    def test_buyer_promoted_to_vendor(self, db_session, buyer):
        create_vendor_profile(buyer.id, "Ada's Engines", business_type="individual")

        assert buyer.role == "vendor"
        assert buyer.vendor_profile.verification_status == "pending"
        assert buyer.vendor_profile.business_name == "Ada's Engines"

    def test_cannot_create_second_profile(self, db_session, vendor):
        with pytest.raises(ValidationError):
            create_vendor_profile(vendor.id, "Second Shop")


class TestVerificationTransitions:

    def test_approve(self, db_session, vendor, admin):
        approve_vendor(vendor.id, reviewer_id=admin.id, note="Documents checked")
        profile = vendor.vendor_profile

        assert profile.verification_status == "verified"
        assert profile.verification_date is not None
        assert profile.review_note == "Documents checked"
        assert vendor.activity_log[-1].action == "vendor_verified"
        assert str(admin.id) in vendor.activity_log[-1].description

    def test_reject(self, db_session, vendor):
        reject_vendor(vendor.id, "License expired")
        profile = vendor.vendor_profile

        assert profile.verification_status == "rejected"
        assert profile.verification_date is not None
        assert profile.review_note == "License expired"

    def test_reject_requires_reason(self, db_session, vendor):
        with pytest.raises(ValidationError):
            reject_vendor(vendor.id, "")

    def test_decision_is_final(self, db_session, vendor):
        approve_vendor(vendor.id)

        with pytest.raises(VerificationTransitionError):
            reject_vendor(vendor.id, "Changed my mind")
        with pytest.raises(VerificationTransitionError):
            approve_vendor(vendor.id)
        assert vendor.vendor_profile.verification_status == "verified"

    def test_rejected_cannot_be_approved(self, db_session, vendor):
        reject_vendor(vendor.id, "Incomplete")
        with pytest.raises(VerificationTransitionError):
            approve_vendor(vendor.id)

    def test_reset_returns_to_pending(self, db_session, vendor, admin):
        reject_vendor(vendor.id, "Incomplete")
        reset_verification(vendor.id, reviewer_id=admin.id)

        profile = vendor.vendor_profile
        assert profile.verification_status == "pending"
        assert profile.verification_date is None

        approve_vendor(vendor.id)
        assert profile.verification_status == "verified"

    def test_reset_from_pending_rejected(self, db_session, vendor):
        with pytest.raises(VerificationTransitionError):
            reset_verification(vendor.id)

    def test_non_vendor_cannot_be_reviewed(self, db_session, buyer):
        with pytest.raises(ValidationError):
            approve_vendor(buyer.id)


class TestVerificationDocuments:

    def test_documents_append_in_order(self, db_session, vendor):
        add_verification_document(vendor.id, "business_license", "s3://docs/license.pdf")
        add_verification_document(vendor.id, "tax_id", "s3://docs/tax.pdf")

        documents = vendor.vendor_profile.documents
        assert [d.document_type for d in documents] == ["business_license", "tax_id"]
        assert all(d.uploaded_at is not None for d in documents)

    def test_no_documents_after_decision(self, db_session, vendor):
        approve_vendor(vendor.id)
        with pytest.raises(ValidationError):
            add_verification_document(vendor.id, "tax_id", "s3://docs/tax.pdf")
        assert vendor.vendor_profile.documents == []

    def test_document_location_required(self, db_session, vendor):
        with pytest.raises(ValidationError):
            add_verification_document(vendor.id, "tax_id", " ")


class TestVendorListing:

    def test_list_by_status(self, db_session, vendor):
        other = register_vendor(
            email="second@makers.io",
            password=PASSWORD,
            password_confirm=PASSWORD,
            first_name="Second",
            last_name="Shop",
            business_name="Second Shop",
            rounds=TEST_ROUNDS,
        )
        approve_vendor(other.id)

        assert [a.id for a in list_vendors_by_status("pending")] == [vendor.id]
        assert [a.id for a in list_vendors_by_status("verified")] == [other.id]
        assert list_vendors_by_status("rejected") == []

    def test_hidden_vendors_excluded(self, db_session, vendor):
        soft_delete_account(vendor.id)

        assert list_vendors_by_status("pending") == []
        assert [a.id for a in list_vendors_by_status("pending", include_hidden=True)] == [vendor.id]

    def test_unknown_status_rejected(self, db_session):
        with pytest.raises(ValidationError):
            list_vendors_by_status("approved")
