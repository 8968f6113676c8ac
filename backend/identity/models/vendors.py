from __future__ import annotations

from ..extensions import db
from identity.time_utils import to_utc_z, utcnow


VERIFICATION_STATUSES = ("pending", "verified", "rejected")
BUSINESS_TYPES = ("individual", "partnership", "company", "corporation")
BANK_ACCOUNT_TYPES = ("checking", "savings")
DEFAULT_COMMISSION_RATE = 15.0


class VendorProfile(db.Model):
    """
    Vendor sub-record of an account. Only meaningful while account.role == "vendor".

    Business identifiers are sparse: non-vendors have no row at all and
    registration_number is unique only when present.
    """
    __tablename__ = "vendor_profiles"
    __table_args__ = (
        db.UniqueConstraint("account_id", name="uq_vendor_profiles_account"),
        db.UniqueConstraint("registration_number", name="uq_vendor_profiles_registration_number"),
        db.CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_vendor_profiles_commission"),
        db.CheckConstraint("years_in_business IS NULL OR years_in_business >= 0", name="ck_vendor_profiles_years"),
        db.Index("ix_vendor_profiles_status", "verification_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)

    business_name = db.Column(db.String(255), nullable=True)
    business_registration = db.Column(db.String(255), nullable=True)
    registration_number = db.Column(db.String(128), nullable=True)
    business_type = db.Column(db.String(32), nullable=False, default="individual")
    tax_id = db.Column(db.String(64), nullable=True)
    business_license = db.Column(db.String(128), nullable=True)
    years_in_business = db.Column(db.Integer, nullable=True)
    website_url = db.Column(db.String(512), nullable=True)

    verification_status = db.Column(db.String(16), nullable=False, default="pending")
    verification_date = db.Column(db.DateTime(timezone=True), nullable=True)
    review_note = db.Column(db.Text, nullable=True)

    categories = db.Column(db.JSON, nullable=False, default=list)
    commission_rate = db.Column(db.Float, nullable=False, default=DEFAULT_COMMISSION_RATE)

    # Payout bank details
    bank_name = db.Column(db.String(255), nullable=True)
    account_holder_name = db.Column(db.String(255), nullable=True)
    bank_account_number = db.Column(db.String(64), nullable=True)
    routing_number = db.Column(db.String(64), nullable=True)
    bank_account_type = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    documents = db.relationship(
        "VerificationDocument",
        backref=db.backref("vendor_profile", lazy=True),
        order_by="VerificationDocument.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "business_name": self.business_name,
            "business_registration": self.business_registration,
            "registration_number": self.registration_number,
            "business_type": self.business_type,
            "tax_id": self.tax_id,
            "business_license": self.business_license,
            "years_in_business": self.years_in_business,
            "website_url": self.website_url,
            "verification_status": self.verification_status,
            "verification_date": to_utc_z(self.verification_date),
            "review_note": self.review_note,
            "verification_documents": [d.to_dict() for d in self.documents],
            "categories": list(self.categories or []),
            "commission_rate": self.commission_rate,
            "bank_account": {
                "bank_name": self.bank_name,
                "account_holder_name": self.account_holder_name,
                "account_number": self.bank_account_number,
                "routing_number": self.routing_number,
                "account_type": self.bank_account_type,
            },
        }


class VerificationDocument(db.Model):
    """
    Document submitted for vendor verification.

    IMMUTABLE: Append-only history. Never update or delete.
    """
    __tablename__ = "vendor_verification_documents"
    __table_args__ = (
        db.Index("ix_verification_documents_profile", "vendor_profile_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_profile_id = db.Column(db.Integer, db.ForeignKey("vendor_profiles.id"), nullable=False)

    document_type = db.Column(db.String(64), nullable=False)  # business_license, tax_id, registration, ...
    document_url = db.Column(db.String(1024), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "document_url": self.document_url,
            "uploaded_at": to_utc_z(self.uploaded_at),
        }
