from __future__ import annotations

from ..extensions import db
from identity.time_utils import to_utc_z, utcnow


ROLES = ("buyer", "vendor", "admin")
ACCOUNT_STATUSES = ("active", "suspended", "deleted", "archived")
ADDRESS_LABELS = ("home", "work", "other")
LANGUAGES = ("en", "es", "fr", "de")
THEMES = ("light", "dark")


class Account(db.Model):
    """
    One row per registered identity (buyer, vendor or admin).

    WHY: The account row is never physically removed on user-initiated
    deletion. It moves to account_status="deleted" so historical orders
    keep a valid reference. Reads must go through visibility_service.

    SECURITY NOTES:
    - password_hash is bcrypt; the plaintext is never stored
    - reset / verification tokens are stored as SHA-256 digests only
    - version_id guards against lost updates between racing writers
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_accounts_email"),
        db.CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="ck_accounts_average_rating"),
        db.CheckConstraint("total_orders >= 0", name="ck_accounts_total_orders"),
        db.CheckConstraint("total_spent_cents >= 0", name="ck_accounts_total_spent"),
        db.CheckConstraint("review_count >= 0", name="ck_accounts_review_count"),
        db.CheckConstraint("products_sold >= 0", name="ck_accounts_products_sold"),
        db.CheckConstraint("total_sales_revenue_cents >= 0", name="ck_accounts_sales_revenue"),
        db.Index("ix_accounts_role", "role"),
        db.Index("ix_accounts_status_active", "account_status", "is_active"),
        db.Index("ix_accounts_created", "created_at"),
        db.Index("ix_accounts_last_login", "last_login_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Identity
    email = db.Column(db.String(255), nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="buyer")

    # Profile
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    profile_image = db.Column(db.String(512), nullable=True)
    bio = db.Column(db.String(500), nullable=True)

    # Primary address
    address_street = db.Column(db.String(255), nullable=True)
    address_city = db.Column(db.String(128), nullable=True)
    address_state = db.Column(db.String(128), nullable=True)
    address_postal_code = db.Column(db.String(32), nullable=True)
    address_country = db.Column(db.String(64), nullable=True)
    address_is_default = db.Column(db.Boolean, nullable=False, default=False)

    # Preferences
    newsletter = db.Column(db.Boolean, nullable=False, default=True)
    marketing_emails = db.Column(db.Boolean, nullable=False, default=True)
    order_notifications = db.Column(db.Boolean, nullable=False, default=True)
    language = db.Column(db.String(8), nullable=False, default="en")
    currency = db.Column(db.String(3), nullable=False, default="USD")
    theme = db.Column(db.String(8), nullable=False, default="light")

    # Security state
    password_changed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    password_reset_token_digest = db.Column(db.String(64), nullable=True, index=True)
    password_reset_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    email_verification_token_digest = db.Column(db.String(64), nullable=True, index=True)
    email_verification_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    two_factor_enabled = db.Column(db.Boolean, nullable=False, default=False)
    two_factor_secret = db.Column(db.String(255), nullable=True)

    # Status
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    account_status = db.Column(db.String(16), nullable=False, default="active")
    suspension_reason = db.Column(db.Text, nullable=True)
    suspended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Denormalized aggregates (maintained by order/review collaborators via stats_service)
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    average_rating = db.Column(db.Float, nullable=False, default=0.0)
    review_count = db.Column(db.Integer, nullable=False, default=0)
    products_sold = db.Column(db.Integer, nullable=False, default=0)
    total_sales_revenue_cents = db.Column(db.Integer, nullable=False, default=0)

    # Weak references: plain ids, no foreign keys
    favorite_product_ids = db.Column(db.JSON, nullable=False, default=list)
    favorite_vendor_ids = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_activity_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    shipping_addresses = db.relationship(
        "ShippingAddress",
        backref=db.backref("account", lazy=True),
        order_by="ShippingAddress.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    activity_log = db.relationship(
        "ActivityLogEntry",
        backref=db.backref("account", lazy=True),
        order_by="ActivityLogEntry.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    vendor_profile = db.relationship(
        "VendorProfile",
        backref=db.backref("account", lazy=True),
        uselist=False,
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        """Full privileged view. External callers get profile_service.public_profile instead."""
        return {
            "id": self.id,
            "email": self.email,
            "password_hash": self.password_hash,
            "role": self.role,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "profile_image": self.profile_image,
            "bio": self.bio,
            "address": {
                "street": self.address_street,
                "city": self.address_city,
                "state": self.address_state,
                "postal_code": self.address_postal_code,
                "country": self.address_country,
                "is_default": self.address_is_default,
            },
            "shipping_addresses": [a.to_dict() for a in self.shipping_addresses],
            "preferences": {
                "newsletter": self.newsletter,
                "marketing_emails": self.marketing_emails,
                "order_notifications": self.order_notifications,
                "language": self.language,
                "currency": self.currency,
                "theme": self.theme,
            },
            "vendor": self.vendor_profile.to_dict() if self.role == "vendor" and self.vendor_profile else None,
            "password_changed_at": to_utc_z(self.password_changed_at),
            "password_reset_token_digest": self.password_reset_token_digest,
            "password_reset_expires_at": to_utc_z(self.password_reset_expires_at),
            "email_verified": self.email_verified,
            "email_verification_token_digest": self.email_verification_token_digest,
            "email_verification_expires_at": to_utc_z(self.email_verification_expires_at),
            "two_factor_enabled": self.two_factor_enabled,
            "two_factor_secret": self.two_factor_secret,
            "is_active": self.is_active,
            "account_status": self.account_status,
            "suspension_reason": self.suspension_reason,
            "suspended_at": to_utc_z(self.suspended_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "stats": {
                "total_orders": self.total_orders,
                "total_spent_cents": self.total_spent_cents,
                "average_rating": self.average_rating,
                "review_count": self.review_count,
                "products_sold": self.products_sold,
                "total_sales_revenue_cents": self.total_sales_revenue_cents,
            },
            "activity_log": [e.to_dict() for e in self.activity_log],
            "favorite_product_ids": list(self.favorite_product_ids or []),
            "favorite_vendor_ids": list(self.favorite_vendor_ids or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_login_at": to_utc_z(self.last_login_at),
            "last_activity_at": to_utc_z(self.last_activity_at),
            "version_id": self.version_id,
        }


class ShippingAddress(db.Model):
    """Labeled shipping address. At most one per account is marked default."""
    __tablename__ = "shipping_addresses"
    __table_args__ = (
        db.Index("ix_shipping_addresses_account", "account_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)

    label = db.Column(db.String(16), nullable=False, default="home")
    street = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(128), nullable=True)
    postal_code = db.Column(db.String(32), nullable=True)
    country = db.Column(db.String(64), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
            "is_default": self.is_default,
        }
