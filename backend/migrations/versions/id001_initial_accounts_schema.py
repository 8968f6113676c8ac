"""initial accounts schema

Revision ID: id001_initial_accounts
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the identity schema from scratch:
- accounts: one row per buyer, vendor or admin (soft-deleted, never removed)
- shipping_addresses: labeled address book per account
- vendor_profiles: vendor business details and verification state
- vendor_verification_documents: append-only document submissions
- account_activity: bounded per-account activity trail

Both accounts and vendor_profiles carry version_id for optimistic locking.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'id001_initial_accounts'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # accounts
    # ============================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='buyer'),
        sa.Column('first_name', sa.String(length=128), nullable=False),
        sa.Column('last_name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('profile_image', sa.String(length=512), nullable=True),
        sa.Column('bio', sa.String(length=500), nullable=True),
        sa.Column('address_street', sa.String(length=255), nullable=True),
        sa.Column('address_city', sa.String(length=128), nullable=True),
        sa.Column('address_state', sa.String(length=128), nullable=True),
        sa.Column('address_postal_code', sa.String(length=32), nullable=True),
        sa.Column('address_country', sa.String(length=64), nullable=True),
        sa.Column('address_is_default', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('newsletter', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('marketing_emails', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('order_notifications', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('language', sa.String(length=8), nullable=False, server_default='en'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('theme', sa.String(length=8), nullable=False, server_default='light'),
        sa.Column('password_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('password_reset_token_digest', sa.String(length=64), nullable=True),
        sa.Column('password_reset_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('email_verification_token_digest', sa.String(length=64), nullable=True),
        sa.Column('email_verification_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('two_factor_enabled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('two_factor_secret', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('account_status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('suspension_reason', sa.Text(), nullable=True),
        sa.Column('suspended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('review_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('products_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sales_revenue_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('favorite_product_ids', sa.JSON(), nullable=False),
        sa.Column('favorite_vendor_ids', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_accounts_email'),
        sa.CheckConstraint('average_rating >= 0 AND average_rating <= 5', name='ck_accounts_average_rating'),
        sa.CheckConstraint('total_orders >= 0', name='ck_accounts_total_orders'),
        sa.CheckConstraint('total_spent_cents >= 0', name='ck_accounts_total_spent'),
        sa.CheckConstraint('review_count >= 0', name='ck_accounts_review_count'),
        sa.CheckConstraint('products_sold >= 0', name='ck_accounts_products_sold'),
        sa.CheckConstraint('total_sales_revenue_cents >= 0', name='ck_accounts_sales_revenue'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accounts_email', 'accounts', ['email'])
    op.create_index('ix_accounts_password_reset_token_digest', 'accounts', ['password_reset_token_digest'])
    op.create_index('ix_accounts_email_verification_token_digest', 'accounts', ['email_verification_token_digest'])
    op.create_index('ix_accounts_role', 'accounts', ['role'])
    op.create_index('ix_accounts_status_active', 'accounts', ['account_status', 'is_active'])
    op.create_index('ix_accounts_created', 'accounts', ['created_at'])
    op.create_index('ix_accounts_last_login', 'accounts', ['last_login_at'])

    # ============================================================================
    # shipping_addresses
    # ============================================================================
    op.create_table(
        'shipping_addresses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(length=16), nullable=False, server_default='home'),
        sa.Column('street', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('state', sa.String(length=128), nullable=True),
        sa.Column('postal_code', sa.String(length=32), nullable=True),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shipping_addresses_account', 'shipping_addresses', ['account_id'])

    # ============================================================================
    # vendor_profiles
    # ============================================================================
    op.create_table(
        'vendor_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=True),
        sa.Column('business_registration', sa.String(length=255), nullable=True),
        sa.Column('registration_number', sa.String(length=128), nullable=True),
        sa.Column('business_type', sa.String(length=32), nullable=False, server_default='individual'),
        sa.Column('tax_id', sa.String(length=64), nullable=True),
        sa.Column('business_license', sa.String(length=128), nullable=True),
        sa.Column('years_in_business', sa.Integer(), nullable=True),
        sa.Column('website_url', sa.String(length=512), nullable=True),
        sa.Column('verification_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('verification_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_note', sa.Text(), nullable=True),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('commission_rate', sa.Float(), nullable=False, server_default='15'),
        sa.Column('bank_name', sa.String(length=255), nullable=True),
        sa.Column('account_holder_name', sa.String(length=255), nullable=True),
        sa.Column('bank_account_number', sa.String(length=64), nullable=True),
        sa.Column('routing_number', sa.String(length=64), nullable=True),
        sa.Column('bank_account_type', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', name='uq_vendor_profiles_account'),
        sa.UniqueConstraint('registration_number', name='uq_vendor_profiles_registration_number'),
        sa.CheckConstraint('commission_rate >= 0 AND commission_rate <= 100', name='ck_vendor_profiles_commission'),
        sa.CheckConstraint('years_in_business IS NULL OR years_in_business >= 0', name='ck_vendor_profiles_years'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vendor_profiles_status', 'vendor_profiles', ['verification_status'])

    # ============================================================================
    # vendor_verification_documents: append-only
    # ============================================================================
    op.create_table(
        'vendor_verification_documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_profile_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=64), nullable=False),
        sa.Column('document_url', sa.String(length=1024), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['vendor_profile_id'], ['vendor_profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_verification_documents_profile', 'vendor_verification_documents', ['vendor_profile_id'])

    # ============================================================================
    # account_activity: bounded trail, oldest rows evicted by the service layer
    # ============================================================================
    op.create_table(
        'account_activity',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_account_activity_account', 'account_activity', ['account_id', 'id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('account_activity')
    op.drop_table('vendor_verification_documents')
    op.drop_table('vendor_profiles')
    op.drop_table('shipping_addresses')
    op.drop_table('accounts')
