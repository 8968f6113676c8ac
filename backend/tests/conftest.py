"""
Pytest fixtures for identity backend tests.

Provides an in-memory database, a fresh schema per test, and ready-made
buyer / vendor / admin accounts. bcrypt runs at its minimum cost factor
so the suite stays fast.
"""

from datetime import datetime

import pytest
from identity import create_app
from identity.extensions import db
from identity.services import credential_service
from identity.services.account_service import register_account
from identity.services.verification_service import register_vendor


TEST_ROUNDS = 4
PASSWORD = "Sup3rSecret!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': TEST_ROUNDS,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def buyer(db_session):
    """Active buyer account."""
    return register_account(
        email="ada.buyer@shopmail.com",
        password=PASSWORD,
        password_confirm=PASSWORD,
        first_name="Ada",
        last_name="Lovelace",
        rounds=TEST_ROUNDS,
    )


@pytest.fixture(scope='function')
def other_buyer(db_session):
    """Second buyer, for isolation checks."""
    return register_account(
        email="grace.buyer@shopmail.com",
        password=PASSWORD,
        password_confirm=PASSWORD,
        first_name="Grace",
        last_name="Hopper",
        rounds=TEST_ROUNDS,
    )


@pytest.fixture(scope='function')
def vendor(db_session):
    """Vendor account with a pending profile."""
    return register_vendor(
        email="owner@craftworks.io",
        password=PASSWORD,
        password_confirm=PASSWORD,
        first_name="Linus",
        last_name="Maker",
        business_name="Craft Works",
        registration_number="REG-1001",
        business_type="company",
        categories=["home", "garden"],
        rounds=TEST_ROUNDS,
    )


@pytest.fixture(scope='function')
def admin(db_session):
    """Admin account used as reviewer."""
    return register_account(
        email="root.admin@shopmail.com",
        password=PASSWORD,
        password_confirm=PASSWORD,
        first_name="Alan",
        last_name="Turing",
        role="admin",
        rounds=TEST_ROUNDS,
    )


class Clock:
    """Settable stand-in for time_utils.utcnow."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture(scope='function')
def clock(monkeypatch):
    """Freeze the clock seen by credential_service (token expiry, change stamps)."""
    fake = Clock(datetime(2026, 3, 1, 12, 0, 0))
    monkeypatch.setattr(credential_service, "utcnow", fake)
    return fake
