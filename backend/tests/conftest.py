"""
Pytest fixtures for BazaarLink backend tests.

Provides test database setup, vendor/supplier accounts, product factories
and test client helpers.
"""

import pytest

from bazaarlink import create_app
from bazaarlink.extensions import db
from bazaarlink.models import User, Product
from bazaarlink.models.accounts import ROLE_SUPPLIER, ROLE_VENDOR
from bazaarlink.services.auth_service import hash_password


PASSWORD = "Password123!"

# bcrypt at cost 12 is slow; hash once per run
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'STOCK_RETRY_BACKOFF': 0.01,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


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


def make_user(session, *, name: str, phone: str, role: str, location: str = "Pune") -> User:
    user = User(
        name=name,
        phone=phone,
        location=location,
        password_hash=PASSWORD_HASH,
        role=role,
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


def make_product(
    session,
    seller: User,
    *,
    name: str = "Onions",
    quantity: int = 5,
    threshold: int = 10,
    price_cents: int = 3000,
    unit: str = "kg",
) -> Product:
    """Product created the way catalog_service does: initial stock, no history."""
    product = Product(
        seller_id=seller.id,
        name=name,
        unit=unit,
        price_cents=price_cents,
        quantity_on_hand=quantity,
        initial_quantity=quantity,
        low_stock_threshold=threshold,
        is_available=quantity > 0,
        is_active=True,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def supplier(db_session):
    """Supplier (seller) account."""
    return make_user(db_session, name="Sharma Wholesale", phone="9000000001", role=ROLE_SUPPLIER)


@pytest.fixture(scope='function')
def other_supplier(db_session):
    """Second supplier, for ownership checks."""
    return make_user(db_session, name="Patel Traders", phone="9000000003", role=ROLE_SUPPLIER)


@pytest.fixture(scope='function')
def vendor(db_session):
    """Vendor (buyer) account."""
    return make_user(db_session, name="Chaat Corner", phone="9000000002", role=ROLE_VENDOR)


@pytest.fixture(scope='function')
def product(db_session, supplier):
    """5 kg of onions, threshold 10."""
    return make_product(db_session, supplier)


def get_auth_token(client, phone: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'phone': phone,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def supplier_headers(client, supplier):
    return auth_headers(get_auth_token(client, supplier.phone))


@pytest.fixture(scope='function')
def vendor_headers(client, vendor):
    return auth_headers(get_auth_token(client, vendor.phone))
