"""
Pytest fixtures for StockLedger backend tests.

Provides the test app, a wiped database per test, two tenants with
session tokens, and a few catalog rows for tenant A.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Client, Product, Supplier
from stockledger.services.auth_service import create_user
from stockledger.services.session_service import create_session


PASSWORD = "Password123!"
CRON_SECRET = "test-cron-secret"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CRON_SECRET': CRON_SECRET,
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


@pytest.fixture(scope='function')
def user_a(db_session):
    """Tenant A."""
    return create_user(username="user_a", email="user_a@acme.com", password=PASSWORD)


@pytest.fixture(scope='function')
def user_b(db_session):
    """Tenant B."""
    return create_user(username="user_b", email="user_b@beta.com", password=PASSWORD)


@pytest.fixture(scope='function')
def token_a(user_a):
    _, token = create_session(user_id=user_a.id)
    return token


@pytest.fixture(scope='function')
def token_b(user_b):
    _, token = create_session(user_id=user_b.id)
    return token


@pytest.fixture(scope='function')
def headers_a(token_a):
    return auth_headers(token_a)


@pytest.fixture(scope='function')
def headers_b(token_b):
    return auth_headers(token_b)


@pytest.fixture(scope='function')
def product_a(db_session, user_a):
    """Product P for tenant A: 10 in stock, restock below 3."""
    product = Product(
        user_id=user_a.id,
        sku="PROD-A-001",
        name="Product A",
        price_cents=1000,
        quantity=10,
        min_quantity=3,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def client_a(db_session, user_a):
    """Client for tenant A with no history."""
    row = Client(user_id=user_a.id, name="Client A")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def supplier_a(db_session, user_a):
    supplier = Supplier(user_id=user_a.id, name="Supplier A")
    db_session.add(supplier)
    db_session.commit()
    return supplier


def make_product(user_id: int, sku: str, quantity: int, min_quantity: int = 0, price_cents: int = 1000) -> Product:
    product = Product(
        user_id=user_id,
        sku=sku,
        name=f"Product {sku}",
        price_cents=price_cents,
        quantity=quantity,
        min_quantity=min_quantity,
    )
    db.session.add(product)
    db.session.commit()
    return product


def sale_payload(client_id: int, product_id: int, quantity: int, price_cents: int = 1000, **extra) -> dict:
    payload = {
        "type": "SALE",
        "client_id": client_id,
        "items": [{"product_id": product_id, "quantity": quantity, "price_cents": price_cents}],
    }
    payload.update(extra)
    return payload


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
