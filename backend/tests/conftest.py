"""
Pytest fixtures for the credit ledger backend tests.

Provides the application on an in-memory database, two isolated tenants,
customers, store-credit sales and an authenticated test client.
"""

import pytest

from fiado import create_app
from fiado.extensions import db
from fiado.services import customer_service, sales_service
from fiado.services.auth_service import create_user
from fiado.services.tenant_service import create_organization


PASSWORD = "Cajero2024"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CURRENCY_SYMBOL': '$',
        'CREDIT_TERM_DAYS': 30,
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
def org_a(db_session):
    """Create Organization A (first tenant) with its sequences."""
    return create_organization("Tienda A - Don Jose", "TIENDA_A")


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant) with its sequences."""
    return create_organization("Tienda B - La Esquina", "TIENDA_B")


@pytest.fixture(scope='function')
def user_a(db_session, org_a):
    return create_user(org_a.id, "cajero_a", "cajero_a@tienda-a.local", PASSWORD)


@pytest.fixture(scope='function')
def user_b(db_session, org_b):
    return create_user(org_b.id, "cajero_b", "cajero_b@tienda-b.local", PASSWORD)


def make_customer(org_id: int, document_id: str, name: str, **extra):
    payload = {"document_id": document_id, "name": name}
    payload.update(extra)
    return customer_service.create_customer(org_id, payload)


def make_credit_sale(org_id: int, customer_id: int, total_cents: int, **kwargs):
    return sales_service.create_credit_sale(org_id, customer_id, subtotal_cents=total_cents, **kwargs)


@pytest.fixture(scope='function')
def customer_a(db_session, org_a):
    """Create a customer in Organization A."""
    return make_customer(org_a.id, "1020304050", "Maria Lopez", phone="3001234567")


@pytest.fixture(scope='function')
def customer_b(db_session, org_b):
    """Create a customer in Organization B."""
    return make_customer(org_b.id, "9080706050", "Carlos Ruiz", phone="3109876543")


@pytest.fixture(scope='function')
def credit_sale_a(db_session, org_a, customer_a):
    """Store-credit sale of 100,000.00 in Organization A, nothing paid."""
    return make_credit_sale(org_a.id, customer_a.id, 10_000_000)


@pytest.fixture(scope='function')
def credit_sale_b(db_session, org_b, customer_b):
    """Store-credit sale of 50,000.00 in Organization B, nothing paid."""
    return make_credit_sale(org_b.id, customer_b.id, 5_000_000)


def get_auth_token(client, org_code: str, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'org_code': org_code,
        'username': username,
        'password': password,
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_a(client, org_a, user_a):
    token = get_auth_token(client, org_a.code, user_a.username)
    assert token
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_b(client, org_b, user_b):
    token = get_auth_token(client, org_b.code, user_b.username)
    assert token
    return auth_headers(token)
