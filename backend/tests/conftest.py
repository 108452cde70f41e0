"""
Pytest fixtures for bizledger backend tests.

Provides test database setup, two isolated businesses with contacts and
products, and the test client.
"""

import pytest
from bizledger import create_app
from bizledger.extensions import db
from bizledger.models import Contact, Product
from bizledger.services.auth_service import create_user
from bizledger.services.session_service import create_session


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'BCRYPT_ROUNDS': 4,
    'RETRY_BACKOFF_BASE': 0,
}

PASSWORD = "SecurePass123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
    """Empty every table before the test."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def business_a(db_session):
    """Business A (first tenant)."""
    return create_user(
        name="John Doe",
        email="john@example.com",
        username="johndoe",
        password=PASSWORD,
        business_name="Johns Business",
    )


@pytest.fixture(scope='function')
def business_b(db_session):
    """Business B (second tenant)."""
    return create_user(
        name="Jane Smith",
        email="jane@example.com",
        username="janesmith",
        password=PASSWORD,
        business_name="Janes Enterprises",
    )


@pytest.fixture(scope='function')
def token_a(business_a):
    return create_session(business_a.id)[1]


@pytest.fixture(scope='function')
def token_b(business_b):
    return create_session(business_b.id)[1]


def _contact(db_session, business, name, contact_type):
    contact = Contact(
        business_id=business.id,
        name=name,
        email=f"{name.split()[0].lower()}@example.com",
        phone="555-0100",
        type=contact_type,
    )
    db_session.add(contact)
    db_session.commit()
    return contact


def _product(db_session, business, name, price_cents, stock):
    product = Product(
        business_id=business.id,
        name=name,
        price_cents=price_cents,
        stock=stock,
        category="General",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(db_session, business_a):
    return _contact(db_session, business_a, "Alice Brown", "customer")


@pytest.fixture(scope='function')
def vendor_a(db_session, business_a):
    return _contact(db_session, business_a, "Bob Wilson", "vendor")


@pytest.fixture(scope='function')
def customer_b(db_session, business_b):
    return _contact(db_session, business_b, "Charlie Davis", "customer")


@pytest.fixture(scope='function')
def widget_a(db_session, business_a):
    """Widget: stock 10, $19.99."""
    return _product(db_session, business_a, "Widget", 1999, 10)


@pytest.fixture(scope='function')
def gadget_a(db_session, business_a):
    """Gadget: stock 2, $49.50."""
    return _product(db_session, business_a, "Gadget", 4950, 2)


@pytest.fixture(scope='function')
def product_b(db_session, business_b):
    return _product(db_session, business_b, "Notebook", 850, 50)


def get_auth_token(client, identifier: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'emailOrUsername': identifier,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def sale_lines(product, quantity, unit_price_cents=None):
    return [{
        "product_id": product.id,
        "quantity": quantity,
        "unit_price_cents": product.price_cents if unit_price_cents is None else unit_price_cents,
    }]
