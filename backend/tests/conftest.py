"""
Pytest fixtures for storefront backend tests.

Provides the application on an in-memory database, a per-test table wipe,
factories for users/items/shops and login helpers for the HTTP API.
"""

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.models import Shop, StockItem, ROLE_ADMIN, ROLE_OWNER, ROLE_PROPRIETOR, ROLE_USER
from storefront.services import auth_service, session_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
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
    """Fresh data for each test; roles are always present."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        auth_service.create_default_roles()
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture
def make_user(db_session):
    def _make(email, role=ROLE_USER, password=PASSWORD, tier=None):
        user = auth_service.create_user(email=email, password=password, role_name=role)
        if tier:
            user.tier = tier
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_item(db_session):
    def _make(title="Chess Set", category="Games", price_cents=5000, cost_price_cents=3000, quantity=10, **extra):
        item = StockItem(
            title=title,
            category=category,
            price_cents=price_cents,
            cost_price_cents=cost_price_cents,
            quantity=quantity,
            **extra,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture
def make_shop(db_session):
    def _make(name="Shop A", proprietor=None):
        shop = Shop(name=name, address="1 Main Street", phone="0400000000")
        if proprietor is not None:
            shop.proprietor_user_id = proprietor.id
            shop.proprietor_email = proprietor.email
        db_session.add(shop)
        db_session.commit()
        return shop
    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com", role=ROLE_OWNER)


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", role=ROLE_ADMIN)


@pytest.fixture
def proprietor(make_user):
    return make_user("proprietor@example.com", role=ROLE_PROPRIETOR)


@pytest.fixture
def customer(make_user):
    return make_user("customer@example.com", role=ROLE_USER)


@pytest.fixture
def shop(make_shop, proprietor):
    return make_shop("Shop A", proprietor=proprietor)


@pytest.fixture
def customer_session(customer):
    """Session row for service-level cart tests."""
    session, _token = session_service.create_session(customer.id)
    return session


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, owner.email))


@pytest.fixture
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))


@pytest.fixture
def proprietor_headers(client, shop, proprietor):
    return auth_headers(get_auth_token(client, proprietor.email))


@pytest.fixture
def customer_headers(client, customer):
    return auth_headers(get_auth_token(client, customer.email))
