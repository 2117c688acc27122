"""
Pytest fixtures for rewards backend tests.

Provides the test app (in-memory SQLite), a per-test table wipe, seeded
accounts and catalog items, and auth helpers for the test client.
"""

import pytest
from rewards import create_app
from rewards.extensions import db
from rewards.models.accounts import ROLE_ADMIN, ROLE_EMPLOYEE
from rewards.services import accounts_service, catalog_service, settings_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'PURCHASE_RETRY_BACKOFF': 0.01,
}

ADMIN_PASSWORD = "Pinnacle2024!"
EMPLOYEE_PASSWORD = "password123"


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
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        settings_service.get_settings()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin(db_session):
    """Admin account with a settled password."""
    return accounts_service.provision_account(
        username="admin",
        display_name="Admin User",
        password=ADMIN_PASSWORD,
        role=ROLE_ADMIN,
        requires_password_change=False,
    )


@pytest.fixture(scope='function')
def employee(db_session):
    """Alex Reyes, 1500 points."""
    return accounts_service.provision_account(
        username="employee1",
        display_name="Alex Reyes",
        password=EMPLOYEE_PASSWORD,
        role=ROLE_EMPLOYEE,
        points_balance=1500,
        requires_password_change=False,
    )


@pytest.fixture(scope='function')
def make_account(db_session):
    """Factory for extra employee accounts."""
    counter = {"n": 0}

    def _make(points=0, username=None, display_name=None, requires_password_change=False):
        counter["n"] += 1
        name = username or f"worker{counter['n']}"
        return accounts_service.provision_account(
            username=name,
            display_name=display_name or name.title(),
            password=EMPLOYEE_PASSWORD,
            points_balance=points,
            requires_password_change=requires_password_change,
        )

    return _make


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory for catalog items priced at the current inflation."""
    def _make(name="Item", base_price=100, stock=10, image_ref=None):
        return catalog_service.create_item(name=name, base_price=base_price, stock=stock, image_ref=image_ref)

    return _make


@pytest.fixture(scope='function')
def tumbler(make_item):
    return make_item(name="Company Tumbler", base_price=500, stock=10)


@pytest.fixture(scope='function')
def hoodie(make_item):
    return make_item(name="Branded Hoodie", base_price=1200, stock=5)


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for an account."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, "admin", ADMIN_PASSWORD))


@pytest.fixture(scope='function')
def employee_headers(client, employee):
    return auth_headers(get_auth_token(client, "employee1", EMPLOYEE_PASSWORD))
