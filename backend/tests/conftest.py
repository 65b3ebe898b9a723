"""
Pytest fixtures for stockflow backend tests.

Provides test database setup, a ready-made shop account, and test client.
"""

from decimal import Decimal

import pytest
from stockflow import create_app
from stockflow.extensions import db
from stockflow.models import Unit
from stockflow.services import products_service
from stockflow.services.auth_service import create_user
from stockflow.services.session_service import SessionContext, create_session

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_THRESHOLD': 0,
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
        app.config['LOW_STOCK_THRESHOLD'] = 0


@pytest.fixture(scope='function')
def account(db_session):
    """Shop account with an empty profile and the default units."""
    return create_user("owner@shop.test", TEST_PASSWORD)


@pytest.fixture(scope='function')
def other_account(db_session):
    return create_user("rival@shop.test", TEST_PASSWORD)


@pytest.fixture(scope='function')
def session_token(account):
    """(session, plaintext token) for the account."""
    return create_session(user_id=account.id, user_agent="pytest", ip_address="127.0.0.1")


@pytest.fixture(scope='function')
def session_context(account, session_token):
    session, _ = session_token
    return SessionContext(user=account, session=session)


@pytest.fixture(scope='function')
def auth_headers(session_token):
    _, token = session_token
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def box_unit(db_session, account):
    return db_session.query(Unit).filter_by(account_id=account.id, code="box").one()


@pytest.fixture(scope='function')
def product_factory(db_session, account, box_unit):
    """Create products in the account; defaults to 10 boxes of 12 pieces."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        patch = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Product {counter['n']}",
            "unit_id": box_unit.id,
            "pieces_per_unit": 12,
            "stock_quantity": Decimal("10"),
            "price_cents": 1000,
        }
        patch.update(overrides)
        account_id = patch.pop("account_id", account.id)
        return products_service.create_product(account_id=account_id, patch=patch)

    return _make


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None
