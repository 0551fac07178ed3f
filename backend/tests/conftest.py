"""
Pytest fixtures for Tillpoint backend tests.

Provides an in-memory SQLite app (foreign keys enforced), a fresh set of
tables per test, seeded users/catalog rows, and auth helpers.
"""

import pytest
from tillpoint import create_app
from tillpoint.extensions import db
from tillpoint.models import Category, Product, User
from tillpoint.services.auth_service import hash_password


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ENFORCE_STOCK_FLOOR': False,
        'ORDER_TOTAL_POLICY': 'trust',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table (schema kept) before each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    user = User(
        username="admin",
        password_hash=hash_password("admin123"),
        name="Admin User",
        role="admin",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier_user(db_session):
    user = User(
        username="cashier",
        password_hash=hash_password("cashier123"),
        name="John Cashier",
        role="cashier",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Groceries", description="Food and household items")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def products(db_session, category):
    """Two stocked products: (price 10.00, stock 10) and (price 5.00, stock 5)."""
    first = Product(name="Coffee", price_cents=1000, stock_quantity=10, category_id=category.id)
    second = Product(name="Bagel", price_cents=500, stock_quantity=5, category_id=category.id)
    db_session.add_all([first, second])
    db_session.commit()
    return first, second


def stock_of(product_id: int) -> int:
    """Read stock straight from the table, bypassing the identity map."""
    return db.session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
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
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin", "admin123"))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, "cashier", "cashier123"))
