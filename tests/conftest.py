"""
Pytest fixtures for the point-of-sale backend.

Every test gets a fresh SQLite file database, a Flask test client, a
session bound to the app and a logged-in admin.
"""

from decimal import Decimal

import pytest

from app import create_app
from models import Product, db

ADMIN_USERNAME = "owner"
ADMIN_PASSWORD = "correct horse battery staple"
JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'pos.db'}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30, "check_same_thread": False}},
            "JWT_SECRET": JWT_SECRET,
            "DEFAULT_ADMIN_USERNAME": ADMIN_USERNAME,
            "DEFAULT_ADMIN_PASSWORD": ADMIN_PASSWORD,
            "STATIC_FOLDER": str(tmp_path / "static"),
            "LOG_LEVEL": "WARNING",
        }
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    with app.app_context():
        yield db.session
        db.session.remove()


@pytest.fixture
def admin_headers(client):
    response = client.post(
        "/api/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def make_product(session):
    """Factory fixture: make_product(name=..., price=..., stock=...) -> product id."""

    def _make(name="Dog Food", price="500", stock=10, image_url=None):
        product = Product(name=name, price=Decimal(price), stock=stock, image_url=image_url)
        session.add(product)
        session.commit()
        return product.id

    return _make


@pytest.fixture
def fresh(session):
    """fresh(Model, pk): load a row bypassing anything cached in the session."""

    def _fresh(model, pk):
        session.expire_all()
        return session.get(model, pk)

    return _fresh
