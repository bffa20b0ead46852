"""
Pytest fixtures for the sweet shop API.

The storage singleton is rebound to a throwaway SQLite file for the whole
session; every test starts from empty tables.
"""
import os

os.environ.setdefault("APP_ENV", "test")

import pytest

from api import create_app
from models import storage
from models.base_model import Base
from models.user import User
from services import catalog_service
from services.cache import MemoryCache
from utils.security import create_access_token, hash_password

PASSWORD = "Password123!"


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("db") / "sweet-shop-test.db"
    storage.rebind(f"sqlite:///{db_path}")
    app = create_app("test")
    yield app
    storage.close()
    storage.drop_all()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


@pytest.fixture(scope="function", autouse=True)
def db_session(app):
    """Clear all data but keep schema."""
    session = storage.get_session()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    app.extensions["sweet_cache"] = MemoryCache()

    yield session

    storage.close()


@pytest.fixture
def make_user(db_session):
    def _make(email, name="Customer", roles=None):
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(PASSWORD),
            roles=roles or ["user"],
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user("buyer@example.com", name="Buyer")


@pytest.fixture
def other_user(make_user):
    return make_user("other@example.com", name="Other")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", name="Admin", roles=["admin", "user"])


@pytest.fixture
def make_sweet(db_session):
    def _make(name="Dark Truffle", quantity=50, price="2.50", category="TRUFFLES"):
        return catalog_service.create_sweet(name=name, category=category, price=price, quantity=quantity)

    return _make


@pytest.fixture
def sweet(make_sweet):
    return make_sweet()


@pytest.fixture
def auth_header(app):
    def _header(user):
        with app.app_context():
            return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _header
