import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from auth import create_token
from config import get_settings
from database import Database
from main import app


def mock_database(client_factory=mongomock.MongoClient) -> Database:
    return Database("mongodb://localhost:27017", "storefront_test", client_factory=client_factory)


@pytest.fixture
def database():
    database = mock_database()
    previous = app.state.database
    app.state.database = database
    yield database
    database.close()
    app.state.database = previous


@pytest.fixture
def db(database):
    return database.connect()


@pytest.fixture
def client(database):
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def admin_headers(settings):
    token = create_token({"id": str(ObjectId()), "isAdmin": True}, settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(settings):
    token = create_token({"id": str(ObjectId()), "isAdmin": False}, settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def product_payload():
    return {
        "name": "Premium Cotton T-Shirt",
        "description": "Soft everyday cotton tee",
        "originalPrice": 299,
        "salePrice": 199,
        "category": "t-shirt",
        "sizes": ["S", "M", "L"],
        "colors": ["White", "Black"],
        "images": ["/hero.webp"],
    }


@pytest.fixture
def order_payload():
    return {
        "customerName": "A",
        "customerPhone": "555",
        "customerAddress": "X",
        "items": [{"product": "p1", "quantity": 2, "price": 100}],
        "totalAmount": 200,
    }


@pytest.fixture
def unreachable_database(database):
    """Swap in a store whose connection attempt always fails."""
    def unreachable(*args, **kwargs):
        raise ServerSelectionTimeoutError("no servers available")

    app.state.database = mock_database(client_factory=unreachable)
    return app.state.database
