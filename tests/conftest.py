import os

os.environ.setdefault("JWT_SECRET", "test-signing-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.pop("DATABASE_URL", None)
os.environ.pop("WEBHOOK_SECRET", None)

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import catalog
from auth import create_access_token
from database import ensure_indexes, get_db
from main import app
from schemas import ProductCreate

@pytest.fixture
def address():
    return {
        "street": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "country": "US",
    }


@pytest.fixture
def db():
    database = mongomock.MongoClient()["storefront_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    def _make(name="Widget", price=10.0, quantity=2, category="Other", description=None):
        return catalog.create_product(db, ProductCreate(
            name=name, price=price, quantity=quantity, category=category, description=description,
        ))
    return _make


@pytest.fixture
def bearer():
    def _headers(user_id=None, role="user"):
        user_id = user_id or ObjectId()
        return {"Authorization": f"Bearer {create_access_token(str(user_id), role)}"}
    return _headers


@pytest.fixture
def admin_headers(bearer):
    return bearer(role="admin")
