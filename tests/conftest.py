"""
Test configuration and fixtures.

The API runs against an in-memory mongomock database injected through
``app.dependency_overrides``; the lifespan (real connection and seeding) is
never entered because the TestClient is not used as a context manager.
"""
import os

os.environ["JWT_SECRET"] = "test-jwt-secret-key-for-testing"
os.environ["PAYMENT_PROCESSING_DELAY"] = "0"
os.environ["HUGGINGFACE_API_KEY"] = "test-api-key"

import mongomock
import pytest
from fastapi.testclient import TestClient

from main import app
from database import create_document, ensure_indexes, get_db
from security import create_access_token, get_password_hash

TEST_PASSWORD = "secret123"
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture
def mongo_db():
    """Fresh in-memory database per test"""
    db = mongomock.MongoClient()["mbizo-test"]
    ensure_indexes(db)
    return db


@pytest.fixture
def client(mongo_db):
    app.dependency_overrides[get_db] = lambda: mongo_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(mongo_db):
    """Insert a user directly and return the stored document"""
    counter = {"n": 0}

    def _make(role: str = "staff", **fields):
        counter["n"] += 1
        doc = {
            "username": f"{role}{counter['n']}",
            "password_hash": TEST_PASSWORD_HASH,
            "role": role,
            "name": f"Test {role.title()} {counter['n']}",
            "email": None,
            "phone": None,
            "student_id": None,
            "class_code": None,
            "children": [],
        }
        doc.update(fields)
        return create_document(mongo_db, "user", doc)

    return _make


def bearer(user: dict) -> dict:
    token = create_access_token({"id": user["id"], "username": user["username"], "role": user["role"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(make_user):
    """Return (headers, user) for a freshly created user with the given role"""
    def _headers(role: str = "staff", **fields):
        user = make_user(role, **fields)
        return bearer(user), user

    return _headers


@pytest.fixture
def staff_headers(auth_headers):
    headers, _ = auth_headers("staff")
    return headers


@pytest.fixture
def admin_headers(auth_headers):
    headers, _ = auth_headers("admin")
    return headers
