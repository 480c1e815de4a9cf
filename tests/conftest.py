"""
Pytest configuration and shared fixtures
"""

import os

# Must be set before the app (and its rate limiter) is imported
os.environ["DATABASE_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LISTING_SWEEP_ENABLED"] = "false"

import asyncio
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from src.auth import generate_access_token
from src.config import reset_api_config
from src.database import Collections, MemoryDatabase, email_to_key, set_db_client
from src.marketplace import websocket
from src.marketplace.cache import get_vehicle_cache
from src.marketplace.dependencies import limiter
from src.marketplace.server import app
from tests.factories import UserFactory


def store(db: MemoryDatabase, collection: str, record: Dict[str, Any], key: Any = None) -> Dict[str, Any]:
    """Write a record straight into the in-memory database"""
    record_id = key if key is not None else record.get("id")
    asyncio.run(db.create(collection, record, None if record_id is None else str(record_id)))
    return record


def fetch(db: MemoryDatabase, collection: str, key: Any):
    return asyncio.run(db.find_by_id(collection, str(key)))


def add_user(db: MemoryDatabase, **fields) -> Dict[str, Any]:
    user = UserFactory(**fields)
    return store(db, Collections.USERS, user, email_to_key(user["email"]))


def auth_headers(user: Dict[str, Any]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {generate_access_token(user)}"}


@pytest.fixture(autouse=True)
def db():
    """Fresh in-memory database and process state for every test"""
    reset_api_config()
    database = MemoryDatabase()
    set_db_client(database)
    get_vehicle_cache().clear()
    limiter.enabled = False
    websocket._websocket_manager = None
    yield database
    set_db_client(None)
    get_vehicle_cache().clear()


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client (sync)"""
    return TestClient(app)


@pytest.fixture
def admin_user(db) -> Dict[str, Any]:
    return add_user(db, email="admin@example.com", name="Admin", role="admin", subscriptionPlan="premium")


@pytest.fixture
def seller_user(db) -> Dict[str, Any]:
    return add_user(db, email="seller@example.com", name="Seller", role="seller")


@pytest.fixture
def customer_user(db) -> Dict[str, Any]:
    return add_user(db, email="customer@example.com", name="Customer", role="customer")


@pytest.fixture
def admin_headers(admin_user) -> Dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def seller_headers(seller_user) -> Dict[str, str]:
    return auth_headers(seller_user)


@pytest.fixture
def customer_headers(customer_user) -> Dict[str, str]:
    return auth_headers(customer_user)
