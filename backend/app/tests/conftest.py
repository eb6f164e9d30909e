"""Pytest configuration for app integration tests

WHAT: Provides shared fixtures for HTTP endpoint and service tests
WHY: Ensures consistent test setup, database isolation, and a LemonSqueezy
    client that never leaves the process
REFERENCES:
    - app/main.py: FastAPI application
    - app/database.py: Database configuration
    - app/deps.py: Dependency injection
    - app/services/lemonsqueezy_client.py: Vendor client
"""

import json
import os
from typing import Callable, Generator, List

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Ensure backend is in path
import sys
from pathlib import Path
BACKEND_ROOT = Path(__file__).resolve().parents[2]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Set test environment (must happen before app modules read settings)
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LEMONSQUEEZY_API_KEY", "test-api-key")
os.environ.setdefault("LEMONSQUEEZY_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("LEMONSQUEEZY_STORE_ID", "1234")


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """Create in-memory test database engine."""
    # StaticPool keeps one connection so the TestClient thread sees the same tables
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    from app.database import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create test database session with rollback."""
    # Fixtures stay readable after the request-scoped session closes
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=test_db_engine
    )

    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# LemonSqueezy Fixtures
# ============================================================================

class VendorStub:
    """Routes LemonSqueezy requests to per-path handlers and records them.

    Register a response with `stub.on("POST", "/v1/customers", 201, {...})`.
    Unregistered paths answer 404 with a JSON:API error.
    """

    def __init__(self):
        self.routes = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, status_code: int = 200, body=None, handler: Callable = None):
        self.routes[(method, path)] = handler or (
            lambda request: httpx.Response(status_code, json=body)
        )

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def json_body(self, request: httpx.Request) -> dict:
        return json.loads(request.content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"errors": [{"detail": "Not found", "status": "404"}]})
        return route(request)


@pytest.fixture
def vendor() -> VendorStub:
    return VendorStub()


@pytest.fixture
def lemonsqueezy_client(vendor):
    """LemonSqueezy client wired to the in-process vendor stub."""
    from app.services.lemonsqueezy_client import LemonSqueezyClient

    return LemonSqueezyClient(
        api_key="test-api-key",
        store_id="1234",
        base_url="https://api.lemonsqueezy.test",
        transport=httpx.MockTransport(vendor),
    )


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(test_db_session, lemonsqueezy_client):
    """Create FastAPI test application."""
    from app.main import create_app
    from app.database import get_db
    from app.deps import get_lemonsqueezy_client

    test_app = create_app()

    # Override database dependency
    def override_get_db():
        try:
            yield test_db_session
        finally:
            test_db_session.close()

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_lemonsqueezy_client] = lambda: lemonsqueezy_client

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    return TestClient(app)


# ============================================================================
# Model & Authentication Fixtures
# ============================================================================

@pytest.fixture
def test_user(test_db_session):
    """Create test user."""
    from app.models import User

    user = User(email="ada@example.com", display_name="Ada Lovelace")
    test_db_session.add(user)
    test_db_session.commit()
    test_db_session.refresh(user)
    return user


@pytest.fixture
def test_user_token(test_user):
    """Generate test JWT token for test_user."""
    from app.security import create_access_token

    return create_access_token(str(test_user.id))


@pytest.fixture
def auth_headers(test_user_token):
    """Standard auth headers for requests."""
    return {"Authorization": f"Bearer {test_user_token}"}


@pytest.fixture
def test_customer(test_db_session, test_user):
    """Existing LemonSqueezy customer mapping for test_user."""
    from app.models import Customer

    customer = Customer(user_id=test_user.id, lemonsqueezy_customer_id="987")
    test_db_session.add(customer)
    test_db_session.commit()
    test_db_session.refresh(customer)
    return customer


# ============================================================================
# Payload Helpers
# ============================================================================

def subscription_resource(subscription_id: str = "1", status: str = "active", **attributes) -> dict:
    """Build a LemonSqueezy subscription resource as sent in webhooks and lists."""
    attrs = {
        "store_id": 1234,
        "customer_id": 987,
        "order_id": 555,
        "product_id": 10,
        "variant_id": 20,
        "status": status,
        "cancelled": False,
        "trial_ends_at": None,
        "renews_at": "2026-11-18T10:00:00.000000Z",
        "ends_at": None,
        "created_at": "2026-10-18T10:00:00.000000Z",
        "updated_at": "2026-10-18T10:00:00.000000Z",
        "first_subscription_item": {"id": 1, "subscription_id": int(subscription_id), "quantity": 1},
    }
    attrs.update(attributes)
    return {"type": "subscriptions", "id": subscription_id, "attributes": attrs}


def variant_resource(variant_id: str = "20", **attributes) -> dict:
    attrs = {
        "product_id": 10,
        "name": "Monthly",
        "description": "<p>Billed monthly</p>",
        "price": 999,
        "is_subscription": True,
        "interval": "month",
        "interval_count": 1,
        "has_free_trial": True,
        "trial_interval": "day",
        "trial_interval_count": 14,
        "status": "published",
    }
    attrs.update(attributes)
    return {"type": "variants", "id": variant_id, "attributes": attrs}


def product_resource(product_id: str = "10", **attributes) -> dict:
    attrs = {
        "store_id": 1234,
        "name": "Pro Plan",
        "description": "<p>Everything</p>",
        "status": "published",
        "thumb_url": "https://cdn.example.com/pro.png",
    }
    attrs.update(attributes)
    return {"type": "products", "id": product_id, "attributes": attrs}
