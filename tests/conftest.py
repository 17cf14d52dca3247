import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_123")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from brazadash.auth import get_current_user
from brazadash.credentials import credential_cache
from brazadash.database import Base, get_db
from brazadash.main import app as fastapi_app
from brazadash.models import MenuItem, Restaurant, Service, ServiceProvider, UserRole

# Setup test database
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

CUSTOMER_ID = "customer-1"
VENDOR_ID = "vendor-1"
PROVIDER_USER_ID = "provider-user-1"
ADMIN_ID = "admin-1"


@pytest.fixture(autouse=True)
def setup_db(monkeypatch):
    monkeypatch.delenv("STRIPE_CONNECTOR_HOSTNAME", raising=False)
    credential_cache.clear()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    credential_cache.clear()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def current_user():
    """Mutable holder so a test can switch the authenticated user mid-test."""
    return {"id": CUSTOMER_ID}


@pytest.fixture
def client(current_user):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_current_user] = lambda: current_user["id"]
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def add_role(db, user_id, role, approval_status="approved"):
    db.add(UserRole(user_id=user_id, role=role, approval_status=approval_status))
    db.commit()


@pytest.fixture
def restaurant(db):
    r = Restaurant(
        id="rest-1",
        owner_id=VENDOR_ID,
        name="Churrasco & Co.",
        address="12 Main St",
        city="Oakland",
        delivery_fee=Decimal("3.99"),
    )
    db.add(r)
    db.add(MenuItem(id="item-1", restaurant_id="rest-1", name="Picanha", price=Decimal("50.00")))
    db.add(MenuItem(id="item-2", restaurant_id="rest-1", name="Pao de Queijo", price=Decimal("5.00")))
    db.commit()
    return r


@pytest.fixture
def provider(db):
    p = ServiceProvider(
        id="prov-1",
        user_id=PROVIDER_USER_ID,
        business_name="Maria's Cleaning",
        booking_fee=Decimal("5.00"),
    )
    db.add(p)
    db.add(Service(id="svc-1", provider_id="prov-1", name="Deep Clean", price=Decimal("100.00")))
    db.commit()
    return p


@pytest.fixture
def vendor(db, current_user, restaurant):
    add_role(db, VENDOR_ID, "vendor")
    current_user["id"] = VENDOR_ID
    return VENDOR_ID
