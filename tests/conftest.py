from datetime import datetime, timedelta, timezone
from itertools import count
import pytest
from fastapi.testclient import TestClient
from tms.application.schemas import RegisterInput
from tms.application.service import UserService
from tms.core_settings import Settings
from tms.domain.models import Shipment, ShipmentPriority, ShipmentStatus, UserRole
from tms.infrastructure.db import build_engine, build_session_factory, init_models
from tms.main import create_app

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

def location(city: str = "Chicago") -> dict:
    return {"address": "123 Main St", "city": city, "state": "IL", "zip": "60601", "country": "USA"}

@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-secret",
        BCRYPT_ROUNDS=4,
        LOG_LEVEL="WARNING",
    )

@pytest.fixture
def db(settings):
    engine = build_engine(settings)
    init_models(engine)
    session = build_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()

@pytest.fixture
def make_user(db, settings):
    """Register a user directly through the service; returns (token, user)."""
    seq = count(1)

    def _make(role: UserRole = UserRole.employee, email=None, password="secret123"):
        email = email or f"user{next(seq)}@tms.com"
        return UserService(db, settings).register(
            RegisterInput(email=email, password=password, name="Test User", role=role)
        )

    return _make

@pytest.fixture
def make_shipment(db):
    """Insert a shipment row with sensible defaults; keyword overrides win."""
    seq = count(1)

    def _make(creator, **overrides):
        n = next(seq)
        fields = dict(
            shipper_name="Acme Corp",
            carrier_name="FedEx",
            pickup_location=location("Chicago"),
            delivery_location=location("Denver"),
            tracking_number=f"TMS{n:09d}",
            status=ShipmentStatus.PENDING,
            priority=ShipmentPriority.MEDIUM,
            rate=100.0,
            weight=10.0,
            estimated_delivery=BASE_TIME + timedelta(days=n),
            flagged=False,
            created_by_id=creator.id,
            created_at=BASE_TIME + timedelta(minutes=n),
        )
        fields.update(overrides)
        shipment = Shipment(**fields)
        db.add(shipment)
        db.commit()
        return shipment

    return _make

@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client

def gql(client, query: str, variables=None, token=None) -> dict:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    response = client.post("/graphql", json={"query": query, "variables": variables or {}}, headers=headers)
    assert response.status_code == 200
    return response.json()

def error_code(payload: dict) -> str:
    return payload["errors"][0]["extensions"]["code"]
