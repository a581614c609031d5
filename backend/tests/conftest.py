"""
Test configuration and fixtures for the roadside claims backend tests.
"""
import os

# Keep the app's own engine off any real database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATABASE_CREATE_TABLES", "false")
os.environ.setdefault("LLM_PROVIDER", "ollama")

import pytest
from typing import Any, Generator, List
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage
from pydantic import Field
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from roadside.api.deps import get_chat_model
from roadside.db.base import Base
from roadside.db.session import get_db
from roadside.db.models import Policy, Customer, Provider
from roadside.services.claim_store import ClaimStore


# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeToolChatModel(GenericFakeChatModel):
    """Scripted chat model: replies in order and records every prompt it receives."""

    received: List[Any] = Field(default_factory=list)

    def bind_tools(self, tools, **kwargs):
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.received.append(list(messages))
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


class FailingChatModel(FakeToolChatModel):
    """Chat model that answers ``fail_after`` times and then loses its provider."""

    fail_after: int = 0

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        if len(self.received) >= self.fail_after:
            self.received.append(list(messages))
            raise ConnectionError("model endpoint unreachable")
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


def tool_call(name: str, args: dict, call_id: str = None) -> AIMessage:
    """AI message asking for a single tool call."""
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id or f"call_{name}"}])


def fake_model(*replies) -> FakeToolChatModel:
    return FakeToolChatModel(messages=iter(list(replies)))


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def use_model():
    """Install a chat model for API turns: use_model(fake_model(...))."""
    def install(model):
        app.dependency_overrides[get_chat_model] = lambda: model
        return model
    yield install
    app.dependency_overrides.pop(get_chat_model, None)


@pytest.fixture
def policies(db: Session) -> dict:
    """Sample policies keyed by policy number."""
    rows = [
        Policy(
            policy_number="POL-1001",
            coverage_type="premium",
            holder_name="Maria Lopez",
            holder_phone="+15550101",
            holder_email="maria.lopez@example.com",
            roadside_assistance=True,
            towing_coverage=True,
            max_towing_distance=100,
            transport_coverage=True,
            rental_car_coverage=True,
            vehicle_make="Toyota",
            vehicle_model="Corolla",
            vehicle_year=2019,
        ),
        Policy(
            policy_number="POL-1002",
            coverage_type="standard",
            holder_name="James Carter",
            holder_phone="+15550102",
            holder_email="james.carter@example.com",
            roadside_assistance=True,
            towing_coverage=True,
            max_towing_distance=50,
            vehicle_make="Ford",
            vehicle_model="Focus",
            vehicle_year=2017,
        ),
        Policy(
            policy_number="POL-1003",
            coverage_type="basic",
            holder_name="Anna Carter",
            holder_phone="+15550103",
            roadside_assistance=False,
            vehicle_make="Honda",
            vehicle_model="Civic",
            vehicle_year=2015,
        ),
    ]
    db.add_all(rows)
    db.commit()
    return {p.policy_number: p for p in rows}


@pytest.fixture
def customer(db: Session, policies: dict) -> Customer:
    record = Customer(
        full_name="Maria J. Lopez",
        phone="+15550199",
        email="maria@example.org",
        address={"city": "Springfield"},
        policy_ids=[policies["POL-1001"].id],
    )
    db.add(record)
    db.commit()
    return record


@pytest.fixture
def providers(db: Session) -> dict:
    """Sample providers keyed by name."""
    rows = [
        Provider(name="QuickTow", phone="+15552001", address="400 Industrial Way",
                 services=["tow"], average_response_time=25, rating=4.8),
        Provider(name="Highway Recovery", phone="+15552002", address="18 Route 9",
                 services=["tow", "repair"], average_response_time=35, rating=4.8),
        Provider(name="Mobile Mechanics", phone="+15552003", address="77 Garage Lane",
                 services=["repair"], average_response_time=20, rating=4.7),
        Provider(name="City Cabs", phone="+15552004", address="1 Station Square",
                 services=["taxi"], average_response_time=10, rating=4.2),
    ]
    db.add_all(rows)
    db.commit()
    return {p.name: p for p in rows}


@pytest.fixture
def store(db: Session) -> ClaimStore:
    return ClaimStore(db)


@pytest.fixture
def new_claim(db: Session, store: ClaimStore):
    claim = store.create()
    db.commit()
    return claim


@pytest.fixture
def ready_claim(db: Session, store: ClaimStore, new_claim, policies):
    """Claim with everything needed for a coverage check."""
    store.update(new_claim.id, {
        "driver_name": "Maria Lopez",
        "driver_phone": "+15550101",
        "driver_email": "maria.lopez@example.com",
        "policy_number": "POL-1001",
        "location": "Highway 5, exit 12",
        "incident_description": "Engine died and the car will not start",
    })
    db.commit()
    return new_claim
