"""Shared test fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.event_bus import EventBus
from src.core.request.models import NewRequest
from src.db.database import build_session_factory, get_db
from src.db.models import Base
from src.main import app
from src.services.audit_log import AuditLog
from src.services.character_service import CharacterService
from src.services.request_service import RequestStore
from src.services.session_service import SessionStore

TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(bind=TEST_ENGINE, autocommit=False, autoflush=False)


def _override_get_db():
    db = TestSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = _override_get_db


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def session_factory():
    """Fresh in-memory database shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def audit_log(session_factory, clock) -> AuditLog:
    return AuditLog(session_factory, clock)


@pytest.fixture()
def store(session_factory, bus, audit_log, clock) -> RequestStore:
    return RequestStore(session_factory, bus, audit_log, clock=clock)


@pytest.fixture()
def characters(session_factory, bus, store, clock) -> CharacterService:
    return CharacterService(
        session_factory, bus, cascade=store.cascade_delete_character, clock=clock
    )


@pytest.fixture()
def sessions(session_factory, bus, clock) -> SessionStore:
    return SessionStore(session_factory, bus, clock=clock)


def make_new_request(**overrides) -> NewRequest:
    fields = dict(
        requester_id="user-1",
        character_name="Thalia",
        profession="blacksmithing",
        gear_slot="chest",
        item_id="item-100",
        item_label="Obsidian Breastplate",
        quantity_requested=1,
        materials_required={"Obsidian Shard": 4, "Iron Bar": 2},
    )
    fields.update(overrides)
    return NewRequest(**fields)


@pytest.fixture()
def client(store, characters, sessions, bus) -> TestClient:
    """FastAPI TestClient wired to an in-memory SQLite database."""
    app.state.event_bus = bus
    app.state.request_store = store
    app.state.character_service = characters
    app.state.session_store = sessions
    return TestClient(app)


@pytest.fixture()
def new_request():
    """Factory for valid creation payloads."""
    return make_new_request
