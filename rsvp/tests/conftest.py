import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from rsvp.core.celery_config import celery_app
from rsvp.database.db import Base, get_db
from rsvp.main import app
from rsvp.models.events import Event
from rsvp.services.notifications import NotificationGateway

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Notifications run inline instead of going through a broker
celery_app.conf.task_always_eager = True
celery_app.conf.task_eager_propagates = False


@pytest.fixture(autouse=True)
def setup_database():
    """Give every test empty tables."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def redis_client(monkeypatch: pytest.MonkeyPatch, fake_redis):
    """Route the per-event lock to an in-process Redis."""
    monkeypatch.setattr("rsvp.services.attendance.get_redis_client", lambda: fake_redis)
    return fake_redis


class RecordingGateway(NotificationGateway):
    """Notification gateway that remembers what it was asked to send."""

    def __init__(self):
        self.codes: list[tuple[int, int, str]] = []
        self.confirmations: list[tuple[int, int]] = []

    def send_code(self, user_id: int, event_id: int, code: str) -> None:
        self.codes.append((user_id, event_id, code))

    def send_confirmation(self, user_id: int, event_id: int) -> None:
        self.confirmations.append((user_id, event_id))

    def last_code(self, user_id: int, event_id: int) -> str:
        return [c for u, e, c in self.codes if u == user_id and e == event_id][-1]


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def make_event(db_session: Session):
    def _make(capacity: int = 10, title: str = "Test Event") -> Event:
        event = Event(title=title, capacity=capacity, attendee_count=0)
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make


@pytest.fixture
def file_sessionmaker(tmp_path):
    """Sessions on a file database so threads get their own connections."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()
