import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "socialfeed-notifications-test.log"))
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from app import models
from app.crud import user as crud_user
from app.services.notification_emitter import NotificationEmitter


class FakeTransport:
    """Records everything the emitter publishes."""

    def __init__(self):
        self.published = []

    def publish(self, user_id, event, data):
        self.published.append((user_id, event, data))
        return 1

    def events_for(self, user_id):
        return [(event, data) for uid, event, data in self.published if uid == user_id]


@pytest.fixture
def mock_db():
    """
    Creates a mock database session.
    This allows us to test CRUD functions without a running database.
    """
    session = MagicMock(spec=Session)
    return session

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

@pytest.fixture
def db_session(session_factory):
    """A real in-memory SQLite session for tests that exercise queries."""
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def transport():
    return FakeTransport()

@pytest.fixture
def emitter(transport):
    return NotificationEmitter(transport)

@pytest.fixture
def alice(db_session):
    return crud_user.create_user(db_session, "alice", full_name="Alice Liddell")

@pytest.fixture
def bob(db_session):
    return crud_user.create_user(db_session, "bob", full_name="Bob Builder", is_private=True)

@pytest.fixture
def carol(db_session):
    return crud_user.create_user(db_session, "carol")
