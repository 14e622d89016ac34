import os
import tempfile

# Configure the process before the app modules read their settings.
os.environ.setdefault("MEETLINE_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault(
    "MEETLINE_JWT_SECRET_KEY", "test-secret-key-for-meetline-suite-0123456789"
)
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="meetline-logs-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.auth import create_access_token
from app.data.meeting_manager import MeetingManager
from app.data.transcript_manager import TranscriptManager
from app.data.user_manager import UserManager
from app.database import Base, get_db
from app.main import app
from app.services.meeting_coordinator import MeetingCoordinator
from app.services.summarization import get_summarizer


class FakeSummarizer:
    """Records the entries it is asked to summarize and returns a canned result."""

    def __init__(self, result="Topics: planning. Decisions: ship. Actions: none."):
        self.result = result
        self.error = None
        self.calls = []

    def summarize(self, entries):
        self.calls.append([dict(entry) for entry in entries])
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(scope="function")
def db_session():
    """
    Provides a session on a fresh in-memory database for each test.
    Overrides the main app's get_db dependency.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="function")
def summarizer():
    fake = FakeSummarizer()
    app.dependency_overrides[get_summarizer] = lambda: fake
    try:
        yield fake
    finally:
        app.dependency_overrides.pop(get_summarizer, None)


@pytest.fixture(scope="function")
def client(db_session: Session, summarizer):
    """Provides a TestClient instance for making requests to the FastAPI app."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def user_manager(db_session: Session) -> UserManager:
    manager = UserManager()
    manager.set_db(db_session)
    return manager


@pytest.fixture(scope="function")
def meeting_manager(db_session: Session) -> MeetingManager:
    return MeetingManager(db_session)


@pytest.fixture(scope="function")
def transcript_manager(db_session: Session) -> TranscriptManager:
    return TranscriptManager(db_session)


@pytest.fixture(scope="function")
def coordinator(meeting_manager, transcript_manager, user_manager, summarizer):
    return MeetingCoordinator(meeting_manager, transcript_manager, user_manager, summarizer)


@pytest.fixture(scope="function")
def make_user(user_manager: UserManager):
    counter = {"n": 0}

    def _make(name="Ana Torres", age=30, email=None, photo_url=None):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        return user_manager.add_user(name, age, email=email, photo_url=photo_url)

    return _make


@pytest.fixture(scope="function")
def auth_headers():
    def _headers(uid="uid-test", email="caller@example.com"):
        token = create_access_token({"sub": uid, "email": email})
        return {"Authorization": f"Bearer {token}"}

    return _headers
