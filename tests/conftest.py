"""
conftest.py — Shared Test Fixtures for TourCompanion

Provides a file-backed SQLite database, the data store and change feed wired
to it, an in-memory notification store double, a FastAPI TestClient with the
session user overridden, and factory fixtures for the ownership tree
(Creator → EndClient → Project → Chatbot → Lead).

Business Rules:
- All tests run against an isolated throwaway SQLite file (no prod data risk)
- The file (not :memory:) lets store calls run on worker threads, each with
  its own connection
- Safe-query backoff is zeroed so retry tests run instantly
- Each test function gets freshly created tables

Called by: all test files via pytest autodiscovery
Depends on: tourcompanion.models (Base), tourcompanion.database, tourcompanion.main
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="tourcompanion-tests-")
os.environ["TESTING"] = "1"  # Must be set before importing tourcompanion modules
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/test.db"

from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.orm import Session

from tourcompanion.cache.notification_store import NotificationStore
from tourcompanion.database import SessionLocal, engine
from tourcompanion.datastore import SqlAlchemyDataStore
from tourcompanion.models import (
    Analytics,
    Base,
    Chatbot,
    ChatbotRequest,
    Creator,
    EndClient,
    Lead,
    Project,
    Request,
)
from tourcompanion.realtime import ChangeFeed, install_change_capture
from tourcompanion.services.notification_service import PushNotifier, Toaster
from tourcompanion.utils import safe_query


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


class InMemoryNotificationStore(NotificationStore):
    """Dict-backed NotificationStore double."""

    def __init__(self, initial: dict | None = None):
        self.data = dict(initial or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)

    def keys(self, prefix=""):
        return sorted(k for k in self.data if k.startswith(prefix))


class RecordingToaster(Toaster):
    def __init__(self):
        self.shown = []

    def show(self, title, message, variant="default"):
        self.shown.append((title, message, variant))


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    monkeypatch.setattr(safe_query, "BACKOFF_STEP_SECONDS", 0)


@pytest.fixture()
def store() -> SqlAlchemyDataStore:
    return SqlAlchemyDataStore(SessionLocal)


@pytest.fixture()
def feed():
    """ChangeFeed fed by every session made from SessionLocal."""
    feed = ChangeFeed()
    uninstall = install_change_capture(SessionLocal, feed)
    yield feed
    uninstall()


@pytest.fixture()
def kv() -> InMemoryNotificationStore:
    return InMemoryNotificationStore()


@pytest.fixture()
def toaster() -> RecordingToaster:
    return RecordingToaster()


@pytest.fixture()
def no_push() -> PushNotifier:
    return PushNotifier(webhook_url="", enabled=False)


@pytest.fixture()
def test_creator(db_session: Session) -> Creator:
    creator = Creator(
        user_id="user-1",
        full_name="Giulia Bianchi",
        agency_name="Bianchi Virtual Tours",
        email="giulia@bianchitours.example",
    )
    db_session.add(creator)
    db_session.commit()
    return creator


@pytest.fixture()
def other_creator(db_session: Session) -> Creator:
    creator = Creator(user_id="user-2", full_name="Marco Rossi", agency_name="Rossi 3D")
    db_session.add(creator)
    db_session.commit()
    return creator


@pytest.fixture()
def test_client_row(db_session: Session, test_creator: Creator) -> EndClient:
    client = EndClient(
        creator_id=test_creator.id,
        name="Hotel Aurora",
        email="info@hotelaurora.example",
        company="Aurora Hospitality",
    )
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture()
def test_project(db_session: Session, test_client_row: EndClient) -> Project:
    project = Project(
        end_client_id=test_client_row.id,
        title="Lobby walkthrough",
        project_type="virtual_tour",
        status="active",
        external_tour_id="tour-aurora-lobby",
    )
    db_session.add(project)
    db_session.commit()
    return project


@pytest.fixture()
def test_chatbot(db_session: Session, test_project: Project) -> Chatbot:
    chatbot = Chatbot(project_id=test_project.id, name="Aurora concierge", status="active")
    db_session.add(chatbot)
    db_session.commit()
    return chatbot


@pytest.fixture()
def make_request(db_session: Session):
    def _make(project: Project, **overrides) -> Request:
        values = {
            "project_id": project.id,
            "end_client_id": project.end_client_id,
            "title": "Move sofa in showroom",
            "description": "Please move the blue sofa to the window area for better lighting",
            "request_type": "content_change",
            "priority": "medium",
            "status": "open",
        }
        values.update(overrides)
        row = Request(**values)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture()
def make_lead(db_session: Session):
    def _make(chatbot: Chatbot, **overrides) -> Lead:
        values = {
            "chatbot_id": chatbot.id,
            "visitor_name": "Anna Verdi",
            "visitor_email": "anna@verdi.example",
            "question_asked": "Is the rooftop terrace open in winter?",
            "lead_score": 70,
        }
        values.update(overrides)
        row = Lead(**values)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture()
def make_analytics(db_session: Session):
    def _make(project: Project, metric_type: str, metric_value: float, days_ago: int = 0) -> Analytics:
        row = Analytics(
            project_id=project.id,
            metric_type=metric_type,
            metric_value=metric_value,
            date=date.today() - timedelta(days=days_ago),
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture()
def make_chatbot_request(db_session: Session):
    def _make(creator: Creator, **overrides) -> ChatbotRequest:
        values = {
            "creator_id": creator.id,
            "chatbot_name": "Wine cellar guide",
            "chatbot_purpose": "Answer visitor questions about the vintages on display",
            "priority": "high",
            "status": "pending",
            "created_at": datetime.now(timezone.utc),
        }
        values.update(overrides)
        row = ChatbotRequest(**values)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture()
def client(db_session: Session, test_creator: Creator) -> TestClient:
    """TestClient logged in as test_creator (user-1)."""
    from tourcompanion.dependencies import require_user_id
    from tourcompanion.main import app

    app.dependency_overrides[require_user_id] = lambda: test_creator.user_id
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
