"""
Shared test configuration: in-memory SQLite, fake channel senders, API client.
"""
import os

# Settings are read at import time; point them at test values before any app import.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_SECRET"] = "test-secret"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["REMINDER_TIMEZONE"] = "UTC"
os.environ["EMAIL_PROVIDER"] = "log"
os.environ["CRON_SECRET"] = ""

import threading
from typing import Any

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lunch_notify.api.deps import dispatcher_dep
from lunch_notify.config import settings
from lunch_notify.db.base import Base
from lunch_notify.db.session import build_engine, create_all, get_db, get_session_factory
from lunch_notify.main import app
from lunch_notify.models.push_token import PushToken
from lunch_notify.models.user import User
from lunch_notify.services.channels.base import EmailSender, PushSender
from lunch_notify.services.dispatcher import Dispatcher


# =============================================================================
# Fake channel senders
# =============================================================================


class FakeEmailSender(EmailSender):
    """Records sends; can be told to fail, raise, or hang."""

    name = "fake-email"

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_for: set[str] = set()
        self.raise_for: set[str] = set()
        self.block: threading.Event | None = None
        self._lock = threading.Lock()

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        if self.block is not None:
            self.block.wait(5)
        if to in self.raise_for:
            raise RuntimeError(f"smtp exploded for {to}")
        if to in self.fail_for:
            return False
        with self._lock:
            self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return True


class FakePushSender(PushSender):
    name = "fake-push"

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.raise_all = False
        self._lock = threading.Lock()

    def send(self, device_token: str, title: str, body: str, data: dict[str, Any] | None = None) -> bool:
        if self.raise_all:
            raise ConnectionError("apns unreachable")
        with self._lock:
            self.sent.append({"token": device_token, "title": title, "body": body, "data": data})
        return True


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database per test (one shared connection)."""
    eng = build_engine("sqlite://", poolclass=StaticPool)
    create_all(eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Create and commit a user; returns the User row."""

    def _make(user_id: str, role: str = "user", name: str | None = None, preferences: dict | None = None) -> User:
        user = User(
            id=user_id,
            email=f"{user_id}@example.com",
            name=name if name is not None else user_id.title(),
            role=role,
            notification_preferences=preferences,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def add_push_token(db):
    def _add(user_id: str, device_token: str) -> None:
        db.add(PushToken(user_id=user_id, device_token=device_token, platform="ios"))
        db.commit()

    return _add


# =============================================================================
# Dispatcher fixtures
# =============================================================================


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def push_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def dispatcher(email_sender, push_sender):
    d = Dispatcher(email_sender, push_sender, timeout=2.0, app_url="https://lunch.example.com")
    yield d
    d.shutdown()


# =============================================================================
# API fixtures
# =============================================================================


def make_token(user_id: str, role: str = "user") -> str:
    return jwt.encode(
        {"sub": user_id, "email": f"{user_id}@example.com", "role": role},
        settings.auth_secret,
        algorithm="HS256",
    )


@pytest.fixture
def auth_headers():
    def _headers(user_id: str, role: str = "user") -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _headers


@pytest.fixture
def client(session_factory, dispatcher):
    """TestClient bound to the test database and fake senders (no scheduler: lifespan not entered)."""

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[dispatcher_dep] = lambda: dispatcher
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()
