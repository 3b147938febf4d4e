"""Shared fixtures: in-memory database, profile factory, fixed clock."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import clixen.models  # noqa: F401
from clixen.config import Settings
from clixen.db_base import Base
from clixen.integrations.telegram.client import TelegramClient
from clixen.integrations.workflows.executor_client import WorkflowExecutorClient
from clixen.main import AppServices, create_app
from clixen.models.profile import Profile
from clixen.monitoring.alerts import reset_executor_failures
from clixen.services.intent_classifier import IntentClassifier

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    # StaticPool keeps one connection so the in-memory DB is shared across threads
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        stripe_webhook_secret=WEBHOOK_SECRET,
        openai_api_key="sk-test",
        executor_base_url="https://executor.test",
        executor_api_key="executor-key",
        telegram_bot_token="123:ABC",
        app_url="https://clixen.test",
    )


@pytest.fixture
def make_profile(db_session):
    """Insert a profile; keyword arguments override the free-tier defaults."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "auth_user_id": f"auth-{counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "tier": "free",
            "credits_remaining": 0,
            "created_at": NOW - timedelta(days=30),
            "updated_at": NOW - timedelta(days=30),
        }
        values.update(overrides)
        profile = Profile(**values)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make


@pytest.fixture(autouse=True)
def _reset_alert_windows():
    reset_executor_failures()
    yield
    reset_executor_failures()


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header value for a raw body."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_1") -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode("utf-8")


@pytest.fixture
def app_services(settings, session_factory):
    """AppServices with mocked outbound clients and the in-memory database."""
    telegram = MagicMock(spec=TelegramClient)
    telegram.send_message = AsyncMock(return_value=True)
    telegram.send_chat_action = AsyncMock(return_value=True)
    classifier = MagicMock(spec=IntentClassifier)
    classifier.classify = AsyncMock()
    executor = MagicMock(spec=WorkflowExecutorClient)
    executor.execute = AsyncMock()

    return AppServices(
        settings=settings,
        session_factory=session_factory,
        http_client=None,
        telegram=telegram,
        classifier=classifier,
        executor=executor,
    )


@pytest.fixture
def client(app_services):
    return TestClient(create_app(services=app_services))
