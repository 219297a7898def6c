import os

# Settings are read once at import time of the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AI_MODE"] = "mock"
os.environ["AUTH_MODE"] = "mock"
os.environ["RATE_LIMIT_BACKEND"] = "db"
os.environ["CONNECTIVITY_CHECK_ENABLED"] = "false"

import json
from datetime import datetime, timezone

import fakeredis.aioredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from batchmaker.main import app
from batchmaker.core.auth import AuthVerifier, RequestSession
from batchmaker.db import Base
from batchmaker.deps import get_db, get_parser_service
from batchmaker.services.observer import RecordingObserver
from batchmaker.services.page_fetcher import PageFetcher
from batchmaker.services.rate_limiter import RateLimiter, SqlRateLimitStore
from batchmaker.services.recipe_parser import RecipeParserService

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Direct database session for setup and assertions."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_redis():
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# --- Parser collaborators ---

def recipe_payload(**overrides):
    payload = {
        "recipeName": "Buttered Toast",
        "description": "Simple toast",
        "ingredients": ["bread: 2 slices", "butter: 1 tbsp"],
        "steps": [
            {"order": 1, "title": "Toast", "description": "Toast the bread.", "duration_minutes": 3},
            {"order": 2, "title": "Butter", "description": "Spread the butter.", "duration_minutes": 1},
        ],
        "servings": "1",
    }
    payload.update(overrides)
    return payload


class ScriptedInvoker:
    """Stands in for ModelInvoker; replays replies in order, the last one repeats."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def invoke(self, source_text, source="text"):
        self.calls.append((source_text, source))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


class StaticConnectivity:
    def __init__(self, online=True):
        self.online = online
        self.calls = 0

    async def is_online(self):
        self.calls += 1
        return self.online


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FixedClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def html_transport(html="<html><body><h1>Toast</h1><p>Toast bread.</p></body></html>", status=200):
    def handler(request):
        return httpx.Response(status, text=html, headers={"content-type": "text/html"})
    return httpx.MockTransport(handler)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(SqlRateLimitStore(TestingSessionLocal), per_hour=5, per_day=15, clock=clock)


@pytest.fixture
def session():
    return RequestSession("user-1", AuthVerifier(mode="mock"))


@pytest.fixture
def make_service(rate_limiter):
    """Factory for a RecipeParserService wired to in-memory fakes.

    ``replies`` are model outputs (strings) or exceptions, consumed in order.
    """
    def _make(replies=None, online=True, transport=None, limiter=None, **kwargs):
        if replies is None:
            replies = [json.dumps(recipe_payload())]
        return RecipeParserService(
            invoker=ScriptedInvoker(replies),
            rate_limiter=limiter or rate_limiter,
            connectivity=StaticConnectivity(online),
            fetcher=PageFetcher("TestAgent/1.0", transport=transport or html_transport()),
            observer=RecordingObserver(),
            sleep=SleepRecorder(),
            **kwargs,
        )
    return _make


@pytest.fixture
def client(make_service):
    """Test client with DB and parser overrides."""
    service = make_service()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_parser_service] = lambda: service
    with TestClient(app) as c:
        c.parser_service = service
        yield c
    app.dependency_overrides.clear()
