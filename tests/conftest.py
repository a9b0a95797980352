"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os
from datetime import UTC, datetime, timedelta

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of leoconnect.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from leoconnect.database.engine import init_db  # noqa: E402
from leoconnect.database.models import Club, Post, User  # noqa: E402

MEDIA_URL = "https://cdn.example.test/attachments/image.jpeg"

_BASE_TIME = datetime(2026, 1, 1, tzinfo=UTC)


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all LeoConnect tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db`` and by the
    TestClient's worker threads).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------
@pytest.fixture
def make_user(db_session: Session):
    def _make(uid: str, name: str | None = None, *, is_admin: bool = False,
              club_id: str | None = None) -> User:
        user = User(
            uid=uid,
            email=f"{uid}@example.test",
            display_name=name or uid.title(),
            is_admin=is_admin,
            assigned_club_id=club_id,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_club(db_session: Session):
    def _make(name: str = "Leo Club Colombo", district: str | None = "306 A1") -> Club:
        club = Club(name=name, district=district)
        db_session.add(club)
        db_session.commit()
        return club
    return _make


@pytest.fixture
def make_post(db_session: Session):
    """Insert a post ``minutes`` after a fixed base time so ordering is exact."""
    def _make(author_id: str, club_id: str, content: str = "Hello Leos",
              *, minutes: int = 0) -> Post:
        at = _BASE_TIME + timedelta(minutes=minutes)
        post = Post(author_id=author_id, club_id=club_id, content=content,
                    created_at=at, updated_at=at)
        db_session.add(post)
        db_session.commit()
        return post
    return _make


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def make_token(sub: str, name: str | None = None, *, email: str | None = None,
               is_admin: bool = False) -> str:
    """Create a bearer JWT for *sub*.  Usable from any test module."""
    import jwt

    from leoconnect.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {
            "sub": sub,
            "name": name or sub.title(),
            "email": email or f"{sub}@example.test",
            "is_admin": is_admin,
        },
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(sub: str, name: str | None = None, *, is_admin: bool = False) -> dict:
    return {"Authorization": f"Bearer {make_token(sub, name, is_admin=is_admin)}"}


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------
def _media_reply(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"attachments": [{"url": MEDIA_URL}]})


@pytest.fixture
def client(db_engine: Engine):
    """FastAPI TestClient wired to the in-memory database.

    The lifespan does not run (no ``with`` block), so the fan-out queue is
    attached to ``app.state`` here and drained explicitly by tests.
    """
    from fastapi.testclient import TestClient

    from leoconnect.api import deps
    from leoconnect.api.main import app
    from leoconnect.config import LeoConnectConfig
    from leoconnect.services.media_relay import MediaRelay
    from leoconnect.services.push_dispatcher import PushDispatcher

    cfg = LeoConnectConfig(app_name="LeoConnect Test")
    push = PushDispatcher(None)
    relay = MediaRelay("https://media.example.test/webhook",
                       transport=httpx.MockTransport(_media_reply))

    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_config] = lambda: cfg
    app.dependency_overrides[deps.get_push_dispatcher] = lambda: push
    app.dependency_overrides[deps.get_media_relay] = lambda: relay
    app.state.fanout = deps.build_fanout_queue(db_engine, push, cfg)

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
    app.state.fanout = None
