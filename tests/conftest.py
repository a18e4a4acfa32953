"""
tests/conftest.py -- Shared test fixtures for issue tracker tests.

This module provides:
  - engine / user_store / issue_store: an isolated in-memory database per test
  - codec: the SessionCodec the app would build from Settings
  - client: TestClient over the full ASGI app (API + web UI) with the lifespan
    patched to use the test stores; follow_redirects=False so redirect
    locations stay visible
  - make_user() / login_as(): helpers for creating accounts and attaching a
    session cookie without going through the rate-limited login route

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

SECRET_KEY, DEBUG and ALLOWED_HOSTS must be set before any app import:
api/main.py reads Settings at import time to configure middleware.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core/api import. get_settings() refuses to
# start without a SECRET_KEY, and TestClient sends Host: testserver.
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production-0123456789")
os.environ.setdefault("DEBUG", "true")
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

import auth.passwords
from api.limiter import limiter
from asgi import app
from auth.models import User
from auth.passwords import hash_password
from auth.sessions import SESSION_COOKIE, SessionCodec
from auth.store import UserStore
from core.config import get_settings
from core.db import create_db_engine
from tracker.store import IssueStore

# Rate limits would trip across tests that share the client IP.
limiter.enabled = False

DEFAULT_PASSWORD = "password123"


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop the bcrypt work factor to the minimum so tests hash quickly."""
    monkeypatch.setattr(auth.passwords, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """One uniquely named in-memory database per test."""
    url = f"sqlite:///file:test_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    eng = create_db_engine(url)
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def issue_store(engine: Engine) -> IssueStore:
    return IssueStore(engine)


@pytest.fixture
def codec() -> SessionCodec:
    settings = get_settings()
    return SessionCodec(settings.secret_key, settings.session_ttl_seconds)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(user_store: UserStore):
    """Factory: make_user(email, role="user", password=DEFAULT_PASSWORD) -> User."""

    def _make(email: str, role: str = "user", password: str = DEFAULT_PASSWORD) -> User:
        return user_store.create_user(email=email, hashed_password=hash_password(password), role=role)

    return _make


@pytest.fixture
def login_as(client: TestClient, codec: SessionCodec):
    """Factory: login_as(user) attaches a valid session cookie to every later request."""

    def _login(user: User) -> None:
        client.cookies.set(SESSION_COOKIE, codec.issue(user.id))

    return _login


def _patch_lifespan(engine: Engine, user_store: UserStore, issue_store: IssueStore, codec: SessionCodec):
    """Return an async context manager that replaces the real lifespan.

    Wires the per-test stores into app.state so TestClient routes see the
    isolated test DB rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.engine = engine
        app.state.user_store = user_store
        app.state.issue_store = issue_store
        app.state.sessions = codec
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Client fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def client(
    engine: Engine,
    user_store: UserStore,
    issue_store: IssueStore,
    codec: SessionCodec,
) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the full app with a fresh cookie jar.

    follow_redirects=False is essential for web route and gate tests: we
    assert on redirect *locations* (e.g. 302 to /login), which are invisible
    once the client follows the redirect and returns the final 200 response.
    """
    app.router.lifespan_context = _patch_lifespan(engine, user_store, issue_store, codec)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c
