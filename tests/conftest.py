"""
tests/conftest.py -- Shared fixtures for tokengate unit and integration tests.

This module provides:
  - settings:   explicit secrets, bcrypt cost 4, a per-test SQLite file DB
  - store / tokens / hasher / controller / guard: the core, wired by hand
  - notifier:   a RecordingNotifier that captures reset tokens
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: every test gets its own SQLite *file* under tmp_path rather than an
in-memory DB. TestClient runs sync handlers in a thread pool and the
concurrency tests start their own threads; plain ':memory:' is
per-connection, and shared-cache memory DBs fail lock contention with
SQLITE_LOCKED instead of waiting on the busy timeout.

The DEBUG env var must be set before api.main is imported: the CORS
middleware reads get_settings() at import time.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set DEBUG before any api/core import so get_settings() can auto-generate
# secrets in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_state
from auth.guard import AccessGuard
from auth.models import User
from auth.passwords import PasswordHasher
from auth.sessions import SessionController
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


class RecordingNotifier:
    """Captures (user, token) pairs instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[User, str]] = []

    def send_reset(self, user: User, token: str) -> None:
        self.sent.append((user, token))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1]


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        debug=True,
        access_secret_key=ACCESS_SECRET,
        refresh_secret_key=REFRESH_SECRET,
        bcrypt_rounds=4,
        database_url=f"sqlite:///{tmp_path / 'auth.db'}",
    )


@pytest.fixture
def store(settings: Settings) -> Generator[UserStore, None, None]:
    s = UserStore(settings.database_url)
    yield s
    s.close()


@pytest.fixture
def tokens(settings: Settings) -> TokenService:
    return TokenService.from_settings(settings)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def controller(store, tokens, hasher, notifier) -> SessionController:
    return SessionController(store, tokens, hasher, notifier=notifier)


@pytest.fixture
def guard(store, tokens) -> AccessGuard:
    return AccessGuard(store, tokens)


# ---------------------------------------------------------------------------
# Integration fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, store: UserStore, notifier: RecordingNotifier):
    """Return a lifespan that wires the test store and notifier into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        wire_state(app, settings, store, notifier=notifier)
        yield

    return test_lifespan


@pytest.fixture
def api_client(settings, store, notifier) -> Generator[TestClient, None, None]:
    """Yield a TestClient running the real routes against an isolated store.

    The client keeps a cookie jar, so the refresh cookie set by /auth/login
    and /auth/refresh is sent on /auth/logout exactly as a browser would.
    """
    app.router.lifespan_context = _patch_lifespan(settings, store, notifier)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
