"""
tests/conftest.py -- Shared test fixtures for StudyShala integration tests.

This module provides:
  - FakeClock: a settable clock injected into SessionStore for expiry tests
  - AppEnv: one isolated app + TestClient + stores per test, with helpers
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - bare_root_logger(): lets configure_logging() install its handlers in a test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Every test gets a fresh database name so no state leaks between tests.

Environment variables must be set before any api/auth/core import so
get_settings() sees a non-production environment (auto-generated secret) and
rate limits are off.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

# CRITICAL: set before importing anything that calls get_settings().
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="studyshala-test-logs-"))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import create_app
from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import Settings, get_settings
from core.database import connect

# ---------------------------------------------------------------------------
# Seed accounts -- hashed once per session, bcrypt is deliberately slow
# ---------------------------------------------------------------------------

ADMIN = ("testadmin", "adminpass123", "admin")
FACULTY = ("prof.rao", "facultypass1", "faculty")
STUDENT = ("roll-001", "studentpass1", "student")

_SEED_HASHES = {username: hash_password(password) for username, password, _ in (ADMIN, FACULTY, STUDENT)}


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable returning a fixed UTC time until advanced."""

    def __init__(self, start: datetime | None = None) -> None:
        # Start at the real time: bearer tokens carry exp and are also checked
        # against the wall clock by the JWT library.
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@contextmanager
def bare_root_logger():
    """Give basicConfig an unconfigured root logger, then restore pytest's handlers."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers.clear()
    try:
        yield root
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


# ---------------------------------------------------------------------------
# App harness
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine, user_store: UserStore, session_store: SessionStore):
    """Return a lifespan that installs pre-built test stores on app.state.

    No logging setup, no purge task, no real database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.user_store = user_store
        app.state.session_store = session_store
        yield

    return test_lifespan


@dataclass
class AppEnv:
    app: FastAPI
    client: TestClient
    engine: Engine
    user_store: UserStore
    session_store: SessionStore
    clock: FakeClock
    ids: dict[str, int] = field(default_factory=dict)

    def build_app(self, settings: Settings) -> FastAPI:
        """A second app over the same stores, e.g. with production settings."""
        app = create_app(settings)
        app.router.lifespan_context = _patch_lifespan(self.engine, self.user_store, self.session_store)
        return app

    def login(self, username: str, password: str, client: TestClient | None = None):
        return (client or self.client).post("/api/auth/login", json={"username": username, "password": password})

    def bearer(self, account: tuple[str, str, str]) -> dict[str, str]:
        """Log account in on a separate client and return its Authorization header.

        A separate client keeps self.client's cookie (and session) untouched.
        """
        resp = self.login(account[0], account[1], client=TestClient(self.app))
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def env(clock: FakeClock) -> Generator[AppEnv, None, None]:
    """Yield a fresh AppEnv: new database, seeded admin/faculty/student, new client."""
    engine = connect(f"sqlite:///file:test_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    user_store = UserStore(engine)
    session_store = SessionStore(engine, ttl_seconds=get_settings().session_ttl_seconds, clock=clock)

    ids: dict[str, int] = {}
    for username, _password, role in (ADMIN, FACULTY, STUDENT):
        ids[username] = user_store.create_user(
            User(username=username, role=role, hashed_password=_SEED_HASHES[username], full_name=username.title())
        )

    app = create_app(get_settings())
    app.router.lifespan_context = _patch_lifespan(engine, user_store, session_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield AppEnv(
            app=app,
            client=client,
            engine=engine,
            user_store=user_store,
            session_store=session_store,
            clock=clock,
            ids=ids,
        )

    engine.dispose()
