"""
tests/conftest.py -- Shared test fixtures for the Storm backend tests.

This module provides:
  - RecordingMailer: fake mailer that keeps every reset link it was asked to send
  - make_memory_engine(): isolated named shared-memory SQLite engine
  - _patch_lifespan(): wires a test engine + fake mailer into app.state,
    bypassing the real startup
  - engine / mailer: per-test database and fake mailer for service tests
  - app_env: TestClient over the real app, fresh database per test
  - make_app_env: factory for variants (raise_server_exceptions, seeding)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG and RATE_LIMIT_ENABLED must be set before any app import so
get_settings() auto-generates JWT_SECRET and the limiter starts disabled.
"""

from __future__ import annotations

import os

# CRITICAL: Set before any api/auth/core import -- get_settings() is cached
# on first call and api.limiter reads it at import time.
os.environ.setdefault("DEBUG", "true")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["USE_MOCK"] = "false"

import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, init_state, run_bootstrap
from core.config import get_settings
from core.database import create_db_engine
from core.errors import MailDeliveryError

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class SentMail:
    to: str
    from_name: str
    reset_link: str

    @property
    def token(self) -> str:
        return parse_qs(urlparse(self.reset_link).query)["token"][0]


@dataclass
class RecordingMailer:
    """Mailer double. Set fail=True to simulate a relay outage, or error to raise anything."""

    sent: list[SentMail] = field(default_factory=list)
    fail: bool = False
    error: Exception | None = None

    def send_password_reset(self, to: str, from_name: str, reset_link: str) -> None:
        if self.error is not None:
            raise self.error
        if self.fail:
            raise MailDeliveryError("relay unavailable")
        self.sent.append(SentMail(to, from_name, reset_link))

    @property
    def last(self) -> SentMail:
        return self.sent[-1]


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def make_memory_engine() -> Engine:
    """Return an engine on a fresh named shared-memory SQLite database."""
    return create_db_engine(f"sqlite:///file:test_storm_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(engine: Engine, mailer: RecordingMailer, seed: bool = False):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app.state, engine, get_settings(), mailer=mailer)
        if seed:
            await run_bootstrap(app.state)
        yield

    return test_lifespan


@dataclass
class AppEnv:
    client: TestClient
    mailer: RecordingMailer
    engine: Engine

    @property
    def state(self):
        return self.client.app.state

    def signup(self, name: str = "A", email: str = "a@x.com", password: str = "pw123456"):
        return self.client.post("/api/signup", json={"name": name, "email": email, "password": password})

    def login(self, email: str = "a@x.com", password: str = "pw123456") -> str:
        resp = self.client.post("/api/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        self.client.cookies.clear()
        return resp.json()["token"]

    def forgot(self, email: str = "a@x.com"):
        return self.client.post(
            "/api/forgot-password",
            json={"email": email, "from_name": "Storm", "callback_host": "https://app.example.com"},
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Isolated shared-memory database for store/service-level tests."""
    eng = make_memory_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def make_app_env() -> Generator[Callable[..., AppEnv], None, None]:
    """Factory yielding AppEnv instances; every one gets its own database."""
    opened: list[tuple[TestClient, Engine]] = []

    def _make(raise_server_exceptions: bool = True, seed: bool = False) -> AppEnv:
        engine = make_memory_engine()
        mailer = RecordingMailer()
        app.router.lifespan_context = _patch_lifespan(engine, mailer, seed=seed)
        client = TestClient(app, follow_redirects=False, raise_server_exceptions=raise_server_exceptions)
        client.__enter__()
        opened.append((client, engine))
        return AppEnv(client=client, mailer=mailer, engine=engine)

    yield _make

    for client, engine in opened:
        client.__exit__(None, None, None)
        engine.dispose()


@pytest.fixture
def app_env(make_app_env) -> AppEnv:
    """Fresh app + empty database, exceptions re-raised into the test."""
    return make_app_env()
