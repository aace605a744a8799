"""
tests/conftest.py -- Shared test fixtures for AuthGate.

This module provides:
  - RecordingMailer: in-memory MailTransport that records (or fails) sends
  - auth_config / store / service: unit-level fixtures on a private in-memory DB
  - api: (client, store, mailer) -- TestClient over the real app with a
    patched lifespan wired to an isolated store and the recording mailer

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Each test gets its own DB name, so tests never share accounts.

Environment must be set before any app import: DEBUG lets get_settings()
generate a SECRET_KEY and skip the SMTP requirement, rate limiting is off so
repeated logins don't trip 429s, and TestClient's "testserver" host must pass
TrustedHostMiddleware.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.mail import MailDeliveryError
from auth.service import AccountService
from auth.store import AccountStore
from auth.tokens import TokenIssuer
from core.config import AuthConfig

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"


class RecordingMailer:
    """MailTransport double. Set fail=True to simulate an SMTP outage."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def send_reset(self, account, reset_url: str, message: str) -> None:
        if self.fail:
            raise MailDeliveryError("smtp unavailable")
        self.sent.append({"email": account.email, "url": reset_url, "message": message})

    @property
    def last_token(self) -> str:
        """Plaintext reset token from the most recent link."""
        return self.sent[-1]["url"].rstrip("/").rsplit("/", 1)[-1]


def make_config(**overrides) -> AuthConfig:
    values = {
        "secret_key": TEST_SECRET,
        "token_expire_seconds": 3600,
        "cookie_expire_seconds": 3600,
        "secure_cookies": False,
        "reset_token_expire_seconds": 600,
        "password_min_length": 8,
    }
    values.update(overrides)
    return AuthConfig(**values)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_config() -> AuthConfig:
    return make_config()


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def service(store: AccountStore, mailer: RecordingMailer, auth_config: AuthConfig) -> AccountService:
    return AccountService(store, TokenIssuer(auth_config), mailer, auth_config)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, mailer: RecordingMailer, config: AuthConfig):
    """Return a lifespan that wires test collaborators into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.account_service = AccountService(store, TokenIssuer(config), mailer, config)
        yield

    return test_lifespan


@pytest.fixture
def api() -> Generator[tuple[TestClient, AccountStore, RecordingMailer], None, None]:
    """Yield (client, store, mailer) backed by a fresh shared-memory database."""
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    store = AccountStore(db_url)
    mailer = RecordingMailer()
    app.router.lifespan_context = _patch_lifespan(store, mailer, make_config())

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store, mailer

    store.close()


def signup(client: TestClient, email: str = "a@x.com", password: str = "Secret123"):
    return client.post(
        "/api/v1/users/signup",
        json={"email": email, "password": password, "passwordConfirm": password},
    )
