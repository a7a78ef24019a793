"""
tests/conftest.py -- Shared test fixtures for the knowledge base.

This module provides:
  - db / user_store: fresh sqlite:///:memory: stores for unit tests
  - make_session: factory fixture for Session objects (guard/service tests)
  - _patch_lifespan(): wires a test Database into app.state, bypassing real startup
  - api_client: TestClient plus admin and user tokens for integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixture because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment must be set before any application import: DEBUG lets
get_settings() auto-generate SECRET_KEY, BCRYPT_ROUNDS keeps hashing fast,
ALLOWED_HOSTS admits TestClient's "testserver" host, and LOGIN_RATE_LIMIT is
raised so repeated logins across tests are not throttled.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set before any auth/core import -- settings are read at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "10")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient

from api.main import app, attach_services
from auth.bootstrap import ensure_admin
from auth.models import Role, Session, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.database import Database

ADMIN_EMAIL = "admin@x.com"
ADMIN_PASSWORD = "Secr3tPass"
USER_EMAIL = "reader@x.com"
USER_PASSWORD = "readerpass123"


def _make_session(role: Role = Role.ADMIN, user_id: str = "u-test") -> Session:
    now = datetime.now(timezone.utc)
    return Session(user_id=user_id, role=role, issued_at=now, expires_at=now + timedelta(hours=1))


@pytest.fixture
def make_session():
    """Factory for decoded sessions, so guard and service tests need no tokens."""
    return _make_session


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db() -> Generator[Database, None, None]:
    database = Database("sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture
def user_store(db: Database) -> UserStore:
    return UserStore(db.users)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(db: Database):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(app, db)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, user_token) for API integration tests.

    The admin is created through the bootstrap path with ADMIN_EMAIL /
    ADMIN_PASSWORD so login tests can use the same credentials. The DB name
    includes the test module name so modules never share state.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    db = Database(f"sqlite:///file:test_kb_{suffix}?mode=memory&cache=shared&uri=true")
    store = UserStore(db.users)

    admin, _ = ensure_admin(store, ADMIN_EMAIL, ADMIN_PASSWORD)
    reader = store.create_user(User(email=USER_EMAIL, hashed_password=hash_password(USER_PASSWORD), role=Role.USER))

    admin_token = create_access_token(admin.id, admin.role)
    user_token = create_access_token(reader.id, reader.role)

    app.router.lifespan_context = _patch_lifespan(db)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, admin_token, user_token

    db.close()


@pytest.fixture(autouse=True)
def _fresh_cookies(request) -> None:
    """Drop cookies left on the shared client by earlier login calls.

    Login sets an access_token cookie that the client would otherwise send
    with every later request, turning "anonymous" tests into admin ones.
    """
    if "api_client" in request.fixturenames:
        client, _admin_token, _user_token = request.getfixturevalue("api_client")
        client.cookies.clear()
