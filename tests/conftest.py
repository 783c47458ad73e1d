"""
tests/conftest.py -- Shared test fixtures for Inkpress tests.

This module provides:
  - make_stores(): isolated file-backed SQLite UserStore + ContentStore
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_env: TestClient plus an admin, a reader, and their session cookies
  - user_store / content_store: function-scoped stores for unit tests

Design: temporary SQLite FILES (not :memory:) because handlers run in
FastAPI's threadpool and fire-and-forget writes run on core.background's
executor. Every pooled connection must see the same database, and WAL mode
lets the background writers proceed while readers hold connections.

The environment must be set before any auth/core import:
  DEBUG=true               -- get_settings() generates SECRET_KEY instead of raising
  BCRYPT_ROUNDS=4          -- the minimum bcrypt cost; keeps hashing fast
  RATE_LIMIT_ENABLED=false -- module-scoped clients would otherwise trip limits
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import NamedTuple

# CRITICAL: set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import create_session_token, hash_password
from blog.store import ContentStore
from core import background
from core.config import get_settings

ADMIN_EMAIL = "admin@inkpress.test"
ADMIN_PASSWORD = "correct-horse-battery"
READER_EMAIL = "reader@inkpress.test"
READER_PASSWORD = "reader-password-1"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_stores(directory: Path) -> tuple[UserStore, ContentStore]:
    """Create both stores over one fresh SQLite file in directory."""
    db_url = f"sqlite:///{directory / 'inkpress_test.db'}"
    return UserStore(db_url=db_url), ContentStore(db_url=db_url)


def _patch_lifespan(user_store: UserStore, content_store: ContentStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs. On exit it drains the background executor so no
    fire-and-forget write outlives the stores.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.content_store = content_store
        yield
        background.shutdown(wait=True)

    return test_lifespan


def session_cookie(email: str, role: Role) -> dict[str, str]:
    """Build a Cookie header carrying a valid session for email."""
    token = create_session_token(email, role.value)
    return {"Cookie": f"{get_settings().session_cookie_name}={token}"}


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    """Poll predicate until it returns True or timeout elapses. For fire-and-forget effects."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class ApiEnv(NamedTuple):
    client: TestClient
    user_store: UserStore
    content_store: ContentStore
    admin_id: str
    reader_id: str
    admin_headers: dict[str, str]
    reader_headers: dict[str, str]


@pytest.fixture(scope="module")
def api_env(tmp_path_factory) -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real middleware, dependencies, and route handlers over an
    isolated database. One ADMIN and one READER exist before the client
    starts; their headers carry session cookies.
    """
    user_store, content_store = make_stores(tmp_path_factory.mktemp("api"))

    admin_id = user_store.create_user(
        User(email=ADMIN_EMAIL, name="Admin", role=Role.ADMIN, hashed_password=hash_password(ADMIN_PASSWORD))
    )
    reader_id = user_store.create_user(
        User(email=READER_EMAIL, name="Reader", role=Role.READER, hashed_password=hash_password(READER_PASSWORD))
    )

    app.router.lifespan_context = _patch_lifespan(user_store, content_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(
            client=client,
            user_store=user_store,
            content_store=content_store,
            admin_id=admin_id,
            reader_id=reader_id,
            admin_headers=session_cookie(ADMIN_EMAIL, Role.ADMIN),
            reader_headers=session_cookie(READER_EMAIL, Role.READER),
        )

    content_store.close()
    user_store.close()


@pytest.fixture
def user_store(tmp_path) -> Generator[UserStore, None, None]:
    store = UserStore(db_url=f"sqlite:///{tmp_path / 'users.db'}")
    yield store
    background.shutdown(wait=True)
    store.close()


@pytest.fixture
def content_store(tmp_path) -> Generator[ContentStore, None, None]:
    store = ContentStore(db_url=f"sqlite:///{tmp_path / 'content.db'}")
    yield store
    background.shutdown(wait=True)
    store.close()


@pytest.fixture
def admin_user(user_store: UserStore) -> User:
    user_id = user_store.create_user(User(email=ADMIN_EMAIL, role=Role.ADMIN))
    user = user_store.get_by_id(user_id)
    assert user is not None
    return user
