"""
tests/conftest.py -- Shared test fixtures for HomeTracker tests.

This module provides:
  - _make_test_store(): isolated named shared-memory SQLite account store
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - store / tokens / service: unit-level fixtures on a private in-memory DB
  - api_client: TestClient (CSRF off) with an admin user and its JWT
  - csrf_client: TestClient with CSRF protection switched on

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
TestClient fixtures because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format shares one in-memory instance across all
connections in the same process.

JWT_SECRET must be set before any app import so get_settings() does not log
the random-key warning during collection. The shared rate limiter is disabled
here; tests that exercise it switch it on and reset it themselves.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set before any api/auth/core import -- Settings is cached on first use.
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-definitely-long-enough-0123456789")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import TokenClaims, User
from auth.passwords import hash_password
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenService
from core.config import Settings

TEST_SECRET = "unit-test-signing-key-with-plenty-of-entropy-abcdef0123456789"
# Low iteration count keeps the suite fast; the codec honours whatever count
# is stored in each record, so behaviour is otherwise identical.
TEST_ITERATIONS = 1000

ADMIN_EMAIL = "admin@hometracker.test"
ADMIN_PASSWORD = "adminpass123"

limiter.enabled = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true")


def _test_settings(**overrides) -> Settings:
    values = {
        "jwt_secret": TEST_SECRET,
        "password_iterations": TEST_ITERATIONS,
        "csrf_enabled": False,
    }
    values.update(overrides)
    return Settings(**values)


def _patch_lifespan(store: UserStore, settings: Settings):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = store
        app.state.auth_service = AuthService(
            store,
            TokenService(TokenConfig.from_settings(settings)),
            iterations=settings.password_iterations,
            default_role_id=settings.default_role_id,
            admin_role_ids=settings.admin_role_ids,
        )
        yield

    return test_lifespan


def make_user(store: UserStore, email: str, password: str, role_id: int = 4, **profile) -> int:
    """Insert an account with a real PBKDF2 record and return its id."""
    return store.insert_user(
        User(
            email=email,
            last_name=profile.pop("last_name", "Tester"),
            first_name=profile.pop("first_name", "Terry"),
            password=hash_password(password, TEST_ITERATIONS),
            role_id=role_id,
            **profile,
        )
    )


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TokenConfig(secret=TEST_SECRET))


@pytest.fixture
def service(store: UserStore, tokens: TokenService) -> AuthService:
    return AuthService(store, tokens, iterations=TEST_ITERATIONS)


# ---------------------------------------------------------------------------
# Module-scoped clients -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin (role 3) is created before the client starts; its token is
    signed with the same configuration the app verifies with.
    """
    store = _make_test_store(request.module.__name__.replace(".", "_"))
    settings = _test_settings()
    admin_id = make_user(store, ADMIN_EMAIL, ADMIN_PASSWORD, role_id=3, first_name="Ada", last_name="Admin")
    token = TokenService(TokenConfig.from_settings(settings)).issue(
        TokenClaims(user_id=admin_id, role_id=3, email=ADMIN_EMAIL)
    )

    app.router.lifespan_context = _patch_lifespan(store, settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin_id

    store.close()


@pytest.fixture(scope="module")
def csrf_client(request) -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) with CSRF protection enabled."""
    store = _make_test_store(request.module.__name__.replace(".", "_") + "_csrf")
    settings = _test_settings(csrf_enabled=True)

    app.router.lifespan_context = _patch_lifespan(store, settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store

    store.close()
