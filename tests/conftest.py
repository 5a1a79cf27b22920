"""
tests/conftest.py -- Shared test fixtures for Cinebase auth tests.

This module provides:
  - hasher / issuer / refresh_store / user_store / service: the AuthService
    stack with cheap hashing parameters and isolated storage per test
  - _patch_lifespan(): wires test collaborators into app.state, bypassing
    the real startup (no Redis, no production DB, no OAuth discovery)
  - api_client: TestClient against the real FastAPI app

SQLite databases live in pytest tmp dirs rather than :memory:. AuthService
calls the store from worker threads, and an in-memory SQLite DB is
per-connection, so each thread would otherwise see a blank schema.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates the signing keys instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any core/api import so get_settings() can
# auto-generate SECRET_KEY / REFRESH_SECRET_KEY in dev mode.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.hashing import SecretHasher
from auth.service import AuthService
from auth.session_store import MemoryRefreshTokenStore
from auth.store import UserStore
from auth.tokens import SigningConfig, TokenIssuer
from core.config import Settings

ACCESS_SECRET = "a" * 32
REFRESH_SECRET = "r" * 32
REFRESH_TTL = 3600

# ---------------------------------------------------------------------------
# AuthService stack
# ---------------------------------------------------------------------------


def make_hasher() -> SecretHasher:
    """Lowest legal costs -- the algorithms are unchanged, only slower in prod."""
    return SecretHasher(bcrypt_rounds=4, argon2_time_cost=1, argon2_memory_cost=8, argon2_parallelism=1)


def make_issuer() -> TokenIssuer:
    return TokenIssuer(
        access=SigningConfig(secret=ACCESS_SECRET, expire_seconds=900),
        refresh=SigningConfig(secret=REFRESH_SECRET, expire_seconds=86400),
    )


@pytest.fixture
def hasher() -> SecretHasher:
    return make_hasher()


@pytest.fixture
def issuer() -> TokenIssuer:
    return make_issuer()


@pytest.fixture
def refresh_store() -> MemoryRefreshTokenStore:
    return MemoryRefreshTokenStore()


@pytest.fixture
def user_store(tmp_path) -> Generator[UserStore, None, None]:
    store = UserStore(db_url=f"sqlite:///{tmp_path / 'users.db'}")
    yield store
    store.close()


@pytest.fixture
def service(user_store, hasher, issuer, refresh_store) -> AuthService:
    return AuthService(
        user_store=user_store,
        hasher=hasher,
        issuer=issuer,
        refresh_store=refresh_store,
        refresh_ttl_seconds=REFRESH_TTL,
    )


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, user_store: UserStore):
    """Return a lifespan that wires test collaborators into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        issuer = make_issuer()
        refresh_store = MemoryRefreshTokenStore()
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.refresh_store = refresh_store
        app.state.token_issuer = issuer
        app.state.oauth = MagicMock()
        app.state.auth_service = AuthService(
            user_store=user_store,
            hasher=make_hasher(),
            issuer=issuer,
            refresh_store=refresh_store,
            refresh_ttl_seconds=REFRESH_TTL,
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[TestClient, None, None]:
    """Yield a TestClient with isolated stores. One client per test module."""
    db_path = tmp_path_factory.mktemp("api") / "users.db"
    user_store = UserStore(db_url=f"sqlite:///{db_path}")
    settings = Settings(
        debug=True,
        secret_key=ACCESS_SECRET,
        refresh_secret_key=REFRESH_SECRET,
        google_client_id="google-client",
        google_client_secret="google-secret",
    )

    app.router.lifespan_context = _patch_lifespan(settings, user_store)

    with TestClient(app) as client:
        yield client

    user_store.close()
