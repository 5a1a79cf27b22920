"""Unit tests for auth/session_store.py -- refresh-token slot per user.

Covers:
- key format "userId:<id>:refreshToken"
- MemoryRefreshTokenStore: put/get/delete, overwrite resets TTL, lazy expiry,
  idempotent delete, non-positive TTL rejected
- RedisRefreshTokenStore: one SETEX per put (value and TTL together),
  RedisError surfaced as StoreUnavailableError
- build_refresh_token_store() picks the backend from settings
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from auth.errors import InternalError, StoreUnavailableError
from auth.session_store import (
    MemoryRefreshTokenStore,
    RedisRefreshTokenStore,
    build_refresh_token_store,
    refresh_token_key,
)
from core.config import Settings


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_key_format() -> None:
    assert refresh_token_key(42) == "userId:42:refreshToken"


# ---------------------------------------------------------------------------
# Memory backend
# ---------------------------------------------------------------------------


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_get_absent_returns_none(self) -> None:
        store = MemoryRefreshTokenStore()
        assert await store.get(1) is None

    @pytest.mark.asyncio
    async def test_put_then_get(self) -> None:
        store = MemoryRefreshTokenStore()
        await store.put(1, "hash-1", 60)
        assert await store.get(1) == "hash-1"

    @pytest.mark.asyncio
    async def test_put_overwrites_previous_value(self) -> None:
        store = MemoryRefreshTokenStore()
        await store.put(1, "hash-1", 60)
        await store.put(1, "hash-2", 60)
        assert await store.get(1) == "hash-2"

    @pytest.mark.asyncio
    async def test_slots_are_per_user(self) -> None:
        store = MemoryRefreshTokenStore()
        await store.put(1, "hash-1", 60)
        await store.put(2, "hash-2", 60)
        await store.delete(1)
        assert await store.get(1) is None
        assert await store.get(2) == "hash-2"

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self) -> None:
        clock = FakeClock()
        store = MemoryRefreshTokenStore(clock=clock)
        await store.put(1, "hash-1", 60)
        clock.now += 59
        assert await store.get(1) == "hash-1"
        clock.now += 1
        assert await store.get(1) is None

    @pytest.mark.asyncio
    async def test_overwrite_resets_ttl(self) -> None:
        clock = FakeClock()
        store = MemoryRefreshTokenStore(clock=clock)
        await store.put(1, "hash-1", 60)
        clock.now += 50
        await store.put(1, "hash-2", 60)
        clock.now += 50
        assert await store.get(1) == "hash-2"

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self) -> None:
        store = MemoryRefreshTokenStore()
        await store.delete(1)
        await store.put(1, "hash-1", 60)
        await store.delete(1)
        await store.delete(1)
        assert await store.get(1) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [0, -5])
    async def test_non_positive_ttl_rejected(self, ttl: int) -> None:
        store = MemoryRefreshTokenStore()
        with pytest.raises(ValueError):
            await store.put(1, "hash-1", ttl)
        assert await store.get(1) is None


# ---------------------------------------------------------------------------
# Redis backend (client mocked -- no server needed)
# ---------------------------------------------------------------------------


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_put_uses_single_setex(self) -> None:
        client = AsyncMock()
        store = RedisRefreshTokenStore(client)
        await store.put(42, "hash-42", 604800)
        client.setex.assert_awaited_once_with("userId:42:refreshToken", 604800, "hash-42")

    @pytest.mark.asyncio
    async def test_get_and_delete_use_user_key(self) -> None:
        client = AsyncMock()
        client.get.return_value = "hash-42"
        store = RedisRefreshTokenStore(client)
        assert await store.get(42) == "hash-42"
        await store.delete(42)
        client.get.assert_awaited_once_with("userId:42:refreshToken")
        client.delete.assert_awaited_once_with("userId:42:refreshToken")

    @pytest.mark.asyncio
    async def test_get_absent_returns_none(self) -> None:
        client = AsyncMock()
        client.get.return_value = None
        assert await RedisRefreshTokenStore(client).get(1) is None

    @pytest.mark.asyncio
    async def test_non_positive_ttl_never_reaches_redis(self) -> None:
        client = AsyncMock()
        with pytest.raises(ValueError):
            await RedisRefreshTokenStore(client).put(1, "hash", 0)
        client.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_error_becomes_store_unavailable(self) -> None:
        client = AsyncMock()
        client.setex.side_effect = RedisConnectionError("connection refused")
        client.get.side_effect = RedisConnectionError("connection refused")
        store = RedisRefreshTokenStore(client)
        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.put(1, "hash", 60)
        assert isinstance(exc_info.value, InternalError)
        with pytest.raises(StoreUnavailableError):
            await store.get(1)

    @pytest.mark.asyncio
    async def test_close_closes_client(self) -> None:
        client = AsyncMock()
        await RedisRefreshTokenStore(client).close()
        client.aclose.assert_awaited_once()


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


def test_build_without_redis_url_uses_memory() -> None:
    settings = Settings(debug=True, redis_url="")
    assert isinstance(build_refresh_token_store(settings), MemoryRefreshTokenStore)


def test_build_with_redis_url_uses_redis() -> None:
    """from_url does not connect until the first command."""
    settings = Settings(debug=True, redis_url="redis://localhost:6379/0")
    assert isinstance(build_refresh_token_store(settings), RedisRefreshTokenStore)
