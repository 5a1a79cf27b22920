"""
auth/session_store.py -- Time-bounded store for the latest refresh-token hash.

One slot per user, keyed "userId:<id>:refreshToken". A new write replaces the
previous value and resets its TTL, so a fresh login or rotation invalidates
every refresh token issued before it. This is a single-session-per-identity
model on purpose; there is no per-device slot.

Backends:
  RedisRefreshTokenStore  -- production. SETEX writes the value and its expiry
                             in one command, so a record never exists without
                             a TTL.
  MemoryRefreshTokenStore -- process-local fallback for development when
                             REDIS_URL is unset, and for tests. Not shared
                             between workers.

get() returns None both for "never set" and "expired". Callers cannot tell the
two apart and do not need to: both mean "no valid session".

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from auth.errors import StoreUnavailableError

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("cinebase.auth.session_store")


def refresh_token_key(user_id: int) -> str:
    return f"userId:{user_id}:refreshToken"


class RefreshTokenStore(Protocol):
    async def put(self, user_id: int, hashed_secret: str, ttl_seconds: int) -> None: ...

    async def get(self, user_id: int) -> str | None: ...

    async def delete(self, user_id: int) -> None: ...

    async def close(self) -> None: ...


def _check_ttl(ttl_seconds: int) -> None:
    if ttl_seconds <= 0:
        raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")


class RedisRefreshTokenStore:
    """Refresh-token hashes in Redis.

    Usage:
        store = RedisRefreshTokenStore.from_url("redis://localhost:6379/0")
        await store.put(42, hashed, 604800)
        await store.get(42)
        await store.close()

    Timeouts and reconnects are the redis client's business. Any RedisError
    is surfaced as StoreUnavailableError; nothing is retried here.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisRefreshTokenStore:
        return cls(redis.Redis.from_url(url, decode_responses=True))

    async def put(self, user_id: int, hashed_secret: str, ttl_seconds: int) -> None:
        _check_ttl(ttl_seconds)
        try:
            await self._client.setex(refresh_token_key(user_id), ttl_seconds, hashed_secret)
        except RedisError as exc:
            raise StoreUnavailableError("Refresh-token store write failed") from exc

    async def get(self, user_id: int) -> str | None:
        try:
            return await self._client.get(refresh_token_key(user_id))
        except RedisError as exc:
            raise StoreUnavailableError("Refresh-token store read failed") from exc

    async def delete(self, user_id: int) -> None:
        try:
            await self._client.delete(refresh_token_key(user_id))
        except RedisError as exc:
            raise StoreUnavailableError("Refresh-token store delete failed") from exc

    async def close(self) -> None:
        await self._client.aclose()


class MemoryRefreshTokenStore:
    """In-process dict with expiry timestamps.

    Expired entries are dropped lazily on read. The event loop runs one
    coroutine at a time and none of these methods await, so each operation is
    atomic without a lock.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def put(self, user_id: int, hashed_secret: str, ttl_seconds: int) -> None:
        _check_ttl(ttl_seconds)
        self._entries[refresh_token_key(user_id)] = (hashed_secret, self._clock() + ttl_seconds)

    async def get(self, user_id: int) -> str | None:
        key = refresh_token_key(user_id)
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def delete(self, user_id: int) -> None:
        self._entries.pop(refresh_token_key(user_id), None)

    async def close(self) -> None:
        self._entries.clear()


def build_refresh_token_store(settings: Settings) -> RefreshTokenStore:
    """Return a Redis store when REDIS_URL is set, else the memory fallback.

    Settings only leaves REDIS_URL empty in debug mode, so the memory store
    never backs a production deployment.
    """
    if settings.redis_url:
        logger.info("Refresh-token store: redis")
        return RedisRefreshTokenStore.from_url(settings.redis_url)
    logger.warning("REDIS_URL not set; using in-memory refresh-token store (debug mode, single process only)")
    return MemoryRefreshTokenStore()
