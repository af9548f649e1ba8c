"""
Redis connection management and the counter store built on it.

Rate limiting and token revocation need a small key/counter store. Multi-
instance deployments use Redis; single-instance dev/test builds keep the
counters in process.
"""

from __future__ import annotations

import time
from typing import Optional

import redis.asyncio as redis

from app.core.config import get_settings

_redis_pool: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis connection."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.from_url(
            get_settings().redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


# ---------------------------------------------------------------------------
# Counter stores
# ---------------------------------------------------------------------------

class MemoryCounterStore:
    """Fixed-window counters and flags held in process."""

    def __init__(self) -> None:
        # key -> (value, expires_at)
        self._entries: dict[str, tuple[int, float]] = {}

    def _live(self, key: str, now: float) -> Optional[tuple[int, float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._entries[key]
            return None
        return entry

    async def incr(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Increment ``key``; returns (count, seconds until reset)."""
        now = time.monotonic()
        entry = self._live(key, now)
        if entry is None:
            entry = (0, now + window_seconds)
        count, expires_at = entry[0] + 1, entry[1]
        self._entries[key] = (count, expires_at)
        return count, max(1, int(round(expires_at - now)))

    async def set_flag(self, key: str, ttl_seconds: int) -> None:
        self._entries[key] = (1, time.monotonic() + ttl_seconds)

    async def has_flag(self, key: str) -> bool:
        return self._live(key, time.monotonic()) is not None

    async def reset(self) -> None:
        self._entries.clear()


class RedisCounterStore:
    """Fixed-window counters on Redis: INCR + EXPIRE on first hit."""

    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        self._client = client

    async def _redis(self) -> redis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def incr(self, key: str, window_seconds: int) -> tuple[int, int]:
        client = await self._redis()
        async with client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.ttl(key)
            count, ttl = await pipe.execute()
        if ttl is None or ttl < 0:
            await client.expire(key, window_seconds)
            ttl = window_seconds
        return int(count), int(ttl)

    async def set_flag(self, key: str, ttl_seconds: int) -> None:
        client = await self._redis()
        await client.setex(key, ttl_seconds, "1")

    async def has_flag(self, key: str) -> bool:
        client = await self._redis()
        return await client.exists(key) > 0

    async def reset(self) -> None:
        pass


CounterStore = MemoryCounterStore | RedisCounterStore

_counter_store: Optional[CounterStore] = None


def get_counter_store() -> CounterStore:
    global _counter_store
    if _counter_store is None:
        if get_settings().cache_backend == "redis":
            _counter_store = RedisCounterStore()
        else:
            _counter_store = MemoryCounterStore()
    return _counter_store


def set_counter_store(store: Optional[CounterStore]) -> None:
    """Replace the process-wide counter store (tests, app startup)."""
    global _counter_store
    _counter_store = store
