"""
Cache connection and management.

Redis is used when ``REDIS_URL`` is configured and reachable; otherwise the
cache keeps entries in process memory with per-key expiry. Values are stored
as JSON strings in both backends.
"""

import json
import logging
import os
import time
from typing import Any

import redis.asyncio as aioredis

from hivemind.core.config import settings

logger = logging.getLogger(__name__)

# In-memory writes between sweeps of expired entries
MEMORY_PURGE_INTERVAL = 256


class CacheClient:
    """Redis cache client with an in-memory fallback."""

    def __init__(self, purge_interval: int = MEMORY_PURGE_INTERVAL):
        self._client: Any | None = None
        self._memory: dict[str, tuple[str, float | None]] = {}
        self._purge_interval = purge_interval
        self._writes = 0

    async def connect(self) -> bool:
        """
        Connect to Redis server.

        Returns:
            bool: True if Redis is in use, False if the in-memory store is.
        """
        if os.environ.get("USE_MOCK_REDIS", "false").lower() == "true":
            from fakeredis import FakeAsyncRedis

            logger.info("Using FakeAsyncRedis for testing")
            self._client = FakeAsyncRedis(decode_responses=True)
            return True

        if not settings.redis_url:
            logger.info("REDIS_URL not set, using in-memory cache")
            return False

        try:
            self._client = aioredis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            await self._client.ping()
            logger.info("Redis connected successfully")
            return True
        except Exception as e:
            logger.warning(f"Could not connect to Redis, using in-memory cache: {e}")
            self._client = None
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")
        self._memory.clear()

    @property
    def backend(self) -> str:
        return "redis" if self._client is not None else "memory"

    def _memory_get(self, key: str) -> str | None:
        entry = self._memory.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._memory[key]
            return None
        return value

    def _memory_put(self, key: str, value: str, expires_at: float | None) -> None:
        self._memory[key] = (value, expires_at)
        self._writes += 1
        if self._writes >= self._purge_interval:
            self._writes = 0
            self.purge_expired()

    def purge_expired(self) -> int:
        """Drop expired in-memory entries; returns how many were removed."""
        now = time.monotonic()
        expired = [
            key for key, (_, expires_at) in self._memory.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._memory[key]
        return len(expired)

    async def get(self, key: str) -> Any | None:
        """Get value from cache."""
        try:
            if self._client is not None:
                raw = await self._client.get(key)
            else:
                raw = self._memory_get(key)
        except Exception as e:
            logger.error(f"Cache get error: {e}")
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Set value in cache with optional TTL in seconds."""
        raw = json.dumps(value)
        try:
            if self._client is not None:
                if ttl:
                    await self._client.setex(key, ttl, raw)
                else:
                    await self._client.set(key, raw)
            else:
                expires_at = time.monotonic() + ttl if ttl else None
                self._memory_put(key, raw, expires_at)
            return True
        except Exception as e:
            logger.error(f"Cache set error: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete value from cache."""
        try:
            if self._client is not None:
                await self._client.delete(key)
            else:
                self._memory.pop(key, None)
            return True
        except Exception as e:
            logger.error(f"Cache delete error: {e}")
            return False

    async def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        try:
            if self._client is not None:
                return await self._client.exists(key) > 0
            return self._memory_get(key) is not None
        except Exception as e:
            logger.error(f"Cache exists error: {e}")
            return False

    async def incr(self, key: str, ttl: int) -> int:
        """Increment a counter, starting its expiry window on first use."""
        if self._client is not None:
            count = await self._client.incr(key)
            if count == 1:
                await self._client.expire(key, ttl)
            return int(count)

        current = self._memory_get(key)
        if current is None:
            self._memory_put(key, "1", time.monotonic() + ttl)
            return 1
        count = int(current) + 1
        self._memory_put(key, str(count), self._memory[key][1])
        return count


# Global cache client instance
cache_client = CacheClient()


async def init_cache() -> None:
    """Initialize cache connection."""
    await cache_client.connect()


async def close_cache() -> None:
    """Close cache connection."""
    await cache_client.close()
