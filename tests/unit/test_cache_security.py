"""
Tests for the cache client and log redaction.
"""

import logging

import pytest

from hivemind.core import cache as cache_module
from hivemind.core.cache import CacheClient
from hivemind.core.security import RedactingFormatter, redact_dict, redact_string, sanitize

PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class TestMemoryCache:
    """Test the in-memory backend."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        cache = CacheClient()

        assert await cache.set("k", {"a": 1}) is True
        assert await cache.get("k") == {"a": 1}
        assert await cache.exists("k") is True

        await cache.delete("k")
        assert await cache.get("k") is None
        assert cache.backend == "memory"

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, monkeypatch):
        cache = CacheClient()
        now = [1000.0]
        monkeypatch.setattr(cache_module.time, "monotonic", lambda: now[0])

        await cache.set("k", "v", ttl=5)
        now[0] += 4
        assert await cache.get("k") == "v"
        now[0] += 2
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_incr_keeps_window(self, monkeypatch):
        cache = CacheClient()
        now = [1000.0]
        monkeypatch.setattr(cache_module.time, "monotonic", lambda: now[0])

        assert await cache.incr("c", 60) == 1

    @pytest.mark.asyncio
    async def test_writes_sweep_expired_entries(self, monkeypatch):
        cache = CacheClient(purge_interval=3)
        now = [1000.0]
        monkeypatch.setattr(cache_module.time, "monotonic", lambda: now[0])

        await cache.set("short", 1, ttl=5)
        await cache.incr("counter", 5)
        now[0] += 10
        await cache.set("kept", 2)

        assert set(cache._memory) == {"kept"}

    async def test_purge_expired(self, monkeypatch):
        cache = CacheClient()
        now = [1000.0]
        monkeypatch.setattr(cache_module.time, "monotonic", lambda: now[0])
        cache._memory = {"old": ("1", 999.0), "fresh": ("1", 1001.0), "forever": ("1", None)}

        assert cache.purge_expired() == 1
        assert set(cache._memory) == {"fresh", "forever"}
        now[0] += 30
        assert await cache.incr("c", 60) == 2
        now[0] += 31
        assert await cache.incr("c", 60) == 1

    @pytest.mark.asyncio
    async def test_no_redis_url_uses_memory(self, monkeypatch):
        monkeypatch.delenv("USE_MOCK_REDIS", raising=False)
        monkeypatch.setattr(cache_module.settings, "redis_url", None)

        assert await CacheClient().connect() is False


class TestFakeRedisCache:
    """Test the Redis backend against fakeredis."""

    @pytest.mark.asyncio
    async def test_redis_backend(self, monkeypatch):
        monkeypatch.setenv("USE_MOCK_REDIS", "true")
        cache = CacheClient()

        assert await cache.connect() is True
        assert cache.backend == "redis"

        await cache.set("k", [1, 2], ttl=60)
        assert await cache.get("k") == [1, 2]
        assert await cache.incr("n", 60) == 1
        assert await cache.incr("n", 60) == 2

        await cache.close()
        assert cache.backend == "memory"


class TestRedaction:
    """Test that secrets never reach the logs."""

    def test_private_key_redacted(self):
        redacted = redact_string(f"imported key {PRIVATE_KEY}")

        assert PRIVATE_KEY not in redacted
        assert "REDACTED" in redacted

    def test_address_not_redacted(self):
        address = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        assert redact_string(f"payer {address}") == f"payer {address}"

    def test_signature_redacted(self):
        signature = "0x" + "ab" * 65
        assert "SIGNATURE" in redact_string(signature)

    def test_bearer_token_redacted(self):
        assert redact_string("Authorization: Bearer abc.def") == "Authorization: Bearer ***REDACTED***"

    def test_redact_dict_nested(self):
        data = {
            "name": "agent",
            "wallet": {"privateKey": PRIVATE_KEY},
            "headers": [{"X-PAYMENT": "eyJzY2hlbWUiOiJleGFjdCJ9"}],
        }

        redacted = redact_dict(data)

        assert redacted["name"] == "agent"
        assert PRIVATE_KEY not in str(redacted)
        assert redacted["headers"][0]["X-PAYMENT"].endswith("***REDACTED***")

    def test_sanitize_passthrough(self):
        assert sanitize(42) == 42
        assert sanitize(["plain"]) == ["plain"]

    def test_formatter_redacts_records(self):
        formatter = RedactingFormatter(fmt="%(message)s")
        record = logging.LogRecord("t", logging.INFO, __file__, 1, f"key={PRIVATE_KEY}", None, None)

        assert PRIVATE_KEY not in formatter.format(record)
