"""
Tests for the rate limiting middleware.
"""

from types import SimpleNamespace

import pytest

from hivemind.core.cache import CacheClient
from hivemind.middleware import rate_limiter as rate_limiter_module
from hivemind.middleware.rate_limiter import RateLimiter


def fake_request(host="10.0.0.1"):
    return SimpleNamespace(client=SimpleNamespace(host=host))


class TestRateLimiter:
    """Test per-IP fixed windows."""

    @pytest.mark.asyncio
    async def test_limit_enforced(self, monkeypatch):
        monkeypatch.setattr(rate_limiter_module.time, "time", lambda: 1_700_000_010.0)
        limiter = RateLimiter(requests_per_minute=2, cache=CacheClient())
        request = fake_request()

        assert (await limiter.check_limit(request))[:2] == (True, 1)
        assert (await limiter.check_limit(request))[:2] == (True, 0)
        allowed, remaining, reset_time = await limiter.check_limit(request)

        assert allowed is False
        assert remaining == 0
        assert reset_time == 1_700_000_040

    @pytest.mark.asyncio
    async def test_clients_counted_separately(self, monkeypatch):
        monkeypatch.setattr(rate_limiter_module.time, "time", lambda: 1_700_000_010.0)
        limiter = RateLimiter(requests_per_minute=1, cache=CacheClient())

        assert (await limiter.check_limit(fake_request("10.0.0.1")))[0] is True
        assert (await limiter.check_limit(fake_request("10.0.0.2")))[0] is True
        assert (await limiter.check_limit(fake_request("10.0.0.1")))[0] is False

    def test_headers(self):
        limiter = RateLimiter(requests_per_minute=100, cache=CacheClient())

        assert limiter.get_headers(42, 1_700_000_040) == {
            "X-RateLimit-Limit": "100",
            "X-RateLimit-Remaining": "42",
            "X-RateLimit-Reset": "1700000040",
        }


class TestRateLimitMiddleware:
    """Test the middleware on the application."""

    @pytest.mark.asyncio
    async def test_api_requests_limited(self, client, monkeypatch):
        monkeypatch.setattr(
            rate_limiter_module,
            "_rate_limiter",
            RateLimiter(requests_per_minute=2, cache=CacheClient()),
        )

        for _ in range(2):
            response = await client.get("/api/v1/node/info")
            assert response.status_code == 200
            assert response.headers["X-RateLimit-Limit"] == "2"

        response = await client.get("/api/v1/node/info")

        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded. Please try again later."}
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Remaining"] == "0"

    @pytest.mark.asyncio
    async def test_health_not_limited(self, client, monkeypatch):
        monkeypatch.setattr(
            rate_limiter_module,
            "_rate_limiter",
            RateLimiter(requests_per_minute=1, cache=CacheClient()),
        )

        for _ in range(3):
            response = await client.get("/health")
            assert response.status_code == 200
