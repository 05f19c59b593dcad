"""
Rate limiting middleware for FastAPI.

Fixed one-minute windows per client IP, counted in the shared cache (Redis
when configured, otherwise process memory).
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from hivemind.core.cache import CacheClient, cache_client
from hivemind.core.config import settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


class RateLimiter:
    """Per-IP fixed-window rate limiter."""

    def __init__(
        self,
        requests_per_minute: int = 100,
        cache: CacheClient | None = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            requests_per_minute: Maximum requests per window
            cache: Counter store (defaults to the global cache client)
        """
        self.requests_per_minute = requests_per_minute
        self.cache = cache or cache_client
        self.window_seconds = WINDOW_SECONDS

    def _get_key(self, request: Request, window: int) -> str:
        client_ip = request.client.host if request.client else "unknown"
        return f"rate_limit:ip:{client_ip}:{window}"

    async def check_limit(self, request: Request) -> tuple[bool, int, int]:
        """
        Count a request against its client's window.

        Returns:
            Tuple of (is_allowed, remaining_requests, reset_time)
        """
        now = int(time.time())
        window = now // self.window_seconds
        reset_time = (window + 1) * self.window_seconds

        try:
            count = await self.cache.incr(self._get_key(request, window), self.window_seconds)
        except Exception as e:
            logger.error(f"Rate limit counter unavailable, allowing request: {e}")
            return True, self.requests_per_minute, reset_time

        remaining = max(0, self.requests_per_minute - count)
        return count <= self.requests_per_minute, remaining, reset_time

    def get_headers(self, remaining: int, reset_time: int) -> dict[str, str]:
        """Generate rate limit headers."""
        return {
            "X-RateLimit-Limit": str(self.requests_per_minute),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(reset_time),
        }


_rate_limiter = RateLimiter(requests_per_minute=settings.rate_limit_requests_per_minute)


async def rate_limit_middleware(
    request: Request,
    call_next: Callable[[Request], Any]
) -> Any:
    """
    FastAPI middleware for rate limiting.

    Only ``/api/`` paths are limited. Requests over the limit get HTTP 429
    with ``Retry-After``.
    """
    if not request.url.path.startswith("/api/"):
        return await call_next(request)

    is_allowed, remaining, reset_time = await _rate_limiter.check_limit(request)
    headers = _rate_limiter.get_headers(remaining, reset_time)

    if not is_allowed:
        retry_after = max(1, reset_time - int(time.time()))
        logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": "Rate limit exceeded. Please try again later."},
            headers={**headers, "Retry-After": str(retry_after)},
        )

    response = await call_next(request)
    for key, value in headers.items():
        response.headers[key] = value
    return response
