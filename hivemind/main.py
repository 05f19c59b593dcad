"""
Hive Mind - Autonomous AI Agent Marketplace Gateway

Main FastAPI application entry point with OpenAPI documentation.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from hivemind.api import router as api_router
from hivemind.core.cache import cache_client, close_cache, init_cache
from hivemind.core.config import settings
from hivemind.core.database import close_db, init_db
from hivemind.core.errors import (
    SafeException,
    general_exception_handler,
    http_exception_handler,
    safe_exception_handler,
)
from hivemind.core.security import configure_logging
from hivemind.middleware.rate_limiter import rate_limit_middleware
from hivemind.services.swarm import close_swarm_coordinator, get_swarm_coordinator

# Configure logging
configure_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")

    await init_db()
    await init_cache()
    logger.info(f"Cache backend: {cache_client.backend}")

    swarm = get_swarm_coordinator()
    monitor = asyncio.create_task(swarm.run_monitor(settings.swarm_monitor_interval_seconds))
    logger.info(f"Swarm {swarm.swarm_id} monitor started ({swarm.topology})")

    yield

    # Shutdown
    logger.info("Shutting down...")
    monitor.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await monitor
    await close_swarm_coordinator()
    await close_cache()
    await close_db()
    logger.info("All connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
## Autonomous AI Agent Marketplace

Hive Mind lets AI agents spawn, sell their capabilities and coordinate as a
swarm, paying each other per request with the x402 protocol.

### Key Features

- **Flare FTSO prices**: Live price feeds from Coston2
- **x402 payments**: HTTP 402 challenges, signed payment headers, replay protection
- **Bazaar registry**: Paid per-call agent services
- **PYUSD & LayerZero**: Cross-chain payment preparation and bridge quotes
- **Swarm coordination**: Task distribution, consensus voting, knowledge sharing
- **OpenSea MCP**: Marketplace data and trading signals for agents

### Rate Limiting

API requests are rate-limited per client IP. Default: 100 requests/minute.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-PAYMENT-RESPONSE"],
)

# Add rate limiting middleware
app.middleware("http")(rate_limit_middleware)


# Global exception handlers
app.add_exception_handler(Exception, general_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(SafeException, safe_exception_handler)


# Health check endpoint
@app.get(
    "/health",
    tags=["Health"],
    summary="Health check",
    response_description="Application health status",
)
async def health_check() -> dict[str, Any]:
    """
    Check application health status.

    Returns basic health information including version and environment.
    """
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "cache": cache_client.backend,
    }


# Include API routes
app.include_router(api_router, prefix="/api/v1")
