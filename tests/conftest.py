"""
Pytest configuration and shared fixtures.

This module provides common test fixtures for database sessions, the API
test client, a fake chain client and signed x402 payments.
"""

import os

# Settings are read at import time
os.environ.setdefault("RATE_LIMIT_REQUESTS_PER_MINUTE", "100000")
os.environ.setdefault("WALLET_KEYSTORE_ITERATIONS", "1024")
os.environ.setdefault("AGENT_ACTIVATION_DELAY_SECONDS", "0")

from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import hivemind.models  # noqa: F401
from hivemind.api.dependencies import get_client_factory
from hivemind.core.database import Base, get_db
from hivemind.main import app
from hivemind.services.agent_node import AgentNode, get_agent_node
from hivemind.services.swarm import SwarmCoordinator, get_swarm_coordinator
from hivemind.x402.client import sign_payment
from hivemind.x402.requirements import PaymentRequirements

# Test database URL (in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Well-known hardhat account #0, never funded outside local chains
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


@pytest.fixture(scope="function")
async def async_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(async_engine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_chain() -> MagicMock:
    """
    Fake ChainClient.

    Contract reads go through ``mock_chain.call``; set its ``side_effect`` to
    answer ``(address, abi, fn_name, *args)``.
    """
    chain = MagicMock()
    chain.rpc_url = "http://chain.test"
    chain.get_latest_block = AsyncMock(return_value={"number": 1234, "timestamp": 1_700_000_000})
    chain.get_block_number = AsyncMock(return_value=1234)
    chain.get_gas_price = AsyncMock(return_value=2_000_000_000)
    chain.get_balance = AsyncMock(return_value=10**18)
    chain.call = AsyncMock()
    return chain


@pytest.fixture
def client_factory(mock_chain) -> Callable[[str], MagicMock]:
    return lambda rpc_url: mock_chain


@pytest.fixture
def mock_http() -> MagicMock:
    """httpx client stand-in for swarm notifications."""
    http = MagicMock()
    response = MagicMock()
    response.json.return_value = {"success": True, "response": {"accepted": True}}
    response.raise_for_status.return_value = None
    http.post = AsyncMock(return_value=response)
    http.aclose = AsyncMock()
    return http


@pytest.fixture
def swarm(mock_http) -> SwarmCoordinator:
    return SwarmCoordinator(swarm_id="swarm-test", http_client=mock_http)


@pytest.fixture
def agent_node() -> AgentNode:
    return AgentNode(agent_id="node-test", vote="yes")


@pytest.fixture
async def client(
    session_maker,
    client_factory,
    swarm,
    agent_node,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client wired to the test database and fakes."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_client_factory] = lambda: client_factory
    app.dependency_overrides[get_swarm_coordinator] = lambda: swarm
    app.dependency_overrides[get_agent_node] = lambda: agent_node

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def payer():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def make_payment(payer) -> Callable[..., str]:
    """Build a signed ``X-PAYMENT`` header for the given requirements."""

    def _make(requirements: PaymentRequirements | dict[str, Any], **overrides: Any) -> str:
        if isinstance(requirements, dict):
            requirements = PaymentRequirements.model_validate(requirements)
        payload = sign_payment(payer, requirements)
        if overrides:
            payload = payload.model_copy(update=overrides)
        return payload.to_header()

    return _make


@pytest.fixture(autouse=True)
def reset_memory_cache():
    """Start each test with an empty in-memory cache."""
    from hivemind.core.cache import cache_client

    cache_client._memory.clear()
    yield
    cache_client._memory.clear()


@pytest.fixture
async def tolerant_client(client) -> AsyncGenerator[AsyncClient, None]:
    """Like ``client``, but unhandled errors come back as 500 responses."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
