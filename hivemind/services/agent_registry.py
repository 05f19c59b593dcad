"""
Agent spawn registry.

Spawning allocates an id, a wallet and a port for a new agent of one of the
known types and records it as ``pending``. The agent is reported ``active``
once its activation delay has passed.
"""

import logging
import random
import secrets
import string
import time
from datetime import timedelta
from typing import Any

from eth_account import Account
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.blockchain.client import to_checksum
from hivemind.core.config import settings
from hivemind.core.constants import AGENT_PORT_PROBE_ATTEMPTS, AGENT_PORT_PROBE_RANGE
from hivemind.core.database import utcnow
from hivemind.core.errors import AgentNotFoundError, InvalidParameterError, SafeException
from hivemind.models.agents import SpawnedAgent

logger = logging.getLogger(__name__)

AGENT_TYPES: dict[str, dict[str, Any]] = {
    "coordinator": {
        "capabilities": ["task-distribution", "consensus-voting", "swarm-optimization"],
        "port": 3100,
        "memory": "512Mi",
        "cpu": "0.5",
    },
    "analyzer": {
        "capabilities": ["sentiment-analysis", "pattern-recognition", "data-mining"],
        "port": 3200,
        "memory": "256Mi",
        "cpu": "0.25",
    },
    "trader": {
        "capabilities": ["arbitrage", "market-making", "risk-assessment"],
        "port": 3300,
        "memory": "512Mi",
        "cpu": "0.5",
    },
    "optimizer": {
        "capabilities": ["portfolio-optimization", "yield-farming", "gas-optimization"],
        "port": 3400,
        "memory": "256Mi",
        "cpu": "0.25",
    },
    "researcher": {
        "capabilities": ["market-research", "trend-analysis", "predictive-modeling"],
        "port": 3500,
        "memory": "256Mi",
        "cpu": "0.25",
    },
}

BASE36_ALPHABET = string.digits + string.ascii_lowercase


class InvalidAgentTypeError(SafeException):
    status_code = 400


class AgentIdCollisionError(SafeException):
    status_code = 409


class NoAvailablePortError(SafeException):
    status_code = 503


def agent_type_config(agent_type: str | None) -> dict[str, Any]:
    """
    Look up a spawnable agent type.

    Raises:
        InvalidAgentTypeError: Unknown agent type
    """
    config = AGENT_TYPES.get(agent_type or "")
    if config is None:
        raise InvalidAgentTypeError(
            "Invalid agent type",
            detail={"error": "Invalid agent type", "validTypes": list(AGENT_TYPES)},
        )
    return config


def checked_wallet_address(wallet_address: str | None) -> str | None:
    """Checksum an optional wallet address, raising InvalidParameterError when malformed."""
    if not wallet_address:
        return None
    if not isinstance(wallet_address, str):
        raise InvalidParameterError("Invalid wallet address")
    try:
        return to_checksum(wallet_address)
    except ValueError:
        raise InvalidParameterError("Invalid wallet address", detail=wallet_address)


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_agent_id(agent_type: str) -> str:
    """``<type>-<base36 ms timestamp>-<5 random base36 chars>``."""
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(5))
    return f"{agent_type}-{to_base36(int(time.time() * 1000))}-{suffix}"


class AgentRegistry:
    """Service for spawning and tracking agents."""

    def __init__(self, db: AsyncSession):
        """
        Initialize the agent registry.

        Args:
            db: Database session
        """
        self.db = db

    async def _used_ports(self) -> set[int]:
        result = await self.db.execute(select(SpawnedAgent.port))
        return set(result.scalars().all())

    async def _allocate_port(self, base_port: int) -> int:
        used = await self._used_ports()
        port = base_port
        attempts = 0
        while port in used and attempts < AGENT_PORT_PROBE_ATTEMPTS:
            port = base_port + random.randint(0, AGENT_PORT_PROBE_RANGE - 1)
            attempts += 1
        if port in used:
            raise NoAvailablePortError("No available ports for agent")
        return port

    async def spawn(
        self,
        agent_type: str | None,
        capabilities: list[str] | None = None,
        wallet_address: str | None = None,
    ) -> tuple[SpawnedAgent, bool]:
        """
        Spawn a new agent.

        Args:
            agent_type: One of ``AGENT_TYPES``
            capabilities: Overrides the type's default capabilities
            wallet_address: Existing wallet; a new one is created when omitted

        Returns:
            Tuple of the new agent and whether a wallet was generated

        Raises:
            InvalidAgentTypeError: Unknown agent type
            InvalidParameterError: Malformed wallet address
            AgentIdCollisionError: Generated id already exists
            NoAvailablePortError: No free port near the type's base port
        """
        config = agent_type_config(agent_type)
        wallet_address = checked_wallet_address(wallet_address)

        agent_id = generate_agent_id(agent_type)
        if await self.db.get(SpawnedAgent, agent_id) is not None:
            raise AgentIdCollisionError("Agent ID collision, please retry")

        generated_wallet = False
        if not wallet_address:
            wallet_address = Account.create().address
            generated_wallet = True

        port = await self._allocate_port(config["port"])
        now = utcnow()

        agent = SpawnedAgent(
            id=agent_id,
            type=agent_type,
            status="pending",
            capabilities=list(capabilities or config["capabilities"]),
            endpoint=f"http://localhost:{port}",
            wallet_address=wallet_address,
            port=port,
            memory=config["memory"],
            cpu=config["cpu"],
            tasks=0,
            earnings=0.0,
            version="1.0.0",
            spawned_at=now,
            last_seen=now,
            activates_at=now + timedelta(seconds=settings.agent_activation_delay_seconds),
        )
        self.db.add(agent)
        await self.db.flush()

        logger.info(f"Spawned {agent_type} agent {agent_id} on port {port}")
        return agent, generated_wallet

    def _refresh(self, agent: SpawnedAgent) -> None:
        now = utcnow()
        if agent.status == "pending" and agent.activates_at <= now:
            agent.status = "active"
            logger.info(f"Agent {agent.id} is now active")
        agent.last_seen = now

    async def get(self, agent_id: str) -> SpawnedAgent:
        """
        Get an agent by id.

        Raises:
            AgentNotFoundError: If no such agent exists
        """
        agent = await self.db.get(SpawnedAgent, agent_id)
        if agent is None:
            raise AgentNotFoundError("Agent not found")
        self._refresh(agent)
        await self.db.flush()
        return agent

    async def list_agents(self, agent_type: str | None = None, status: str | None = None) -> list[SpawnedAgent]:
        """List agents, optionally filtered by type and status."""
        stmt = select(SpawnedAgent).order_by(SpawnedAgent.spawned_at)
        if agent_type:
            stmt = stmt.where(SpawnedAgent.type == agent_type)
        result = await self.db.execute(stmt)
        agents = list(result.scalars().all())

        for agent in agents:
            self._refresh(agent)
        await self.db.flush()

        if status:
            agents = [agent for agent in agents if agent.status == status]
        return agents

    async def terminate(self, agent_id: str) -> SpawnedAgent:
        """
        Remove an agent and release its port.

        Raises:
            AgentNotFoundError: If no such agent exists
        """
        agent = await self.db.get(SpawnedAgent, agent_id)
        if agent is None:
            raise AgentNotFoundError("Agent not found")
        await self.db.delete(agent)
        await self.db.flush()
        logger.info(f"Terminated agent {agent_id}, released port {agent.port}")
        return agent
