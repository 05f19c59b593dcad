"""Hive Mind MCP Server - marketplace tools for MCP-compatible LLM clients.

Exposes price feeds, bridge quotes, agent spawning, OpenSea actions, swarm
statistics and PYUSD fee estimates to clients such as Claude Desktop or
Cursor. Every tool delegates to the same services as the HTTP API.

Usage:
    hivemind-mcp
"""

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from hivemind.core.cache import init_cache
from hivemind.core.config import settings
from hivemind.core.database import async_session_maker, init_db
from hivemind.core.security import configure_logging
from hivemind.services.agent_registry import AgentRegistry
from hivemind.services.bridge import BridgeService
from hivemind.services.opensea_agent import OpenSeaAgentService
from hivemind.services.price_feed import PriceFeedService
from hivemind.services.pyusd_gateway import PYUSDGateway
from hivemind.services.swarm import get_swarm_coordinator

logger = logging.getLogger(__name__)

mcp = FastMCP(
    name="HiveMind",
    instructions="""Hive Mind MCP Server - Autonomous AI Agent Marketplace

1. **Prices**: get_flare_prices reads Flare FTSO feeds (FLR/USD, XRP/USD, BTC/USD, ETH/USD)
2. **Bridging**: quote_bridge quotes a LayerZero transfer between Base, Arbitrum and Optimism Sepolia
3. **Agents**: list_agents and spawn_agent manage marketplace agents
4. **OpenSea**: opensea_action runs marketplace lookups, market analysis and trading signals
5. **Swarm**: swarm_statistics reports the in-process swarm
6. **Payments**: estimate_payment_fees estimates PYUSD cross-chain payment fees
""",
)

_db_ready = False


async def _ensure_db() -> None:
    global _db_ready
    if not _db_ready:
        await init_db()
        await init_cache()
        _db_ready = True


@mcp.tool()
async def get_flare_prices(symbols: list[str]) -> dict[str, Any]:
    """Get current Flare FTSO prices for trading pairs such as "FLR/USD"."""
    return await PriceFeedService().get_prices(symbols)


@mcp.tool()
async def quote_bridge(
    src_chain_id: int,
    dst_chain_id: int,
    amount: str,
    token: str,
    recipient: str,
) -> dict[str, Any]:
    """Quote a LayerZero bridge transfer between two endpoint ids (e.g. 40245 -> 40231)."""
    return await BridgeService().quote(src_chain_id, dst_chain_id, amount, token, recipient)


@mcp.tool()
async def list_agents(agent_type: str | None = None, status: str | None = None) -> list[dict[str, Any]]:
    """List spawned agents, optionally filtered by type and status."""
    await _ensure_db()
    async with async_session_maker() as session:
        agents = await AgentRegistry(session).list_agents(agent_type, status)
        await session.commit()
        return [agent.to_dict() for agent in agents]


@mcp.tool()
async def spawn_agent(agent_type: str, capabilities: list[str] | None = None) -> dict[str, Any]:
    """Spawn a coordinator, analyzer, trader, optimizer or researcher agent."""
    await _ensure_db()
    async with async_session_maker() as session:
        agent, _generated = await AgentRegistry(session).spawn(agent_type, capabilities)
        await session.commit()
        return agent.to_dict()


@mcp.tool()
async def opensea_action(action: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    """Run an OpenSea agent action such as "marketAnalysis" or "getCollection"."""
    service = OpenSeaAgentService()
    try:
        return await service.handle(action, params, agent_id="mcp")
    finally:
        await service.client.close()


@mcp.tool()
async def swarm_statistics() -> dict[str, Any]:
    """Agents, task counts and earnings of the in-process swarm."""
    return get_swarm_coordinator().statistics()


@mcp.tool()
async def estimate_payment_fees(amount: str, source_chain: str, destination_chain: str) -> dict[str, Any]:
    """Estimate gas and LayerZero fees for a PYUSD payment between two chains."""
    return await PYUSDGateway().estimate_fees({
        "amount": amount,
        "sourceChain": source_chain,
        "destinationChain": destination_chain,
    })


def main():
    """Run the MCP server over stdio."""
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting Hive Mind MCP server")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
