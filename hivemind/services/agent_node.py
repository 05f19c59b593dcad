"""
Agent node capability server.

An agent node sells its capabilities as paid tools, learns new capabilities
from patterns shared by the swarm, answers swarm messages and buys
capabilities from other agents through x402.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from hivemind.core.config import settings
from hivemind.core.constants import X402_DEFAULT_SERVICE_PRICE_USD
from hivemind.core.errors import SafeException, numeric_param
from hivemind.x402.client import X402Client

logger = logging.getLogger(__name__)

LEARNED_CAPABILITY_PRICE = 0.002


class ToolNotFoundError(SafeException):
    status_code = 404


@dataclass
class Capability:
    name: str
    type: str
    description: str = ""
    parameters: list[str] = field(default_factory=list)
    price: float = X402_DEFAULT_SERVICE_PRICE_USD

    def to_tool(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": list(self.parameters),
            "price": self.price,
        }


DEFAULT_CAPABILITIES = [
    Capability("market-analysis", "analysis", "Pattern and anomaly analysis", ["data"]),
    Capability("price-prediction", "prediction", "24h value prediction", ["current"]),
    Capability("portfolio-optimization", "optimization", "Gradient descent optimizer", ["value"]),
    Capability("data-fetch", "data-fetch", "Fetch data from a named source", ["source"]),
]


class AgentNode:
    """A single agent's capability server state."""

    def __init__(
        self,
        agent_id: str | None = None,
        capabilities: list[Capability] | None = None,
        vote: str | None = None,
        x402_client: X402Client | None = None,
    ):
        self.agent_id = agent_id or settings.agent_node_id
        self.capabilities = list(capabilities if capabilities is not None else DEFAULT_CAPABILITIES)
        self.vote = vote or settings.agent_node_vote
        self.x402_client = x402_client
        self.earnings = 0.0

    def info(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "capabilities": [c.to_tool() for c in self.capabilities],
            "pricing": {"pricePerRequest": X402_DEFAULT_SERVICE_PRICE_USD, "currency": "USDC"},
            "status": "active",
        }

    def tools(self) -> list[dict[str, Any]]:
        return [c.to_tool() for c in self.capabilities]

    def get_capability(self, name: str) -> Capability:
        """
        Look up a tool by name.

        Raises:
            ToolNotFoundError: If the node has no such tool
        """
        for capability in self.capabilities:
            if capability.name == name:
                return capability
        raise ToolNotFoundError("Tool not found")

    @staticmethod
    def prepare_params(capability: Capability, params: dict[str, Any] | None) -> dict[str, Any]:
        """
        Validate and coerce a tool's parameters.

        Routes call this before the payment is consumed.

        Raises:
            InvalidParameterError: If a numeric parameter is not a number
        """
        params = dict(params or {})
        if capability.type == "prediction":
            params["current"] = numeric_param(params, "current", 100)
        elif capability.type == "optimization":
            params["value"] = numeric_param(params, "value", 100)
        return params

    def execute(self, capability: Capability, params: dict[str, Any] | None) -> dict[str, Any]:
        """Run a capability and book its price as earnings."""
        params = self.prepare_params(capability, params)
        logger.info(f"Executing capability: {capability.name}")

        if capability.type == "analysis":
            result = {
                "type": "analysis",
                "insights": [
                    "Pattern detected in data",
                    "Anomaly found at index 42",
                    "Trend is upward with 87% confidence",
                ],
                "confidence": 0.87,
                "recommendations": ["Increase allocation", "Monitor closely"],
            }
        elif capability.type == "prediction":
            current = params["current"]
            result = {
                "type": "prediction",
                "value": current * 1.08,
                "confidence": 0.75,
                "timeframe": "24h",
                "factors": ["market sentiment", "historical data", "current trends"],
            }
        elif capability.type == "optimization":
            value = params["value"]
            result = {
                "type": "optimization",
                "originalValue": value,
                "optimizedValue": value * 1.23,
                "improvement": "23%",
                "method": "gradient descent",
            }
        elif capability.type == "data-fetch":
            result = {
                "type": "data",
                "source": params.get("source") or "default",
                "data": {
                    "value": params.get("value"),
                    "timestamp": int(time.time() * 1000),
                    "quality": "high",
                },
            }
        else:
            result = {
                "capability": capability.name,
                "result": f"Executed with params: {json.dumps(params)}",
                "timestamp": int(time.time() * 1000),
            }

        self.earnings += capability.price
        return result

    def learn(self, pattern: str | None, data: Any) -> dict[str, Any]:
        """Learn a capability from a pattern; learning needs data."""
        logger.info(f"Learning pattern: {pattern}")
        if not pattern or data in (None, "", [], {}):
            return {
                "learned": False,
                "pattern": pattern,
                "reason": "Insufficient data for pattern recognition",
            }

        name = f"learned-{pattern}"
        if not any(c.name == name for c in self.capabilities):
            self.capabilities.append(
                Capability(
                    name=name,
                    type="learned",
                    description=f"Capability learned from {pattern} pattern",
                    price=LEARNED_CAPABILITY_PRICE,
                )
            )
        return {"learned": True, "pattern": pattern, "newCapability": name}

    def handle_message(self, from_agent: str | None, message: dict[str, Any]) -> dict[str, Any]:
        message_type = message.get("type")
        logger.info(f"Swarm message from {from_agent}: {message_type}")

        if message_type == "task-request":
            return {"accepted": True, "estimatedTime": "5m"}
        if message_type == "knowledge-share":
            outcome = self.learn(message.get("pattern"), message.get("data"))
            return {"received": True, "learned": outcome["learned"]}
        if message_type == "consensus-vote":
            options = (message.get("proposal") or {}).get("options") or []
            vote = self.vote if not options or self.vote in options else options[0]
            return {"vote": vote}
        return {"acknowledged": True}

    async def purchase_capability(self, capability_url: str, max_price: float | None) -> dict[str, Any]:
        """
        Buy a capability from another agent over x402 and add it to this node.

        Raises:
            PaymentVerificationError: If the purchase cannot be paid for
        """
        client = self.x402_client or X402Client()
        try:
            response = await client.call(capability_url, {"action": "purchase"}, max_price)
        finally:
            # Only close clients created for this purchase
            if client is not self.x402_client:
                await client.close()
        data = response.get("data") or {}

        offered = data.get("capability") if isinstance(data.get("capability"), dict) else data
        capability = Capability(
            name=offered.get("name") or capability_url.rstrip("/").rsplit("/", 1)[-1],
            type=offered.get("type") or "purchased",
            description=offered.get("description") or f"Capability purchased from {capability_url}",
            parameters=list(offered.get("parameters") or []),
            price=offered.get("price") or X402_DEFAULT_SERVICE_PRICE_USD,
        )
        self.capabilities.append(capability)
        logger.info(f"Capability purchased: {capability.name}")
        return {"capability": capability.to_tool(), "paid": response.get("paid"), "receipt": response.get("receipt")}

    def earnings_report(self) -> dict[str, Any]:
        return {
            "total": self.earnings,
            "currency": "USDC",
            "services": [{"id": c.name, "name": c.name, "pricePerCall": c.price} for c in self.capabilities],
        }


_node: AgentNode | None = None


def get_agent_node() -> AgentNode:
    global _node
    if _node is None:
        _node = AgentNode()
    return _node
