"""
Tests for the agent node capability server.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from hivemind.core.errors import InvalidParameterError
from hivemind.services import agent_node as agent_node_module
from hivemind.services.agent_node import AgentNode, Capability, ToolNotFoundError


class TestCapabilities:
    """Test tool listing and execution."""

    def test_info(self, agent_node):
        info = agent_node.info()

        assert info["agentId"] == "node-test"
        assert info["status"] == "active"
        assert [c["name"] for c in info["capabilities"]] == [
            "market-analysis",
            "price-prediction",
            "portfolio-optimization",
            "data-fetch",
        ]

    def test_unknown_tool(self, agent_node):
        with pytest.raises(ToolNotFoundError) as exc_info:
            agent_node.get_capability("teleport")
        assert exc_info.value.status_code == 404

    def test_execute_prediction_books_earnings(self, agent_node):
        capability = agent_node.get_capability("price-prediction")

        result = agent_node.execute(capability, {"current": 50})

        assert result["value"] == pytest.approx(54.0)
        assert result["timeframe"] == "24h"
        assert agent_node.earnings == pytest.approx(0.001)

    def test_execute_optimization_default_value(self, agent_node):
        result = agent_node.execute(agent_node.get_capability("portfolio-optimization"), None)

        assert result["originalValue"] == 100
        assert result["optimizedValue"] == pytest.approx(123.0)

    def test_zero_value_is_kept(self, agent_node):
        result = agent_node.execute(agent_node.get_capability("portfolio-optimization"), {"value": 0})

        assert result["originalValue"] == 0
        assert result["optimizedValue"] == 0

    def test_numeric_strings_are_coerced(self, agent_node):
        params = agent_node.prepare_params(agent_node.get_capability("price-prediction"), {"current": "50"})

        assert params["current"] == 50.0

    @pytest.mark.parametrize("value", ["abc", True, [1], "nan"])
    def test_non_numeric_value_rejected(self, agent_node, value):
        capability = agent_node.get_capability("portfolio-optimization")

        with pytest.raises(InvalidParameterError) as exc_info:
            agent_node.prepare_params(capability, {"value": value})

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid value parameter"
        assert agent_node.earnings == 0

    def test_execute_custom_capability(self):
        node = AgentNode(agent_id="n", capabilities=[Capability("echo", "custom")])

        result = node.execute(node.get_capability("echo"), {"x": 1})

        assert result["result"] == 'Executed with params: {"x": 1}'

    def test_earnings_report(self, agent_node):
        agent_node.execute(agent_node.get_capability("market-analysis"), {})

        report = agent_node.earnings_report()

        assert report["total"] == pytest.approx(0.001)
        assert len(report["services"]) == 4


class TestLearning:
    """Test capability learning."""

    def test_learning_requires_data(self, agent_node):
        result = agent_node.learn("arbitrage", None)

        assert result["learned"] is False
        assert result["reason"] == "Insufficient data for pattern recognition"

    def test_learn_adds_capability_once(self, agent_node):
        result = agent_node.learn("arbitrage", {"spread": 0.02})
        agent_node.learn("arbitrage", {"spread": 0.03})

        assert result == {"learned": True, "pattern": "arbitrage", "newCapability": "learned-arbitrage"}
        learned = [c for c in agent_node.capabilities if c.name == "learned-arbitrage"]
        assert len(learned) == 1
        assert learned[0].price == 0.002


class TestSwarmMessages:
    """Test replies to swarm messages."""

    def test_task_request(self, agent_node):
        assert agent_node.handle_message("queen", {"type": "task-request"}) == {
            "accepted": True,
            "estimatedTime": "5m",
        }

    def test_knowledge_share(self, agent_node):
        reply = agent_node.handle_message("queen", {"type": "knowledge-share", "pattern": "p", "data": [1]})
        assert reply == {"received": True, "learned": True}

    def test_vote_follows_policy(self, agent_node):
        reply = agent_node.handle_message("queen", {"type": "consensus-vote", "proposal": {"options": ["yes", "no"]}})
        assert reply == {"vote": "yes"}

    def test_vote_falls_back_to_first_option(self, agent_node):
        reply = agent_node.handle_message("queen", {"type": "consensus-vote", "proposal": {"options": ["a", "b"]}})
        assert reply == {"vote": "a"}

    def test_other_messages_acknowledged(self, agent_node):
        assert agent_node.handle_message(None, {"type": "task-completed"}) == {"acknowledged": True}


class TestPurchase:
    """Test buying capabilities over x402."""

    @pytest.mark.asyncio
    async def test_purchase_capability(self):
        x402_client = MagicMock()
        x402_client.call = AsyncMock(return_value={
            "data": {"capability": {"name": "sentiment", "type": "analysis", "price": 0.004}},
            "paid": "4000",
            "receipt": {"success": True},
        })
        node = AgentNode(agent_id="buyer", x402_client=x402_client)

        purchase = await node.purchase_capability("https://seller.test/tools/sentiment", 0.01)

        x402_client.call.assert_awaited_once_with("https://seller.test/tools/sentiment", {"action": "purchase"}, 0.01)
        assert purchase["capability"]["name"] == "sentiment"
        assert purchase["paid"] == "4000"
        assert node.get_capability("sentiment").price == 0.004

    @pytest.mark.asyncio
    async def test_purchase_names_capability_from_url(self):
        x402_client = MagicMock()
        x402_client.call = AsyncMock(return_value={"data": None, "paid": None, "receipt": None})
        node = AgentNode(agent_id="buyer", x402_client=x402_client)

        purchase = await node.purchase_capability("https://seller.test/tools/forecast/", None)

        assert purchase["capability"]["name"] == "forecast"
        assert node.get_capability("forecast").type == "purchased"

    @pytest.mark.asyncio
    async def test_purchase_closes_its_own_client(self, monkeypatch):
        owned = MagicMock()
        owned.call = AsyncMock(side_effect=RuntimeError("seller unreachable"))
        owned.close = AsyncMock()
        monkeypatch.setattr(agent_node_module, "X402Client", lambda: owned)
        node = AgentNode(agent_id="buyer")

        with pytest.raises(RuntimeError):
            await node.purchase_capability("https://seller.test/tools/forecast", None)

        owned.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_purchase_leaves_shared_client_open(self):
        x402_client = MagicMock()
        x402_client.call = AsyncMock(return_value={"data": {"name": "forecast"}})
        x402_client.close = AsyncMock()
        node = AgentNode(agent_id="buyer", x402_client=x402_client)

        await node.purchase_capability("https://seller.test/tools/forecast", None)

        x402_client.close.assert_not_awaited()
