"""
Integration tests for the Flare price and coordinator task endpoints.

Chain access goes through the mocked chain client.
"""

import pytest
from httpx import AsyncClient

from hivemind.core.errors import ChainReadError

pytestmark = pytest.mark.integration


class TestFlarePricesAPI:
    """Test FTSO price endpoints."""

    @pytest.mark.asyncio
    async def test_feed_info(self, client: AsyncClient):
        response = await client.get("/api/v1/flare/prices")

        assert response.status_code == 200
        body = response.json()
        assert body["blockNumber"] == 1234
        assert body["rpcUrl"] == "http://chain.test"
        assert body["network"] == "flare-coston2"

    @pytest.mark.asyncio
    async def test_single_price_falls_back(self, client: AsyncClient, mock_chain):
        mock_chain.call.side_effect = ChainReadError("execution reverted")

        response = await client.get("/api/v1/flare/prices", params={"symbol": "FLR/USD"})

        assert response.status_code == 200
        assert response.json()["value"] == 0.0234
        assert response.json()["confidence"] == 99.5

    @pytest.mark.asyncio
    async def test_batch_prices(self, client: AsyncClient, mock_chain):
        mock_chain.call.side_effect = ChainReadError("execution reverted")

        response = await client.post("/api/v1/flare/prices", json={"symbols": ["FLR/USD", "DOGE/EUR"]})

        prices = response.json()["prices"]
        assert [p["symbol"] for p in prices] == ["FLR/USD", "DOGE/EUR"]
        assert prices[1]["confidence"] == 0

    @pytest.mark.asyncio
    async def test_batch_requires_symbols(self, client: AsyncClient):
        response = await client.post("/api/v1/flare/prices", json={"symbols": "FLR/USD"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid symbols parameter"

    @pytest.mark.asyncio
    async def test_batch_with_no_symbols(self, client: AsyncClient):
        response = await client.post("/api/v1/flare/prices", json={"symbols": []})

        assert response.status_code == 200
        assert response.json()["prices"] == []

    @pytest.mark.asyncio
    async def test_batch_missing_symbols(self, client: AsyncClient):
        response = await client.post("/api/v1/flare/prices", json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_rpc_failure(self, client: AsyncClient, mock_chain):
        mock_chain.get_latest_block.side_effect = ChainReadError("connection refused")

        response = await client.get("/api/v1/flare/prices")

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to connect to Flare network",
            "details": "connection refused",
        }


class TestCoordinatorTasksAPI:
    """Test preparing coordinator tasks."""

    @pytest.mark.asyncio
    async def test_prepare_task(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/tasks/create",
            json={"taskType": "analysis", "description": "Analyze FLR", "reward": "10"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["method"] == "createTask"
        assert data["requiredApproval"]["amount"] == str(10 * 10**6)
        assert data["calldata"].startswith("0x")

    @pytest.mark.asyncio
    async def test_prepare_task_requires_parameters(self, client: AsyncClient):
        response = await client.post("/api/v1/tasks/create", json={"taskType": "analysis"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required parameters"

    @pytest.mark.asyncio
    async def test_invalid_reward(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/tasks/create",
            json={"taskType": "analysis", "description": "Analyze", "reward": "lots"},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to prepare task"

    @pytest.mark.asyncio
    async def test_unknown_network(self, client: AsyncClient):
        response = await client.get("/api/v1/tasks/create", params={"network": "dogechain"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid network"
