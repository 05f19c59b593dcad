"""
Tests for the Flare FTSO price feed service.
"""

import pytest

from hivemind.core.errors import ChainReadError
from hivemind.services.price_feed import PriceFeedService

FEEDS = {
    "FLR/USD": "0x0000000000000000000000000000000000000f01",
    "BTC/USD": "0x0000000000000000000000000000000000000f02",
}


@pytest.fixture
def service(mock_chain):
    return PriceFeedService(chain=mock_chain, feeds=dict(FEEDS))


class TestPriceFeedService:
    """Test on-chain reads and reference price fallback."""

    @pytest.mark.asyncio
    async def test_onchain_price(self, service, mock_chain):
        mock_chain.call.return_value = (234_000, 1_700_000_100, 7)

        price = await service.get_price("FLR/USD")

        assert price["value"] == pytest.approx(0.0234)
        assert price["confidence"] == 100.0
        assert price["timestamp"] == 1_700_000_100_000
        assert price["blockNumber"] == 1234
        assert price["network"] == "coston2"
        assert price["ftsoContract"] == FEEDS["FLR/USD"]
        assert "decimals" not in price

    @pytest.mark.asyncio
    async def test_fallback_when_feed_read_fails(self, service, mock_chain):
        mock_chain.call.side_effect = ChainReadError("execution reverted")

        result = await service.get_prices(["FLR/USD", "BTC/USD"])

        flr, btc = result["prices"]
        assert flr["value"] == 0.0234
        assert flr["confidence"] == 99.5
        assert flr["decimals"] == 4
        assert flr["timestamp"] == 1_700_000_000_000
        assert btc["value"] == 45678.90
        assert btc["decimals"] == 2
        assert result["blockNumber"] == 1234

    @pytest.mark.asyncio
    async def test_unknown_symbol_has_zero_confidence(self, service, mock_chain):
        price = await service.get_price("DOGE/USD")

        assert price["value"] == 0.0
        assert price["confidence"] == 0.0
        assert price["ftsoContract"] is None
        mock_chain.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_readings_are_cached(self, service, mock_chain):
        mock_chain.call.return_value = (234_000, 1_700_000_100, 7)

        await service.get_price("FLR/USD")
        await service.get_price("FLR/USD")

        assert mock_chain.call.await_count == 1

    @pytest.mark.asyncio
    async def test_feed_info(self, service):
        info = await service.get_feed_info()

        assert info["network"] == "flare-coston2"
        assert info["availableFeeds"] == ["FLR/USD", "BTC/USD"]
        assert info["blockNumber"] == 1234
        assert info["rpcUrl"] == "http://chain.test"

    @pytest.mark.asyncio
    async def test_block_read_failure_propagates(self, service, mock_chain):
        mock_chain.get_latest_block.side_effect = ChainReadError("connection refused")

        with pytest.raises(ChainReadError):
            await service.get_prices(["FLR/USD"])
