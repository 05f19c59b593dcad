"""
Flare FTSO price feed service.

Prices are read from the FTSO feed contracts on Coston2. A feed without a
contract, or whose contract read fails, reports a fixed reference price with
lower confidence instead of failing the whole request.
"""

import logging
import time
from typing import Any

from hivemind.blockchain.client import ChainClient, get_chain_client
from hivemind.contracts.abis import FTSO_ABI
from hivemind.core.cache import cache_client
from hivemind.core.config import settings
from hivemind.core.constants import (
    FTSO_FALLBACK_CONFIDENCE,
    FTSO_FALLBACK_PRICES,
    FTSO_ONCHAIN_CONFIDENCE,
)
from hivemind.core.errors import ChainReadError

logger = logging.getLogger(__name__)

SOURCE = "flare-coston2"
NETWORK = "coston2"
DOCUMENTATION_URL = "https://docs.flare.network/tech/ftso/"
PRICE_CACHE_TTL_SECONDS = 5


def default_decimals(symbol: str) -> int:
    """Display decimals: 2 for BTC and ETH pairs, 4 otherwise."""
    return 2 if "BTC" in symbol or "ETH" in symbol else 4


class PriceFeedService:
    """Service for reading Flare FTSO prices."""

    def __init__(self, chain: ChainClient | None = None, feeds: dict[str, str] | None = None):
        """
        Initialize the price feed service.

        Args:
            chain: Client for the Flare RPC. Defaults to the configured endpoint.
            feeds: Symbol to feed contract map. Defaults to settings.
        """
        self.chain = chain or get_chain_client(settings.flare_rpc_url)
        self.feeds = feeds if feeds is not None else dict(settings.ftso_price_feeds)

    async def get_feed_info(self) -> dict[str, Any]:
        """Describe the available feeds along with the current block."""
        block = await self.chain.get_latest_block()
        return {
            "network": "flare-coston2",
            "rpcUrl": self.chain.rpc_url,
            "ftsoRegistry": settings.ftso_registry_address,
            "blockNumber": block["number"],
            "timestamp": block["timestamp"],
            "availableFeeds": list(self.feeds.keys()),
            "priceFeeds": dict(self.feeds),
            "documentation": DOCUMENTATION_URL,
        }

    async def _read_feed(self, symbol: str) -> dict[str, Any] | None:
        """Read a feed contract, returning None when it has no usable value."""
        address = self.feeds.get(symbol)
        if not address:
            return None

        cache_key = f"ftso:price:{symbol}"
        cached = await cache_client.get(cache_key)
        if cached is not None:
            return cached

        try:
            price, timestamp, decimals = await self.chain.call(
                address, FTSO_ABI, "getCurrentPriceWithDecimals"
            )
        except (ChainReadError, ValueError) as e:
            logger.debug(f"FTSO read for {symbol} failed, using reference price: {e}")
            return None

        reading = {
            "value": int(price) / 10 ** int(decimals),
            "timestamp": int(timestamp) * 1000,
            "decimals": int(decimals),
        }
        await cache_client.set(cache_key, reading, ttl=PRICE_CACHE_TTL_SECONDS)
        return reading

    async def _price_entry(self, symbol: str, block_number: int, block_timestamp: int) -> dict[str, Any]:
        reading = await self._read_feed(symbol)
        if reading is not None:
            return {
                "symbol": symbol,
                "value": reading["value"],
                "timestamp": reading["timestamp"],
                "decimals": reading["decimals"],
                "confidence": FTSO_ONCHAIN_CONFIDENCE,
                "source": SOURCE,
                "blockNumber": block_number,
            }

        known = symbol in FTSO_FALLBACK_PRICES
        return {
            "symbol": symbol,
            "value": FTSO_FALLBACK_PRICES.get(symbol, 0.0),
            "timestamp": block_timestamp * 1000,
            "decimals": default_decimals(symbol),
            "confidence": FTSO_FALLBACK_CONFIDENCE if known else 0.0,
            "source": SOURCE,
            "blockNumber": block_number,
        }

    async def get_price(self, symbol: str) -> dict[str, Any]:
        """
        Get a single price.

        Args:
            symbol: Trading pair, e.g. ``FLR/USD``

        Returns:
            Price entry with network and feed contract
        """
        block = await self.chain.get_latest_block()
        entry = await self._price_entry(symbol, block["number"], block["timestamp"])
        entry.pop("decimals")
        entry["network"] = NETWORK
        entry["ftsoContract"] = self.feeds.get(symbol)
        return entry

    async def get_prices(self, symbols: list[str]) -> dict[str, Any]:
        """
        Get prices for several symbols.

        A symbol whose lookup fails unexpectedly is reported with value 0 and
        confidence 0 rather than failing the batch.

        Args:
            symbols: Trading pairs

        Returns:
            Dict with prices, network, block number and FTSO registry
        """
        block = await self.chain.get_latest_block()
        prices = []
        for symbol in symbols:
            try:
                prices.append(await self._price_entry(str(symbol), block["number"], block["timestamp"]))
            except Exception as e:
                logger.error(f"Failed to fetch price for {symbol}: {e}")
                prices.append({
                    "symbol": symbol,
                    "value": 0,
                    "timestamp": int(time.time() * 1000),
                    "decimals": 18,
                    "confidence": 0,
                    "source": SOURCE,
                    "blockNumber": block["number"],
                })

        return {
            "prices": prices,
            "network": NETWORK,
            "blockNumber": block["number"],
            "ftsoRegistry": settings.ftso_registry_address,
        }
