"""
OpenSea actions for AI agents.

Dispatches agent requests to the OpenSea MCP client and derives market
analysis, price discovery and trading signals from the returned collection
data.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from hivemind.core.errors import InvalidParameterError, SafeException
from hivemind.services.opensea_client import OpenSeaMCPClient

logger = logging.getLogger(__name__)

ACTIONS = [
    "search",
    "searchCollections",
    "getCollection",
    "getTrending",
    "getTopCollections",
    "searchTokens",
    "getToken",
    "getTrendingTokens",
    "getSwapQuote",
    "getNFTBalances",
    "getTokenBalances",
    "analyzePortfolio",
    "getProfile",
    "marketAnalysis",
    "priceDiscovery",
    "tradingSignals",
]

MARKET_RECOMMENDATIONS = [
    "Consider diversifying into blue-chip NFT collections",
    "Monitor gas fees for optimal entry points",
    "Track whale wallet movements for early signals",
]


class UnknownOpenSeaAction(SafeException):
    status_code = 400


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_market_analysis(
    trending: list[dict[str, Any]],
    top_collections: list[dict[str, Any]],
    trending_tokens: list[dict[str, Any]],
) -> dict[str, Any]:
    """Sentiment from trending floor prices plus the hottest collections."""
    analysis: dict[str, Any] = {
        "marketSentiment": "neutral",
        "volumeTrend": "increasing",
        "hotCollections": [],
        "emergingTrends": [],
        "recommendations": list(MARKET_RECOMMENDATIONS),
    }

    if trending:
        avg_floor = sum(c.get("floorPrice") or 0 for c in trending) / len(trending)
        if avg_floor > 1:
            analysis["marketSentiment"] = "bullish"
        elif avg_floor < 0.1:
            analysis["marketSentiment"] = "bearish"

        analysis["hotCollections"] = [
            {
                "name": c.get("name"),
                "floorPrice": c.get("floorPrice"),
                "volume": c.get("totalVolume"),
                "trend": "up",
            }
            for c in trending
            if c.get("floorPrice") and c.get("totalVolume")
        ][:5]

    if trending_tokens:
        gainers = [t for t in trending_tokens if (t.get("priceChange24h") or 0) > 10]
        if len(gainers) > len(trending_tokens) / 2:
            analysis["volumeTrend"] = "surging"

    return analysis


def calculate_volatility(collection: dict[str, Any]) -> float:
    """Spread between ceiling and floor as a percentage of the floor, capped at 100."""
    floor = collection.get("floorPrice") or 0
    ceiling = collection.get("ceilingPrice") or floor
    if floor <= 0:
        return 0.0
    return min(100.0, (ceiling - floor) / floor * 100)


def calculate_liquidity(collection: dict[str, Any]) -> float:
    volume = collection.get("totalVolume") or 0
    supply = collection.get("totalSupply") or 1
    return min(100.0, volume / supply * 10)


def estimate_fair_value(collection: dict[str, Any]) -> float:
    floor = collection.get("floorPrice") or 0
    average = collection.get("averagePrice") or floor
    return (floor + average) / 2


def analyze_pricing(collection: dict[str, Any] | None) -> dict[str, Any] | None:
    if not collection:
        return None
    return {
        "floorPrice": collection.get("floorPrice") or 0,
        "ceilingPrice": collection.get("ceilingPrice") or 0,
        "averagePrice": collection.get("averagePrice") or 0,
        "priceVolatility": calculate_volatility(collection),
        "liquidityScore": calculate_liquidity(collection),
        "fairValue": estimate_fair_value(collection),
    }


def generate_price_recommendation(collection: dict[str, Any] | None) -> dict[str, str] | None:
    if not collection:
        return None

    floor = collection.get("floorPrice") or 0
    volume = collection.get("totalVolume") or 0

    if floor < 0.1 and volume > 100:
        return {
            "action": "BUY",
            "confidence": "HIGH",
            "reason": "High volume with low floor price indicates opportunity",
        }
    if floor > 10 and volume < 10:
        return {
            "action": "SELL",
            "confidence": "MEDIUM",
            "reason": "High price with low volume suggests limited liquidity",
        }
    return {"action": "HOLD", "confidence": "MEDIUM", "reason": "Market conditions are neutral"}


def determine_signal(collection: dict[str, Any] | None) -> str:
    floor = (collection or {}).get("floorPrice") or 0
    if floor < 0.5:
        return "BUY"
    if floor > 5:
        return "SELL"
    return "HOLD"


def calculate_signal_strength(collection: dict[str, Any] | None) -> int:
    """0-100, growing with the floor's distance past the BUY or SELL threshold."""
    floor = (collection or {}).get("floorPrice") or 0
    signal = determine_signal(collection)
    if signal == "BUY":
        return int((0.5 - floor) / 0.5 * 100)
    if signal == "SELL":
        return int(min(100.0, (floor - 5) / 5 * 100))
    return 50


class OpenSeaAgentService:
    """Service dispatching agent actions to OpenSea."""

    def __init__(self, client: OpenSeaMCPClient | None = None):
        self.client = client or OpenSeaMCPClient()

    @staticmethod
    def describe() -> dict[str, Any]:
        return {
            "service": "OpenSea MCP Agent Interface",
            "version": "1.0.0",
            "capabilities": list(ACTIONS),
            "description": "AI agents can use this endpoint to interact with OpenSea marketplace data",
            "rateLimit": "100 requests per minute",
            "authentication": "Required via agent ID",
        }

    async def trading_signals(self, slugs: list[str]) -> list[dict[str, Any]]:
        signals = []
        for slug in slugs:
            collection = await self.client.get_collection(slug, ["analytics"])
            signals.append({
                "collection": slug,
                "signal": determine_signal(collection),
                "strength": calculate_signal_strength(collection),
                "timestamp": _iso_now(),
            })
        return signals

    async def execute(self, action: str | None, params: dict[str, Any] | None, agent_id: str | None = None) -> Any:
        """
        Run one agent action.

        Raises:
            UnknownOpenSeaAction: For actions not in ``ACTIONS``
            InvalidParameterError: When ``collections`` is not a list of slugs
            OpenSeaError: When ``search`` fails
        """
        params = params or {}
        logger.info(f"Agent {agent_id} requesting OpenSea action: {action}")
        client = self.client

        if action == "search":
            return await client.search(params)
        if action == "searchCollections":
            return await client.search_collections(params.get("query"), params.get("chain"))
        if action == "getCollection":
            return await client.get_collection(params.get("slug"), params.get("includes"))
        if action == "getTrending":
            return await client.get_trending_collections(params.get("timeframe") or "ONE_DAY", params.get("chain"))
        if action == "getTopCollections":
            return await client.get_top_collections(params.get("sortBy") or "VOLUME", params.get("chain"))
        if action == "searchTokens":
            return await client.search_tokens(params.get("query"), params.get("chain"))
        if action == "getToken":
            return await client.get_token(params.get("address"), params.get("chain"))
        if action == "getTrendingTokens":
            return await client.get_trending_tokens(params.get("chain"))
        if action == "getSwapQuote":
            return await client.get_swap_quote(
                params.get("fromToken"), params.get("toToken"), params.get("amount"), params.get("chain")
            )
        if action == "getNFTBalances":
            return await client.get_nft_balances(params.get("address"), params.get("chain"))
        if action == "getTokenBalances":
            return await client.get_token_balances(params.get("address"), params.get("chain"))
        if action == "analyzePortfolio":
            return await client.analyze_portfolio(params.get("address"))
        if action == "getProfile":
            return await client.get_profile(params.get("address"), params.get("includes"))

        if action == "marketAnalysis":
            trending, top_collections, trending_tokens = await asyncio.gather(
                client.get_trending_collections("ONE_DAY"),
                client.get_top_collections("VOLUME"),
                client.get_trending_tokens(),
            )
            return {
                "trending": trending,
                "topCollections": top_collections,
                "trendingTokens": trending_tokens,
                "timestamp": _iso_now(),
                "analysis": generate_market_analysis(trending, top_collections, trending_tokens),
            }

        if action == "priceDiscovery":
            collection = await client.get_collection(params.get("slug"), ["analytics", "activity"])
            return {
                "collection": collection,
                "priceAnalysis": analyze_pricing(collection),
                "recommendation": generate_price_recommendation(collection),
            }

        if action == "tradingSignals":
            collections = params.get("collections")
            if collections is None:
                collections = []
            if not isinstance(collections, list) or not all(isinstance(slug, str) for slug in collections):
                raise InvalidParameterError("Invalid collections parameter")
            return await self.trading_signals(collections)

        raise UnknownOpenSeaAction(f"Unknown action: {action}")

    async def handle(self, action: str | None, params: dict[str, Any] | None, agent_id: str | None = None) -> dict[str, Any]:
        result = await self.execute(action, params, agent_id)
        return {
            "success": True,
            "action": action,
            "agentId": agent_id,
            "result": result,
            "timestamp": _iso_now(),
        }

