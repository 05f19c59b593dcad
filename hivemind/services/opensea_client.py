"""
OpenSea MCP client.

This module provides a client for OpenSea's hosted MCP endpoint, giving
agents marketplace search, collection and token data, swap quotes and wallet
balances. Every tool is a ``POST /mcp`` with ``{"tool", "params"}``.
"""

import asyncio
import logging
from typing import Any

import httpx

from hivemind.core.config import settings
from hivemind.core.errors import OpenSeaError

logger = logging.getLogger(__name__)


class OpenSeaMCPClient:
    """
    Client for the OpenSea MCP server.

    Lookups that return lists fall back to ``[]`` and single-item lookups to
    ``None`` when the server fails, so agents can keep working with partial
    data. ``search`` is the exception and raises ``OpenSeaError``.
    """

    def __init__(
        self,
        mcp_url: str | None = None,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the OpenSea MCP client.

        Args:
            mcp_url: Base URL of the MCP server. If None, uses settings.opensea_mcp_url
            api_key: Bearer token. If None, uses settings.opensea_api_key
            http_client: Optional pre-configured httpx client
        """
        self.mcp_url = mcp_url or settings.opensea_mcp_url
        self.api_key = api_key if api_key is not None else settings.opensea_api_key
        self.session = http_client or httpx.AsyncClient(timeout=settings.opensea_timeout_seconds)

    async def __aenter__(self) -> "OpenSeaMCPClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()

    async def _make_request(self, tool: str, params: dict[str, Any]) -> Any:
        """
        Call an MCP tool.

        Args:
            tool: MCP tool name
            params: Tool parameters

        Returns:
            Response JSON data

        Raises:
            OpenSeaError: If the request fails
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        url = f"{self.mcp_url.rstrip('/')}/mcp"

        try:
            response = await self.session.post(url, json={"tool": tool, "params": params}, headers=headers)
            response.raise_for_status()
            data = response.json()

            response_time = response.elapsed.total_seconds() * 1000
            logger.info(f"OpenSea MCP {tool} completed in {response_time:.2f}ms")

            return data

        except httpx.HTTPStatusError as e:
            logger.error(f"OpenSea MCP HTTP error: {e.response.status_code} - {e.response.text}")
            raise OpenSeaError(
                f"HTTP {e.response.status_code}: {e.response.text}",
                {"tool": tool, "status_code": e.response.status_code},
            )
        except httpx.RequestError as e:
            logger.error(f"OpenSea MCP request error: {e}")
            raise OpenSeaError(f"Request failed: {e}", {"tool": tool})
        except ValueError as e:
            logger.error(f"OpenSea MCP returned invalid JSON for {tool}: {e}")
            raise OpenSeaError(f"Invalid response: {e}", {"tool": tool})

    async def _list(self, tool: str, params: dict[str, Any], key: str) -> list[dict[str, Any]]:
        try:
            data = await self._make_request(tool, params)
        except OpenSeaError as e:
            logger.error(f"OpenSea {tool} error: {e}")
            return []
        if not isinstance(data, dict):
            return []
        return data.get(key) or []

    async def _item(self, tool: str, params: dict[str, Any]) -> dict[str, Any] | None:
        try:
            return await self._make_request(tool, params)
        except OpenSeaError as e:
            logger.error(f"OpenSea {tool} error: {e}")
            return None

    async def search(self, params: dict[str, Any]) -> Any:
        """AI-powered search across the marketplace. Errors propagate."""
        return await self._make_request("search", params)

    async def search_collections(self, query: str, chain: str | None = None) -> list[dict[str, Any]]:
        return await self._list("search_collections", {"query": query, "chain": chain}, "collections")

    async def get_collection(self, slug: str, includes: list[str] | None = None) -> dict[str, Any] | None:
        return await self._item("get_collection", {"slug": slug, "includes": includes})

    async def search_items(self, collection: str | None = None, chain: str | None = None) -> list[dict[str, Any]]:
        return await self._list("search_items", {"collection": collection, "chain": chain}, "items")

    async def get_item(self, contract_address: str, token_id: str) -> dict[str, Any] | None:
        return await self._item("get_item", {"contractAddress": contract_address, "tokenId": token_id})

    async def search_tokens(self, query: str, chain: str | None = None) -> list[dict[str, Any]]:
        return await self._list("search_tokens", {"query": query, "chain": chain}, "tokens")

    async def get_token(self, address: str, chain: str | None = None) -> dict[str, Any] | None:
        return await self._item("get_token", {"address": address, "chain": chain})

    async def get_swap_quote(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        chain: str | None = None,
    ) -> dict[str, Any] | None:
        return await self._item(
            "get_token_swap_quote",
            {"fromToken": from_token, "toToken": to_token, "amount": amount, "chain": chain},
        )

    async def get_nft_balances(self, address: str, chain: str | None = None) -> list[dict[str, Any]]:
        return await self._list("get_nft_balances", {"address": address, "chain": chain}, "nfts")

    async def get_token_balances(self, address: str, chain: str | None = None) -> list[dict[str, Any]]:
        return await self._list("get_token_balances", {"address": address, "chain": chain}, "tokens")

    async def get_trending_collections(
        self,
        timeframe: str = "ONE_DAY",
        chain: str | None = None,
    ) -> list[dict[str, Any]]:
        return await self._list(
            "get_trending_collections", {"timeframe": timeframe, "chain": chain}, "collections"
        )

    async def get_top_collections(self, sort_by: str = "VOLUME", chain: str | None = None) -> list[dict[str, Any]]:
        return await self._list("get_top_collections", {"sortBy": sort_by, "chain": chain}, "collections")

    async def get_trending_tokens(self, chain: str | None = None) -> list[dict[str, Any]]:
        return await self._list("get_trending_tokens", {"chain": chain}, "tokens")

    async def get_profile(self, address: str, includes: list[str] | None = None) -> dict[str, Any] | None:
        return await self._item("get_profile", {"address": address, "includes": includes})

    async def analyze_portfolio(self, address: str) -> dict[str, Any]:
        """Count a wallet's NFTs and sum their listed prices."""
        nfts, _profile = await asyncio.gather(
            self.get_nft_balances(address),
            self.get_profile(address, ["collections", "activity"]),
        )
        total_value = sum(nft.get("price") or 0 for nft in nfts)
        return {
            "totalNFTs": len(nfts),
            "totalValue": total_value,
            "topCollections": [],
            "recentActivity": [],
        }
