"""
Flare FTSO price API routes.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from hivemind.api.dependencies import get_client_factory
from hivemind.core.config import settings
from hivemind.core.errors import ChainReadError, failure_response
from hivemind.services.price_feed import PriceFeedService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_price_feed(client_factory=Depends(get_client_factory)) -> PriceFeedService:
    return PriceFeedService(chain=client_factory(settings.flare_rpc_url))


@router.get(
    "/prices",
    summary="Get FTSO prices",
    description="Without a symbol, describes the available feeds; with one, returns its current price.",
)
async def get_prices(
    symbol: str | None = Query(default=None, description="Trading pair, e.g. FLR/USD"),
    feed: PriceFeedService = Depends(get_price_feed),
) -> Any:
    try:
        if not symbol:
            return await feed.get_feed_info()
        return await feed.get_price(symbol)
    except ChainReadError as e:
        return failure_response("Failed to connect to Flare network", e)


@router.post(
    "/prices",
    summary="Get several FTSO prices",
)
async def post_prices(
    body: dict[str, Any] | None = Body(default=None),
    feed: PriceFeedService = Depends(get_price_feed),
) -> Any:
    """
    Batch price lookup.

    Body: ``{"symbols": ["FLR/USD", ...]}``. Unknown symbols come back with
    value 0 rather than failing the batch.
    """
    symbols = (body or {}).get("symbols")
    if not isinstance(symbols, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid symbols parameter",
        )

    try:
        return await feed.get_prices(symbols)
    except ChainReadError as e:
        return failure_response("Failed to fetch prices", e)
