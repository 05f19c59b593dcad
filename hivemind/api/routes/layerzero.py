"""
LayerZero bridge API routes.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from hivemind.api.dependencies import get_client_factory
from hivemind.core.errors import ChainReadError, failure_response
from hivemind.services.bridge import BridgeService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_bridge_service(client_factory=Depends(get_client_factory)) -> BridgeService:
    return BridgeService(client_factory=client_factory)


class BridgeQuoteRequest(BaseModel):
    """Request body for a bridge quote."""

    srcChainId: int | None = None
    dstChainId: int | None = None
    amount: str | float | None = None
    token: str | None = None
    recipient: str | None = None


@router.get("/bridge", summary="Supported LayerZero chains")
async def bridge_info(bridge: BridgeService = Depends(get_bridge_service)) -> dict[str, Any]:
    return bridge.supported()


@router.post("/bridge", summary="Quote a cross-chain transfer")
async def bridge_quote(
    request: BridgeQuoteRequest,
    bridge: BridgeService = Depends(get_bridge_service),
) -> Any:
    """
    Quote a LayerZero transfer between two supported testnets.

    The quote carries a message id and fee estimate; no message is sent.
    """
    fields = (request.srcChainId, request.dstChainId, request.amount, request.token, request.recipient)
    if any(value in (None, "") for value in fields):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameters",
        )

    try:
        return await bridge.quote(
            request.srcChainId,
            request.dstChainId,
            request.amount,
            request.token,
            request.recipient,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ChainReadError as e:
        return failure_response("Failed to initiate bridge", e)
