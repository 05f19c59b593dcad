"""
Agent node API routes.

The node sells its capabilities as x402-paid tools, learns from patterns the
swarm shares, answers swarm messages and buys capabilities from other nodes.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.core.database import get_db
from hivemind.services.agent_node import AgentNode, get_agent_node
from hivemind.services.x402_gateway import X402Gateway
from hivemind.x402.requirements import service_requirements

router = APIRouter()
logger = logging.getLogger(__name__)


class ExecuteToolRequest(BaseModel):
    """Request body for a paid tool call."""

    params: dict[str, Any] = Field(default_factory=dict)


class LearnRequest(BaseModel):
    """Request body for learning a capability from a pattern."""

    pattern: str | None = None
    data: Any = None


class SwarmMessageRequest(BaseModel):
    """Message delivered by the swarm coordinator."""

    fromAgent: str | None = None
    message: dict[str, Any] = Field(default_factory=dict)
    priority: str = "normal"


class PurchaseCapabilityRequest(BaseModel):
    """Request body for buying a capability from another node."""

    capabilityUrl: str = Field(..., min_length=1)
    maxPrice: float | None = Field(default=None, gt=0)


@router.get("/info", summary="Node identity, capabilities and pricing")
async def node_info(node: AgentNode = Depends(get_agent_node)) -> dict[str, Any]:
    return node.info()


@router.get("/tools", summary="Tools sold by this node")
async def list_tools(node: AgentNode = Depends(get_agent_node)) -> dict[str, Any]:
    return {"tools": node.tools()}


@router.post("/tools/{name}/execute", summary="Execute a paid tool")
async def execute_tool(
    name: str,
    http_request: Request,
    request: ExecuteToolRequest | None = None,
    x_payment: str | None = Header(default=None, alias="X-PAYMENT"),
    db: AsyncSession = Depends(get_db),
    node: AgentNode = Depends(get_agent_node),
) -> JSONResponse:
    """
    Execute a tool once its x402 payment is accepted.

    The tool's own price is charged. Unknown tools answer 404 and malformed
    parameters answer 400 before any payment is requested.
    """
    capability = node.get_capability(name)
    params = node.prepare_params(capability, request.params if request else {})
    requirements = service_requirements(
        capability.price,
        str(http_request.url),
        capability.description or f"{node.agent_id} {capability.name}",
    )
    receipt = await X402Gateway(db).require_payment(x_payment, requirements, action=capability.name)

    result = node.execute(capability, params)
    return JSONResponse(
        content={
            "success": True,
            "result": result,
            "payment": {"payer": receipt.payer, "amount": receipt.amount},
        },
        headers={"X-PAYMENT-RESPONSE": receipt.response_header()},
    )


@router.post("/learn", summary="Learn a capability from a pattern")
async def learn(request: LearnRequest, node: AgentNode = Depends(get_agent_node)) -> dict[str, Any]:
    return node.learn(request.pattern, request.data)


@router.post("/swarm/message", summary="Handle a swarm message")
async def swarm_message(
    request: SwarmMessageRequest,
    node: AgentNode = Depends(get_agent_node),
) -> dict[str, Any]:
    response = node.handle_message(request.fromAgent, request.message)
    return {"success": True, "agentId": node.agent_id, "response": response}


@router.post("/capabilities/purchase", summary="Buy a capability over x402")
async def purchase_capability(
    request: PurchaseCapabilityRequest,
    node: AgentNode = Depends(get_agent_node),
) -> dict[str, Any]:
    purchase = await node.purchase_capability(request.capabilityUrl, request.maxPrice)
    return {"success": True, **purchase}


@router.get("/earnings", summary="Earnings by capability")
async def earnings(node: AgentNode = Depends(get_agent_node)) -> dict[str, Any]:
    return node.earnings_report()
