"""
Agent API routes.

This module provides endpoints for spawning and terminating agents, preparing
their on-chain registration, dispatching OpenSea actions and managing agent
wallets.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.api.dependencies import get_client_factory, get_coordinator
from hivemind.core.database import get_db, utcnow
from hivemind.core.errors import ChainReadError, OpenSeaError, failure_response
from hivemind.services.agent_registry import AGENT_TYPES, AgentRegistry
from hivemind.services.coordinator import CoordinatorService
from hivemind.services.opensea_agent import OpenSeaAgentService
from hivemind.services.wallets import WalletService

router = APIRouter()
logger = logging.getLogger(__name__)

HIDDEN_SECRET = "***hidden***"


async def get_opensea_agent() -> AsyncGenerator[OpenSeaAgentService, None]:
    service = OpenSeaAgentService()
    try:
        yield service
    finally:
        await service.client.close()


def get_wallet_service(
    db: AsyncSession = Depends(get_db),
    client_factory=Depends(get_client_factory),
) -> WalletService:
    return WalletService(db, client_factory=client_factory)


class SpawnAgentRequest(BaseModel):
    """Request body for spawning an agent."""

    type: str | None = None
    capabilities: list[str] | None = None
    walletAddress: str | None = None


class RegisterAgentRequest(BaseModel):
    """Request body for preparing an on-chain agent registration."""

    endpoint: str | None = None
    capabilities: list[str] | None = None
    walletAddress: str | None = None
    network: str = "localhost"


class OpenSeaActionRequest(BaseModel):
    """Request body for an OpenSea agent action."""

    action: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    agentId: str | None = None


class CreateWalletRequest(BaseModel):
    """Request body for creating or importing a wallet."""

    name: str | None = Field(default=None, max_length=255)
    privateKey: str | None = None


# Spawning


@router.post("/spawn", summary="Spawn an agent")
async def spawn_agent(
    request: SpawnAgentRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Spawn an agent of one of the supported types.

    The agent starts ``pending`` and reports ``active`` once its activation
    delay has passed. When no wallet is supplied a new one is generated; its
    private key is never returned.
    """
    agent, generated_wallet = await AgentRegistry(db).spawn(
        request.type,
        request.capabilities,
        request.walletAddress,
    )

    payload = agent.to_dict()
    if generated_wallet:
        payload["wallet"] = {"address": agent.wallet_address, "privateKey": HIDDEN_SECRET}

    return {
        "success": True,
        "agent": payload,
        "message": "Agent spawn initiated",
    }


@router.get("/spawn", summary="Get one agent or list agents")
async def get_agents(
    id: str | None = Query(default=None, description="Agent id"),
    type: str | None = Query(default=None, description="Filter by agent type"),
    status_filter: str | None = Query(default=None, alias="status", description="Filter by status"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    registry = AgentRegistry(db)
    if id:
        agent = await registry.get(id)
        return agent.to_dict()

    agents = await registry.list_agents(type, status_filter)
    return {
        "agents": [agent.to_dict() for agent in agents],
        "total": len(agents),
        "types": list(AGENT_TYPES),
    }


@router.delete("/spawn", summary="Terminate an agent")
async def terminate_agent(
    id: str | None = Query(default=None, description="Agent id"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    if not id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing agent ID",
        )

    agent = await AgentRegistry(db).terminate(id)
    return {
        "success": True,
        "message": f"Agent {id} terminated",
        "agent": {
            "id": agent.id,
            "type": agent.type,
            "terminatedAt": utcnow().isoformat() + "Z",
        },
    }


# On-chain registration


@router.post("/register", summary="Prepare an on-chain agent registration")
async def register_agent(
    request: RegisterAgentRequest,
    client_factory=Depends(get_client_factory),
) -> Any:
    if not request.endpoint or not request.capabilities or not request.walletAddress:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameters",
        )

    coordinator = CoordinatorService(request.network, client_factory=client_factory)
    try:
        return await coordinator.prepare_agent_registration(
            request.endpoint,
            request.capabilities,
            request.walletAddress,
        )
    except (ChainReadError, ValueError) as e:
        return failure_response("Failed to prepare registration", e)


@router.get("/register", summary="Get a registered agent")
async def get_registered_agent(
    address: str | None = Query(default=None, description="Agent wallet address"),
    coordinator: CoordinatorService = Depends(get_coordinator),
) -> Any:
    if not address:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Address parameter required",
        )

    try:
        return await coordinator.get_agent(address)
    except (ChainReadError, ValueError) as e:
        return failure_response("Failed to fetch agent", e)


# OpenSea


@router.get("/opensea", summary="OpenSea agent capabilities")
async def opensea_capabilities() -> dict[str, Any]:
    return OpenSeaAgentService.describe()


@router.post("/opensea", summary="Run an OpenSea agent action")
async def opensea_action(
    request: OpenSeaActionRequest,
    service: OpenSeaAgentService = Depends(get_opensea_agent),
) -> Any:
    try:
        return await service.handle(request.action, request.params, request.agentId)
    except OpenSeaError as e:
        logger.error(f"OpenSea agent API error: {e}")
        return failure_response(e.message or "Failed to process OpenSea request", e)


# Wallets


@router.get("/wallets", summary="List agent wallets")
async def list_wallets(service: WalletService = Depends(get_wallet_service)) -> dict[str, Any]:
    wallets = await service.list_wallets()
    return {"wallets": [wallet.to_dict() for wallet in wallets], "total": len(wallets)}


@router.post("/wallets", status_code=status.HTTP_201_CREATED, summary="Create or import a wallet")
async def create_wallet(
    request: CreateWalletRequest,
    service: WalletService = Depends(get_wallet_service),
) -> dict[str, Any]:
    """Generate a new wallet, or import one when ``privateKey`` is given."""
    if request.privateKey:
        try:
            wallet = await service.import_wallet(request.privateKey, request.name)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    else:
        wallet = await service.create_wallet(request.name)
    return {"success": True, "wallet": wallet.to_dict()}


@router.get("/wallets/{address}", summary="Get an agent wallet")
async def get_wallet(address: str, service: WalletService = Depends(get_wallet_service)) -> dict[str, Any]:
    wallet = await service.get_wallet(address)
    return wallet.to_dict()


@router.get("/wallets/{address}/balance", summary="Native balance of an agent wallet")
async def get_wallet_balance(
    address: str,
    network: str = Query(default="base-sepolia"),
    service: WalletService = Depends(get_wallet_service),
) -> Any:
    try:
        return await service.get_balance(address, network)
    except ChainReadError as e:
        return failure_response("Failed to fetch balance", e)


@router.post("/wallets/{address}/export", summary="Export a wallet's private key")
async def export_wallet(address: str, service: WalletService = Depends(get_wallet_service)) -> dict[str, Any]:
    return await service.export_wallet(address)
