"""
x402 payment API routes.

This module provides the paid marketplace resource, the bazaar service
registry and per-service endpoints, the local facilitator and the PYUSD
cross-chain payment gateway.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.core.constants import X402_DEFAULT_SERVICE_PRICE_USD
from hivemind.core.database import get_db
from hivemind.core.errors import SafeException, numeric_param
from hivemind.services.agent_registry import AgentRegistry, agent_type_config, checked_wallet_address
from hivemind.services.bazaar import BazaarRegistry, prepare_task_params, run_service_task
from hivemind.services.facilitator import LocalFacilitator
from hivemind.services.pyusd_gateway import PYUSDGateway
from hivemind.services.swarm import SwarmCoordinator, get_swarm_coordinator
from hivemind.services.x402_gateway import PaymentReceipt, X402Gateway
from hivemind.x402.requirements import protected_requirements, service_requirements

router = APIRouter()
logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _paid_response(content: dict[str, Any], receipt: PaymentReceipt) -> JSONResponse:
    return JSONResponse(
        content=content,
        headers={"X-PAYMENT-RESPONSE": receipt.response_header()},
    )


def get_pyusd_gateway() -> PYUSDGateway:
    return PYUSDGateway()


def get_facilitator() -> LocalFacilitator:
    return LocalFacilitator()


class RegisterServiceRequest(BaseModel):
    """Request body for registering a bazaar service."""

    agentId: str | None = None
    endpoint: str | None = None
    price: float = Field(default=X402_DEFAULT_SERVICE_PRICE_USD, gt=0)


class ServiceTaskRequest(BaseModel):
    """Request body for a paid bazaar service call."""

    task: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class ActionRequest(BaseModel):
    """Generic ``{action, params}`` request body."""

    action: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


def _prepare_action_params(action: str | None, params: dict[str, Any]) -> dict[str, Any]:
    """Reject malformed marketplace action parameters before payment is taken."""
    params = dict(params)
    if action == "spawn_agent":
        agent_type_config(params.get("type") or "analyzer")
        params["walletAddress"] = checked_wallet_address(params.get("walletAddress"))
    elif action == "create_task":
        params["reward"] = numeric_param(params, "reward", None)
    elif action == "optimize":
        params = prepare_task_params("optimize", params)
    return params


@router.get(
    "/protected",
    summary="Paid marketplace data",
    description="Requires an X-PAYMENT header worth 0.001 USDC. Unpaid requests get the 402 challenge.",
)
async def get_protected(
    x_payment: str | None = Header(default=None, alias="X-PAYMENT"),
    db: AsyncSession = Depends(get_db),
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> JSONResponse:
    receipt = await X402Gateway(db).require_payment(x_payment, protected_requirements("GET"))

    agents = await AgentRegistry(db).list_agents()
    tasks = [task.to_dict() for task in swarm.tasks.values()]
    data = {
        "agents": [agent.to_dict() for agent in agents],
        "tasks": tasks,
        "metrics": {
            "totalAgents": len(agents),
            "activeAgents": sum(1 for agent in agents if agent.status == "active"),
            "completedTasks": sum(1 for task in tasks if task["status"] == "completed"),
            "totalEarnings": sum(agent.earnings or 0.0 for agent in agents),
        },
        "timestamp": _iso_now(),
        "payer": receipt.payer,
    }
    return _paid_response({"success": True, "data": data}, receipt)


@router.post(
    "/protected",
    summary="Paid marketplace action",
    description="Runs spawn_agent, create_task or optimize for 0.005 USDC; other actions are echoed.",
)
async def post_protected(
    body: ActionRequest | None = None,
    x_payment: str | None = Header(default=None, alias="X-PAYMENT"),
    db: AsyncSession = Depends(get_db),
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> JSONResponse:
    body = body or ActionRequest()
    params = _prepare_action_params(body.action, body.params)
    requirements = protected_requirements("POST")
    receipt = await X402Gateway(db).require_payment(x_payment, requirements, action=body.action)

    if body.action == "spawn_agent":
        agent, _generated = await AgentRegistry(db).spawn(
            params.get("type") or "analyzer",
            params.get("capabilities"),
            params["walletAddress"],
        )
        result = {
            "agentId": agent.id,
            "type": agent.type,
            "status": agent.status,
            "endpoint": agent.endpoint,
        }
    elif body.action == "create_task":
        task = await swarm.create_task(
            params.get("type") or "analysis",
            params.get("description") or "Paid marketplace task",
            params.get("requiredCapabilities"),
            reward=params["reward"],
        )
        result = {
            "taskId": task.id,
            "type": task.type,
            "status": task.status,
            "reward": task.reward,
        }
    elif body.action == "optimize":
        result = {
            "optimizationId": f"opt-{int(time.time() * 1000)}",
            "input": params.get("input"),
            **run_service_task("marketplace", "optimize", params),
        }
    else:
        result = {
            "message": "Action executed successfully",
            "action": body.action,
            "params": params,
        }

    return _paid_response(
        {
            "success": True,
            "result": result,
            "payment": {
                "payer": receipt.payer,
                "amount": requirements.max_amount_required,
                "status": "captured",
            },
            "timestamp": _iso_now(),
        },
        receipt,
    )


@router.post("/register", summary="Register a bazaar service")
async def register_service(
    request: RegisterServiceRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    if not request.agentId or not request.endpoint:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameters",
        )

    registry = BazaarRegistry(db)
    service = await registry.register(request.agentId, request.endpoint, request.price)
    return {
        "success": True,
        "service": service.to_dict(),
        "bazaarUrl": registry.bazaar_url(service.id),
    }


@router.get("/register", summary="Get one or all bazaar services")
async def get_registered_services(
    agentId: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    registry = BazaarRegistry(db)
    if agentId:
        service = await registry.get(agentId)
        if service is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Service not found",
            )
        return service.to_dict()

    services = await registry.list_services()
    return {"services": [service.to_dict() for service in services]}


@router.get("/services/{service_id}", summary="Service info and payment requirements")
async def get_service(
    service_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    registry = BazaarRegistry(db)
    service = await registry.get_active(service_id)
    requirements = service_requirements(service.price, service.endpoint, service.description)
    return {
        "service": registry.service_info(service),
        "x402": {"version": 1, "accepts": [requirements.to_wire()]},
    }


@router.post("/services/{service_id}", summary="Call a bazaar service")
async def call_service(
    service_id: str,
    body: ServiceTaskRequest | None = None,
    x_payment: str | None = Header(default=None, alias="X-PAYMENT"),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    Run a task on a registered service once its payment is accepted.

    Every accepted call is counted against the service's calls and earnings.
    """
    body = body or ServiceTaskRequest()
    params = prepare_task_params(body.task, body.params)
    registry = BazaarRegistry(db)
    service = await registry.get_active(service_id)
    requirements = service_requirements(service.price, service.endpoint, service.description)

    receipt = await X402Gateway(db).require_payment(
        x_payment,
        requirements,
        action=body.task,
        missing_error="Payment required to access this service",
    )

    result = run_service_task(service_id, body.task, params)
    await registry.record_call(service)

    return _paid_response(
        {
            "success": True,
            "serviceId": service_id,
            "task": body.task,
            "result": result,
            "payment": {
                "status": "captured",
                "amount": service.price,
                "network": service.network,
                "payer": receipt.payer,
            },
            "timestamp": _iso_now(),
        },
        receipt,
    )


@router.get("/facilitator", summary="Facilitator capabilities or local services")
async def facilitator_info(
    action: str | None = Query(default=None),
    facilitator: LocalFacilitator = Depends(get_facilitator),
) -> dict[str, Any]:
    if action == "supported":
        return facilitator.supported()
    return facilitator.list_services()


@router.post("/facilitator", summary="Verify, settle or pay through the local facilitator")
async def facilitator_action(
    body: dict[str, Any] | None = Body(default=None),
    facilitator: LocalFacilitator = Depends(get_facilitator),
) -> Any:
    try:
        return await facilitator.handle(body or {})
    except SafeException:
        raise
    except Exception as e:
        logger.error(f"Facilitator error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to process request"},
        )


@router.get("/pyusd/payment", summary="Describe the PYUSD payment gateway")
async def pyusd_info(gateway: PYUSDGateway = Depends(get_pyusd_gateway)) -> dict[str, Any]:
    return gateway.describe()


@router.post("/pyusd/payment", summary="Run a PYUSD payment gateway action")
async def pyusd_action(
    request: ActionRequest,
    gateway: PYUSDGateway = Depends(get_pyusd_gateway),
) -> Any:
    try:
        return await gateway.handle(request.action, request.params)
    except SafeException:
        raise
    except Exception as e:
        logger.error(f"PYUSD payment error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Payment processing failed"},
        )
