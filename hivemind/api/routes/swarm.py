"""
Swarm API routes.

``/stats`` and ``/status`` report the on-chain swarm through the coordinator
contract. The remaining endpoints drive the in-process swarm coordinator:
agent registration, task distribution, consensus and knowledge sharing.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from hivemind.api.dependencies import get_coordinator
from hivemind.core.errors import ChainReadError, SwarmError, failure_response
from hivemind.services.coordinator import CoordinatorService
from hivemind.services.swarm import DEFAULT_CONSENSUS_TIMEOUT_SECONDS, SwarmCoordinator, get_swarm_coordinator

router = APIRouter()
logger = logging.getLogger(__name__)


class SwarmControlRequest(BaseModel):
    """Request body for pausing, resuming or restarting the swarm."""

    action: str | None = None
    agentId: str | None = None


class JoinSwarmRequest(BaseModel):
    """Request body for adding an agent to the swarm."""

    type: str = Field(..., min_length=1)
    endpoint: str = Field(..., min_length=1)
    capabilities: list[str] = Field(default_factory=list)
    agentId: str | None = None


class SwarmTaskRequest(BaseModel):
    """Request body for creating a swarm task."""

    type: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    requiredCapabilities: list[str] = Field(default_factory=list)
    priority: str = "normal"
    reward: float | None = Field(default=None, ge=0)


class CompleteTaskRequest(BaseModel):
    """Request body for reporting a task result."""

    result: Any = None


class ConsensusRequest(BaseModel):
    """Request body for starting a consensus vote."""

    topic: str = Field(..., min_length=1)
    choices: list[str] | None = None
    timeoutSeconds: float = Field(default=DEFAULT_CONSENSUS_TIMEOUT_SECONDS, gt=0)


class KnowledgeRequest(BaseModel):
    """Request body for sharing a learned pattern."""

    pattern: str = Field(..., min_length=1)
    data: Any = None


@router.get("/stats", summary="On-chain swarm statistics")
async def swarm_stats(coordinator: CoordinatorService = Depends(get_coordinator)) -> Any:
    try:
        return await coordinator.swarm_stats()
    except ChainReadError as e:
        return failure_response("Failed to fetch swarm stats", e)


@router.get("/status", summary="Live swarm status")
async def swarm_status(coordinator: CoordinatorService = Depends(get_coordinator)) -> Any:
    try:
        return await coordinator.swarm_status()
    except ChainReadError as e:
        return failure_response("Failed to fetch swarm status", e)


@router.post("/status", summary="Pause, resume or restart the swarm")
async def swarm_control(
    request: SwarmControlRequest,
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> dict[str, Any]:
    if not request.action:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing action parameter",
        )
    return await swarm.control(request.action, request.agentId)


@router.post("/agents", status_code=status.HTTP_201_CREATED, summary="Add an agent to the swarm")
async def join_swarm(
    request: JoinSwarmRequest,
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> dict[str, Any]:
    try:
        agent = await swarm.register_agent(
            request.type,
            request.endpoint,
            request.capabilities,
            request.agentId,
        )
    except SwarmError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return {"success": True, "agent": agent.to_dict()}


@router.get("/agents", summary="List swarm agents")
async def list_swarm_agents(swarm: SwarmCoordinator = Depends(get_swarm_coordinator)) -> dict[str, Any]:
    return {"agents": [agent.to_dict() for agent in swarm.agents.values()]}


@router.post("/tasks", status_code=status.HTTP_201_CREATED, summary="Create a swarm task")
async def create_swarm_task(
    request: SwarmTaskRequest,
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> dict[str, Any]:
    """Create a task and assign it to the best qualified agent, or queue it."""
    task = await swarm.create_task(
        request.type,
        request.description,
        request.requiredCapabilities,
        request.priority,
        request.reward,
    )
    return {"success": True, "task": task.to_dict()}


@router.get("/tasks", summary="List swarm tasks")
async def list_swarm_tasks(swarm: SwarmCoordinator = Depends(get_swarm_coordinator)) -> dict[str, Any]:
    return {"tasks": [task.to_dict() for task in swarm.tasks.values()]}


@router.post("/tasks/{task_id}/complete", summary="Report a task result")
async def complete_swarm_task(
    task_id: str,
    request: CompleteTaskRequest,
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> dict[str, Any]:
    try:
        task = await swarm.complete_task(task_id, request.result)
    except SwarmError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return {"success": True, "task": task.to_dict()}


@router.post("/consensus", summary="Run a consensus vote")
async def run_consensus(
    request: ConsensusRequest,
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> dict[str, Any]:
    return await swarm.initiate_consensus(request.topic, request.choices, request.timeoutSeconds)


@router.post("/knowledge", summary="Share a learned pattern with the swarm")
async def share_knowledge(
    request: KnowledgeRequest,
    swarm: SwarmCoordinator = Depends(get_swarm_coordinator),
) -> dict[str, Any]:
    knowledge = await swarm.share_knowledge(request.pattern, request.data)
    return {"success": True, "knowledge": knowledge}


@router.get("/statistics", summary="In-process swarm statistics")
async def swarm_statistics(swarm: SwarmCoordinator = Depends(get_swarm_coordinator)) -> dict[str, Any]:
    return swarm.statistics()
