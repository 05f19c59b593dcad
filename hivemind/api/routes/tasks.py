"""
Coordinator task API routes.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from hivemind.api.dependencies import get_client_factory, get_coordinator
from hivemind.core.errors import ChainReadError, failure_response
from hivemind.services.coordinator import CoordinatorService

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateTaskRequest(BaseModel):
    """Request body for preparing a coordinator task."""

    taskType: str | None = None
    description: str | None = None
    reward: float | str | None = None
    requirements: list[str] | None = None
    network: str = "localhost"


@router.post("/create", summary="Prepare a createTask call")
async def create_task(
    request: CreateTaskRequest,
    client_factory=Depends(get_client_factory),
) -> Any:
    """
    Prepare a ``createTask`` transaction and the reward approval it needs.

    Nothing is sent on-chain; the caller signs and submits both transactions.
    """
    if not request.taskType or not request.description or request.reward in (None, ""):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameters",
        )

    coordinator = CoordinatorService(request.network, client_factory=client_factory)
    try:
        return coordinator.prepare_task(
            request.taskType,
            request.description,
            request.reward,
            request.requirements,
        )
    except ValueError as e:
        return failure_response("Failed to prepare task", e)


@router.get("/create", summary="Get a task or the latest tasks")
async def get_tasks(
    taskId: int | None = Query(default=None, ge=0),
    coordinator: CoordinatorService = Depends(get_coordinator),
) -> Any:
    try:
        if taskId is not None:
            return await coordinator.get_task(taskId)
        return await coordinator.list_tasks()
    except ChainReadError as e:
        return failure_response("Failed to fetch tasks", e)
