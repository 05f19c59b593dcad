"""
API module containing FastAPI routes and endpoints.

This module provides the main API router that includes all sub-routers
for the different API domains (prices, payments, agents, tasks, swarm,
bridge, agent node).
"""

from fastapi import APIRouter

from hivemind.api.routes import (
    agents,
    flare,
    layerzero,
    node,
    swarm,
    tasks,
    x402,
)

router = APIRouter()

# Include all route modules
router.include_router(flare.router, prefix="/flare", tags=["Flare"])
router.include_router(x402.router, prefix="/x402", tags=["x402"])
router.include_router(agents.router, prefix="/agents", tags=["Agents"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(swarm.router, prefix="/swarm", tags=["Swarm"])
router.include_router(layerzero.router, prefix="/layerzero", tags=["LayerZero"])
router.include_router(node.router, prefix="/node", tags=["Agent Node"])

__all__ = ["router"]
