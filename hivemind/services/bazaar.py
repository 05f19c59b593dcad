"""
x402 Bazaar service registry.

Agents advertise pay-per-call services here. Each service is keyed by the
agent id and carries its per-call USD price, which the per-service endpoint
turns into x402 payment requirements.
"""

import logging
import time
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.core.config import settings
from hivemind.core.constants import X402_DEFAULT_SERVICE_PRICE_USD
from hivemind.core.database import utcnow
from hivemind.core.errors import ServiceNotFoundError, numeric_param
from hivemind.models.services import BazaarService

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITIES = ["analysis", "prediction", "optimization"]


class BazaarRegistry:
    """Service for registering and looking up bazaar services."""

    def __init__(self, db: AsyncSession):
        """
        Initialize the bazaar registry.

        Args:
            db: Database session
        """
        self.db = db

    async def register(
        self,
        agent_id: str,
        endpoint: str,
        price: float | None = None,
    ) -> BazaarService:
        """
        Register (or re-register) an agent's service.

        Args:
            agent_id: Agent identifier, used as the service id
            endpoint: URL where the agent serves requests
            price: USD price per call

        Returns:
            The stored service
        """
        service = await self.db.get(BazaarService, agent_id)
        if service is None:
            service = BazaarService(id=agent_id)
            self.db.add(service)

        service.endpoint = endpoint
        service.price = price or X402_DEFAULT_SERVICE_PRICE_USD
        service.name = f"AI Agent {agent_id}"
        service.description = "Autonomous AI agent service"
        service.capabilities = list(DEFAULT_CAPABILITIES)
        service.network = "base"
        service.status = "active"
        service.total_calls = 0
        service.total_earnings = 0.0
        service.registered_at = utcnow()

        await self.db.flush()
        logger.info(f"Registered bazaar service {agent_id} at {endpoint}")
        return service

    async def get(self, agent_id: str) -> BazaarService | None:
        return await self.db.get(BazaarService, agent_id)

    async def get_active(self, agent_id: str) -> BazaarService:
        """
        Get a service that can accept calls.

        Raises:
            ServiceNotFoundError: If the service is unknown or inactive
        """
        service = await self.get(agent_id)
        if service is None or service.status != "active":
            raise ServiceNotFoundError("Service not found or inactive")
        return service

    async def list_services(self) -> list[BazaarService]:
        result = await self.db.execute(select(BazaarService).order_by(BazaarService.registered_at))
        return list(result.scalars().all())

    async def record_call(self, service: BazaarService) -> None:
        """Count one paid call against the service."""
        service.total_calls = (service.total_calls or 0) + 1
        service.total_earnings = (service.total_earnings or 0.0) + service.price
        await self.db.flush()

    @staticmethod
    def bazaar_url(agent_id: str) -> str:
        return f"{settings.x402_bazaar_url}/service/{agent_id}"

    @staticmethod
    def service_info(service: BazaarService) -> dict[str, Any]:
        """Public view of a service as shown next to its payment requirements."""
        return {
            "id": service.id,
            "name": service.name,
            "description": service.description,
            "endpoint": service.endpoint,
            "payTo": settings.x402_resource_wallet,
            "price": f"${service.price}",
            "network": settings.x402_network,
            "capabilities": list(service.capabilities or []),
            "status": service.status,
        }


def prepare_task_params(task: str | None, params: dict[str, Any] | None) -> dict[str, Any]:
    """
    Validate and coerce the numeric parameters of a service task.

    Raises:
        InvalidParameterError: If a numeric parameter is not a number
    """
    params = dict(params or {})
    if task == "optimize":
        params["value"] = numeric_param(params, "value", 100)
    elif task == "predict":
        params["current"] = numeric_param(params, "current", 100)
    return params


def run_service_task(agent_id: str, task: str | None, params: dict[str, Any] | None) -> dict[str, Any]:
    """
    Execute a paid task on behalf of a bazaar service.

    Args:
        agent_id: Service being called
        task: ``analyze``, ``optimize``, ``predict`` or anything else
        params: Task parameters

    Returns:
        Task result
    """
    params = prepare_task_params(task, params)

    if task == "analyze":
        return {
            "analysis": {
                "sentiment": "positive",
                "confidence": 0.87,
                "keywords": params.get("keywords") or ["ai", "blockchain", "optimization"],
                "summary": "Market conditions favorable for deployment",
            }
        }

    if task == "optimize":
        value = params["value"]
        return {
            "optimization": {
                "originalValue": value,
                "optimizedValue": value * 1.15,
                "improvement": "15%",
                "recommendations": [
                    "Increase parallel processing",
                    "Implement caching strategy",
                    "Optimize database queries",
                ],
            }
        }

    if task == "predict":
        current = params["current"]
        return {
            "prediction": {
                "metric": params.get("metric") or "price",
                "currentValue": current,
                "predictedValue": current * 1.08,
                "timeframe": "24h",
                "confidence": 0.75,
            }
        }

    return {
        "message": "Task processed successfully",
        "taskId": f"task-{int(time.time() * 1000)}",
        "agentId": agent_id,
    }
