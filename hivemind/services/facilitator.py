"""
Local x402 facilitator for development.

Stands in for a hosted facilitator: it lists local services, verifies
payment headers with the same verifier the gateway uses, and acknowledges
settlement and payment requests without touching a chain.
"""

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from hivemind.core.config import settings
from hivemind.core.constants import X402_VERSION
from hivemind.core.errors import SafeException
from hivemind.x402.requirements import PaymentRequirements, protected_requirements
from hivemind.x402.verification import verify_payment

logger = logging.getLogger(__name__)

LOCAL_SERVICES = [
    {
        "id": "local-oracle-001",
        "name": "Price Oracle Service",
        "price": 0.001,
        "endpoint": "/api/v1/x402/services/oracle",
        "capabilities": ["price-feed", "prediction", "analytics"],
    },
    {
        "id": "local-trader-001",
        "name": "Trading Bot Service",
        "price": 0.005,
        "endpoint": "/api/v1/x402/services/trader",
        "capabilities": ["arbitrage", "market-making", "risk-assessment"],
    },
    {
        "id": "local-analyzer-001",
        "name": "Data Analysis Service",
        "price": 0.002,
        "endpoint": "/api/v1/x402/services/analyzer",
        "capabilities": ["sentiment-analysis", "pattern-recognition", "reporting"],
    },
    {
        "id": "local-coordinator-001",
        "name": "Swarm Coordinator Service",
        "price": 0.003,
        "endpoint": "/api/v1/x402/services/coordinator",
        "capabilities": ["task-distribution", "consensus-voting", "swarm-optimization"],
    },
]


class UnknownFacilitatorAction(SafeException):
    status_code = 400


class InvalidRequirementsError(SafeException):
    """Verification request whose payment requirements do not parse."""

    status_code = 400


def _now_ms() -> int:
    return int(time.time() * 1000)


class LocalFacilitator:
    """Development facilitator answering the x402 facilitator API."""

    def supported(self) -> dict[str, Any]:
        return {
            "kinds": [
                {"x402Version": X402_VERSION, "scheme": "exact", "network": settings.x402_network},
            ]
        }

    def list_services(self) -> dict[str, Any]:
        services = [
            {**service, "network": settings.x402_network, "type": "ai-agent"}
            for service in LOCAL_SERVICES
        ]
        return {
            "services": services,
            "total": len(services),
            "page": 1,
            "network": settings.x402_network,
        }

    async def handle(self, body: dict[str, Any]) -> dict[str, Any]:
        """
        Process a facilitator request.

        Without an ``action``, a body of ``type == "ai-agent"`` registers a
        service and anything else is a verification request.

        Raises:
            UnknownFacilitatorAction: For unsupported actions
            InvalidRequirementsError: When ``paymentRequirements`` do not parse
        """
        action = body.get("action") or ("register" if body.get("type") == "ai-agent" else "verify")

        if action == "verify":
            return self.verify(body)
        if action == "settle":
            return self.settle(body)
        if action == "pay":
            return self.pay(body)
        if body.get("type") == "ai-agent":
            return self.register(body)

        raise UnknownFacilitatorAction("Unknown action")

    def verify(self, body: dict[str, Any]) -> dict[str, Any]:
        response = {
            "paymentId": f"payment-{_now_ms()}",
            "amount": body.get("amount", 0.001),
            "currency": "USDC",
            "network": settings.x402_network,
        }

        header = body.get("paymentHeader")
        if not header:
            response["valid"] = True
            return response

        raw_requirements = body.get("paymentRequirements")
        try:
            requirements = (
                PaymentRequirements.model_validate(raw_requirements)
                if raw_requirements
                else protected_requirements("GET")
            )
        except ValidationError as e:
            logger.warning(f"Facilitator rejected payment requirements: {e.error_count()} errors")
            raise InvalidRequirementsError(
                "Invalid payment requirements",
                detail={**response, "valid": False, "invalidReason": "Invalid payment requirements"},
            )
        result = verify_payment(header, requirements)
        logger.info(f"Facilitator verification for {requirements.resource}: valid={result.is_valid}")

        response["valid"] = result.is_valid
        response["payer"] = result.payer
        if not result.is_valid:
            response["invalidReason"] = result.reason
        return response

    def settle(self, body: dict[str, Any]) -> dict[str, Any]:
        return {
            "success": True,
            "transactionHash": "0x" + secrets.token_hex(32),
            "paymentId": body.get("paymentId"),
            "settled": True,
        }

    def pay(self, body: dict[str, Any]) -> dict[str, Any]:
        return {
            "success": True,
            "token": f"x402-token-{_now_ms()}",
            "amount": body.get("amount", 0.001),
            "currency": body.get("currency", "USDC"),
            "network": body.get("network", settings.x402_network),
        }

    def register(self, body: dict[str, Any]) -> dict[str, Any]:
        registration = {key: value for key, value in body.items() if key != "action"}
        return {
            "id": f"local-{_now_ms()}",
            **registration,
            "registered": True,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
