"""
x402 payment requirements.

A resource that charges per request answers unpaid calls with HTTP 402 and a
list of ``PaymentRequirements`` the client may satisfy.
"""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from web3 import Web3

from hivemind.core.config import settings
from hivemind.core.constants import USDC_DECIMALS, X402_VERSION


class PaymentRequirements(BaseModel):
    """One accepted way of paying for a resource."""

    model_config = ConfigDict(populate_by_name=True)

    scheme: str = "exact"
    network: str
    max_amount_required: str = Field(alias="maxAmountRequired")
    resource: str
    description: str
    mime_type: str = Field(default="application/json", alias="mimeType")
    pay_to: str = Field(alias="payTo")
    max_timeout_seconds: int = Field(alias="maxTimeoutSeconds")
    asset: str
    output_schema: dict[str, Any] | None = Field(default=None, alias="outputSchema")
    extra: dict[str, str] | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


GET_OUTPUT_SCHEMA = {
    "input": {"type": "http", "method": "GET"},
    "output": {
        "type": "object",
        "properties": {
            "agents": {"type": "array"},
            "tasks": {"type": "array"},
        },
    },
}

POST_OUTPUT_SCHEMA = {
    "input": {
        "type": "http",
        "method": "POST",
        "body": {
            "type": "object",
            "properties": {
                "action": {"type": "string"},
                "params": {"type": "object"},
            },
        },
    },
    "output": {
        "type": "object",
        "properties": {
            "success": {"type": "boolean"},
            "result": {"type": "object"},
        },
    },
}

USDC_EXTRA = {"name": "USDC", "version": "2"}


def usd_to_atomic(price: str | float, decimals: int = USDC_DECIMALS) -> str:
    """
    Convert a dollar price (``"$0.001"`` or ``0.001``) to atomic token units.

    The result is floored, matching how x402 sellers advertise prices.
    """
    if isinstance(price, str):
        price = float(price.strip().lstrip("$"))
    return str(math.floor(price * 10 ** decimals))


def _base_requirements(method: str) -> PaymentRequirements:
    return PaymentRequirements(
        network=settings.x402_network,
        maxAmountRequired=(
            settings.x402_get_price_atomic if method == "GET" else settings.x402_post_price_atomic
        ),
        resource=settings.x402_resource_url,
        description="Access to Hive Mind AI agent services",
        payTo=Web3.to_checksum_address(settings.x402_resource_wallet),
        maxTimeoutSeconds=settings.x402_max_timeout_seconds,
        asset=Web3.to_checksum_address(settings.x402_asset_address),
        outputSchema=GET_OUTPUT_SCHEMA if method == "GET" else POST_OUTPUT_SCHEMA,
        extra=USDC_EXTRA,
    )


def protected_requirements(method: str = "GET") -> PaymentRequirements:
    """Requirements for the protected marketplace resource."""
    return _base_requirements(method.upper())


def service_requirements(service_price: float, endpoint: str, description: str) -> PaymentRequirements:
    """Requirements for calling a single bazaar service."""
    return PaymentRequirements(
        network=settings.x402_network,
        maxAmountRequired=usd_to_atomic(service_price),
        resource=endpoint,
        description=description,
        payTo=settings.x402_resource_wallet,
        maxTimeoutSeconds=settings.x402_max_timeout_seconds,
        asset=settings.x402_asset_address,
    )


def payment_required_body(
    error: str,
    requirements: PaymentRequirements,
    payer: str | None = None,
) -> dict[str, Any]:
    """Body of an HTTP 402 response."""
    body: dict[str, Any] = {
        "x402Version": X402_VERSION,
        "error": error,
        "accepts": [requirements.to_wire()],
    }
    if payer:
        body["payer"] = payer
    return body
