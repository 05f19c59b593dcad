"""
x402 client.

Calls a paid HTTP resource on behalf of an agent: the first request is sent
unpaid, and when the resource answers 402 the client signs a payment for the
first accepted requirement and retries once with an ``X-PAYMENT`` header.
"""

import json
import logging
import secrets
import time
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from httpx import AsyncClient, Response

from hivemind.core.config import settings
from hivemind.core.errors import PaymentVerificationError
from hivemind.x402.requirements import PaymentRequirements, usd_to_atomic
from hivemind.x402.verification import PaymentPayload, decode_payment_response

logger = logging.getLogger(__name__)


def sign_payment(account: LocalAccount, requirements: PaymentRequirements, amount: str | None = None) -> PaymentPayload:
    """
    Build and sign a payment payload satisfying ``requirements``.

    Args:
        account: Signing account
        requirements: Requirements chosen from a 402 response
        amount: Amount in atomic units (defaults to the required amount)

    Returns:
        PaymentPayload with signature and payer set
    """
    payload = PaymentPayload(
        scheme=requirements.scheme,
        network=requirements.network,
        amount=amount or requirements.max_amount_required,
        asset=requirements.asset,
        payTo=requirements.pay_to,
        nonce=secrets.token_hex(16),
        timestamp=int(time.time()),
    )
    signed = account.sign_message(encode_defunct(text=payload.signing_message()))
    payload.signature = "0x" + bytes(signed.signature).hex()
    payload.payer = account.address
    return payload


class X402Client:
    """HTTP client that pays for x402-protected resources."""

    def __init__(
        self,
        account: LocalAccount | None = None,
        http_client: AsyncClient | None = None,
    ):
        """
        Initialize the x402 client.

        Args:
            account: Signing account. Defaults to the configured agent wallet.
            http_client: Optional pre-configured httpx client
        """
        if account is None and settings.agent_wallet_private_key:
            account = Account.from_key(settings.agent_wallet_private_key)
        self.account = account
        self.client = http_client or AsyncClient(timeout=30.0)

    async def close(self) -> None:
        await self.client.aclose()

    def _safe_parse_json(self, response: Response) -> dict[str, Any] | None:
        try:
            if not response.content:
                return None
            return response.json()
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in response: {e}")
            return None

    async def call(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        max_price: float | None = None,
    ) -> dict[str, Any]:
        """
        POST to a paid resource, paying if required.

        Args:
            url: Resource URL
            params: JSON body
            max_price: Highest acceptable price in USD

        Returns:
            Dict with ``data`` (response JSON), ``paid`` (atomic amount or None)
            and ``receipt`` (decoded X-PAYMENT-RESPONSE or None)

        Raises:
            PaymentVerificationError: If the price is too high, no wallet is
                configured or the paid retry is rejected
        """
        body = params or {}
        response = await self.client.post(url, json=body, headers={"User-Agent": "HiveMind/1.0"})

        if response.status_code != 402:
            response.raise_for_status()
            return {"data": self._safe_parse_json(response), "paid": None, "receipt": None}

        challenge = self._safe_parse_json(response) or {}
        accepts = challenge.get("accepts") or []
        if not accepts:
            raise PaymentVerificationError("Payment required but no payment requirements offered")

        requirements = PaymentRequirements.model_validate(accepts[0])
        if max_price is not None and int(requirements.max_amount_required) > int(usd_to_atomic(max_price)):
            raise PaymentVerificationError(
                f"Service price {requirements.max_amount_required} exceeds max price {usd_to_atomic(max_price)}"
            )
        if self.account is None:
            raise PaymentVerificationError("Wallet not configured for payments")

        payload = sign_payment(self.account, requirements)
        logger.info(f"Paying {requirements.max_amount_required} atomic units for {url}")

        paid = await self.client.post(
            url,
            json=body,
            headers={"User-Agent": "HiveMind/1.0", "X-PAYMENT": payload.to_header()},
        )
        if paid.status_code == 402:
            reason = (self._safe_parse_json(paid) or {}).get("error", "Payment rejected")
            raise PaymentVerificationError(reason)
        paid.raise_for_status()

        receipt_header = paid.headers.get("X-PAYMENT-RESPONSE")
        return {
            "data": self._safe_parse_json(paid),
            "paid": requirements.max_amount_required,
            "receipt": decode_payment_response(receipt_header) if receipt_header else None,
        }
