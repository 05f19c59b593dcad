"""
x402 payment verification.

The ``X-PAYMENT`` header carries a base64-encoded JSON ``PaymentPayload``.
Payloads are checked against the resource's requirements in a fixed order and
the first failing check decides the rejection reason. Signatures are EIP-191
personal-sign signatures over the colon-joined payment fields; the recovered
address becomes the payer.
"""

import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hivemind.core.constants import X402_MIN_NONCE_LENGTH
from hivemind.core.security import sanitize
from hivemind.x402.requirements import PaymentRequirements

logger = logging.getLogger(__name__)


class PaymentPayload(BaseModel):
    """Decoded contents of an ``X-PAYMENT`` header."""

    model_config = ConfigDict(populate_by_name=True)

    scheme: str
    network: str
    amount: str
    asset: str
    pay_to: str = Field(alias="payTo")
    nonce: str = ""
    timestamp: int
    signature: str | None = None
    payer: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> str:
        if isinstance(v, bool):
            raise ValueError("amount must be an integer string")
        return str(v)

    def signing_message(self) -> str:
        """Message the payer signs."""
        return ":".join(
            [
                self.scheme,
                self.network,
                self.amount,
                self.asset,
                self.pay_to,
                self.nonce,
                str(self.timestamp),
            ]
        )

    def to_header(self) -> str:
        data = self.model_dump(by_alias=True, exclude_none=True)
        return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


@dataclass
class VerificationResult:
    """Outcome of checking a payment against requirements."""

    is_valid: bool
    payer: str | None = None
    reason: str | None = None
    payload: PaymentPayload | None = None


def decode_payment_header(header: str) -> PaymentPayload:
    """
    Decode an ``X-PAYMENT`` header.

    Raises:
        ValueError: If the header is not base64 JSON of a payment payload
    """
    try:
        raw = base64.b64decode(header, validate=False).decode("utf-8")
        return PaymentPayload.model_validate(json.loads(raw))
    except (ValueError, ValidationError, TypeError) as e:
        raise ValueError(f"Invalid payment format: {e}") from e


def recover_payer(payload: PaymentPayload) -> str:
    """Recover the signer of a payload's signing message."""
    message = encode_defunct(text=payload.signing_message())
    return Account.recover_message(message, signature=payload.signature)


def verify_payment(
    header: str,
    requirements: PaymentRequirements,
    now: int | None = None,
) -> VerificationResult:
    """
    Verify an x402 payment header.

    Checks run in order: scheme, network, asset, recipient, amount, age,
    signature, nonce.

    Args:
        header: Raw ``X-PAYMENT`` header value
        requirements: Requirements the payment must satisfy
        now: Current unix time in seconds (defaults to ``time.time()``)

    Returns:
        VerificationResult with the payer on success or the reason on failure
    """
    try:
        payment = decode_payment_header(header)

        if payment.scheme != requirements.scheme:
            return VerificationResult(False, reason="Invalid payment scheme")

        if payment.network != requirements.network:
            return VerificationResult(False, reason="Invalid network")

        if payment.asset.lower() != requirements.asset.lower():
            return VerificationResult(False, reason="Invalid asset")

        if payment.pay_to.lower() != requirements.pay_to.lower():
            return VerificationResult(False, reason="Invalid recipient")

        if int(payment.amount) < int(requirements.max_amount_required):
            return VerificationResult(
                False,
                reason=f"Insufficient payment: {payment.amount} < {requirements.max_amount_required}",
            )

        current = int(time.time()) if now is None else now
        if current - payment.timestamp > requirements.max_timeout_seconds:
            return VerificationResult(False, reason="Payment expired")

        if payment.signature:
            try:
                payment.payer = recover_payer(payment)
            except Exception as e:
                logger.warning(f"Signature verification failed: {sanitize(str(e))}")
                return VerificationResult(False, reason="Invalid signature")

        if not payment.nonce or len(payment.nonce) < X402_MIN_NONCE_LENGTH:
            return VerificationResult(False, reason="Invalid or missing nonce")

        return VerificationResult(True, payer=payment.payer, payload=payment)
    except ValueError as e:
        logger.warning(f"Payment verification error: {sanitize(str(e))}")
        return VerificationResult(False, reason="Invalid payment format")


def encode_payment_response(
    payer: str | None,
    amount: str,
    action: str | None = None,
    timestamp_ms: int | None = None,
) -> str:
    """Value of the ``X-PAYMENT-RESPONSE`` header confirming settlement."""
    data: dict[str, Any] = {"success": True, "payer": payer, "amount": amount}
    if action is not None:
        data["action"] = action
    data["timestamp"] = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


def decode_payment_response(header: str) -> dict[str, Any]:
    return json.loads(base64.b64decode(header).decode("utf-8"))
