"""
X402 payment gateway.

This service guards paid endpoints: it answers unpaid requests with the
402 challenge, verifies ``X-PAYMENT`` headers and consumes payment nonces
so every payment is accepted once.
"""

import logging
import time
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.core.errors import PaymentVerificationError
from hivemind.x402.nonces import NonceRegistry
from hivemind.x402.requirements import PaymentRequirements, payment_required_body
from hivemind.x402.verification import encode_payment_response, verify_payment

logger = logging.getLogger(__name__)

REPLAY_ERROR = "Payment already used (replay attack prevented)"


@dataclass
class PaymentReceipt:
    """Accepted payment for one request."""

    payer: str | None
    amount: str
    action: str | None = None
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    def response_header(self) -> str:
        """Value for the ``X-PAYMENT-RESPONSE`` header."""
        return encode_payment_response(self.payer, self.amount, self.action, self.timestamp_ms)


class X402Gateway:
    """Service for accepting x402 payments on protected resources."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.nonces = NonceRegistry(db)

    async def require_payment(
        self,
        payment_header: str | None,
        requirements: PaymentRequirements,
        action: str | None = None,
        missing_error: str = "Payment required",
    ) -> PaymentReceipt:
        """
        Accept a payment or raise the matching 402 challenge.

        Args:
            payment_header: Raw ``X-PAYMENT`` header, if any
            requirements: Requirements for this resource
            action: Action being paid for (POST resources)
            missing_error: Error text when no payment was sent

        Returns:
            PaymentReceipt for the accepted payment

        Raises:
            PaymentVerificationError: With the 402 body as detail
        """
        if not payment_header:
            raise PaymentVerificationError(
                missing_error,
                detail=payment_required_body(missing_error, requirements),
            )

        result = verify_payment(payment_header, requirements)
        if not result.is_valid:
            reason = result.reason or "Invalid payment"
            logger.info(f"Rejected x402 payment for {requirements.resource}: {reason}")
            raise PaymentVerificationError(
                reason,
                detail=payment_required_body(reason, requirements, payer=result.payer),
            )

        consumed = await self.nonces.consume(
            result.payload,
            resource=requirements.resource,
            amount=requirements.max_amount_required,
            action=action,
        )
        if not consumed:
            raise PaymentVerificationError(
                REPLAY_ERROR,
                detail=payment_required_body(REPLAY_ERROR, requirements),
            )

        return PaymentReceipt(
            payer=result.payer,
            amount=requirements.max_amount_required,
            action=action,
        )
