"""
Replay protection for x402 payments.

Accepted payments are recorded in the ``x402_payments`` table keyed by nonce.
The cache keeps a short-lived marker for each committed nonce so repeated
replays are rejected without a database round trip. Markers are only written
by lookups that find the payment row, so a request that fails after consuming
its nonce rolls the row back and the payment stays usable.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.core.cache import cache_client
from hivemind.core.config import settings
from hivemind.models.payments import X402Payment
from hivemind.x402.verification import PaymentPayload

logger = logging.getLogger(__name__)

NONCE_CACHE_PREFIX = "x402:nonce:"


class NonceRegistry:
    """Records consumed payment nonces."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_used(self, nonce: str) -> bool:
        if await cache_client.exists(NONCE_CACHE_PREFIX + nonce):
            return True
        result = await self.db.execute(select(X402Payment.nonce).where(X402Payment.nonce == nonce))
        if result.scalar_one_or_none() is None:
            return False
        await cache_client.set(
            NONCE_CACHE_PREFIX + nonce,
            True,
            ttl=settings.x402_max_timeout_seconds * 2,
        )
        return True

    async def consume(
        self,
        payment: PaymentPayload,
        resource: str,
        amount: str,
        action: str | None = None,
    ) -> bool:
        """
        Mark a payment nonce as used.

        Args:
            payment: Verified payment payload
            resource: Resource the payment was made for
            amount: Amount charged, in atomic units
            action: Optional action name for POST resources

        Returns:
            bool: False if the nonce had already been consumed
        """
        if await self.is_used(payment.nonce):
            logger.warning(f"Replayed x402 nonce rejected for {resource}")
            return False

        record = X402Payment(
            nonce=payment.nonce,
            payer=payment.payer,
            amount=amount,
            resource=resource,
            action=action,
        )
        self.db.add(record)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(f"Concurrent replay of x402 nonce rejected for {resource}")
            return False

        logger.info(f"x402 payment accepted for {resource}: {amount} from {payment.payer}")
        return True
