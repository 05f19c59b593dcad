"""
x402 payment protocol: requirements, verification, replay protection and a
paying client.
"""

from hivemind.x402.requirements import (
    PaymentRequirements,
    payment_required_body,
    protected_requirements,
    service_requirements,
    usd_to_atomic,
)
from hivemind.x402.verification import (
    PaymentPayload,
    VerificationResult,
    decode_payment_header,
    encode_payment_response,
    verify_payment,
)

__all__ = [
    "PaymentRequirements",
    "PaymentPayload",
    "VerificationResult",
    "decode_payment_header",
    "encode_payment_response",
    "payment_required_body",
    "protected_requirements",
    "service_requirements",
    "usd_to_atomic",
    "verify_payment",
]
