"""
Payment models.

This module defines the SQLAlchemy model for accepted x402 payments. The
nonce is the primary key, so a second insert of the same nonce is rejected by
the database and a payment can only be consumed once.
"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from hivemind.core.database import Base, utcnow


class X402Payment(Base):
    """Accepted x402 payment, keyed by its nonce."""

    __tablename__ = "x402_payments"

    nonce: Mapped[str] = mapped_column(String(128), primary_key=True)
    payer: Mapped[str | None] = mapped_column(String(42))
    amount: Mapped[str] = mapped_column(String(78), nullable=False)  # atomic units
    resource: Mapped[str] = mapped_column(String(512), nullable=False)
    action: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<X402Payment(nonce='{self.nonce}', amount='{self.amount}')>"
