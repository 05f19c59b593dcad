"""
Agent wallet models.

Private keys are never stored in the clear: each row holds an encrypted
Web3 Secret Storage keystore produced by ``eth_account``.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from hivemind.core.database import Base, utcnow


class AgentWallet(Base):
    """Wallet held in the local agent keystore."""

    __tablename__ = "agent_wallets"

    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(128))
    keystore: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "name": self.name,
            "createdAt": self.created_at.isoformat() + "Z",
        }

    def __repr__(self) -> str:
        return f"<AgentWallet(address='{self.address}')>"
