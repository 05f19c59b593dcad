"""
Bazaar service registry models.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hivemind.core.database import Base, utcnow


class BazaarService(Base):
    """Agent service advertised for pay-per-call use over x402."""

    __tablename__ = "bazaar_services"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)  # agent id
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    endpoint: Mapped[str] = mapped_column(String(512), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)  # USD per call
    capabilities: Mapped[list[str]] = mapped_column(JSON, default=list)
    network: Mapped[str] = mapped_column(String(32), default="base")
    status: Mapped[str] = mapped_column(String(20), default="active")
    total_calls: Mapped[int] = mapped_column(BigInteger, default=0)
    total_earnings: Mapped[float] = mapped_column(Float, default=0.0)
    registered_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "endpoint": self.endpoint,
            "price": self.price,
            "name": self.name,
            "description": self.description,
            "capabilities": list(self.capabilities or []),
            "network": self.network,
            "status": self.status,
            "registeredAt": int(self.registered_at.replace(tzinfo=timezone.utc).timestamp() * 1000),
            "totalCalls": self.total_calls,
            "totalEarnings": self.total_earnings,
        }

    def __repr__(self) -> str:
        return f"<BazaarService(id='{self.id}', endpoint='{self.endpoint}')>"
