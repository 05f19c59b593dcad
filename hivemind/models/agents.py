"""
Spawned agent models.

This module defines the SQLAlchemy model for agents created through the
spawn API.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hivemind.core.database import Base, utcnow


class SpawnedAgent(Base):
    """Agent instance launched by the spawn registry."""

    __tablename__ = "spawned_agents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, active
    capabilities: Mapped[list[str]] = mapped_column(JSON, default=list)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False)
    port: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    memory: Mapped[str] = mapped_column(String(16), nullable=False)
    cpu: Mapped[str] = mapped_column(String(16), nullable=False)
    tasks: Mapped[int] = mapped_column(Integer, default=0)
    earnings: Mapped[float] = mapped_column(Float, default=0.0)
    version: Mapped[str] = mapped_column(String(16), default="1.0.0")
    spawned_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    activates_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "capabilities": list(self.capabilities or []),
            "tasks": self.tasks,
            "earnings": self.earnings,
            "lastSeen": self.last_seen.isoformat() + "Z",
            "endpoint": self.endpoint,
            "walletAddress": self.wallet_address,
            "config": {"port": self.port, "memory": self.memory, "cpu": self.cpu},
            "spawnedAt": self.spawned_at.isoformat() + "Z",
            "version": self.version,
        }

    def __repr__(self) -> str:
        return f"<SpawnedAgent(id='{self.id}', type='{self.type}', status='{self.status}')>"
