"""
Database models package.

This package contains SQLAlchemy ORM models for the Hive Mind gateway.
"""

from hivemind.core.database import Base
from hivemind.models.agents import SpawnedAgent
from hivemind.models.payments import X402Payment
from hivemind.models.services import BazaarService
from hivemind.models.wallets import AgentWallet

__all__ = [
    "Base",
    "SpawnedAgent",
    "BazaarService",
    "X402Payment",
    "AgentWallet",
]
