"""
Core module containing configuration, settings, and database connection.

This module provides:
    - config: Application settings and environment variable management
    - database: Database connection and session management
    - errors: Exception hierarchy and global exception handlers
    - cache: In-memory / Redis cache backend
"""

from hivemind.core.config import settings
from hivemind.core.database import Base, engine, get_db

__all__ = ["settings", "get_db", "engine", "Base"]
