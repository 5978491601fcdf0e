# backend/commerce/dependencies/database.py
"""Database dependency providers."""

from ..database import async_db
from ..database.core import AsyncDatabase


async def get_async_database() -> AsyncDatabase:
    """Get async database instance."""
    return async_db
