# backend/commerce/database/__init__.py
"""
Database package.

Usage:
    from commerce.database import async_db
    from commerce.database.replenishment_operations import ReplenishmentOperations

    replenishment_ops = ReplenishmentOperations(async_db)
"""

from .core import AsyncDatabase

# Shared database instance, initialized by the API lifespan or the worker
async_db = AsyncDatabase()

__all__ = ["AsyncDatabase", "async_db"]
