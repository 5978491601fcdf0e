"""
Database Operation Exceptions - Clean Error Handling Pattern

Database operations raise these typed errors instead of logging, so the
service layer decides what gets logged and what reaches the caller.

Usage Examples:
    # In database operations file:
    from .exceptions import ReplenishmentOperationError

    try:
        await cur.execute(query, params)
        return results
    except (psycopg.Error, KeyError, ValueError) as e:
        raise ReplenishmentOperationError(
            "Failed to retrieve replenishment",
            operation="get_replenishment_by_id",
        ) from e

    # In service layer:
    try:
        replenishment = await self.replenishment_ops.get_by_id(replenishment_id)
    except ReplenishmentOperationError as e:
        logger.error(f"❌ Database error retrieving replenishment {replenishment_id}: {e}")
        raise
"""

from typing import Any, Dict, Optional


class DatabaseOperationError(Exception):
    """
    Base exception for all database operation failures.

    Provides a clean interface for database errors without requiring
    logging dependencies in the database layer.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}

    def __str__(self):
        if self.operation:
            return f"{self.operation}: {super().__str__()}"
        return super().__str__()


class CustomerOperationError(DatabaseOperationError):
    """Customer-specific database operation errors."""

    pass


class ReplenishmentOperationError(DatabaseOperationError):
    """Replenishment-specific database operation errors."""

    pass
