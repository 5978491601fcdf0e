# backend/commerce/database/customer_operations.py
"""
Customer Operations - Database layer for customer lookups.

Only the reads and updates the schedulers and promotion workers need.
"""

from typing import List, Optional

import psycopg

from ..models.customer_model import Customer
from .core import AsyncDatabase
from .exceptions import CustomerOperationError

CUSTOMER_FIELDS = """
    id, user_id, stripe_id, email, first_name, birthday, loyalty_points, created_at
"""


class CustomerOperations:
    """Async database operations for customers."""

    def __init__(self, db: AsyncDatabase) -> None:
        """Initialize with async database instance."""
        self.db = db

    async def get_by_user_id(self, user_id: int) -> Optional[Customer]:
        """Find the customer owning a user account."""
        query = f"SELECT {CUSTOMER_FIELDS} FROM customers WHERE user_id = %(user_id)s"
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, {"user_id": user_id})
                    row = await cur.fetchone()
                    return Customer.model_validate(dict(row)) if row else None
        except (psycopg.Error, KeyError, ValueError) as e:
            raise CustomerOperationError(
                "Failed to retrieve customer", operation="get_by_user_id"
            ) from e

    async def get_all(self) -> List[Customer]:
        """All customers, ordered by id."""
        query = f"SELECT {CUSTOMER_FIELDS} FROM customers ORDER BY id"
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query)
                    rows = await cur.fetchall()
                    return [Customer.model_validate(dict(row)) for row in rows]
        except (psycopg.Error, KeyError, ValueError) as e:
            raise CustomerOperationError(
                "Failed to list customers", operation="get_all"
            ) from e

    async def add_loyalty_points_to_all(self, points: int) -> int:
        """
        Credit loyalty points to every customer in a single statement.

        Returns:
            Number of customers credited
        """
        query = "UPDATE customers SET loyalty_points = loyalty_points + %(points)s"
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, {"points": points})
                    return cur.rowcount
        except psycopg.Error as e:
            raise CustomerOperationError(
                "Failed to credit loyalty points",
                operation="add_loyalty_points_to_all",
                details={"points": points},
            ) from e
