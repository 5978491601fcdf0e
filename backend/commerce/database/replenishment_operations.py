# backend/commerce/database/replenishment_operations.py
"""
Replenishment Operations - Database layer for replenishment records.

Records are soft-deleted; every read excludes rows with deleted_at set.
Payment history lives in replenishment_payments and is written only by
the cycle outcome methods.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.types.json import Jsonb

from ..models.replenishment_model import (
    Replenishment,
    ReplenishmentCreate,
    ReplenishmentFilters,
    ReplenishmentPayment,
)
from ..utils.time_utils import utc_now
from .core import AsyncDatabase
from .exceptions import ReplenishmentOperationError

# Columns callers may change through update()
UPDATABLE_COLUMNS = frozenset(
    {
        "next_job_id",
        "order_template",
        "interval",
        "unit",
        "start_date",
        "end_date",
        "times",
        "executions",
        "last_payment_date",
        "next_payment_date",
        "status",
        "order_id",
    }
)


class ReplenishmentQueryBuilder:
    """Centralized query builder for replenishment operations.

    Expected indexes:
    - CREATE UNIQUE INDEX idx_replenishments_scheduler_id ON replenishments(scheduler_id);
    - CREATE INDEX idx_replenishments_customer ON replenishments(customer_id) WHERE deleted_at IS NULL;
    - CREATE INDEX idx_replenishment_payments_replenishment ON replenishment_payments(replenishment_id);
    """

    @staticmethod
    def get_base_fields() -> str:
        return """
            id, customer_id, scheduler_id, next_job_id, order_template, interval,
            unit, start_date, end_date, times, executions, last_payment_date,
            next_payment_date, status, order_id, created_at, updated_at
        """

    @staticmethod
    def build_insert_query() -> str:
        return f"""
            INSERT INTO replenishments (
                customer_id, scheduler_id, next_job_id, order_template, interval,
                unit, start_date, end_date, times, next_payment_date, status
            ) VALUES (
                %(customer_id)s, %(scheduler_id)s, %(next_job_id)s, %(order_template)s,
                %(interval)s, %(unit)s, %(start_date)s, %(end_date)s, %(times)s,
                %(next_payment_date)s, %(status)s
            )
            RETURNING {ReplenishmentQueryBuilder.get_base_fields()}
        """

    @staticmethod
    def build_filtered_query(where_conditions: List[str]) -> str:
        conditions = ["deleted_at IS NULL", *where_conditions]
        return f"""
            SELECT {ReplenishmentQueryBuilder.get_base_fields()}
            FROM replenishments
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at DESC, id DESC
        """

    @staticmethod
    def build_update_query(columns: List[str]) -> str:
        assignments = ", ".join(f"{column} = %({column})s" for column in columns)
        return f"""
            UPDATE replenishments
            SET {assignments}, updated_at = %(updated_at)s
            WHERE id = %(id)s AND deleted_at IS NULL
            RETURNING {ReplenishmentQueryBuilder.get_base_fields()}
        """

    @staticmethod
    def build_payment_insert_query() -> str:
        return """
            INSERT INTO replenishment_payments (replenishment_id, amount, executed_at, succeeded)
            VALUES (%(replenishment_id)s, %(amount)s, %(executed_at)s, %(succeeded)s)
            RETURNING id, replenishment_id, amount, executed_at, succeeded
        """


class ReplenishmentOperations:
    """Async database operations for replenishments and their payments."""

    def __init__(self, db: AsyncDatabase) -> None:
        """Initialize with async database instance."""
        self.db = db

    async def create(self, data: ReplenishmentCreate) -> Replenishment:
        """Insert a replenishment and return the stored row."""
        params = {
            **data.model_dump(exclude={"order_template"}),
            "order_template": Jsonb(data.order_template.model_dump(mode="json")),
            "unit": data.unit.value,
            "status": data.status.value,
        }
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(ReplenishmentQueryBuilder.build_insert_query(), params)
                    row = await cur.fetchone()
                    if not row:
                        raise ReplenishmentOperationError(
                            "Insert returned no row", operation="create"
                        )
                    return self._row_to_replenishment(row)
        except (psycopg.Error, KeyError, ValueError) as e:
            raise ReplenishmentOperationError(
                "Failed to create replenishment",
                operation="create",
                details={"scheduler_id": data.scheduler_id},
            ) from e

    async def get_by_id(self, replenishment_id: int) -> Optional[Replenishment]:
        """Get a replenishment by primary key."""
        return await self._get_one("id = %(id)s", {"id": replenishment_id}, "get_by_id")

    async def get_by_scheduler_id(self, scheduler_id: str) -> Optional[Replenishment]:
        """Get the replenishment owning a job scheduler."""
        return await self._get_one(
            "scheduler_id = %(scheduler_id)s",
            {"scheduler_id": scheduler_id},
            "get_by_scheduler_id",
        )

    async def get_for_customer(
        self, replenishment_id: int, customer_id: int
    ) -> Optional[Replenishment]:
        """Get a replenishment only if it belongs to the customer."""
        return await self._get_one(
            "id = %(id)s AND customer_id = %(customer_id)s",
            {"id": replenishment_id, "customer_id": customer_id},
            "get_for_customer",
        )

    async def list_for_customer(self, customer_id: int) -> List[Replenishment]:
        """All live replenishments of a customer, newest first."""
        return await self.list_filtered(ReplenishmentFilters(customer_id=customer_id))

    async def list_filtered(self, filters: ReplenishmentFilters) -> List[Replenishment]:
        """Replenishments matching every set filter field."""
        conditions = []
        params: Dict[str, Any] = {}
        for field, value in filters.model_dump(exclude_none=True).items():
            conditions.append(f"{field} = %({field})s")
            params[field] = getattr(value, "value", value)

        query = ReplenishmentQueryBuilder.build_filtered_query(conditions)
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    rows = await cur.fetchall()
                    return [self._row_to_replenishment(row) for row in rows]
        except (psycopg.Error, KeyError, ValueError) as e:
            raise ReplenishmentOperationError(
                "Failed to list replenishments", operation="list_filtered"
            ) from e

    async def get_payment_dates(
        self, replenishment_ids: List[int]
    ) -> Dict[int, List[datetime]]:
        """Successful payment dates per replenishment, oldest first."""
        if not replenishment_ids:
            return {}
        query = """
            SELECT replenishment_id, executed_at
            FROM replenishment_payments
            WHERE replenishment_id = ANY(%(ids)s) AND succeeded
            ORDER BY executed_at
        """
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, {"ids": replenishment_ids})
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise ReplenishmentOperationError(
                "Failed to retrieve payment dates", operation="get_payment_dates"
            ) from e

        dates: Dict[int, List[datetime]] = defaultdict(list)
        for row in rows:
            dates[row["replenishment_id"]].append(row["executed_at"])
        return dict(dates)

    async def count_payments(
        self, replenishment_id: int, succeeded_only: bool = True
    ) -> int:
        """Number of payment rows recorded for a replenishment."""
        query = (
            "SELECT COUNT(*) AS count FROM replenishment_payments "
            "WHERE replenishment_id = %(replenishment_id)s"
        )
        if succeeded_only:
            query += " AND succeeded"
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, {"replenishment_id": replenishment_id})
                    row = await cur.fetchone()
                    return int(row["count"]) if row else 0
        except psycopg.Error as e:
            raise ReplenishmentOperationError(
                "Failed to count payments", operation="count_payments"
            ) from e

    async def update(
        self, replenishment_id: int, fields: Dict[str, Any]
    ) -> Optional[Replenishment]:
        """
        Update selected columns of a replenishment.

        Args:
            replenishment_id: Primary key
            fields: Column values; keys outside UPDATABLE_COLUMNS are rejected

        Returns:
            The updated row, or None if no live row matched
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ReplenishmentOperationError(
                f"Columns cannot be updated: {', '.join(sorted(unknown))}",
                operation="update",
            )
        if not fields:
            return await self.get_by_id(replenishment_id)

        columns = sorted(fields)
        params = {column: self._to_db_value(fields[column]) for column in columns}
        params.update({"id": replenishment_id, "updated_at": utc_now()})

        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        ReplenishmentQueryBuilder.build_update_query(columns), params
                    )
                    row = await cur.fetchone()
                    return self._row_to_replenishment(row) if row else None
        except (psycopg.Error, KeyError, ValueError) as e:
            raise ReplenishmentOperationError(
                "Failed to update replenishment",
                operation="update",
                details={"replenishment_id": replenishment_id},
            ) from e

    async def soft_delete(self, replenishment_id: int) -> bool:
        """Mark a replenishment deleted; returns False if it was already gone."""
        query = """
            UPDATE replenishments
            SET deleted_at = %(deleted_at)s, next_job_id = NULL
            WHERE id = %(id)s AND deleted_at IS NULL
        """
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, {"id": replenishment_id, "deleted_at": utc_now()})
                    return cur.rowcount > 0
        except psycopg.Error as e:
            raise ReplenishmentOperationError(
                "Failed to delete replenishment",
                operation="soft_delete",
                details={"replenishment_id": replenishment_id},
            ) from e

    async def record_cycle_outcome(
        self,
        replenishment_id: int,
        amount: Decimal,
        executed_at: datetime,
        succeeded: bool,
        fields: Dict[str, Any],
    ) -> Optional[Replenishment]:
        """
        Insert a payment row and update the replenishment in one transaction.

        Returns:
            The updated replenishment, or None if it no longer exists
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ReplenishmentOperationError(
                f"Columns cannot be updated: {', '.join(sorted(unknown))}",
                operation="record_cycle_outcome",
            )
        columns = sorted(fields)
        update_params = {column: self._to_db_value(fields[column]) for column in columns}
        update_params.update({"id": replenishment_id, "updated_at": utc_now()})

        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        ReplenishmentQueryBuilder.build_payment_insert_query(),
                        {
                            "replenishment_id": replenishment_id,
                            "amount": amount,
                            "executed_at": executed_at,
                            "succeeded": succeeded,
                        },
                    )
                    await cur.execute(
                        ReplenishmentQueryBuilder.build_update_query(columns),
                        update_params,
                    )
                    row = await cur.fetchone()
                    return self._row_to_replenishment(row) if row else None
        except (psycopg.Error, KeyError, ValueError) as e:
            raise ReplenishmentOperationError(
                "Failed to record cycle outcome",
                operation="record_cycle_outcome",
                details={"replenishment_id": replenishment_id, "succeeded": succeeded},
            ) from e

    async def get_payments(self, replenishment_id: int) -> List[ReplenishmentPayment]:
        """Full payment history of a replenishment, oldest first."""
        query = """
            SELECT id, replenishment_id, amount, executed_at, succeeded
            FROM replenishment_payments
            WHERE replenishment_id = %(replenishment_id)s
            ORDER BY executed_at
        """
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, {"replenishment_id": replenishment_id})
                    rows = await cur.fetchall()
                    return [ReplenishmentPayment.model_validate(dict(row)) for row in rows]
        except (psycopg.Error, ValueError) as e:
            raise ReplenishmentOperationError(
                "Failed to retrieve payments", operation="get_payments"
            ) from e

    async def _get_one(
        self, condition: str, params: Dict[str, Any], operation: str
    ) -> Optional[Replenishment]:
        query = ReplenishmentQueryBuilder.build_filtered_query([condition])
        try:
            async with self.db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    return self._row_to_replenishment(row) if row else None
        except (psycopg.Error, KeyError, ValueError) as e:
            raise ReplenishmentOperationError(
                "Failed to retrieve replenishment", operation=operation
            ) from e

    @staticmethod
    def _to_db_value(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if hasattr(value, "model_dump"):
            return Jsonb(value.model_dump(mode="json"))
        return value

    @staticmethod
    def _row_to_replenishment(row: Dict[str, Any]) -> Replenishment:
        """Convert a database row to a Replenishment model."""
        return Replenishment.model_validate(dict(row))
