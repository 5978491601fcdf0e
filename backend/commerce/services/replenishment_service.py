# backend/commerce/services/replenishment_service.py
"""
Replenishment Service - read side of replenishments.

Customer-facing reads are scoped to the requesting customer and never
expose job scheduler ids or cache pointers.
"""

from typing import List

from ..database.customer_operations import CustomerOperations
from ..database.replenishment_operations import ReplenishmentOperations
from ..exceptions import CustomerNotFoundError, ReplenishmentNotFoundError
from ..models.replenishment_model import (
    Replenishment,
    ReplenishmentDetail,
    ReplenishmentFilters,
    ReplenishmentList,
)


class ReplenishmentService:
    """Queries over replenishments and their payment history."""

    def __init__(
        self,
        customer_ops: CustomerOperations,
        replenishment_ops: ReplenishmentOperations,
    ):
        self.customer_ops = customer_ops
        self.replenishment_ops = replenishment_ops

    async def get_replenishment_by_id(
        self, user_id: int, replenishment_id: int
    ) -> ReplenishmentDetail:
        """
        One replenishment of a customer with its payment dates.

        Raises:
            CustomerNotFoundError: Unknown user
            ReplenishmentNotFoundError: No such replenishment for the customer
        """
        customer = await self.customer_ops.get_by_user_id(user_id)
        if customer is None:
            raise CustomerNotFoundError()
        replenishment = await self.replenishment_ops.get_for_customer(
            replenishment_id, customer.id
        )
        if replenishment is None:
            raise ReplenishmentNotFoundError()
        return (await self.to_details([replenishment]))[0]

    async def get_customer_replenishments(self, user_id: int) -> ReplenishmentList:
        """All replenishments of a customer, newest first."""
        customer = await self.customer_ops.get_by_user_id(user_id)
        if customer is None:
            raise CustomerNotFoundError()
        replenishments = await self.replenishment_ops.list_for_customer(customer.id)
        details = await self.to_details(replenishments)
        return ReplenishmentList(total=len(details), replenishments=details)

    async def get_all_replenishments(self, filters: ReplenishmentFilters) -> ReplenishmentList:
        """Admin listing across customers."""
        replenishments = await self.replenishment_ops.list_filtered(filters)
        details = await self.to_details(replenishments)
        return ReplenishmentList(total=len(details), replenishments=details)

    async def to_details(
        self, replenishments: List[Replenishment]
    ) -> List[ReplenishmentDetail]:
        """Attach payment dates and drop internal fields."""
        payment_dates = await self.replenishment_ops.get_payment_dates(
            [replenishment.id for replenishment in replenishments]
        )
        return [
            ReplenishmentDetail.from_replenishment(
                replenishment, payment_dates.get(replenishment.id, [])
            )
            for replenishment in replenishments
        ]
