# backend/commerce/models/replenishment_model.py
"""
Replenishment Models - Pydantic models for recurring auto-reorders.

A replenishment pairs a relational record with one job scheduler entry in
the replenishment job store. The order template stored here is the one
each cycle charges and ships.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..enums import Currency, PaymentMethod, ReplenishmentStatus, ReplenishmentUnit


class OrderItem(BaseModel):
    """One product line of an order template."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0, le=1000)


class OrderTemplate(BaseModel):
    """What gets ordered on every cycle and how it is paid for."""

    order_items: List[OrderItem] = Field(..., min_length=1)
    payment_method: PaymentMethod
    shipping_country: str = Field(..., min_length=2, max_length=64)
    payment_method_id: Optional[str] = Field(
        None, description="Stored payment method reference at the payment provider"
    )
    currency: Currency = Currency.EUR


class ReplenishmentScheduleRequest(BaseModel):
    """Body shared by replenishment create and update requests."""

    order_template: OrderTemplate
    interval: int = Field(..., gt=0, description="Number of units between cycles")
    unit: ReplenishmentUnit
    starting: Optional[datetime] = Field(
        None, description="First cycle date; required when updating a scheduled replenishment"
    )
    expiry: Optional[datetime] = Field(None, description="No cycle runs after this date")
    times: Optional[int] = Field(None, gt=0, description="Maximum number of cycles")

    @model_validator(mode="after")
    def validate_window(self) -> "ReplenishmentScheduleRequest":
        if self.starting and self.expiry and self.expiry <= self.starting:
            raise ValueError("expiry must be after the starting date")
        return self


class ReplenishmentCreate(BaseModel):
    """Fields persisted when a replenishment is created."""

    customer_id: int
    scheduler_id: str
    next_job_id: Optional[str] = None
    order_template: OrderTemplate
    interval: int = Field(..., gt=0)
    unit: ReplenishmentUnit
    start_date: datetime
    end_date: Optional[datetime] = None
    times: Optional[int] = Field(None, gt=0)
    next_payment_date: Optional[datetime] = None
    status: ReplenishmentStatus = ReplenishmentStatus.SCHEDULED


class Replenishment(BaseModel):
    """Complete replenishment model with all database fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    scheduler_id: str
    next_job_id: Optional[str] = None
    order_template: OrderTemplate
    interval: int
    unit: ReplenishmentUnit
    start_date: datetime
    end_date: Optional[datetime] = None
    times: Optional[int] = None
    executions: int = 0
    last_payment_date: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    status: ReplenishmentStatus
    order_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def remaining_times(self) -> Optional[int]:
        """Cycles left before the occurrence limit, or None when unbounded."""
        if self.times is None:
            return None
        return max(self.times - self.executions, 0)


class ReplenishmentPayment(BaseModel):
    """One historical payment attempt of a replenishment cycle."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    replenishment_id: int
    amount: Decimal
    executed_at: datetime
    succeeded: bool


class ReplenishmentDetail(BaseModel):
    """Customer-facing view of a replenishment; internal job pointers are omitted."""

    id: int
    order_template: OrderTemplate
    interval: int
    unit: ReplenishmentUnit
    start_date: datetime
    end_date: Optional[datetime] = None
    times: Optional[int] = None
    executions: int = 0
    last_payment_date: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    status: ReplenishmentStatus
    order_id: Optional[int] = None
    payment_dates: List[datetime] = Field(default_factory=list)

    @classmethod
    def from_replenishment(
        cls, replenishment: Replenishment, payment_dates: Optional[List[datetime]] = None
    ) -> "ReplenishmentDetail":
        data = replenishment.model_dump(
            exclude={"customer_id", "scheduler_id", "next_job_id", "created_at", "updated_at"}
        )
        return cls(**data, payment_dates=payment_dates or [])


class ReplenishmentList(BaseModel):
    """A page of replenishments with its total."""

    total: int
    replenishments: List[ReplenishmentDetail]


class ReplenishmentFilters(BaseModel):
    """Admin listing filters; unset fields do not filter."""

    customer_id: Optional[int] = None
    unit: Optional[ReplenishmentUnit] = None
    interval: Optional[int] = Field(None, gt=0)
    status: Optional[ReplenishmentStatus] = None
