# backend/commerce/models/customer_model.py
"""Customer models used by the scheduling code."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Customer(BaseModel):
    """Customer row as read from the customers table."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int = Field(..., description="Owning user account id")
    stripe_id: Optional[str] = Field(None, description="Payment provider customer id")
    email: Optional[str] = None
    first_name: Optional[str] = None
    birthday: Optional[date] = None
    loyalty_points: int = 0
    created_at: Optional[datetime] = None
