# backend/commerce/models/__init__.py
"""Pydantic models shared by the API, the schedulers and the workers."""

from .customer_model import Customer
from .job_model import (
    BirthdayPromotionJobData,
    BirthdayPromotionJobTemplate,
    HolidayPromotionJobData,
    HolidayPromotionJobTemplate,
    JobHandle,
    JobOptions,
    JobTemplate,
    PromotionDetails,
    RepeatRule,
    ReplenishmentJobData,
    ReplenishmentJobTemplate,
)
from .replenishment_model import (
    OrderItem,
    OrderTemplate,
    Replenishment,
    ReplenishmentCreate,
    ReplenishmentDetail,
    ReplenishmentFilters,
    ReplenishmentList,
    ReplenishmentPayment,
    ReplenishmentScheduleRequest,
)

__all__ = [
    "Customer",
    "BirthdayPromotionJobData",
    "BirthdayPromotionJobTemplate",
    "HolidayPromotionJobData",
    "HolidayPromotionJobTemplate",
    "JobHandle",
    "JobOptions",
    "JobTemplate",
    "PromotionDetails",
    "RepeatRule",
    "ReplenishmentJobData",
    "ReplenishmentJobTemplate",
    "OrderItem",
    "OrderTemplate",
    "Replenishment",
    "ReplenishmentCreate",
    "ReplenishmentDetail",
    "ReplenishmentFilters",
    "ReplenishmentList",
    "ReplenishmentPayment",
    "ReplenishmentScheduleRequest",
]
