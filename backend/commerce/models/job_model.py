# backend/commerce/models/job_model.py
"""
Job Models - typed descriptors exchanged with the job queue.

The same models are built by the schedulers and parsed back by the
workers, so a payload that validates here is one the worker can run.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ..enums import JobName
from .replenishment_model import OrderTemplate


class RepeatRule(BaseModel):
    """How often a job scheduler fires and within which window."""

    every_ms: int = Field(..., gt=0, description="Period between runs in milliseconds")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = Field(None, gt=0, description="Maximum number of runs")

    @model_validator(mode="after")
    def validate_window(self) -> "RepeatRule":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class JobOptions(BaseModel):
    """Execution options attached to every job a scheduler produces."""

    attempts: int = Field(default=5, ge=1)
    backoff_delay_ms: int = Field(default=5000, ge=0)
    remove_on_complete: bool = True
    remove_on_fail_age_seconds: int = Field(default=24 * 3600, ge=0)


class JobHandle(BaseModel):
    """Reference to the next job a scheduler will run."""

    id: str
    scheduler_id: str
    next_run_time: datetime


class JobTemplate(BaseModel):
    """Base for job templates: a name, a typed payload and options."""

    name: JobName
    opts: JobOptions = Field(default_factory=JobOptions)


class ReplenishmentJobData(BaseModel):
    """Payload of one replenishment payment cycle."""

    scheduler_id: str
    customer_id: int
    user_id: int
    order_template: OrderTemplate
    period_ms: int = Field(..., gt=0)
    start_date: datetime
    end_date: Optional[datetime] = None
    limit: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def validate_window(self) -> "ReplenishmentJobData":
        if self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ReplenishmentJobTemplate(JobTemplate):
    name: JobName = JobName.REPLENISHMENT_PAYMENT
    data: ReplenishmentJobData


class PromotionDetails(BaseModel):
    """Reward handed out by a promotion."""

    loyalty_points: int = Field(..., ge=0)
    promo_code: bool = False
    percent_off: Optional[int] = Field(None, gt=0, le=100)

    @model_validator(mode="after")
    def validate_code(self) -> "PromotionDetails":
        if self.promo_code and self.percent_off is None:
            raise ValueError("percent_off is required when promo_code is set")
        return self


class HolidayPromotionJobData(BaseModel):
    holiday_name: str
    promotion: PromotionDetails


class HolidayPromotionJobTemplate(JobTemplate):
    name: JobName = JobName.HOLIDAY_PROMOTION
    data: HolidayPromotionJobData


class BirthdayPromotionJobData(BaseModel):
    user_id: int
    stripe_customer_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    birthday: date


class BirthdayPromotionJobTemplate(JobTemplate):
    name: JobName = JobName.BIRTHDAY_PROMOTION
    data: BirthdayPromotionJobData
