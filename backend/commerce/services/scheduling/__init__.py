# backend/commerce/services/scheduling/__init__.py
"""
Scheduling services: replenishment lifecycle, promotion schedulers and the
job queue they write to.
"""

from .interval_utils import (
    generate_scheduler_id,
    next_payment_date,
    period_ms,
    unit_to_milliseconds,
)
from .job_queue_service import JobQueueService, create_scheduler
from .promotion_scheduler import PromotionScheduler
from .replenishment_scheduler import ReplenishmentScheduler
from .state_transitions import allowed_cancel_toggle, allowed_update

__all__ = [
    "JobQueueService",
    "PromotionScheduler",
    "ReplenishmentScheduler",
    "allowed_cancel_toggle",
    "allowed_update",
    "create_scheduler",
    "generate_scheduler_id",
    "next_payment_date",
    "period_ms",
    "unit_to_milliseconds",
]
