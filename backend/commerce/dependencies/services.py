# backend/commerce/dependencies/services.py
"""
Service dependency providers.

Process-wide clients (the APScheduler instance and the Redis client) are
created in the application lifespan and kept on ``app.state``; services
are cheap wrappers built per request around them.
"""

from fastapi import Depends, Request

from ..config import settings
from ..constants import REPLENISHMENT_JOB_PROCESSOR
from ..database.core import AsyncDatabase
from ..database.customer_operations import CustomerOperations
from ..database.replenishment_operations import ReplenishmentOperations
from ..models.job_model import JobOptions
from ..services.cache_store import ReplenishmentCacheStore
from ..services.replenishment_service import ReplenishmentService
from ..services.scheduling.job_queue_service import JobQueueService
from ..services.scheduling.replenishment_scheduler import ReplenishmentScheduler
from .database import get_async_database


def job_options_from_settings() -> JobOptions:
    """Options attached to every executed job."""
    return JobOptions(
        attempts=settings.job_attempts,
        backoff_delay_ms=settings.job_backoff_delay_ms,
        remove_on_fail_age_seconds=settings.job_failed_retention_seconds,
    )


async def get_replenishment_queue(request: Request) -> JobQueueService:
    """Replenishment queue on the application's scheduler."""
    return JobQueueService(
        request.app.state.scheduler,
        settings.replenishment_queue_name,
        REPLENISHMENT_JOB_PROCESSOR,
    )


async def get_cache_store(request: Request) -> ReplenishmentCacheStore:
    return ReplenishmentCacheStore(request.app.state.redis)


async def get_replenishment_scheduler(
    db: AsyncDatabase = Depends(get_async_database),
    job_queue: JobQueueService = Depends(get_replenishment_queue),
    cache_store: ReplenishmentCacheStore = Depends(get_cache_store),
) -> ReplenishmentScheduler:
    """ReplenishmentScheduler wired to the shared database, queue and cache."""
    return ReplenishmentScheduler(
        CustomerOperations(db),
        ReplenishmentOperations(db),
        job_queue,
        cache_store,
        job_options=job_options_from_settings(),
    )


async def get_replenishment_service(
    db: AsyncDatabase = Depends(get_async_database),
) -> ReplenishmentService:
    return ReplenishmentService(CustomerOperations(db), ReplenishmentOperations(db))
