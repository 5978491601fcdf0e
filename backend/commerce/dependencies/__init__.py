# backend/commerce/dependencies/__init__.py
"""
FastAPI dependency injection.

Routers use the Annotated aliases below instead of spelling out Depends().
"""

from typing import Annotated

from fastapi import Depends

from ..database.core import AsyncDatabase
from ..services.replenishment_service import ReplenishmentService
from ..services.scheduling.replenishment_scheduler import ReplenishmentScheduler
from .database import get_async_database
from .services import (
    get_cache_store,
    get_replenishment_queue,
    get_replenishment_scheduler,
    get_replenishment_service,
    job_options_from_settings,
)

AsyncDatabaseDep = Annotated[AsyncDatabase, Depends(get_async_database)]
ReplenishmentSchedulerDep = Annotated[
    ReplenishmentScheduler, Depends(get_replenishment_scheduler)
]
ReplenishmentServiceDep = Annotated[
    ReplenishmentService, Depends(get_replenishment_service)
]

__all__ = [
    "AsyncDatabaseDep",
    "ReplenishmentSchedulerDep",
    "ReplenishmentServiceDep",
    "get_async_database",
    "get_cache_store",
    "get_replenishment_queue",
    "get_replenishment_scheduler",
    "get_replenishment_service",
    "job_options_from_settings",
]
