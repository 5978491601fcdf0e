# backend/commerce/routers/replenishment_routers.py
"""
Replenishment HTTP endpoints.

Thin handlers: every rule lives in ReplenishmentScheduler and
ReplenishmentService, and domain errors are mapped to status codes by
ErrorHandlerMiddleware.
"""

from typing import Optional

from fastapi import APIRouter, Path, Query, Response, status

from ..dependencies import ReplenishmentSchedulerDep, ReplenishmentServiceDep
from ..enums import ReplenishmentStatus, ReplenishmentUnit
from ..models.replenishment_model import (
    ReplenishmentDetail,
    ReplenishmentFilters,
    ReplenishmentList,
    ReplenishmentScheduleRequest,
)

router = APIRouter(tags=["replenishments"])


@router.post(
    "/customers/{user_id}/replenishments",
    response_model=ReplenishmentDetail,
    status_code=status.HTTP_201_CREATED,
)
async def create_replenishment(
    body: ReplenishmentScheduleRequest,
    scheduler: ReplenishmentSchedulerDep,
    user_id: int = Path(..., ge=1),
):
    """Create a recurring auto-reorder for a customer."""
    replenishment = await scheduler.create_replenishment(
        user_id,
        body.order_template,
        body.interval,
        body.unit,
        trial_start=body.starting,
        expiry=body.expiry,
        max_times=body.times,
    )
    return ReplenishmentDetail.from_replenishment(replenishment)


@router.get("/customers/{user_id}/replenishments", response_model=ReplenishmentList)
async def get_customer_replenishments(
    service: ReplenishmentServiceDep,
    user_id: int = Path(..., ge=1),
):
    """All replenishments of a customer with their payment dates."""
    return await service.get_customer_replenishments(user_id)


@router.get(
    "/customers/{user_id}/replenishments/{replenishment_id}",
    response_model=ReplenishmentDetail,
)
async def get_replenishment(
    service: ReplenishmentServiceDep,
    user_id: int = Path(..., ge=1),
    replenishment_id: int = Path(..., ge=1),
):
    return await service.get_replenishment_by_id(user_id, replenishment_id)


@router.put(
    "/customers/{user_id}/replenishments/{replenishment_id}",
    response_model=ReplenishmentDetail,
)
async def update_replenishment(
    body: ReplenishmentScheduleRequest,
    scheduler: ReplenishmentSchedulerDep,
    user_id: int = Path(..., ge=1),
    replenishment_id: int = Path(..., ge=1),
):
    """
    Replace the order template and interval of a replenishment.

    Scheduled replenishments require ``starting``; active ones reject it.
    """
    replenishment = await scheduler.update_replenishment(
        user_id,
        replenishment_id,
        body.order_template,
        body.interval,
        body.unit,
        new_start_date=body.starting,
        expiry=body.expiry,
        times=body.times,
    )
    return ReplenishmentDetail.from_replenishment(replenishment)


@router.patch(
    "/customers/{user_id}/replenishments/{replenishment_id}/cancel",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def toggle_cancel_replenishment(
    scheduler: ReplenishmentSchedulerDep,
    user_id: int = Path(..., ge=1),
    replenishment_id: int = Path(..., ge=1),
):
    """Cancel a running replenishment, or resume a canceled one."""
    await scheduler.toggle_cancel_status(user_id, replenishment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/customers/{user_id}/replenishments/{replenishment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_replenishment(
    scheduler: ReplenishmentSchedulerDep,
    user_id: int = Path(..., ge=1),
    replenishment_id: int = Path(..., ge=1),
):
    await scheduler.remove_replenishment(user_id, replenishment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/replenishments", response_model=ReplenishmentList)
async def get_all_replenishments(
    service: ReplenishmentServiceDep,
    customer_id: Optional[int] = Query(None, ge=1, description="Filter by customer"),
    unit: Optional[ReplenishmentUnit] = Query(None, description="Filter by interval unit"),
    interval: Optional[int] = Query(None, ge=1, description="Filter by interval"),
    replenishment_status: Optional[ReplenishmentStatus] = Query(
        None, alias="status", description="Filter by status"
    ),
):
    """Admin listing of replenishments across customers."""
    return await service.get_all_replenishments(
        ReplenishmentFilters(
            customer_id=customer_id,
            unit=unit,
            interval=interval,
            status=replenishment_status,
        )
    )
