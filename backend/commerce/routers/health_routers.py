# backend/commerce/routers/health_routers.py
"""
Health check endpoint.

Reports database reachability and whether the job scheduler is running.
Returns 503 when the database is unreachable so load balancers can react.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Response, status

from ..dependencies import AsyncDatabaseDep

router = APIRouter(tags=["health"])


@router.get("/health", response_model=Dict[str, Any])
async def health_check(
    request: Request, response: Response, db: AsyncDatabaseDep
) -> Dict[str, Any]:
    """Quick health check for load balancers and monitoring."""
    database = await db.health_check()
    scheduler = getattr(request.app.state, "scheduler", None)
    healthy = database.get("status") == "healthy"
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "healthy" if healthy else "unhealthy",
        "database": database,
        "pool": await db.get_pool_stats(),
        "scheduler_running": bool(scheduler and scheduler.running),
    }
