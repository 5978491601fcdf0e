# backend/commerce/main.py
"""
FastAPI application entry point.

This process only writes job descriptors: its scheduler is started paused
so no replenishment or promotion job ever executes here. Jobs run in the
separate worker.py process.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from . import __version__
from .config import settings
from .database import async_db
from .logging import setup_logging
from .middleware import ErrorHandlerMiddleware, RequestLoggerMiddleware
from .routers import health_routers as health
from .routers import replenishment_routers as replenishments
from .services.cache_store import create_redis_client
from .services.scheduling.job_queue_service import create_scheduler


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Handle application startup and shutdown"""
    setup_logging(settings)
    logger.info(f"Starting commerce API ({settings.environment})")

    await async_db.initialize()

    _app.state.redis = create_redis_client(settings)
    _app.state.scheduler = create_scheduler(settings)
    _app.state.scheduler.start(paused=True)
    logger.info("✅ Job stores connected (descriptor writes only)")

    yield

    _app.state.scheduler.shutdown(wait=False)
    await _app.state.redis.aclose()
    await async_db.close()
    logger.info("Commerce API stopped")


app = FastAPI(
    title="Commerce Scheduling API",
    description="Replenishment subscriptions and promotion scheduling",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Added after the request logger so it wraps it
app.add_middleware(RequestLoggerMiddleware)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(replenishments.router, prefix="/api", tags=["replenishments"])
app.include_router(health.router, prefix="/api", tags=["health"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Commerce Scheduling API", "version": __version__, "docs": "/docs"}


if __name__ == "__main__":
    uvicorn.run(
        "commerce.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.value.lower(),
    )
