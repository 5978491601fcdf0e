# backend/commerce/middleware/request_logger.py
"""
Request logging middleware for FastAPI application.

Logs method, path, status and duration of every request except health
checks and docs.
"""

import time

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..config import settings


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Request logging middleware with timing."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.debug_mode = settings.environment == "development"

        # Paths to exclude from logging
        self.exclude_paths = {
            "/api/health",
            "/docs",
            "/redoc",
            "/openapi.json",
            "/favicon.ico",
        }

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request and log details with timing."""
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        start_time = time.time()
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        if self.debug_mode:
            logger.debug(
                f"→ {request.method} {request.url.path} "
                f"from {getattr(request.client, 'host', 'unknown')} [{correlation_id}]"
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                f"❌ {request.method} {request.url.path} failed after {duration_ms:.1f}ms: "
                f"{type(exc).__name__} [{correlation_id}]"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} → {response.status_code} "
            f"({duration_ms:.1f}ms) [{correlation_id}]"
        )
        return response
