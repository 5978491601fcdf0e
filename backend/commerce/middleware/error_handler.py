# backend/commerce/middleware/error_handler.py
"""
Error handling middleware for FastAPI application.

Maps domain errors to their HTTP status codes and turns everything else
into a logged 500 without exposing internal details.
"""

import traceback
import uuid
from typing import Dict, Type

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..config import settings
from ..database.exceptions import DatabaseOperationError
from ..exceptions import (
    CommerceError,
    CustomerNotFoundError,
    InvalidScheduleError,
    InvalidStateTransitionError,
    PaymentGatewayError,
    ReplenishmentNotFoundError,
    SchedulingFailureError,
)
from ..utils.time_utils import utc_now

DOMAIN_ERROR_STATUS: Dict[Type[CommerceError], int] = {
    CustomerNotFoundError: 404,
    ReplenishmentNotFoundError: 404,
    InvalidStateTransitionError: 409,
    InvalidScheduleError: 400,
    SchedulingFailureError: 503,
    PaymentGatewayError: 502,
}


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Centralized error handling middleware.

    Catches all unhandled exceptions, logs them with correlation IDs,
    and returns user-friendly error responses.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.debug_mode = settings.environment == "development"

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request and handle any errors that occur."""
        correlation_id = str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        except CommerceError as exc:
            return self._handle_domain_error(exc, request, correlation_id)
        except Exception as exc:
            self._log_error(exc, request, correlation_id)
            return self._create_error_response(exc, correlation_id)

    def _handle_domain_error(
        self, exc: CommerceError, request: Request, correlation_id: str
    ) -> JSONResponse:
        status_code = next(
            (code for cls, code in DOMAIN_ERROR_STATUS.items() if isinstance(exc, cls)),
            400,
        )
        log = logger.error if status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} → {status_code} "
            f"{type(exc).__name__}: {exc} [{correlation_id}]"
        )
        body = self._error_body(type(exc).__name__, str(exc), status_code, correlation_id)
        if isinstance(exc, InvalidStateTransitionError):
            body["error"]["reason"] = exc.reason.value
        return JSONResponse(status_code=status_code, content=body)

    def _log_error(self, exc: Exception, request: Request, correlation_id: str) -> None:
        """Log error with request context and correlation ID."""
        logger.error(
            f"🚨 Unhandled exception in {request.method} {request.url.path} "
            f"[{correlation_id}]: {type(exc).__name__}: {exc}"
        )
        if self.debug_mode:
            logger.debug(traceback.format_exc())

    def _create_error_response(self, exc: Exception, correlation_id: str) -> JSONResponse:
        """Create appropriate error response based on exception type."""
        if isinstance(exc, HTTPException):
            return JSONResponse(
                status_code=exc.status_code,
                content=self._error_body(
                    "http_error", exc.detail, exc.status_code, correlation_id
                ),
            )
        if isinstance(exc, ValidationError):
            body = self._error_body(
                "validation_error", "Request validation failed", 422, correlation_id
            )
            body["error"]["details"] = [
                {
                    "field": " -> ".join(str(loc) for loc in error["loc"]),
                    "message": error["msg"],
                    "type": error["type"],
                }
                for error in exc.errors()
            ]
            return JSONResponse(status_code=422, content=body)
        if isinstance(exc, DatabaseOperationError):
            return JSONResponse(
                status_code=503,
                content=self._error_body(
                    "database_error", "Database operation failed", 503, correlation_id
                ),
            )

        body = self._error_body(
            "internal_error", "An internal server error occurred", 500, correlation_id
        )
        if self.debug_mode:
            body["error"]["exception_type"] = type(exc).__name__
            body["error"]["exception_message"] = str(exc)
        return JSONResponse(status_code=500, content=body)

    @staticmethod
    def _error_body(
        error_type: str, message: str, status_code: int, correlation_id: str
    ) -> Dict[str, Dict]:
        return {
            "error": {
                "type": error_type,
                "message": message,
                "status_code": status_code,
                "correlation_id": correlation_id,
                "timestamp": utc_now().isoformat(),
            }
        }
