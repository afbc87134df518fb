"""
Error handling middleware and exception handlers for the GoBus Booking Platform.
"""

import logging
import traceback
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import OperationalError, TimeoutError as SQLTimeoutError

from ..utils.exceptions import (
    GoBusError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    SeatConflictError,
    ServerError,
    TransientInfrastructureError,
)

logger = logging.getLogger(__name__)


STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.CONSISTENCY_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SEAT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_BOOKING_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.TRANSIENT_INFRASTRUCTURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.EMAIL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_status_code_for_error(exc: GoBusError) -> int:
    """Map error codes to HTTP status codes."""
    if isinstance(exc, ServerError) and exc.retryable:
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def gobus_error_response(exc: GoBusError, error_id: str) -> JSONResponse:
    """Render a platform error as a JSON response."""
    headers = {}
    if exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    if exc.error_code == ErrorCode.UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=get_status_code_for_error(exc),
        content={
            "error": exc.to_dict(),
            "error_id": error_id,
            "timestamp": _timestamp()
        },
        headers=headers
    )


def _log_gobus_error(request: Request, exc: GoBusError, error_id: str) -> None:
    extra = {
        "error_id": error_id,
        "error_code": exc.error_code.value,
        "method": request.method,
        "path": request.url.path,
        "details": exc.details,
    }
    if isinstance(exc, (ValidationError, NotFoundError, SeatConflictError)):
        logger.warning(f"Client error [{error_id}]: {exc.message}", extra=extra)
    elif isinstance(exc, (ServerError, TransientInfrastructureError)):
        logger.error(f"System error [{error_id}]: {exc.message}", extra=extra)
    else:
        logger.info(f"Business error [{error_id}]: {exc.message}", extra=extra)


async def gobus_error_handler(request: Request, exc: GoBusError) -> JSONResponse:
    """FastAPI exception handler for platform errors raised by routes."""
    error_id = str(uuid4())
    _log_gobus_error(request, exc, error_id)
    return gobus_error_response(exc, error_id)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures in the platform error shape."""
    field_errors = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors.setdefault(field_path, []).append(error["msg"])

    return gobus_error_response(
        ValidationError("Request validation failed", field_errors=field_errors),
        str(uuid4()),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the platform exception handlers on an application."""
    app.add_exception_handler(GoBusError, gobus_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last-resort handler for exceptions escaping the routes."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any exceptions."""
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except GoBusError as exc:
            _log_gobus_error(request, exc, error_id)
            return gobus_error_response(exc, error_id)
        except (OperationalError, SQLTimeoutError) as exc:
            logger.error(
                f"Database error [{error_id}]: {exc}",
                extra={"error_id": error_id, "path": request.url.path}
            )
            return gobus_error_response(
                ServerError("Database service temporarily unavailable", retryable=True),
                error_id,
            )
        except Exception as exc:
            logger.error(
                f"Unexpected error [{error_id}]: {exc}",
                extra={
                    "error_id": error_id,
                    "error_type": type(exc).__name__,
                    "method": request.method,
                    "path": request.url.path,
                    "traceback": traceback.format_exc()
                }
            )
            return self._handle_unexpected_error(exc, error_id)

    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        """Opaque response for unexpected errors."""
        error = GoBusError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )

        response_data = {
            "error": error.to_dict(),
            "error_id": error_id,
            "timestamp": _timestamp()
        }

        if self.debug:
            response_data["debug"] = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response_data
        )
