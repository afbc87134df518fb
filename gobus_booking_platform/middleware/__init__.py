"""Middleware components for the GoBus Booking Platform."""

from .error_handler import ErrorHandlerMiddleware, register_exception_handlers
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "LoggingMiddleware",
    "register_exception_handlers",
]
