"""FastAPI application for the GoBus booking platform."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gobus_booking_platform.api import api_router
from gobus_booking_platform.cache import get_cache
from gobus_booking_platform.config import Settings, settings
from gobus_booking_platform.database import close_database, init_database, ping_database
from gobus_booking_platform.middleware import (
    ErrorHandlerMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from gobus_booking_platform.services.notification_service import get_notification_dispatcher
from gobus_booking_platform.utils.logging_config import setup_logging

API_VERSION = "1.0.0"

API_DESCRIPTION = """
Seat reservations for scheduled bus trips.

A seat on a bus for one travel date is held by at most one active booking.
Reservations lock the bus row inside a transaction, and a partial unique
index on active seats rejects anything the availability check missed.
Storage contention is retried a bounded number of times before the API
answers 503 with a Retry-After header.

Errors share one envelope:

```json
{"error": {"error_code": "SEAT_CONFLICT", "message": "Seats already booked", "details": {"seats": [6]}}}
```
"""

OPENAPI_TAGS = [
    {"name": "authentication", "description": "Refresh token exchange and logout"},
    {"name": "bookings", "description": "Seat reservation and booking management"},
    {"name": "health", "description": "Liveness and dependency checks"},
]

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_database()
    logger.info(f"GoBus API {API_VERSION} started ({settings.environment})")
    yield
    # Let queued confirmations reach the broker before connections close
    await get_notification_dispatcher().drain()
    await close_database()
    logger.info("GoBus API stopped")


def _add_middleware(app: FastAPI, config: Settings) -> None:
    if config.enable_request_logging:
        app.add_middleware(LoggingMiddleware)

    app.add_middleware(ErrorHandlerMiddleware, debug=config.debug)

    # Wildcard origins cannot carry credentials
    wildcard = config.debug
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else config.cors_origins,
        allow_credentials=False if wildcard else config.cors_allow_credentials,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
        expose_headers=config.cors_expose_headers,
    )


def create_app(config: Settings = settings) -> FastAPI:
    """Build the application with handlers, middleware and routes attached."""
    setup_logging(
        log_level="DEBUG" if config.debug else config.log_level,
        log_file="logs/gobus.log" if config.environment == "production" else None,
        enable_json_logging=config.enable_json_logging or config.environment == "production",
    )

    application = FastAPI(
        title="GoBus Booking Platform API",
        description=API_DESCRIPTION,
        version=API_VERSION,
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )
    register_exception_handlers(application)
    _add_middleware(application, config)
    application.include_router(api_router)

    @application.get("/", tags=["health"])
    async def root():
        return {"service": "gobus-booking-platform", "version": API_VERSION, "docs_url": "/docs"}

    @application.get("/health", tags=["health"])
    async def health_check():
        """Report database and token store reachability."""
        checks = {
            "database": await ping_database(),
            "token_store": await get_cache().ping(),
        }
        healthy = all(checks.values())
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={"status": "healthy" if healthy else "degraded", "checks": checks},
        )

    return application


app = create_app()
