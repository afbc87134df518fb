"""
Access logging with per-request correlation IDs.
"""

import logging
import time
from typing import Dict, Iterable, Optional
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..utils.logging_config import MASK, request_id_var

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 2.0

QUIET_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request and its outcome.

    The caller's ``X-Request-ID`` is kept when present, otherwise one is
    minted. Either way it is echoed back along with ``X-Process-Time``.
    """

    def __init__(
        self,
        app,
        log_requests: bool = True,
        log_responses: bool = True,
        sensitive_headers: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.sensitive_headers = {
            name.lower() for name in (sensitive_headers or ("authorization", "cookie", "x-api-key"))
        }

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid4().hex
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.perf_counter()

        try:
            if self.log_requests:
                self._log_request(request)

            response = await call_next(request)
            elapsed = time.perf_counter() - started

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{elapsed:.4f}"
            if self.log_responses:
                self._log_response(request, response, elapsed)
            return response
        except Exception:
            logger.exception(
                f"Unhandled error serving {request.method} {request.url.path}",
                extra={"elapsed": time.perf_counter() - started},
            )
            raise
        finally:
            request_id_var.reset(token)

    def _log_request(self, request: Request) -> None:
        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path}",
            extra={
                "query_params": dict(request.query_params),
                "client_ip": client_ip(request),
                "headers": self.masked_headers(request.headers),
            },
        )

    def _log_response(self, request: Request, response: Response, elapsed: float) -> None:
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.4f}s",
            extra={"status_code": response.status_code, "elapsed": elapsed},
        )

        if elapsed > SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {elapsed:.2f}s")

    def masked_headers(self, headers) -> Dict[str, str]:
        return {
            key: MASK if key.lower() in self.sensitive_headers else value
            for key, value in headers.items()
        }


def client_ip(request: Request) -> str:
    """First hop of ``X-Forwarded-For``, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
