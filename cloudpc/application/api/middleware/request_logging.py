"""
Request Logging Middleware
==========================

Runs around every HTTP request:

    Client -> RequestLoggingMiddleware (before) -> Route Handler
    Route Handler -> RequestLoggingMiddleware (after) -> Client

Before: take ``X-Request-ID`` from the client (or mint one) and bind it to
the logging context so every log line of the request carries it.

After: log method, path, status and duration, record the request in the
Prometheus collector, echo the id back as ``X-Request-ID`` and clear the
context.

Sensitive headers are never logged.
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cloudpc.core.config.constants import Stage
from cloudpc.core.logging.logger import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "x-api-key",
    "x-auth-token",
}


def _route_template(request: Request) -> str:
    """``/api/cloudpc/{cloudpc_id}`` rather than the raw path, to bound label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Request id correlation, access logging and HTTP metrics."""

    def __init__(self, app, log_level: str = "INFO"):
        super().__init__(app)
        self.log_level = log_level.upper()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        set_request_id(request_id)
        start_time = time.perf_counter()

        method = request.method
        path = request.url.path

        logger.debug(
            f"Incoming request: {method} {path}",
            stage=Stage.REQUEST.value,
            method=method,
            path=path,
            query_params=str(request.query_params) or None,
            headers=self._sanitize_headers(dict(request.headers)),
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            logger.info(
                f"Request completed: {method} {path}",
                stage=Stage.REQUEST.value,
                method=method,
                path=path,
                status_code=response.status_code,
                duration_seconds=round(duration, 4),
            )

            metrics = getattr(request.app.state, "metrics", None)
            if metrics:
                metrics.record_http_request(method, _route_template(request), response.status_code, duration)

            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        except Exception as e:
            logger.error(
                f"Request failed: {method} {path}",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(time.perf_counter() - start_time, 4),
            )
            raise

        finally:
            clear_request_id()

    def _sanitize_headers(self, headers: dict) -> dict:
        return {k: "[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v for k, v in headers.items()}


def add_request_logging_middleware(app, log_level: str = "INFO"):
    app.add_middleware(RequestLoggingMiddleware, log_level=log_level)
    logger.info("Request logging middleware registered", log_level=log_level)
