"""
API Middleware Package
======================

- error_handler.py: error envelope, exception handlers, catch-all middleware
- request_logging.py: request id, access logs, HTTP metrics
- rate_limiter.py: slowapi per-client limits

Registration order in ``create_app`` (each call wraps the previous ones):

    error handling -> rate limiting -> CORS -> request logging
"""

from cloudpc.application.api.middleware.error_handler import (
    ErrorHandlingMiddleware,
    error_response,
    register_error_handlers,
)
from cloudpc.application.api.middleware.rate_limiter import auth_limit, limiter, setup_rate_limiting
from cloudpc.application.api.middleware.request_logging import (
    REQUEST_ID_HEADER,
    RequestLoggingMiddleware,
    add_request_logging_middleware,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "error_response",
    "register_error_handlers",
    "RequestLoggingMiddleware",
    "add_request_logging_middleware",
    "REQUEST_ID_HEADER",
    "limiter",
    "auth_limit",
    "setup_rate_limiting",
]
