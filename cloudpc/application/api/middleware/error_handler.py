"""
Error Handling
==============

Every failure leaves the API in the same envelope:

    {"success": false, "error": "<message>", "details"?: ...}

Three layers produce it:

1. ``APIError`` subclasses (401/403/404/400/423) raised by services are
   rendered with their own status code by ``api_error_handler``.
2. Pydantic request validation failures become 400 ``Validation failed``
   with one ``{field, message, value}`` entry per problem.
3. ``ErrorHandlingMiddleware`` is the last line of defence: anything else is
   logged with its stack trace, counted in ``app_errors_total`` and turned
   into a 500 that hides internal details (the exception type is added only
   in DEBUG mode).

Unknown routes get ``Not found - {path}``.
"""

from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from cloudpc.core.exceptions import APIError
from cloudpc.core.logging.logger import get_logger

logger = get_logger(__name__)


def error_response(status_code: int, error: str, details=None) -> JSONResponse:
    content = {"success": False, "error": error}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch-all for exceptions no handler claimed."""

    def __init__(self, app, include_error_type: bool = False):
        super().__init__(app)
        self.include_error_type = include_error_type

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            error_type = type(e).__name__
            logger.error(
                f"Unhandled exception in request: {request.method} {request.url.path}",
                method=request.method,
                path=request.url.path,
                error_type=error_type,
                error_message=str(e),
                exc_info=True,
            )

            metrics = getattr(request.app.state, "metrics", None)
            if metrics:
                metrics.record_error(error_type, "unhandled_exception")

            content = {"success": False, "error": "Internal server error"}
            if self.include_error_type:
                content["errorType"] = error_type
                content["message"] = str(e)
            return JSONResponse(status_code=500, content=content)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "API error",
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        error_message=exc.message,
    )
    return error_response(exc.status_code, exc.message, exc.details or None)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        # loc is ("body", "email") / ("query", "page"); drop the source
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        value = err.get("input")
        details.append(
            {
                "field": ".".join(loc),
                "message": err.get("msg", "Invalid value"),
                "value": value if isinstance(value, (str, int, float, bool)) or value is None else str(value),
            }
        )
    logger.info("Request validation failed", path=request.url.path, errors=len(details))
    return error_response(400, "Validation failed", details)


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return error_response(404, f"Not found - {request.url.path}")
    return error_response(exc.status_code, str(exc.detail))


def register_error_handlers(app: FastAPI, include_error_type: bool = False) -> None:
    """
    Install the exception handlers and the catch-all middleware.

    Call this before adding request logging: Starlette wraps the most
    recently added middleware outermost, and the logger must see the 500s
    this middleware produces.
    """
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.add_middleware(ErrorHandlingMiddleware, include_error_type=include_error_type)
    logger.info("Error handling registered", include_error_type=include_error_type)
