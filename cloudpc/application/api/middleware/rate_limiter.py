"""
Rate Limiter

Per-client rate limiting for FastAPI using slowapi with a moving window.

- Every route gets RATE_LIMIT_DEFAULT (``100/15minutes``) through
  SlowAPIMiddleware.
- Login and registration are decorated with ``auth_limit`` and get
  RATE_LIMIT_AUTH (``5/15minutes``) instead.

The limiter is a module-level object because route decorators bind to it at
import time; ``setup_rate_limiting`` applies an app's settings to it. Limits
are callables so they read the configured values at request time.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from cloudpc.core.config.constants import Stage
from cloudpc.core.config.settings import Settings, get_settings
from cloudpc.core.logging.logger import get_logger

logger = get_logger(__name__)

_limits = {
    "default": get_settings().rate_limit.RATE_LIMIT_DEFAULT,
    "auth": get_settings().rate_limit.RATE_LIMIT_AUTH,
}


def get_client_identifier(request: Request) -> str:
    """Limit key: the client address, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[lambda: _limits["default"]],
    storage_uri=get_settings().rate_limit.RATE_LIMIT_STORAGE_URI,
    strategy="moving-window",
)

# Decorator for the credential endpoints
auth_limit = limiter.limit(lambda: _limits["auth"])


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the standard error envelope."""
    logger.warning(
        "Rate limit exceeded",
        stage=Stage.RATE_LIMITING.value,
        client=get_client_identifier(request),
        path=request.url.path,
        limit=str(exc.detail),
    )
    metrics = getattr(request.app.state, "metrics", None)
    if metrics:
        metrics.record_error("RateLimitExceeded", "rate_limiter")

    return JSONResponse(
        status_code=429,
        content={"success": False, "error": "Too many requests, please try again later"},
        headers={"Retry-After": "60"},
    )


def setup_rate_limiting(app, settings: Settings) -> Limiter:
    """Configure the shared limiter from ``settings`` and attach it to ``app``."""
    cfg = settings.rate_limit
    _limits["default"] = cfg.RATE_LIMIT_DEFAULT
    _limits["auth"] = cfg.RATE_LIMIT_AUTH
    limiter.enabled = cfg.RATE_LIMIT_ENABLED
    limiter.reset()

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    logger.info(
        "Rate limiting configured",
        enabled=cfg.RATE_LIMIT_ENABLED,
        default_limit=cfg.RATE_LIMIT_DEFAULT,
        auth_limit=cfg.RATE_LIMIT_AUTH,
    )
    return limiter
