#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Builds the Cloud PC Manager API: REST routes under ``/api``, operational
endpoints at the root and the terminal WebSocket at ``/ws/cloudpc``.

Startup (lifespan) wires the service graph onto ``app.state``:

    MetricsCollector
    RedisClient -> CacheService
    Database -> UserRepository, CloudPCRepository
    ConnectionRegistry
    LifecycleScheduler(cloudpcs, cache, registry)
    AuthService, CloudPCService, UserService
    HealthChecker

Redis being down degrades the service (every lookup is a miss) instead of
failing startup; the database is required.

Shutdown runs in reverse: registry sweeps and sockets, pending lifecycle
transitions, cache connection, database engine.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cloudpc.application.api.middleware import (
    REQUEST_ID_HEADER,
    add_request_logging_middleware,
    register_error_handlers,
    setup_rate_limiting,
)
from cloudpc.application.api.routes import (
    auth_router,
    cloudpc_router,
    health_router,
    users_router,
    websocket_router,
)
from cloudpc.application.services import AuthService, CloudPCService, LifecycleScheduler, UserService
from cloudpc.core.config.constants import Stage
from cloudpc.core.config.settings import Settings, get_settings
from cloudpc.core.exceptions import CacheConnectionError
from cloudpc.core.logging.logger import get_logger, setup_logging
from cloudpc.infrastructure.cache import CacheService, RedisClient
from cloudpc.infrastructure.monitoring import HealthChecker, MetricsCollector
from cloudpc.infrastructure.persistence import CloudPCRepository, Database, UserRepository
from cloudpc.realtime import ConnectionRegistry

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
    logger.info(
        "Starting Cloud PC Manager",
        stage=Stage.INITIALIZATION.value,
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    metrics = MetricsCollector(app_name=settings.app.APP_NAME, version=settings.app.APP_VERSION)

    store = RedisClient(settings, client=app.state.redis_client)
    try:
        await store.connect()
        logger.info("Redis connected")
    except CacheConnectionError as e:
        logger.warning("Redis unavailable, running without cache", error=e.message)
    cache = CacheService(store, metrics=metrics, enabled=settings.cache.ENABLE_CACHING)

    database = Database(settings)
    await database.startup()
    users = UserRepository(database)
    cloudpcs = CloudPCRepository(database)

    registry = ConnectionRegistry(settings, metrics=metrics)
    lifecycle = LifecycleScheduler(cloudpcs, cache, settings, registry=registry, metrics=metrics)
    cloudpc_service = CloudPCService(cloudpcs, cache, lifecycle, settings)

    app.state.metrics = metrics
    app.state.cache = cache
    app.state.database = database
    app.state.users = users
    app.state.cloudpcs = cloudpcs
    app.state.registry = registry
    app.state.lifecycle = lifecycle
    app.state.auth_service = AuthService(users, cache, settings)
    app.state.cloudpc_service = cloudpc_service
    app.state.user_service = UserService(users, cloudpcs, cache, lifecycle, cloudpc_service)
    app.state.health_checker = HealthChecker(settings, cache=cache, database=database, registry=registry)

    try:
        if settings.cache.CACHE_WARMUP_ON_STARTUP and store.is_connected:
            await cache.warmup()
        metrics.set_cloudpc_status_counts(await cloudpcs.status_counts())
        await registry.start()

        logger.info("Application startup complete", stage=Stage.INITIALIZATION.value)
        yield

    finally:
        logger.info("Shutting down application", stage=Stage.SHUTDOWN.value)

        await registry.stop()
        await lifecycle.shutdown()
        await cache.close()
        await database.shutdown()

        logger.info("Application shutdown complete", stage=Stage.SHUTDOWN.value)


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None, redis_client=None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration (defaults to get_settings())
        redis_client: Optional pre-built ``redis.asyncio`` client, e.g. a test double

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Cloud PC management backend: accounts, cloud PC lifecycle, terminal WebSocket",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.redis_client = redis_client

    # Innermost first: each add_middleware call wraps the previous ones
    register_error_handlers(app, include_error_type=settings.app.DEBUG)
    setup_rate_limiting(app, settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    add_request_logging_middleware(app, log_level=settings.logging.LOG_LEVEL)

    base_path = settings.app.API_BASE_PATH
    app.include_router(auth_router, prefix=base_path)
    app.include_router(cloudpc_router, prefix=base_path)
    app.include_router(users_router, prefix=base_path)
    app.include_router(health_router)
    app.include_router(websocket_router)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()


def run():
    """Serve ``app`` with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "cloudpc.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
