"""
Health Check Routes
===================

Operational endpoints, mounted at the root (not under ``/api``) and exempt
from rate limiting:

- ``/health``: liveness plus a component summary; always 200 while the
  process serves requests, ``status`` reports healthy/degraded/unhealthy.
- ``/health/cache``, ``/health/database``: readiness of one dependency;
  503 when it is down so load balancers can act on the status code.
- ``/health/system``: process and host facts.
- ``/stats/cache``, ``/stats/connections``: counters for dashboards.
- ``/metrics``: Prometheus text exposition.
- ``/status``: one-shot overview of server, database and WebSocket layer.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from cloudpc.application.api.dependencies import CacheDep, HealthCheckerDep, MetricsDep, RegistryDep
from cloudpc.application.api.middleware.rate_limiter import limiter
from cloudpc.infrastructure.monitoring import HealthStatus

router = APIRouter(tags=["Health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
@limiter.exempt
async def health(request: Request, checker: HealthCheckerDep):
    return {"success": True, "message": "Service is running", **await checker.check_health()}


@router.get("/health/cache")
@limiter.exempt
async def cache_health(request: Request, checker: HealthCheckerDep):
    data = await checker.check_cache()
    healthy = data.get("status") == HealthStatus.HEALTHY.value
    return JSONResponse(status_code=200 if healthy else 503, content={"success": healthy, "data": data})


@router.get("/health/database")
@limiter.exempt
async def database_health(request: Request, checker: HealthCheckerDep):
    data = await checker.check_database()
    healthy = data["status"] == HealthStatus.HEALTHY.value
    return JSONResponse(status_code=200 if healthy else 503, content={"success": healthy, "data": data})


@router.get("/health/system")
@limiter.exempt
async def system_health(request: Request, checker: HealthCheckerDep):
    return {"success": True, "timestamp": _now(), "data": checker.system_info()}


@router.get("/health/detailed")
@limiter.exempt
async def detailed_health(request: Request, checker: HealthCheckerDep):
    return {"success": True, "data": await checker.detailed_health_report()}


@router.get("/stats/cache")
@limiter.exempt
async def cache_stats(request: Request, cache: CacheDep):
    return {"success": True, "data": await cache.get_metrics()}


@router.get("/stats/connections")
@limiter.exempt
async def connection_stats(request: Request, registry: RegistryDep):
    return {"success": True, "data": registry.get_connection_stats(), "timestamp": _now()}


@router.get("/metrics")
@limiter.exempt
async def metrics(request: Request, collector: MetricsDep):
    return Response(content=collector.get_prometheus_metrics(), media_type=collector.get_content_type())


@router.get("/status")
@limiter.exempt
async def status(request: Request, checker: HealthCheckerDep, registry: RegistryDep):
    database = await checker.check_database()
    return {
        "success": True,
        "data": {
            "server": {"status": "running", "uptime": checker.uptime, "timestamp": _now()},
            "database": database["status"],
            "websocket": registry.get_connection_stats(),
        },
    }
