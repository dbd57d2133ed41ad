#!/usr/bin/env python3
"""
Health Checker Module

Health checks for the backend's dependencies:
- Redis connectivity (through the cache service)
- Record store connectivity
- WebSocket registry load
- Process resources

A dead cache degrades the service; a dead record store makes it unhealthy.
"""

import asyncio
import os
import platform
import sys
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from cloudpc.core.config.settings import Settings
from cloudpc.core.logging.logger import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthChecker:
    """
    Aggregated health checks.

    STAGE-H: Health check orchestration

    Usage:
        checker = HealthChecker(settings, cache=cache, database=db, registry=registry)

        status = await checker.check_health()
        report = await checker.detailed_health_report()
    """

    def __init__(self, settings: Settings, cache=None, database=None, registry=None):
        self.settings = settings
        self._cache = cache
        self._database = database
        self._registry = registry
        self._started_at = time.monotonic()

    @property
    def uptime(self) -> float:
        return round(time.monotonic() - self._started_at, 3)

    async def _check_database(self) -> bool:
        if self._database is None:
            return False
        try:
            return await asyncio.wait_for(self._database.ping(), timeout=2.0)
        except asyncio.TimeoutError:
            return False

    async def check_cache(self) -> dict[str, Any]:
        """Cache service health; never raises."""
        if self._cache is None:
            return {"status": HealthStatus.UNHEALTHY.value, "redis": False, "timestamp": _now()}
        try:
            return await asyncio.wait_for(self._cache.health_check(), timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning("Cache health check timed out", stage="H.2")
            return {"status": HealthStatus.UNHEALTHY.value, "redis": False, "timestamp": _now()}

    async def check_database(self) -> dict[str, Any]:
        started = time.perf_counter()
        ok = await self._check_database()
        return {
            "status": HealthStatus.HEALTHY.value if ok else HealthStatus.UNHEALTHY.value,
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "timestamp": _now(),
        }

    async def check_health(self) -> dict[str, Any]:
        """
        Quick health check.

        STAGE-H.1: Quick health status

        Returns:
            Dict with status, version, uptime and component states
        """
        cache = await self.check_cache()
        database_ok = await self._check_database()
        cache_ok = cache.get("status") == HealthStatus.HEALTHY.value

        if not database_ok:
            status = HealthStatus.UNHEALTHY
        elif not cache_ok:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        return {
            "status": status.value,
            "timestamp": _now(),
            "version": self.settings.app.APP_VERSION,
            "environment": self.settings.app.ENVIRONMENT,
            "uptime": self.uptime,
            "components": {
                "redis": "healthy" if cache_ok else "unhealthy",
                "database": "healthy" if database_ok else "unhealthy",
            },
        }

    def system_info(self) -> dict[str, Any]:
        """Process and host facts for /health/system."""
        info: dict[str, Any] = {
            "python": sys.version.split()[0],
            "platform": platform.platform(),
            "pid": os.getpid(),
            "cpu_count": os.cpu_count(),
            "uptime": self.uptime,
        }
        if hasattr(os, "getloadavg"):
            info["load_average"] = [round(v, 2) for v in os.getloadavg()]
        return info

    async def detailed_health_report(self) -> dict[str, Any]:
        """
        Detailed health report for all components.

        STAGE-H.2: Detailed health report
        """
        report: dict[str, Any] = {
            "timestamp": _now(),
            "version": self.settings.app.APP_VERSION,
            "environment": self.settings.app.ENVIRONMENT,
            "system": self.system_info(),
            "components": {},
        }
        issues = []

        cache = await self.check_cache()
        report["components"]["cache"] = cache
        if cache.get("status") != HealthStatus.HEALTHY.value:
            issues.append("cache")

        database = await self.check_database()
        report["components"]["database"] = database
        if database["status"] != HealthStatus.HEALTHY.value:
            issues.append("database")

        if self._registry is not None:
            report["components"]["websocket"] = {
                "status": HealthStatus.HEALTHY.value,
                **self._registry.get_connection_stats(),
            }

        if not issues:
            report["status"] = HealthStatus.HEALTHY.value
        elif issues == ["cache"]:
            report["status"] = HealthStatus.DEGRADED.value
            report["degraded_components"] = issues
        else:
            report["status"] = HealthStatus.UNHEALTHY.value
            report["failed_components"] = issues

        return report
