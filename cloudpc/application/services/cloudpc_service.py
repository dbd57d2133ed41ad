"""
Cloud PC Service

CRUD, lifecycle entry points and monitoring for cloud PC records, with
cache-aside reads:

- list pages:  ``cloudpc:list:{query json}``
- details:     ``cloudpc:detail:{id}``
- monitor:     ``realtime:monitor:{id}`` (fixed CACHE_MONITOR_TTL)
- owner stats: ``stats:cloudpc:{user id}``

Every mutation re-caches the detail entry and purges list pages and stats.
"""

import math
import random
from datetime import datetime, timedelta, timezone
from typing import Any

from cloudpc.core.config.constants import CloudPCStatus, Currency, LifecycleAction, LogLevel, Stage
from cloudpc.core.config.settings import Settings
from cloudpc.core.exceptions import ConflictError, ResourceNotFoundError
from cloudpc.core.logging.logger import get_logger, log_stage
from cloudpc.infrastructure.cache.cache_service import CacheService
from cloudpc.infrastructure.cache.cache_strategy import CacheCategory
from cloudpc.infrastructure.persistence.models import AVAILABLE_CONFIGS, HOURLY_RATE_PER_CPU, CloudPC
from cloudpc.infrastructure.persistence.repositories import CloudPCRepository
from cloudpc.application.services.lifecycle import TRANSITIONS, LifecycleScheduler

logger = get_logger(__name__)

HARDWARE_FIELDS = ("cpu", "memory", "storage")

# camelCase request fields -> model attributes
UPDATABLE_FIELDS = {
    "name": "name",
    "os": "os",
    "cpu": "cpu",
    "memory": "memory",
    "storage": "storage",
    "bandwidth": "bandwidth",
    "location": "location",
    "pricing": "pricing",
    "tags": "tags",
    "description": "description",
}


def _history(now: datetime, points: int, sample) -> list[dict[str, Any]]:
    return [
        {"time": (now - timedelta(hours=points - 1 - i)).isoformat(), **sample()}
        for i in range(points)
    ]


def simulate_monitor_data(cloudpc: CloudPC, points: int = 24) -> dict[str, Any]:
    """Random utilisation series over the last ``points`` hours."""
    now = datetime.now(timezone.utc)

    def fraction(low: float, spread: float) -> float:
        return random.random() * spread + low

    return {
        "cpu": {
            "current": round(random.random() * 100, 2),
            "history": _history(now, points, lambda: {"value": round(random.random() * 100, 2)}),
        },
        "memory": {
            "current": round(cloudpc.memory * fraction(0.1, 0.8), 2),
            "total": cloudpc.memory,
            "history": _history(now, points, lambda: {"value": round(cloudpc.memory * fraction(0.1, 0.8), 2)}),
        },
        "storage": {
            "current": round(cloudpc.storage * fraction(0.1, 0.6), 2),
            "total": cloudpc.storage,
            "usage": round(fraction(0.1, 0.6) * 100, 1),
            "history": _history(now, points, lambda: {"value": round(cloudpc.storage * fraction(0.1, 0.6), 2)}),
        },
        "network": {
            "inbound": round(random.random() * 100, 2),
            "outbound": round(random.random() * 100, 2),
            "history": _history(
                now,
                points,
                lambda: {"inbound": round(random.random() * 100, 2), "outbound": round(random.random() * 100, 2)},
            ),
        },
    }


class CloudPCService:
    """Owner-scoped cloud PC operations."""

    def __init__(
        self,
        cloudpcs: CloudPCRepository,
        cache: CacheService,
        lifecycle: LifecycleScheduler,
        settings: Settings,
    ):
        self.cloudpcs = cloudpcs
        self.cache = cache
        self.lifecycle = lifecycle
        self.monitor_ttl = settings.cache.CACHE_MONITOR_TTL

    @staticmethod
    def available_configs() -> list[dict[str, Any]]:
        return AVAILABLE_CONFIGS

    async def _owned(self, user_id: str, cloudpc_id: str) -> CloudPC:
        cloudpc = await self.cloudpcs.get_owned(cloudpc_id, user_id)
        if cloudpc is None:
            raise ResourceNotFoundError("Cloud PC not found", details={"cloudpc_id": cloudpc_id})
        return cloudpc

    async def _refresh_caches(self, cloudpc: CloudPC) -> None:
        await self.cache.cache_cloudpc_detail(cloudpc.id, cloudpc.to_dict())
        await self.cache.invalidate_cloudpc_cache(cloudpc.id)
        await self.cache.invalidate_stats()

    async def _assign_endpoint(self) -> tuple[str, int]:
        """A free (ip, port) pair in 10.0.0.0/16."""
        used = await self.cloudpcs.used_endpoints()
        while True:
            ip = f"10.0.{random.randint(0, 255)}.{random.randint(1, 254)}"
            port = random.randint(1024, 65535)
            if (ip, port) not in used:
                return ip, port

    # =========================================================================
    # Reads
    # =========================================================================

    async def list(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        sort: str = "-createdAt",
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """
        One page of the owner's cloud PCs plus their status distribution.

        Returns:
            (result, from_cache)
        """
        query = {"user": user_id, "page": page, "limit": limit, "sort": sort, "status": status, "search": search}
        cached = await self.cache.get_cloudpc_list(query)
        if cached is not None:
            return cached, True

        items, total = await self.cloudpcs.list(user_id, page, limit, sort, status, search)
        result = {
            "cloudPCs": [item.to_dict() for item in items],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
            },
            "stats": await self.cloudpcs.status_counts(user_id),
        }
        await self.cache.cache_cloudpc_list(query, result)
        return result, False

    async def get(self, user_id: str, cloudpc_id: str) -> tuple[dict[str, Any], bool]:
        """
        Detail view, served from cache only when the cached entry belongs
        to ``user_id``.
        """
        cached = await self.cache.get_cloudpc_detail(cloudpc_id)
        if cached is not None and cached.get("user") == user_id:
            return cached, True

        cloudpc = await self._owned(user_id, cloudpc_id)
        data = cloudpc.to_dict()
        await self.cache.cache_cloudpc_detail(cloudpc_id, data)
        return data, False

    async def monitor(self, user_id: str, cloudpc_id: str) -> tuple[dict[str, Any], bool]:
        cloudpc = await self._owned(user_id, cloudpc_id)

        async def produce() -> dict[str, Any]:
            return simulate_monitor_data(cloudpc)

        return await self.cache.get_or_compute(
            CacheCategory.REALTIME, f"monitor:{cloudpc_id}", produce, ttl_override=self.monitor_ttl
        )

    async def user_stats(self, user_id: str) -> tuple[dict[str, Any], bool]:
        """Count, status distribution and running cost for one owner."""

        async def produce() -> dict[str, Any]:
            records = await self.cloudpcs.all_for_user(user_id)
            status: dict[str, int] = {}
            for record in records:
                status[record.status] = status.get(record.status, 0) + 1
            return {
                "totalCloudPCs": len(records),
                "status": status,
                "billing": {
                    "totalCost": round(sum(float(r.estimated_cost) for r in records), 4),
                    "totalHours": round(sum(r.runtime for r in records) / 3600, 4),
                },
            }

        return await self.cache.get_or_compute(CacheCategory.STATS, f"cloudpc:{user_id}", produce)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        ip, port = await self._assign_endpoint()
        pricing = data.get("pricing") or {}
        cloudpc = CloudPC(
            name=data["name"],
            user_id=user_id,
            os=data["os"],
            cpu=data["cpu"],
            memory=data["memory"],
            storage=data["storage"],
            ip=ip,
            port=port,
            bandwidth=data.get("bandwidth") or 100,
            location=data.get("location") or "beijing",
            pricing={
                "hourly": pricing.get("hourly", data["cpu"] * HOURLY_RATE_PER_CPU),
                "currency": pricing.get("currency", Currency.CNY.value),
            },
            tags=data.get("tags") or [],
            description=data.get("description"),
        )
        cloudpc.add_log(LogLevel.INFO, "Cloud PC created", source="user")
        cloudpc = await self.cloudpcs.create(cloudpc)
        await self._refresh_caches(cloudpc)

        log_stage(
            logger,
            Stage.REQUEST,
            "Cloud PC created",
            cloudpc_id=cloudpc.id,
            user_id=user_id,
            cpu=cloudpc.cpu,
            memory=cloudpc.memory,
            storage=cloudpc.storage,
            os=cloudpc.os,
        )
        return cloudpc.to_dict()

    async def update(self, user_id: str, cloudpc_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Raises:
            ConflictError: hardware change requested while running
        """
        cloudpc = await self._owned(user_id, cloudpc_id)
        if cloudpc.status == CloudPCStatus.RUNNING.value and any(changes.get(f) for f in HARDWARE_FIELDS):
            raise ConflictError("CPU, memory or storage cannot change while the cloud PC is running")

        fields = {UPDATABLE_FIELDS[k]: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if fields.get("pricing"):
            fields["pricing"] = {**(cloudpc.pricing or {}), **fields["pricing"]}
        updated = await self.cloudpcs.update_fields(cloudpc_id, **fields)
        if updated is None:
            raise ResourceNotFoundError("Cloud PC not found", details={"cloudpc_id": cloudpc_id})
        await self._refresh_caches(updated)

        logger.info("Cloud PC updated", cloudpc_id=cloudpc_id, user_id=user_id, fields=sorted(fields))
        return updated.to_dict()

    async def delete(self, user_id: str, cloudpc_id: str) -> None:
        """
        Raises:
            ConflictError: still running
        """
        cloudpc = await self._owned(user_id, cloudpc_id)
        if cloudpc.status == CloudPCStatus.RUNNING.value:
            raise ConflictError("A running cloud PC cannot be deleted, stop it first")

        self.lifecycle.cancel(cloudpc_id)
        await self.cloudpcs.delete(cloudpc_id)
        await self.cache.delete_cloudpc_detail(cloudpc_id)
        await self.cache.invalidate_cloudpc_cache(cloudpc_id)
        await self.cache.invalidate_stats()
        logger.info("Cloud PC deleted", cloudpc_id=cloudpc_id, user_id=user_id)

    async def transition(self, user_id: str, cloudpc_id: str, action: LifecycleAction) -> dict[str, Any]:
        """Start, stop or restart; returns the record in its interim status."""
        cloudpc = await self._owned(user_id, cloudpc_id)
        updated = await self.lifecycle.request(cloudpc, action)
        return {"cloudPC": updated.to_dict(), "message": TRANSITIONS[action].message}
