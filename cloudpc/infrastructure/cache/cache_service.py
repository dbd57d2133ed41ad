"""
Cache Service

Typed façade over the Redis key-value store.

Architecture:
    CacheService (public API)
        ├── RedisClient (JSON store, raises on failure)
        ├── cache_strategy (TTL, key and invalidation tables)
        ├── CacheCounters (process-local hits/misses/sets/deletes/errors)
        └── MetricsCollector (optional Prometheus export)

Failure Semantics:
    The cache is an optimization, never a correctness dependency. Every
    public operation catches store failures at its own boundary, logs them,
    counts them in ``errors`` and returns a neutral value:
    ``set -> False``, ``get -> None``, ``delete/invalidate -> 0``.

    ``get`` returns None both for a miss and for an error; callers cannot
    tell the two apart and should treat None as "go to the source".
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

import orjson

from cloudpc.core.config.constants import Stage
from cloudpc.core.logging.logger import get_logger, log_stage
from cloudpc.infrastructure.cache.cache_strategy import (
    CacheCategory,
    InvalidationEvent,
    generate_key,
    get_adaptive_ttl,
    get_invalidation_patterns,
    get_warmup_plan,
)
from cloudpc.infrastructure.cache.redis_client import RedisClient
from cloudpc.infrastructure.monitoring.metrics_collector import MetricsCollector

logger = get_logger(__name__)


@dataclass
class CacheCounters:
    """Process-local operation counters; monotonic until reset."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> str:
        total = self.hits + self.misses
        rate = (self.hits / total * 100) if total else 0.0
        return f"{rate:.2f}%"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CacheService:
    """
    Category-aware cache operations with graceful degradation.

    Usage:
        cache = CacheService(redis_client, metrics)
        await cache.cache_user("u1", {"name": "Ada"})
        user = await cache.get_user("u1")
        await cache.invalidate(InvalidationEvent.USER_UPDATED, {"userId": "u1"})

        report = await cache.get_or_compute(
            CacheCategory.REALTIME, "monitor:pc1", produce_report, ttl_override=60
        )
    """

    def __init__(
        self,
        store: RedisClient,
        metrics: MetricsCollector | None = None,
        enabled: bool = True,
    ):
        self._store = store
        self._metrics = metrics
        self._enabled = enabled
        self._counters = CacheCounters()
        self._started_at = time.monotonic()

    @property
    def counters(self) -> CacheCounters:
        return self._counters

    def _record_error(self, operation: str, key: str, error: Exception) -> None:
        self._counters.errors += 1
        logger.error(
            "Cache operation failed",
            stage=Stage.CACHE_LOOKUP.value,
            operation=operation,
            cache_key=key,
            error=str(error),
            error_type=type(error).__name__,
        )
        if self._metrics:
            self._metrics.record_error(type(error).__name__, "cache")

    def _observe(self, operation: str, started: float) -> None:
        if self._metrics:
            self._metrics.record_cache_operation(operation, time.perf_counter() - started)

    # =========================================================================
    # Core operations
    # =========================================================================

    async def set(
        self,
        category: CacheCategory | str,
        key: str,
        value: Any,
        ttl_override: int | None = None,
    ) -> bool:
        """
        Write ``value`` under ``{prefix}:{key}``.

        The TTL is re-derived from the category's adaptive rule on every
        write unless ``ttl_override`` is given.

        Returns:
            True on success, False on any failure
        """
        if not self._enabled:
            return False

        cache_key = generate_key(category, key)
        started = time.perf_counter()
        try:
            ttl = ttl_override if ttl_override is not None else get_adaptive_ttl(category, value)
            await self._store.set(cache_key, value, ttl)
        except Exception as e:
            self._record_error("set", cache_key, e)
            return False

        self._counters.sets += 1
        self._observe("set", started)
        log_stage(logger, Stage.CACHE_WRITE, "Cache set", level="debug", cache_key=cache_key, ttl=ttl)
        return True

    async def get(self, category: CacheCategory | str, key: str) -> Any | None:
        """
        Read ``{prefix}:{key}``.

        Returns:
            The cached value, or None on a miss or an error
        """
        if not self._enabled:
            return None

        resolved = CacheCategory.resolve(category)
        cache_key = generate_key(resolved, key)
        started = time.perf_counter()
        try:
            value = await self._store.get(cache_key)
        except Exception as e:
            self._record_error("get", cache_key, e)
            return None

        self._observe("get", started)
        if value is None:
            self._counters.misses += 1
            if self._metrics:
                self._metrics.record_cache_miss(resolved.value)
            log_stage(logger, Stage.CACHE_LOOKUP, "Cache miss", level="debug", cache_key=cache_key)
            return None

        self._counters.hits += 1
        if self._metrics:
            self._metrics.record_cache_hit(resolved.value)
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", level="debug", cache_key=cache_key)
        return value

    async def delete(self, category: CacheCategory | str, key: str) -> int:
        """
        Remove one entry.

        Returns:
            Number of keys removed (0 on failure)
        """
        cache_key = generate_key(category, key)
        try:
            count = await self._store.delete(cache_key)
        except Exception as e:
            self._record_error("delete", cache_key, e)
            return 0

        if count > 0:
            self._counters.deletes += 1
        return count

    async def invalidate(
        self, event: InvalidationEvent | str, data: dict[str, Any] | None = None
    ) -> int:
        """
        Purge every key the invalidation table lists for ``event``.

        Patterns containing ``*`` are scanned and bulk-deleted; exact keys
        are deleted directly.

        Returns:
            Total keys removed (0 on failure)
        """
        event_name = event.value if isinstance(event, InvalidationEvent) else event
        try:
            patterns = get_invalidation_patterns(event, data)
            total = 0
            for pattern in patterns:
                if "*" in pattern:
                    total += await self._store.delete_pattern(pattern)
                else:
                    total += await self._store.delete(pattern)
        except Exception as e:
            self._record_error("invalidate", event_name, e)
            return 0

        log_stage(
            logger,
            Stage.CACHE_INVALIDATION,
            "Cache invalidated",
            invalidation_event=event_name,
            patterns=patterns,
            deleted=total,
        )
        return total

    async def purge_pattern(self, category: CacheCategory | str, *parts: Any) -> int:
        """
        Delete every key under ``{prefix}:{parts...}:*``.

        Returns:
            Number of keys removed (0 on failure)
        """
        pattern = generate_key(category, *parts, "*")
        try:
            return await self._store.delete_pattern(pattern)
        except Exception as e:
            self._record_error("purge", pattern, e)
            return 0

    async def get_or_compute(
        self,
        category: CacheCategory | str,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl_override: int | None = None,
    ) -> tuple[Any, bool]:
        """
        Return the cached value or produce, cache and return a fresh one.

        STAGE-2.5: Cache-aside pattern

        Args:
            category: Cache category
            key: Key within the category
            producer: Async callable producing the value on a miss
            ttl_override: Fixed TTL instead of the adaptive one

        Returns:
            (value, from_cache)

        Producer exceptions propagate; only cache failures are absorbed.
        A None result is returned but not cached.
        """
        cached = await self.get(category, key)
        if cached is not None:
            return cached, True

        value = await producer()
        if value is not None:
            await self.set(category, key, value, ttl_override)
        return value, False

    # =========================================================================
    # User and session wrappers
    # =========================================================================

    async def cache_user_session(self, user_id: str, session_data: dict[str, Any]) -> bool:
        return await self.set(CacheCategory.SESSION, user_id, session_data)

    async def get_user_session(self, user_id: str) -> dict[str, Any] | None:
        return await self.get(CacheCategory.SESSION, user_id)

    async def invalidate_user_session(self, user_id: str) -> int:
        return await self.invalidate(InvalidationEvent.USER_LOGOUT, {"userId": user_id})

    async def cache_user(self, user_id: str, user_data: dict[str, Any]) -> bool:
        return await self.set(CacheCategory.USER, user_id, user_data)

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        return await self.get(CacheCategory.USER, user_id)

    async def invalidate_user(self, user_id: str) -> int:
        return await self.invalidate(InvalidationEvent.USER_UPDATED, {"userId": user_id})

    # =========================================================================
    # Cloud PC wrappers
    # =========================================================================

    @staticmethod
    def list_key(query: dict[str, Any]) -> str:
        """Stable key for a list query: ``list:{json with sorted keys}``."""
        return "list:" + orjson.dumps(query, option=orjson.OPT_SORT_KEYS, default=str).decode()

    async def cache_cloudpc_list(self, query: dict[str, Any], data: Any) -> bool:
        return await self.set(CacheCategory.CLOUDPC, self.list_key(query), data)

    async def get_cloudpc_list(self, query: dict[str, Any]) -> Any | None:
        return await self.get(CacheCategory.CLOUDPC, self.list_key(query))

    async def cache_cloudpc_detail(self, cloudpc_id: str, data: dict[str, Any]) -> bool:
        return await self.set(CacheCategory.CLOUDPC, f"detail:{cloudpc_id}", data)

    async def get_cloudpc_detail(self, cloudpc_id: str) -> dict[str, Any] | None:
        return await self.get(CacheCategory.CLOUDPC, f"detail:{cloudpc_id}")

    async def delete_cloudpc_detail(self, cloudpc_id: str) -> int:
        return await self.delete(CacheCategory.CLOUDPC, f"detail:{cloudpc_id}")

    async def invalidate_cloudpc_cache(self, cloudpc_id: str | None = None) -> int:
        """
        Purge the cloudpcChanged keys plus every cached list page.

        The invalidation table lists exact keys only, so list pages (keyed by
        their query) are purged by pattern here.
        """
        data = {"cloudpcId": cloudpc_id} if cloudpc_id else {}
        removed = await self.invalidate(InvalidationEvent.CLOUDPC_CHANGED, data)
        return removed + await self.purge_pattern(CacheCategory.CLOUDPC, "list")

    # =========================================================================
    # Stats, config and realtime wrappers
    # =========================================================================

    async def cache_stats(self, key: str, stats: Any) -> bool:
        return await self.set(CacheCategory.STATS, key, stats)

    async def get_stats(self, key: str) -> Any | None:
        return await self.get(CacheCategory.STATS, key)

    async def invalidate_stats(self) -> int:
        """
        ``stats`` is not a domain event, so the table falls back to the
        bare ``stats`` key; keyed entries are purged by pattern.
        """
        removed = await self.invalidate("stats")
        return removed + await self.purge_pattern(CacheCategory.STATS)

    async def cache_config(self, key: str, config: Any) -> bool:
        return await self.set(CacheCategory.CONFIG, key, config)

    async def get_config(self, key: str) -> Any | None:
        return await self.get(CacheCategory.CONFIG, key)

    async def invalidate_config(self) -> int:
        removed = await self.invalidate(InvalidationEvent.CONFIG_UPDATED)
        return removed + await self.purge_pattern(CacheCategory.CONFIG)

    async def cache_realtime_data(self, key: str, data: Any, ttl_override: int | None = None) -> bool:
        return await self.set(CacheCategory.REALTIME, key, data, ttl_override)

    async def get_realtime_data(self, key: str) -> Any | None:
        return await self.get(CacheCategory.REALTIME, key)

    # =========================================================================
    # Metrics, health, warmup
    # =========================================================================

    async def get_metrics(self) -> dict[str, Any]:
        """
        Store stats plus application counters.

        The hit rate is rendered to two decimals as a percentage string and
        reads "0.00%" before any lookup has happened.
        """
        try:
            redis_stats = await self._store.get_stats()
        except Exception as e:
            self._record_error("stats", "INFO", e)
            redis_stats = {"error": str(e)}

        counters = self._counters
        return {
            "redis": redis_stats,
            "application": {
                "hits": counters.hits,
                "misses": counters.misses,
                "hit_rate": counters.hit_rate,
                "sets": counters.sets,
                "deletes": counters.deletes,
                "errors": counters.errors,
                "uptime": round(time.monotonic() - self._started_at, 3),
            },
        }

    def reset_metrics(self) -> None:
        self._counters = CacheCounters()
        logger.info("Cache metrics reset")

    async def health_check(self) -> dict[str, Any]:
        """
        Returns:
            ``{"status": "healthy"|"unhealthy", "redis": bool, "metrics": ..., "timestamp": ...}``
        """
        report = {
            "metrics": asdict(self._counters) | {"hit_rate": self._counters.hit_rate},
            "timestamp": _utcnow_iso(),
        }
        try:
            redis_ok = await self._store.ping()
        except Exception as e:
            self._record_error("health", "ping", e)
            return {"status": "unhealthy", "redis": False, "error": str(e), **report}

        return {"status": "healthy" if redis_ok else "unhealthy", "redis": redis_ok, **report}

    async def warmup(self) -> int:
        """
        Seed placeholder entries from the warmup plan in priority order.

        Returns:
            Number of entries written
        """
        warmed = 0
        for item in get_warmup_plan():
            ok = await self.set(item.category, item.key, {"warmed": True, "timestamp": _utcnow_iso()})
            if ok:
                warmed += 1
            else:
                logger.warning(
                    "Cache warmup item failed",
                    category=item.category.value,
                    key=item.key,
                    priority=item.priority,
                )

        logger.info("Cache warmup complete", warmed=warmed)
        return warmed

    async def close(self) -> None:
        try:
            await self._store.close()
        except Exception as e:
            self._record_error("close", "-", e)
        logger.info("Cache service closed", stage=Stage.SHUTDOWN.value)
