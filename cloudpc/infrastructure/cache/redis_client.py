"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API, JSON values)
        ├── ConnectionManager (pool lifecycle + reconnection with backoff)
        ├── OperationExecutor (raw command execution with error mapping)
        └── HealthMonitor (ping latency and pool utilization)

The client speaks JSON: ``set`` serializes with orjson and ``get`` parses the
stored bytes back. Everything else (TTL resolution, metrics, graceful
degradation) is the cache service's job; this module raises
CacheConnectionError / CacheKeyError and lets the caller decide.
"""

import time
from typing import Any

import orjson
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from cloudpc.core.config.settings import Settings, get_settings
from cloudpc.core.exceptions import CacheConnectionError, CacheKeyError
from cloudpc.core.logging.logger import get_logger

logger = get_logger(__name__)

# Keys deleted per DEL call when purging a pattern
DELETE_BATCH_SIZE = 500


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle, pooling, and reconnection
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Reconnection Strategy:
    - Wait attempt * 50ms between tries, capped at 2s
    - Give up after REDIS_RECONNECT_ATTEMPTS attempts
    - Only connection/timeout errors are retried
    """

    def __init__(self, settings: Settings, client: redis.Redis | None = None):
        """
        Initialize connection manager.

        Args:
            settings: Application settings
            client: Pre-built client (tests inject an in-memory double here)
        """
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = client
        self._injected = client is not None
        self._is_connected = False

    def _build_client(self) -> redis.Redis:
        cfg = self._settings.redis
        self._pool = ConnectionPool(
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
            password=cfg.REDIS_PASSWORD,
            max_connections=cfg.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=cfg.REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=True,
        )
        return redis.Redis(connection_pool=self._pool)

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis, retrying with linear backoff.

        STAGE-REDIS.2: Connection establishment

        Returns:
            redis.Redis: Connected Redis client

        Raises:
            CacheConnectionError: If every attempt fails
        """
        if self._is_connected and self._client:
            return self._client

        if self._client is None:
            self._client = self._build_client()

        cfg = self._settings.redis
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(cfg.REDIS_RECONNECT_ATTEMPTS),
                wait=wait_incrementing(start=0.05, increment=0.05, max=2.0),
                retry=retry_if_exception_type((ConnectionError, TimeoutError)),
                before_sleep=lambda retry_state: logger.warning(
                    "Redis connection retry",
                    stage="REDIS.2",
                    attempt=retry_state.attempt_number,
                ),
            ):
                with attempt:
                    await self._client.ping()
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error("Failed to connect to Redis", stage="REDIS.2", error=str(cause))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {cause}",
                details={"host": cfg.REDIS_HOST, "port": cfg.REDIS_PORT},
            ) from cause

        self._is_connected = True
        logger.info(
            "Redis connected successfully",
            stage="REDIS.2",
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            max_connections=cfg.REDIS_MAX_CONNECTIONS,
        )
        return self._client

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        self._is_connected = False
        if not self._injected:
            self._client = None
            self._pool = None

        logger.info("Redis disconnected", stage="REDIS.3")

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if healthy, False otherwise
        """
        if not (self._client and self._is_connected):
            return False
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning("Redis ping failed", stage="REDIS.PING", error=str(e))
            return False

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTION
# Raw commands with consistent error mapping
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent error handling.

    Error Handling Strategy:
    - Catch RedisError exceptions
    - Log error with context (stage, key, etc.)
    - Raise CacheKeyError with details
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    async def get(self, key: str) -> bytes | str | None:
        """
        STAGE-REDIS.GET: Redis GET operation
        """
        try:
            return await self._redis.get(key)
        except RedisError as e:
            logger.error("Redis GET failed", stage="REDIS.GET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis GET failed: {e}", details={"key": key})

    async def setex(self, key: str, ttl: int, value: bytes) -> bool:
        """
        STAGE-REDIS.SET: Redis SETEX operation
        """
        try:
            return bool(await self._redis.setex(key, ttl, value))
        except RedisError as e:
            logger.error("Redis SETEX failed", stage="REDIS.SET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis SETEX failed: {e}", details={"key": key})

    async def delete(self, *keys: str) -> int:
        """
        STAGE-REDIS.DEL: Redis DELETE operation
        """
        if not keys:
            return 0
        try:
            return await self._redis.delete(*keys)
        except RedisError as e:
            logger.error("Redis DELETE failed", stage="REDIS.DEL", keys=keys, error=str(e))
            raise CacheKeyError(message=f"Redis DELETE failed: {e}", details={"keys": keys})

    async def scan_keys(self, pattern: str) -> list[str]:
        """
        Collect keys matching a glob pattern with SCAN.

        SCAN is used instead of KEYS so a large keyspace never blocks the
        server for the whole walk.
        """
        try:
            return [key async for key in self._redis.scan_iter(match=pattern, count=100)]
        except RedisError as e:
            logger.error("Redis SCAN failed", stage="REDIS.SCAN", pattern=pattern, error=str(e))
            raise CacheKeyError(message=f"Redis SCAN failed: {e}", details={"pattern": pattern})

    async def exists(self, key: str) -> int:
        try:
            return await self._redis.exists(key)
        except RedisError as e:
            logger.error("Redis EXISTS failed", stage="REDIS.EXISTS", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis EXISTS failed: {e}", details={"key": key})

    async def ttl(self, key: str) -> int:
        """
        Returns:
            TTL in seconds, -1 if no TTL, -2 if key doesn't exist
        """
        try:
            return await self._redis.ttl(key)
        except RedisError as e:
            logger.error("Redis TTL failed", stage="REDIS.TTL", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis TTL failed: {e}", details={"key": key})

    async def flushdb(self) -> bool:
        try:
            return bool(await self._redis.flushdb())
        except RedisError as e:
            logger.error("Redis FLUSHDB failed", stage="REDIS.FLUSH", error=str(e))
            raise CacheKeyError(message=f"Redis FLUSHDB failed: {e}")

    async def info(self, section: str) -> dict[str, Any]:
        try:
            return await self._redis.info(section)
        except RedisError as e:
            logger.error("Redis INFO failed", stage="REDIS.INFO", section=section, error=str(e))
            raise CacheKeyError(message=f"Redis INFO failed: {e}", details={"section": section})


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Connection status
    - Ping latency
    - Pool utilization (warning above 80%)
    """

    def __init__(self, connection_manager: ConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        STAGE-REDIS.HEALTH: Redis health check

        Returns:
            Dict with health status and metrics
        """
        health = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "pool_utilization_pct": 0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client or not self._conn_mgr.is_connected():
            health["status"] = "unhealthy"
            health["error"] = "Client not connected"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except RedisError as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
            return health

        pool = self._conn_mgr.get_pool()
        if pool and hasattr(pool, "_available_connections"):
            in_use = len(getattr(pool, "_in_use_connections", ()))
            utilization = 100.0 * in_use / pool.max_connections
            health["pool_utilization_pct"] = round(utilization, 1)
            if utilization > 80:
                health["pool_warning"] = True
                logger.warning(
                    "Redis pool utilization high",
                    pool_utilization=utilization,
                    max_connections=pool.max_connections,
                )

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async JSON key-value store on top of Redis.

    Usage:
        client = RedisClient(settings)
        await client.connect()

        await client.set("user:42", {"name": "Ada"}, ttl=7200)
        value = await client.get("user:42")   # -> {"name": "Ada"}
        await client.delete_pattern("cloudpc:list:*")

        await client.close()

    Raises CacheConnectionError when not connected and CacheKeyError when a
    command fails.
    """

    def __init__(self, settings: Settings | None = None, client: redis.Redis | None = None):
        """
        Initialize Redis client.

        STAGE-REDIS.1: Client initialization

        Args:
            settings: Application settings (defaults to get_settings())
            client: Optional pre-built redis.asyncio client
        """
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings, client=client)
        self._executor: OperationExecutor | None = None
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)

        logger.info(
            "Redis client initialized",
            stage="REDIS.1",
            host=self._settings.redis.REDIS_HOST,
            port=self._settings.redis.REDIS_PORT,
        )

    @property
    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    async def connect(self) -> None:
        """
        Raises:
            CacheConnectionError: If connection fails
        """
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def reconnect(self) -> None:
        """Drop the current connection and connect again with backoff."""
        logger.info("Redis reconnecting", stage="REDIS.2")
        await self._conn_mgr.disconnect()
        self._executor = None
        await self.connect()

    async def close(self) -> None:
        await self._conn_mgr.disconnect()
        self._executor = None

    def _exec(self) -> OperationExecutor:
        if self._executor is None:
            raise CacheConnectionError("Redis client is not connected")
        return self._executor

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    # -------------------------------------------------------------------------
    # JSON value operations
    # -------------------------------------------------------------------------

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """
        Serialize ``value`` and store it with an expiry.

        Raises:
            CacheKeyError: If serialization or the write fails
        """
        try:
            payload = orjson.dumps(value, default=str)
        except TypeError as e:
            raise CacheKeyError(
                message=f"Value for {key} is not serializable: {e}", details={"key": key}
            )
        return await self._exec().setex(key, ttl, payload)

    async def get(self, key: str) -> Any | None:
        """
        Fetch and parse a JSON value.

        Returns:
            Parsed value, or None when the key does not exist
        """
        raw = await self._exec().get(key)
        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise CacheKeyError(message=f"Corrupt cache value at {key}: {e}", details={"key": key})

    async def delete(self, *keys: str) -> int:
        return await self._exec().delete(*keys)

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Returns:
            Number of keys removed
        """
        executor = self._exec()
        keys = await executor.scan_keys(pattern)
        deleted = 0
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            deleted += await executor.delete(*keys[start:start + DELETE_BATCH_SIZE])
        return deleted

    async def exists(self, key: str) -> bool:
        return bool(await self._exec().exists(key))

    async def ttl(self, key: str) -> int:
        """
        Returns:
            Remaining TTL in seconds; -2 when the key is missing or the
            lookup fails
        """
        try:
            return await self._exec().ttl(key)
        except (CacheKeyError, CacheConnectionError) as e:
            logger.warning("TTL lookup failed", stage="REDIS.TTL", key=key, error=e.message)
            return -2

    async def flush_all(self) -> bool:
        logger.warning("Flushing Redis database", stage="REDIS.FLUSH")
        return await self._exec().flushdb()

    async def get_stats(self) -> dict[str, Any]:
        """
        Return the ``INFO stats`` section as a dict.

        Values are kept as Redis reports them (ints where numeric).
        """
        info = await self._exec().info("stats")
        return dict(info)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()
