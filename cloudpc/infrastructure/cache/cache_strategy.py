"""
Cache Strategy Table

Pure lookup tables for the cache layer:
- category -> (TTL, key prefix)
- domain event -> keys to invalidate
- adaptive TTL for API responses
- read/write caching policy and the startup warmup plan

Nothing in this module touches Redis.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

import orjson


class CacheCategory(str, Enum):
    """
    Closed set of cached data categories.

    Unknown names resolve to API via ``resolve`` rather than raising.
    """

    CLOUDPC = "cloudpc"
    SESSION = "session"
    USER = "user"
    API = "api"
    STATS = "stats"
    CONFIG = "config"
    REALTIME = "realtime"
    LOGS = "logs"

    @classmethod
    def resolve(cls, name: "CacheCategory | str") -> "CacheCategory":
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            return cls.API


class InvalidationEvent(str, Enum):
    """Domain events that purge cache entries."""

    USER_UPDATED = "userUpdated"
    CLOUDPC_CHANGED = "cloudpcChanged"
    CONFIG_UPDATED = "configUpdated"
    USER_LOGIN = "userLogin"
    USER_LOGOUT = "userLogout"


class CacheOperation(str, Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class CacheStrategy:
    ttl: int
    prefix: str


@dataclass(frozen=True)
class WarmupItem:
    category: CacheCategory
    key: str
    priority: int


# Base TTLs in seconds
STRATEGIES: dict[CacheCategory, CacheStrategy] = {
    CacheCategory.CLOUDPC: CacheStrategy(ttl=3600, prefix="cloudpc"),
    CacheCategory.SESSION: CacheStrategy(ttl=86400, prefix="session"),
    CacheCategory.USER: CacheStrategy(ttl=7200, prefix="user"),
    CacheCategory.API: CacheStrategy(ttl=600, prefix="api"),
    CacheCategory.STATS: CacheStrategy(ttl=1800, prefix="stats"),
    CacheCategory.CONFIG: CacheStrategy(ttl=3600, prefix="config"),
    CacheCategory.REALTIME: CacheStrategy(ttl=300, prefix="realtime"),
    CacheCategory.LOGS: CacheStrategy(ttl=600, prefix="logs"),
}

# Adaptive TTL thresholds (serialized length, characters)
LARGE_PAYLOAD_THRESHOLD = 10_000
SMALL_PAYLOAD_THRESHOLD = 1_000
LARGE_PAYLOAD_FACTOR = 0.5
SMALL_PAYLOAD_FACTOR = 1.5

READ_CACHEABLE = frozenset({
    CacheCategory.CLOUDPC,
    CacheCategory.USER,
    CacheCategory.API,
    CacheCategory.STATS,
    CacheCategory.CONFIG,
    CacheCategory.LOGS,
})
WRITE_CACHEABLE = frozenset({CacheCategory.CONFIG, CacheCategory.USER})

WARMUP_PLAN: tuple[WarmupItem, ...] = (
    WarmupItem(CacheCategory.CONFIG, "system", 1),
    WarmupItem(CacheCategory.CONFIG, "pricing", 1),
    WarmupItem(CacheCategory.CONFIG, "features", 1),
    WarmupItem(CacheCategory.STATS, "overview", 2),
    WarmupItem(CacheCategory.CLOUDPC, "templates", 3),
)


def get_strategy(category: CacheCategory | str) -> CacheStrategy:
    """Policy for ``category``; unknown names get the API policy."""
    return STRATEGIES[CacheCategory.resolve(category)]


def generate_key(category: CacheCategory | str, *parts: Any) -> str:
    """
    Build ``{prefix}`` or ``{prefix}:{part1}:{part2}...``.

    Example:
        >>> generate_key(CacheCategory.USER, "u1")
        'user:u1'
    """
    prefix = get_strategy(category).prefix
    if not parts:
        return prefix
    return prefix + ":" + ":".join(str(p) for p in parts)


def get_invalidation_patterns(event: InvalidationEvent | str, data: dict[str, Any] | None = None) -> list[str]:
    """
    Keys to purge for a domain event.

    An unrecognised event name is treated as a category name and yields a
    single key built from it (which falls back to the API prefix when the
    name is not a category either).
    """
    data = data or {}
    try:
        event = InvalidationEvent(event)
    except ValueError:
        return [generate_key(event)]

    if event is InvalidationEvent.USER_UPDATED:
        return [
            generate_key(CacheCategory.USER, data.get("userId")),
            generate_key(CacheCategory.SESSION, data.get("userId")),
        ]
    if event is InvalidationEvent.CLOUDPC_CHANGED:
        patterns = [generate_key(CacheCategory.CLOUDPC)]
        if data.get("cloudpcId"):
            patterns.append(generate_key(CacheCategory.CLOUDPC, data["cloudpcId"]))
        patterns.append(generate_key(CacheCategory.STATS))
        return patterns
    if event is InvalidationEvent.CONFIG_UPDATED:
        return [generate_key(CacheCategory.CONFIG)]
    # USER_LOGIN / USER_LOGOUT
    return [generate_key(CacheCategory.SESSION, data.get("userId"))]


def get_adaptive_ttl(category: CacheCategory | str, payload: Any) -> int:
    """
    TTL for a write.

    Only API responses adapt: large payloads expire sooner, small ones live
    longer. Every other category returns its base TTL.
    """
    resolved = CacheCategory.resolve(category)
    base = STRATEGIES[resolved].ttl
    if resolved is not CacheCategory.API:
        return base

    size = len(orjson.dumps(payload, default=str))
    if size > LARGE_PAYLOAD_THRESHOLD:
        return math.floor(base * LARGE_PAYLOAD_FACTOR)
    if size < SMALL_PAYLOAD_THRESHOLD:
        return math.floor(base * SMALL_PAYLOAD_FACTOR)
    return base


def should_cache(category: CacheCategory | str, operation: CacheOperation | str) -> bool:
    """Whether results of ``operation`` on ``category`` are worth caching."""
    resolved = CacheCategory.resolve(category)
    try:
        operation = CacheOperation(operation)
    except ValueError:
        return False
    if operation is CacheOperation.WRITE:
        return resolved in WRITE_CACHEABLE
    return resolved in READ_CACHEABLE


def get_warmup_plan() -> list[WarmupItem]:
    """Warmup seeds, highest priority (lowest number) first."""
    return sorted(WARMUP_PLAN, key=lambda item: item.priority)
