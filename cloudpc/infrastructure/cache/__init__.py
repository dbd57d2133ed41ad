"""
Cache Module

Redis key-value store, the category/invalidation strategy table and the
cache service built on both.
"""

from .cache_service import CacheCounters, CacheService
from .cache_strategy import (
    CacheCategory,
    InvalidationEvent,
    generate_key,
    get_adaptive_ttl,
    get_invalidation_patterns,
    get_strategy,
)
from .redis_client import RedisClient

__all__ = [
    "CacheService",
    "CacheCounters",
    "CacheCategory",
    "InvalidationEvent",
    "RedisClient",
    "generate_key",
    "get_adaptive_ttl",
    "get_invalidation_patterns",
    "get_strategy",
]
