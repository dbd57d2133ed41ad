"""
Cache-Related Exceptions

Raised by the Redis client. The cache service catches all of them at its
boundary, so they never reach route handlers.
"""

from cloudpc.core.exceptions.base import CloudPCBaseError


class CacheError(CloudPCBaseError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the cache (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache key operation fails.

    Common causes:
    - Operation timeout
    - Value cannot be serialized or parsed
    - Memory limit exceeded
    """
    pass
