"""
Exception Module

Structured exception hierarchy for the cloud PC backend, organized by theme.

Module Structure:
-----------------
- **base.py**: CloudPCBaseError, ConfigurationError, APIError
- **cache.py**: Redis/cache exceptions (never escape the cache service)
- **auth.py**: authentication/authorization exceptions
- **resource.py**: not-found, conflict and lifecycle transition errors
- **validation.py**: request validation errors
- **websocket.py**: terminal WebSocket errors

Usage:
------
```python
from cloudpc.core.exceptions import CacheConnectionError, ResourceNotFoundError
```
"""

from cloudpc.core.exceptions.auth import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    TokenExpiredError,
)
from cloudpc.core.exceptions.base import APIError, CloudPCBaseError, ConfigurationError
from cloudpc.core.exceptions.cache import CacheConnectionError, CacheError, CacheKeyError
from cloudpc.core.exceptions.resource import (
    ConflictError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from cloudpc.core.exceptions.validation import ValidationError
from cloudpc.core.exceptions.websocket import (
    HandshakeRejectedError,
    MalformedMessageError,
    WebSocketError,
)

__all__ = [
    # Base
    "CloudPCBaseError",
    "ConfigurationError",
    "APIError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    # Auth
    "AuthenticationError",
    "TokenExpiredError",
    "AuthorizationError",
    "AccountLockedError",
    # Resource
    "ResourceNotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    # Validation
    "ValidationError",
    # WebSocket
    "WebSocketError",
    "HandshakeRejectedError",
    "MalformedMessageError",
]
