"""
FastAPI Dependency Injection Module
===================================

Route handlers receive the application's services through FastAPI's
``Depends`` system instead of importing module-level singletons.

HOW IT WORKS:
-------------
1. The lifespan in ``cloudpc.application.app`` builds every service once at
   startup and stores it on ``app.state``.
2. The provider functions below read those instances back from
   ``request.app.state``.
3. The ``Annotated`` aliases at the bottom give routes short, typed
   parameters:

    @router.get("/me")
    async def me(user: CurrentUserDep, auth: AuthServiceDep):
        ...

Because nothing is global, tests can build an app, swap any instance on
``app.state`` and get an isolated service graph.

AUTHENTICATION:
---------------
``get_current_user`` requires ``Authorization: Bearer <jwt>`` and resolves
it through ``AuthService.authenticate``. ``require_role("admin")`` layers a
403 check on top.
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cloudpc.application.services import AuthService, CloudPCService, UserService
from cloudpc.core.config.constants import UserRole
from cloudpc.core.exceptions import AuthenticationError, AuthorizationError
from cloudpc.infrastructure.cache.cache_service import CacheService
from cloudpc.infrastructure.monitoring import HealthChecker, MetricsCollector
from cloudpc.infrastructure.persistence import User
from cloudpc.realtime import ConnectionRegistry

# auto_error=False so a missing header becomes our 401 envelope, not FastAPI's 403
_bearer = HTTPBearer(auto_error=False)


# ============================================================================
# APP STATE PROVIDERS
# ============================================================================


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache


def get_metrics(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_health_checker(request: Request) -> HealthChecker:
    return request.app.state.health_checker


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_cloudpc_service(request: Request) -> CloudPCService:
    return request.app.state.cloudpc_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


# ============================================================================
# AUTHENTICATION
# ============================================================================


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> User:
    """
    Resolve the bearer token to an active user.

    Raises:
        AuthenticationError: header missing or token invalid/expired (401)
        AccountLockedError: user locked out (423)
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access denied, no token provided")

    auth: AuthService = request.app.state.auth_service
    user = await auth.authenticate(credentials.credentials)
    return user


def require_role(*roles: str | UserRole) -> Callable:
    """
    Dependency factory that admits only users whose role is in ``roles``.

    Usage:
        @router.get("/", dependencies=[Depends(require_role("admin"))])
    """
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    async def checker(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in allowed:
            raise AuthorizationError("Insufficient permissions")
        return user

    return checker


# ============================================================================
# TYPE ALIASES FOR CLEANER ROUTE SIGNATURES
# ============================================================================

CacheDep = Annotated[CacheService, Depends(get_cache_service)]
MetricsDep = Annotated[MetricsCollector, Depends(get_metrics)]
RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]
HealthCheckerDep = Annotated[HealthChecker, Depends(get_health_checker)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CloudPCServiceDep = Annotated[CloudPCService, Depends(get_cloudpc_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]

CurrentUserDep = Annotated[User, Depends(get_current_user)]
AdminUserDep = Annotated[User, Depends(require_role(UserRole.ADMIN))]
