"""
Application Services Package
=============================

Business logic used by the API routes and the WebSocket endpoint.

Controller (routes) -> Service -> Repository / Cache / Registry
"""

from cloudpc.application.services.auth_service import AuthService
from cloudpc.application.services.cloudpc_service import CloudPCService
from cloudpc.application.services.lifecycle import LifecycleScheduler
from cloudpc.application.services.user_service import UserService

__all__ = [
    "AuthService",
    "CloudPCService",
    "LifecycleScheduler",
    "UserService",
]
