"""
API Models Package
==================

Pydantic request bodies for the REST routes.

ORGANIZATION:
-------------
- auth.py: registration, login, profile and password bodies
- cloudpc.py: cloud PC create/update bodies
- users.py: admin status/role bodies
"""

from cloudpc.application.api.models.auth import (
    LoginRequest,
    LogoutRequest,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RefreshRequest,
    RegisterRequest,
)
from cloudpc.application.api.models.cloudpc import CloudPCCreateRequest, CloudPCUpdateRequest, PricingModel
from cloudpc.application.api.models.users import UserRoleUpdateRequest, UserStatusUpdateRequest

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "ProfileUpdateRequest",
    "PasswordChangeRequest",
    "RefreshRequest",
    "LogoutRequest",
    "CloudPCCreateRequest",
    "CloudPCUpdateRequest",
    "PricingModel",
    "UserStatusUpdateRequest",
    "UserRoleUpdateRequest",
]
