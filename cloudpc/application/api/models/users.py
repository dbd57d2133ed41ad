"""Admin request bodies for ``/api/users``."""

from pydantic import BaseModel

from cloudpc.core.config.constants import UserRole, UserStatus


class UserStatusUpdateRequest(BaseModel):
    status: UserStatus


class UserRoleUpdateRequest(BaseModel):
    role: UserRole
