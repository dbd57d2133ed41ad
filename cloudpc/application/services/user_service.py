"""
User Service

Administrative user management plus the self-or-admin read paths.
"""

import math
from datetime import datetime, timezone
from typing import Any

from cloudpc.core.config.constants import UserRole, UserStatus
from cloudpc.core.exceptions import AuthorizationError, ConflictError, ResourceNotFoundError
from cloudpc.core.logging.logger import get_logger
from cloudpc.infrastructure.cache.cache_service import CacheService
from cloudpc.infrastructure.cache.cache_strategy import CacheCategory
from cloudpc.infrastructure.persistence.models import User
from cloudpc.infrastructure.persistence.repositories import CloudPCRepository, UserRepository
from cloudpc.application.services.cloudpc_service import CloudPCService
from cloudpc.application.services.lifecycle import LifecycleScheduler

logger = get_logger(__name__)


def _is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN.value


class UserService:
    def __init__(
        self,
        users: UserRepository,
        cloudpcs: CloudPCRepository,
        cache: CacheService,
        lifecycle: LifecycleScheduler,
        cloudpc_service: CloudPCService,
    ):
        self.users = users
        self.cloudpcs = cloudpcs
        self.cache = cache
        self.lifecycle = lifecycle
        self.cloudpc_service = cloudpc_service

    async def _get(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise ResourceNotFoundError("User not found", details={"user_id": user_id})
        return user

    @staticmethod
    def _require_self_or_admin(requester: User, user_id: str) -> None:
        if requester.id != user_id and not _is_admin(requester):
            raise AuthorizationError("Not allowed to access this user")

    async def _after_change(self, user_id: str) -> None:
        await self.cache.invalidate_user(user_id)
        await self.cache.invalidate_stats()

    async def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        sort: str = "-createdAt",
        status: str | None = None,
        role: str | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        users, total = await self.users.list(page, limit, sort, status, role, search)
        return {
            "users": [u.to_public() for u in users],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
            },
            "stats": await self.users.count_by("status"),
        }

    async def get_user(self, requester: User, user_id: str) -> tuple[dict[str, Any], bool]:
        self._require_self_or_admin(requester, user_id)
        cached = await self.cache.get_user(user_id)
        if cached is not None:
            return cached, True

        data = (await self._get(user_id)).to_public()
        await self.cache.cache_user(user_id, data)
        return data, False

    async def update_status(self, admin: User, user_id: str, status: UserStatus) -> dict[str, Any]:
        """Only ``active`` users may authenticate; other states disable the account."""
        user = await self._get(user_id)
        user.status = status.value
        user.is_active = status is UserStatus.ACTIVE
        user = await self.users.update(user)
        await self._after_change(user_id)
        await self.cache.invalidate_user_session(user_id)

        logger.info("User status changed", admin_id=admin.id, target_user_id=user_id, status=status.value)
        return user.to_public()

    async def update_role(self, admin: User, user_id: str, role: UserRole) -> dict[str, Any]:
        """
        Raises:
            ConflictError: an admin demoting themselves
        """
        user = await self._get(user_id)
        if user.id == admin.id and role is not UserRole.ADMIN:
            raise ConflictError("You cannot change your own role")

        user.role = role.value
        user = await self.users.update(user)
        await self._after_change(user_id)

        logger.info("User role changed", admin_id=admin.id, target_user_id=user_id, role=role.value)
        return user.to_public()

    async def delete_user(self, admin: User, user_id: str) -> None:
        """
        Delete a user and every cloud PC they own.

        Raises:
            ConflictError: an admin deleting themselves
        """
        user = await self._get(user_id)
        if user.id == admin.id:
            raise ConflictError("You cannot delete your own account")

        for cloudpc in await self.cloudpcs.all_for_user(user_id):
            self.lifecycle.cancel(cloudpc.id)
            await self.cloudpcs.delete(cloudpc.id)
            await self.cache.delete_cloudpc_detail(cloudpc.id)
            await self.cache.invalidate_cloudpc_cache(cloudpc.id)

        await self.users.delete(user_id)
        await self._after_change(user_id)
        logger.info("User deleted", admin_id=admin.id, deleted_user_id=user_id)

    async def stats_overview(self) -> tuple[dict[str, Any], bool]:
        """Totals, status/role distribution and registrations today and this month."""

        async def produce() -> dict[str, Any]:
            today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
            month_start = today.replace(day=1)
            return {
                "total": await self.users.count(),
                "status": await self.users.count_by("status"),
                "role": await self.users.count_by("role"),
                "registrations": {
                    "today": await self.users.count_created_since(today),
                    "thisMonth": await self.users.count_created_since(month_start),
                },
            }

        return await self.cache.get_or_compute(CacheCategory.STATS, "users:overview", produce)

    async def cloudpc_stats(self, requester: User, user_id: str) -> tuple[dict[str, Any], bool]:
        self._require_self_or_admin(requester, user_id)
        return await self.cloudpc_service.user_stats(user_id)
