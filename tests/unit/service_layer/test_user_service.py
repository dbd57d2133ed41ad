"""
Unit Tests for the User Service

Tests admin user management and the self-or-admin read paths.
"""

import pytest

from cloudpc.core.config.constants import UserRole, UserStatus
from cloudpc.core.exceptions import AuthorizationError, ConflictError, ResourceNotFoundError


@pytest.mark.unit
class TestReads:
    """Test listing and access checks."""

    async def test_list_users(self, user_service, user, admin):
        """Test the page includes every user and the status distribution."""
        result = await user_service.list_users()

        assert result["pagination"]["total"] == 2
        assert result["stats"] == {"active": 2}
        assert all("password_hash" not in u for u in result["users"])

    async def test_list_filtered_by_role(self, user_service, user, admin):
        """Test the role filter."""
        result = await user_service.list_users(role="admin")

        assert [u["id"] for u in result["users"]] == [admin.id]

    async def test_self_read_cached(self, user_service, user):
        """Test a user can read themselves and the second read is cached."""
        data, first_cached = await user_service.get_user(user, user.id)
        _, second_cached = await user_service.get_user(user, user.id)

        assert data["email"] == "ada@example.com"
        assert (first_cached, second_cached) == (False, True)

    async def test_other_user_forbidden(self, user_service, user, admin):
        """Test a regular user cannot read someone else."""
        with pytest.raises(AuthorizationError):
            await user_service.get_user(user, admin.id)

    async def test_admin_reads_anyone(self, user_service, user, admin):
        """Test an admin can read another user."""
        data, _ = await user_service.get_user(admin, user.id)

        assert data["id"] == user.id

    async def test_missing_user(self, user_service, admin):
        """Test reading an unknown id is a 404."""
        with pytest.raises(ResourceNotFoundError):
            await user_service.get_user(admin, "missing")

    async def test_stats_overview(self, user_service, user, admin):
        """Test totals, distributions and today's registrations."""
        stats, _ = await user_service.stats_overview()

        assert stats["total"] == 2
        assert stats["role"] == {"user": 1, "admin": 1}
        assert stats["registrations"]["today"] == 2

    async def test_cloudpc_stats_self_or_admin(self, user_service, user, admin):
        """Test per-user cloud PC stats follow the self-or-admin rule."""
        stats, _ = await user_service.cloudpc_stats(user, user.id)
        assert stats["totalCloudPCs"] == 0

        with pytest.raises(AuthorizationError):
            await user_service.cloudpc_stats(user, admin.id)


@pytest.mark.unit
class TestAdminMutations:
    """Test status, role and delete operations."""

    async def test_suspend_disables_and_drops_session(self, user_service, cache_service, user_repository, user, admin):
        """Test suspension clears is_active and the cached session."""
        await cache_service.cache_user_session(user.id, {"userId": user.id})

        data = await user_service.update_status(admin, user.id, UserStatus.SUSPENDED)

        assert data["status"] == "suspended"
        assert not (await user_repository.get(user.id)).is_active
        assert await cache_service.get_user_session(user.id) is None

    async def test_reactivate(self, user_service, user, admin):
        """Test active status re-enables the account."""
        await user_service.update_status(admin, user.id, UserStatus.SUSPENDED)

        data = await user_service.update_status(admin, user.id, UserStatus.ACTIVE)

        assert data["isActive"] is True

    async def test_promote(self, user_service, user, admin):
        """Test an admin can change another user's role."""
        data = await user_service.update_role(admin, user.id, UserRole.ADMIN)

        assert data["role"] == "admin"

    async def test_self_demotion_conflicts(self, user_service, admin):
        """Test an admin cannot demote themselves."""
        with pytest.raises(ConflictError):
            await user_service.update_role(admin, admin.id, UserRole.USER)

    async def test_self_delete_conflicts(self, user_service, admin):
        """Test an admin cannot delete themselves."""
        with pytest.raises(ConflictError):
            await user_service.delete_user(admin, admin.id)

    async def test_delete_cascades_to_cloudpcs(
        self, user_service, cloudpc_service, cloudpc_repository, user_repository, user, admin, cloudpc_payload
    ):
        """Test deleting a user removes the machines they own."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        await user_service.delete_user(admin, user.id)

        assert await user_repository.get(user.id) is None
        assert await cloudpc_repository.get(created["id"]) is None
