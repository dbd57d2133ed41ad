"""
Unit Tests for the Cloud PC Service

Tests creation defaults, ownership, update and delete guards, and the
cache-aside read paths.
"""

import pytest

from cloudpc.core.config.constants import LifecycleAction
from cloudpc.core.exceptions import ConflictError, ResourceNotFoundError


@pytest.mark.unit
class TestCreate:
    """Test creation defaults."""

    async def test_default_pricing_from_cpu(self, cloudpc_service, user, cloudpc_payload):
        """Test hourly price defaults to a quarter per vCPU in CNY."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        assert created["pricing"] == {"hourly": 1.0, "currency": "CNY"}
        assert created["status"] == "stopped"
        assert created["user"] == user.id
        assert created["ip"].startswith("10.0.")
        assert 1024 <= created["port"] <= 65535
        assert created["logs"][0]["message"] == "Cloud PC created"

    async def test_explicit_pricing_kept(self, cloudpc_service, user, cloudpc_payload):
        """Test a supplied hourly price wins over the default."""
        created = await cloudpc_service.create(user.id, {**cloudpc_payload, "pricing": {"hourly": 3.5}})

        assert created["pricing"] == {"hourly": 3.5, "currency": "CNY"}

    async def test_endpoints_are_unique(self, cloudpc_service, user, cloudpc_payload):
        """Test two machines never share an (ip, port) pair."""
        first = await cloudpc_service.create(user.id, cloudpc_payload)
        second = await cloudpc_service.create(user.id, cloudpc_payload)

        assert (first["ip"], first["port"]) != (second["ip"], second["port"])

    def test_available_configs(self, cloudpc_service):
        """Test the tier catalogue is exposed."""
        assert len(cloudpc_service.available_configs()) > 0


@pytest.mark.unit
class TestReads:
    """Test owner-scoped and cached reads."""

    async def test_detail_served_from_cache_for_owner(self, cloudpc_service, user, cloudpc_payload):
        """Test the owner's detail read hits the cache written on create."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        data, from_cache = await cloudpc_service.get(user.id, created["id"])

        assert from_cache
        assert data["id"] == created["id"]

    async def test_cached_detail_not_leaked_to_other_users(self, cloudpc_service, user, admin, cloudpc_payload):
        """Test another user gets a 404 even when the detail is cached."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        with pytest.raises(ResourceNotFoundError):
            await cloudpc_service.get(admin.id, created["id"])

    async def test_list_cached_until_mutation(self, cloudpc_service, user, cloudpc_payload):
        """Test list pages are cached and purged by a create."""
        await cloudpc_service.create(user.id, cloudpc_payload)

        first, first_cached = await cloudpc_service.list(user.id)
        _, second_cached = await cloudpc_service.list(user.id)
        await cloudpc_service.create(user.id, cloudpc_payload)
        third, third_cached = await cloudpc_service.list(user.id)

        assert (first_cached, second_cached, third_cached) == (False, True, False)
        assert first["pagination"]["total"] == 1
        assert third["pagination"]["total"] == 2
        assert third["stats"] == {"stopped": 2}

    async def test_list_pages(self, cloudpc_service, user, cloudpc_payload):
        """Test page count rounds up."""
        for _ in range(3):
            await cloudpc_service.create(user.id, cloudpc_payload)

        result, _ = await cloudpc_service.list(user.id, page=2, limit=2)

        assert len(result["cloudPCs"]) == 1
        assert result["pagination"]["pages"] == 2

    async def test_monitor_cached(self, cloudpc_service, user, cloudpc_payload):
        """Test monitor data is simulated once and then served from cache."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        first, first_cached = await cloudpc_service.monitor(user.id, created["id"])
        second, second_cached = await cloudpc_service.monitor(user.id, created["id"])

        assert not first_cached and second_cached
        assert first == second
        assert len(first["cpu"]["history"]) == 24
        assert first["memory"]["total"] == 8

    async def test_user_stats(self, cloudpc_service, user, cloudpc_payload):
        """Test per-owner counts and billing."""
        await cloudpc_service.create(user.id, cloudpc_payload)

        stats, _ = await cloudpc_service.user_stats(user.id)

        assert stats["totalCloudPCs"] == 1
        assert stats["status"] == {"stopped": 1}
        assert stats["billing"]["totalCost"] == 0


@pytest.mark.unit
class TestMutations:
    """Test update, delete and lifecycle guards."""

    async def test_update_merges_pricing(self, cloudpc_service, user, cloudpc_payload):
        """Test a partial pricing update keeps the other keys."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        updated = await cloudpc_service.update(user.id, created["id"], {"pricing": {"hourly": 2.0}})

        assert updated["pricing"] == {"hourly": 2.0, "currency": "CNY"}

    async def test_hardware_change_while_running(self, cloudpc_service, cloudpc_repository, user, cloudpc_payload):
        """Test cpu/memory/storage cannot change on a running machine."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)
        await cloudpc_repository.update_fields(created["id"], status="running")

        with pytest.raises(ConflictError):
            await cloudpc_service.update(user.id, created["id"], {"cpu": 8})

        renamed = await cloudpc_service.update(user.id, created["id"], {"name": "renamed"})
        assert renamed["name"] == "renamed"

    async def test_update_refreshes_detail_cache(self, cloudpc_service, cache_service, user, cloudpc_payload):
        """Test the cached detail carries the new values."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        await cloudpc_service.update(user.id, created["id"], {"description": "build server"})

        assert (await cache_service.get_cloudpc_detail(created["id"]))["description"] == "build server"

    async def test_delete_running_conflicts(self, cloudpc_service, cloudpc_repository, user, cloudpc_payload):
        """Test a running machine must be stopped before deletion."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)
        await cloudpc_repository.update_fields(created["id"], status="running")

        with pytest.raises(ConflictError):
            await cloudpc_service.delete(user.id, created["id"])

    async def test_delete_removes_record_and_cache(self, cloudpc_service, cache_service, user, cloudpc_payload):
        """Test deletion removes the row and the cached detail."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        await cloudpc_service.delete(user.id, created["id"])

        assert await cache_service.get_cloudpc_detail(created["id"]) is None
        with pytest.raises(ResourceNotFoundError):
            await cloudpc_service.get(user.id, created["id"])

    async def test_delete_cancels_pending_transition(self, cloudpc_service, lifecycle, user, cloudpc_payload):
        """Test deleting a starting machine cancels its completion."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)
        await cloudpc_service.transition(user.id, created["id"], LifecycleAction.START)

        await cloudpc_service.delete(user.id, created["id"])

        assert not lifecycle.is_pending(created["id"])

    async def test_transition_returns_interim_state(self, cloudpc_service, user, cloudpc_payload):
        """Test start answers with the starting record and a message."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        result = await cloudpc_service.transition(user.id, created["id"], LifecycleAction.START)

        assert result["cloudPC"]["status"] == "starting"
        assert "starting" in result["message"]

    async def test_foreign_cloudpc_not_found(self, cloudpc_service, user, admin, cloudpc_payload):
        """Test mutations on another user's machine are 404s."""
        created = await cloudpc_service.create(user.id, cloudpc_payload)

        with pytest.raises(ResourceNotFoundError):
            await cloudpc_service.update(admin.id, created["id"], {"name": "mine"})
        with pytest.raises(ResourceNotFoundError):
            await cloudpc_service.transition(admin.id, created["id"], LifecycleAction.START)
