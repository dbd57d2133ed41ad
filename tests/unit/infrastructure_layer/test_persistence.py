"""
Unit Tests for Persistence

Tests the SQLModel records and repositories against in-memory SQLite.
"""

from datetime import timedelta

import pytest

from cloudpc.core.config.constants import MAX_CLOUDPC_LOGS, LogLevel
from cloudpc.infrastructure.persistence.models import CloudPC, User, as_utc, utcnow


def _cloudpc(user_id: str, name: str = "dev-box", **overrides) -> CloudPC:
    fields = {
        "name": name,
        "user_id": user_id,
        "os": "Ubuntu 22.04",
        "cpu": 4,
        "memory": 8,
        "storage": 100,
        "ip": "10.0.1.2",
        "port": 40000,
        "pricing": {"hourly": 1.0, "currency": "CNY"},
    }
    fields.update(overrides)
    return CloudPC(**fields)


@pytest.mark.unit
class TestUserModel:
    """Test password handling and lockout on the User record."""

    def test_password_is_hashed(self):
        """Test the password is stored as a bcrypt hash."""
        user = User.create(name=" Ada ", email=" ADA@Example.com ", password="secret123")

        assert user.password_hash.startswith("$2")
        assert user.verify_password("secret123")
        assert not user.verify_password("wrong")
        assert user.email == "ada@example.com"
        assert user.name == "Ada"

    def test_lock_after_max_attempts(self):
        """Test the fifth consecutive failure locks the account."""
        user = User.create(name="Ada", email="ada@example.com", password="secret123")

        for _ in range(4):
            user.register_failed_login(max_attempts=5, lock_minutes=120)
        assert not user.is_locked

        user.register_failed_login(max_attempts=5, lock_minutes=120)
        assert user.is_locked
        assert user.login_attempts == 5

    def test_expired_lock_restarts_count(self):
        """Test a failure after the lock expired counts from one."""
        user = User.create(name="Ada", email="ada@example.com", password="secret123")
        user.login_attempts = 5
        user.lock_until = utcnow() - timedelta(minutes=1)

        user.register_failed_login(max_attempts=5, lock_minutes=120)

        assert user.login_attempts == 1
        assert user.lock_until is None

    def test_public_view_hides_credentials(self):
        """Test to_public exposes no password or lockout state."""
        public = User.create(name="Ada", email="ada@example.com", password="secret123").to_public()

        assert "password_hash" not in public
        assert "login_attempts" not in public
        assert public["role"] == "user"


@pytest.mark.unit
class TestCloudPCModel:
    """Test derived fields and capped logs."""

    def test_log_is_capped(self):
        """Test appending past the cap evicts the oldest entries."""
        cloudpc = _cloudpc("u1")

        for i in range(MAX_CLOUDPC_LOGS + 5):
            cloudpc.add_log(LogLevel.INFO, f"entry {i}")

        assert len(cloudpc.logs) == MAX_CLOUDPC_LOGS
        assert cloudpc.logs[0]["message"] == "entry 5"

    def test_runtime_zero_unless_running(self):
        """Test stopped machines accrue no runtime or cost."""
        cloudpc = _cloudpc("u1")

        assert cloudpc.runtime == 0
        assert cloudpc.estimated_cost == "0.0000"

    def test_runtime_and_cost_while_running(self):
        """Test cost is hourly price times hours running."""
        cloudpc = _cloudpc("u1", status="running", updated_at=utcnow() - timedelta(hours=2))

        assert 7199 <= cloudpc.runtime <= 7201
        assert cloudpc.estimated_cost in ("1.9997", "1.9999", "2.0000", "2.0003")

    def test_as_utc_marks_naive_values(self):
        """Test naive datetimes from SQLite are read as UTC."""
        naive = utcnow().replace(tzinfo=None)
        assert as_utc(naive).tzinfo is not None
        assert as_utc(None) is None


@pytest.mark.unit
class TestUserRepository:
    """Test user queries."""

    async def test_create_and_lookup(self, user_repository, user):
        """Test a user can be read back by id and email."""
        assert (await user_repository.get(user.id)).email == "ada@example.com"
        assert (await user_repository.get_by_email("ADA@example.com")).id == user.id

    async def test_update_persists(self, user_repository, user):
        """Test changes on a detached instance are saved."""
        user.name = "Countess"
        await user_repository.update(user)

        assert (await user_repository.get(user.id)).name == "Countess"

    async def test_list_filters_and_counts(self, user_repository, user, admin):
        """Test role filtering, search and status grouping."""
        admins, total = await user_repository.list(role="admin")
        assert total == 1
        assert admins[0].id == admin.id

        found, total = await user_repository.list(search="lovelace")
        assert total == 1
        assert found[0].id == user.id

        assert await user_repository.count_by("status") == {"active": 2}
        assert await user_repository.count_created_since(utcnow() - timedelta(days=1)) == 2

    async def test_delete(self, user_repository, user):
        """Test delete removes the row and reports missing ids."""
        assert await user_repository.delete(user.id)
        assert await user_repository.get(user.id) is None
        assert not await user_repository.delete(user.id)


@pytest.mark.unit
class TestCloudPCRepository:
    """Test cloud PC queries."""

    async def test_get_owned(self, cloudpc_repository, user, admin):
        """Test another user's id never resolves the record."""
        cloudpc = await cloudpc_repository.create(_cloudpc(user.id))

        assert (await cloudpc_repository.get_owned(cloudpc.id, user.id)).id == cloudpc.id
        assert await cloudpc_repository.get_owned(cloudpc.id, admin.id) is None

    async def test_update_fields_appends_log(self, cloudpc_repository, user):
        """Test fields and a system log entry are written together."""
        cloudpc = await cloudpc_repository.create(_cloudpc(user.id))

        updated = await cloudpc_repository.update_fields(
            cloudpc.id, log=(LogLevel.INFO, "start requested"), status="starting"
        )

        assert updated.status == "starting"
        assert updated.logs[-1]["message"] == "start requested"
        assert updated.logs[-1]["source"] == "system"

    async def test_update_fields_missing_record(self, cloudpc_repository):
        """Test updating a deleted record returns None instead of creating it."""
        assert await cloudpc_repository.update_fields("missing", status="running") is None

    async def test_list_paginates_and_filters(self, cloudpc_repository, user):
        """Test page size, status filter and name sort."""
        for i, status in enumerate(["stopped", "running", "stopped"]):
            await cloudpc_repository.create(_cloudpc(user.id, name=f"box-{i}", status=status, port=40000 + i))

        page, total = await cloudpc_repository.list(user.id, page=1, limit=2, sort="name")
        assert total == 3
        assert [c.name for c in page] == ["box-0", "box-1"]

        running, total = await cloudpc_repository.list(user.id, status="running")
        assert total == 1
        assert running[0].name == "box-1"

        assert await cloudpc_repository.status_counts(user.id) == {"stopped": 2, "running": 1}
        assert await cloudpc_repository.count(user.id) == 3

    async def test_used_endpoints(self, cloudpc_repository, user):
        """Test assigned (ip, port) pairs are reported."""
        await cloudpc_repository.create(_cloudpc(user.id))

        assert await cloudpc_repository.used_endpoints() == {("10.0.1.2", 40000)}

    async def test_json_columns_round_trip(self, cloudpc_repository, user):
        """Test nested pricing and tags survive a reload."""
        cloudpc = await cloudpc_repository.create(_cloudpc(user.id, tags=["dev", "gpu"]))

        reloaded = await cloudpc_repository.get(cloudpc.id)

        assert reloaded.pricing == {"hourly": 1.0, "currency": "CNY"}
        assert reloaded.tags == ["dev", "gpu"]
