"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import pytest

from cloudpc.core.config.settings import Settings
from tests.test_fixtures import ApiTestFactory, FakeSocket, InMemoryRedis


# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode (see pyproject.toml), so async tests and
# async fixtures need no explicit marker


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """
    Real Settings tuned for tests.

    In-memory SQLite, no rate limiting, no warmup and short lifecycle delays
    so transitions complete within a test.
    """
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        JWT_SECRET="test-secret",
        RATE_LIMIT_ENABLED=False,
        CACHE_WARMUP_ON_STARTUP=False,
        LIFECYCLE_START_DELAY=0.05,
        LIFECYCLE_STOP_DELAY=0.05,
        LIFECYCLE_RESTART_DELAY=0.05,
        REDIS_RECONNECT_ATTEMPTS=1,
        LOG_LEVEL="WARNING",
        LOG_FORMAT="console",
    )


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
def in_memory_redis():
    """
    In-memory Redis client stub for testing.

    Set ``fail = True`` on it to make every command raise ConnectionError.
    """
    return InMemoryRedis()


@pytest.fixture
async def redis_client(test_settings, in_memory_redis):
    """RedisClient connected to the in-memory double."""
    from cloudpc.infrastructure.cache.redis_client import RedisClient

    client = RedisClient(test_settings, client=in_memory_redis)
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
def metrics():
    """Fresh MetricsCollector with its own registry."""
    from cloudpc.infrastructure.monitoring.metrics_collector import MetricsCollector

    return MetricsCollector(app_name="Cloud PC Test", version="1.0.0-test")


@pytest.fixture
def cache_service(redis_client, metrics):
    """CacheService over the in-memory store."""
    from cloudpc.infrastructure.cache.cache_service import CacheService

    return CacheService(redis_client, metrics=metrics)


# ============================================================================
# WebSocket Fixtures
# ============================================================================


@pytest.fixture
def fake_socket():
    """A fresh FakeSocket."""
    return FakeSocket()


@pytest.fixture
def registry(test_settings, metrics):
    """ConnectionRegistry without background sweeps."""
    from cloudpc.realtime import ConnectionRegistry

    return ConnectionRegistry(test_settings, metrics=metrics)


# ============================================================================
# Persistence Fixtures
# ============================================================================


@pytest.fixture
async def database(test_settings):
    """Started in-memory database, disposed after the test."""
    from cloudpc.infrastructure.persistence import Database

    db = Database(test_settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def user_repository(database):
    from cloudpc.infrastructure.persistence import UserRepository

    return UserRepository(database)


@pytest.fixture
def cloudpc_repository(database):
    from cloudpc.infrastructure.persistence import CloudPCRepository

    return CloudPCRepository(database)


@pytest.fixture
async def user(user_repository):
    """A persisted regular user with password ``secret123``."""
    from cloudpc.infrastructure.persistence import User

    return await user_repository.create(User.create(name="Ada Lovelace", email="ada@example.com", password="secret123"))


@pytest.fixture
async def admin(user_repository):
    """A persisted admin with password ``admin123``."""
    from cloudpc.core.config.constants import UserRole
    from cloudpc.infrastructure.persistence import User

    return await user_repository.create(
        User.create(name="Grace Hopper", email="grace@example.com", password="admin123", role=UserRole.ADMIN)
    )


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def lifecycle(cloudpc_repository, cache_service, test_settings, registry, metrics):
    from cloudpc.application.services import LifecycleScheduler

    return LifecycleScheduler(cloudpc_repository, cache_service, test_settings, registry=registry, metrics=metrics)


@pytest.fixture
async def cloudpc_service(cloudpc_repository, cache_service, lifecycle, test_settings):
    from cloudpc.application.services import CloudPCService

    yield CloudPCService(cloudpc_repository, cache_service, lifecycle, test_settings)
    await lifecycle.shutdown()


@pytest.fixture
def auth_service(user_repository, cache_service, test_settings):
    from cloudpc.application.services import AuthService

    return AuthService(user_repository, cache_service, test_settings)


@pytest.fixture
def user_service(user_repository, cloudpc_repository, cache_service, lifecycle, cloudpc_service):
    from cloudpc.application.services import UserService

    return UserService(user_repository, cloudpc_repository, cache_service, lifecycle, cloudpc_service)


@pytest.fixture
def cloudpc_payload():
    """Valid creation payload as the API layer hands it to the service."""
    return {
        "name": "dev-box",
        "os": "Ubuntu 22.04",
        "cpu": 4,
        "memory": 8,
        "storage": 100,
    }


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(test_settings, in_memory_redis):
    """FastAPI app wired to the in-memory Redis double."""
    from cloudpc.application.app import create_app

    return create_app(test_settings, redis_client=in_memory_redis)


@pytest.fixture
def client(app):
    """
    TestClient with the lifespan running.

    ``client.portal.call(fn, *args)`` runs a coroutine function on the app's
    event loop, for direct access to ``app.state`` services.
    """
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def registered(client):
    """A user registered through the API."""
    return ApiTestFactory.register(client)


@pytest.fixture
def headers(registered):
    """Bearer headers for ``registered``."""
    return ApiTestFactory.auth_headers(registered["token"])


@pytest.fixture
def admin_headers(client, app):
    """Bearer headers for a user promoted to admin directly in the repository."""
    data = ApiTestFactory.register(client, name="Grace Hopper", email="grace@example.com", password="admin123")

    async def promote():
        users = app.state.users
        record = await users.get(data["user"]["id"])
        record.role = "admin"
        await users.update(record)

    client.portal.call(promote)
    return ApiTestFactory.auth_headers(data["token"])
