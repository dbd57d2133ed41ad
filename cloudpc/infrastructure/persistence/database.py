"""
Async database service with SQLModel and SQLAlchemy 2.0.

Records are stored as rows with JSON columns for nested sub-documents
(pricing, logs, snapshots, refresh tokens), which keeps the document shape
of each record while running on any SQLAlchemy async driver.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from cloudpc.core.config.settings import Settings, get_settings
from cloudpc.core.exceptions import ConfigurationError
from cloudpc.core.logging.logger import get_logger

# Register tables on SQLModel.metadata before create_all runs
from cloudpc.infrastructure.persistence import models  # noqa: F401

logger = get_logger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


class Database:
    """Async database service."""

    def __init__(self, settings: Settings | None = None, url: str | None = None):
        self.settings = settings or get_settings()
        self.url = url or self.settings.database.DATABASE_URL
        self.engine: AsyncEngine | None = None
        self.async_session: async_sessionmaker[AsyncSession] | None = None

    async def startup(self) -> None:
        """Create the engine, the session factory and missing tables."""
        kwargs = {"echo": self.settings.database.DATABASE_ECHO, "future": True}
        if _is_memory_sqlite(self.url):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})

        try:
            self.engine = create_async_engine(self.url, **kwargs)
            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error("Database startup failed", error=str(e))
            raise ConfigurationError.from_exception(e, message="Database startup failed", url=self.url)

        logger.info("Database initialized successfully", url=self.url.split("@")[-1])

    async def shutdown(self) -> None:
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """True when a trivial query succeeds."""
        if not self.engine:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("Database ping failed", error=str(e))
            return False
