"""
Record repositories.

Thin query layer over the Database session factory. Repositories return
model instances (detached; the session factory uses expire_on_commit=False)
and never touch the cache: cache bookkeeping belongs to the services.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, or_
from sqlmodel import col, select

from cloudpc.core.config.constants import LogLevel
from cloudpc.core.logging.logger import get_logger
from cloudpc.infrastructure.persistence.database import Database
from cloudpc.infrastructure.persistence.models import CloudPC, User, utcnow

logger = get_logger(__name__)

# API sort names -> model attributes
SORT_FIELDS = {
    "createdAt": "created_at",
    "name": "name",
    "status": "status",
    "email": "email",
}


def _order_by(model, sort: str):
    """Translate ``-createdAt`` style sort strings into an ORDER BY clause."""
    descending = sort.startswith("-")
    field = SORT_FIELDS.get(sort.lstrip("-"), "created_at")
    column = col(getattr(model, field))
    return column.desc() if descending else column.asc()


class UserRepository:
    """Queries over the users table."""

    def __init__(self, database: Database):
        self._db = database

    async def create(self, user: User) -> User:
        async with self._db.get_session() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    async def get(self, user_id: str) -> User | None:
        async with self._db.get_session() as session:
            return await session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        async with self._db.get_session() as session:
            result = await session.execute(
                select(User).where(User.email == email.lower().strip())
            )
            return result.scalars().first()

    async def update(self, user: User) -> User:
        """Persist changes made to a detached instance."""
        user.updated_at = utcnow()
        async with self._db.get_session() as session:
            merged = await session.merge(user)
            await session.commit()
            await session.refresh(merged)
        return merged

    async def delete(self, user_id: str) -> bool:
        async with self._db.get_session() as session:
            user = await session.get(User, user_id)
            if user is None:
                return False
            await session.delete(user)
            await session.commit()
        logger.info("User record deleted", user_id=user_id)
        return True

    async def list(
        self,
        page: int = 1,
        limit: int = 10,
        sort: str = "-createdAt",
        status: str | None = None,
        role: str | None = None,
        search: str | None = None,
    ) -> tuple[list[User], int]:
        """
        One page of users plus the total number of matches.
        """
        filters = []
        if status:
            filters.append(User.status == status)
        if role:
            filters.append(User.role == role)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(col(User.name).ilike(pattern), col(User.email).ilike(pattern)))

        async with self._db.get_session() as session:
            query = (
                select(User)
                .where(*filters)
                .order_by(_order_by(User, sort))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            users = list((await session.execute(query)).scalars().all())
            total = (await session.execute(
                select(func.count()).select_from(User).where(*filters)
            )).scalar_one()
        return users, total

    async def count(self) -> int:
        async with self._db.get_session() as session:
            return (await session.execute(select(func.count()).select_from(User))).scalar_one()

    async def count_by(self, field: str) -> dict[str, int]:
        """Group counts by ``status`` or ``role``."""
        column = col(getattr(User, field))
        async with self._db.get_session() as session:
            rows = (await session.execute(
                select(column, func.count()).group_by(column)
            )).all()
        return {value: count for value, count in rows}

    async def count_created_since(self, since: datetime) -> int:
        async with self._db.get_session() as session:
            return (await session.execute(
                select(func.count()).select_from(User).where(col(User.created_at) >= since)
            )).scalar_one()


class CloudPCRepository:
    """Queries over the cloudpcs table."""

    def __init__(self, database: Database):
        self._db = database

    async def create(self, cloudpc: CloudPC) -> CloudPC:
        async with self._db.get_session() as session:
            session.add(cloudpc)
            await session.commit()
            await session.refresh(cloudpc)
        return cloudpc

    async def get(self, cloudpc_id: str) -> CloudPC | None:
        async with self._db.get_session() as session:
            return await session.get(CloudPC, cloudpc_id)

    async def get_owned(self, cloudpc_id: str, user_id: str) -> CloudPC | None:
        """The record only if ``user_id`` owns it."""
        async with self._db.get_session() as session:
            result = await session.execute(
                select(CloudPC).where(CloudPC.id == cloudpc_id, CloudPC.user_id == user_id)
            )
            return result.scalars().first()

    async def update(self, cloudpc: CloudPC) -> CloudPC:
        cloudpc.updated_at = utcnow()
        async with self._db.get_session() as session:
            merged = await session.merge(cloudpc)
            await session.commit()
            await session.refresh(merged)
        return merged

    async def update_fields(
        self,
        cloudpc_id: str,
        log: tuple[LogLevel, str] | None = None,
        **fields: Any,
    ) -> CloudPC | None:
        """
        Apply ``fields`` (and optionally append a log entry) to a fresh copy
        of the record in one transaction.

        Returns:
            The updated record, or None if it no longer exists
        """
        async with self._db.get_session() as session:
            cloudpc = await session.get(CloudPC, cloudpc_id)
            if cloudpc is None:
                return None
            for name, value in fields.items():
                setattr(cloudpc, name, value)
            if log:
                cloudpc.add_log(*log, source="system")
            cloudpc.updated_at = utcnow()
            await session.commit()
            await session.refresh(cloudpc)
            return cloudpc

    async def add_log(
        self, cloudpc_id: str, level: LogLevel, message: str, source: str = "system"
    ) -> CloudPC | None:
        async with self._db.get_session() as session:
            cloudpc = await session.get(CloudPC, cloudpc_id)
            if cloudpc is None:
                return None
            cloudpc.add_log(level, message, source)
            await session.commit()
            await session.refresh(cloudpc)
            return cloudpc

    async def all_for_user(self, user_id: str) -> list[CloudPC]:
        async with self._db.get_session() as session:
            result = await session.execute(select(CloudPC).where(CloudPC.user_id == user_id))
            return list(result.scalars().all())

    async def delete(self, cloudpc_id: str) -> bool:
        async with self._db.get_session() as session:
            cloudpc = await session.get(CloudPC, cloudpc_id)
            if cloudpc is None:
                return False
            await session.delete(cloudpc)
            await session.commit()
        logger.info("Cloud PC record deleted", cloudpc_id=cloudpc_id)
        return True

    async def list(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        sort: str = "-createdAt",
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[CloudPC], int]:
        filters = [CloudPC.user_id == user_id]
        if status:
            filters.append(CloudPC.status == status)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(col(CloudPC.name).ilike(pattern), col(CloudPC.description).ilike(pattern)))

        async with self._db.get_session() as session:
            query = (
                select(CloudPC)
                .where(*filters)
                .order_by(_order_by(CloudPC, sort))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            items = list((await session.execute(query)).scalars().all())
            total = (await session.execute(
                select(func.count()).select_from(CloudPC).where(*filters)
            )).scalar_one()
        return items, total

    async def status_counts(self, user_id: str | None = None) -> dict[str, int]:
        """Status distribution, for one owner or across all records."""
        query = select(CloudPC.status, func.count()).group_by(CloudPC.status)
        if user_id:
            query = query.where(CloudPC.user_id == user_id)
        async with self._db.get_session() as session:
            rows = (await session.execute(query)).all()
        return {status: count for status, count in rows}

    async def count(self, user_id: str | None = None) -> int:
        query = select(func.count()).select_from(CloudPC)
        if user_id:
            query = query.where(CloudPC.user_id == user_id)
        async with self._db.get_session() as session:
            return (await session.execute(query)).scalar_one()

    async def used_endpoints(self) -> set[tuple[str, int]]:
        """(ip, port) pairs already assigned."""
        async with self._db.get_session() as session:
            rows = (await session.execute(select(CloudPC.ip, CloudPC.port))).all()
        return {(ip, port) for ip, port in rows}
