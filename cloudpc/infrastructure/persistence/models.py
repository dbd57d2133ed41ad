"""SQLModel tables for user and cloud PC records."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from sqlalchemy import func
from sqlmodel import JSON, Column, DateTime, Field, SQLModel

from cloudpc.core.config.constants import (
    MAX_CLOUDPC_LOGS,
    CloudPCStatus,
    Currency,
    Location,
    LogLevel,
    UserRole,
    UserStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def new_id() -> str:
    return uuid.uuid4().hex


# Hardware tiers offered at creation time
AVAILABLE_CONFIGS: list[dict[str, Any]] = [
    {
        "name": "basic",
        "cpu": 2,
        "memory": 4,
        "storage": 50,
        "hourly": 0.5,
        "os": ["Windows 10", "Ubuntu 20.04"],
    },
    {
        "name": "standard",
        "cpu": 4,
        "memory": 8,
        "storage": 100,
        "hourly": 1.0,
        "os": ["Windows 10", "Windows 11", "Ubuntu 20.04", "Ubuntu 22.04"],
    },
    {
        "name": "performance",
        "cpu": 8,
        "memory": 16,
        "storage": 200,
        "hourly": 2.0,
        "os": ["Windows 11", "Ubuntu 22.04", "CentOS 8"],
    },
    {
        "name": "enterprise",
        "cpu": 16,
        "memory": 32,
        "storage": 500,
        "hourly": 4.0,
        "os": ["Windows 11", "Ubuntu 22.04", "CentOS 8", "Debian 11"],
    },
]

# Every tier prices at 0.25 per vCPU-hour
HOURLY_RATE_PER_CPU = 0.25


class User(SQLModel, table=True):
    """User account."""

    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    name: str = Field(max_length=50)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)
    phone: Optional[str] = Field(default=None, max_length=20)
    avatar: str = Field(default="", max_length=500)
    role: str = Field(default=UserRole.USER.value, max_length=20)
    status: str = Field(default=UserStatus.ACTIVE.value, max_length=20, index=True)
    is_active: bool = Field(default=True)
    login_attempts: int = Field(default=0)
    lock_until: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    last_login_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    refresh_tokens: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now(), index=True)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )

    def set_password(self, password: str) -> None:
        """Hash and set password using bcrypt."""
        salt = bcrypt.gensalt(rounds=12)
        self.password_hash = bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    @property
    def is_locked(self) -> bool:
        lock_until = as_utc(self.lock_until)
        return bool(lock_until and lock_until > utcnow())

    def register_failed_login(self, max_attempts: int, lock_minutes: int) -> None:
        """
        Count a failed login; lock the account on reaching ``max_attempts``.

        An expired lock restarts the count from one.
        """
        lock_until = as_utc(self.lock_until)
        if lock_until and lock_until <= utcnow():
            self.login_attempts = 1
            self.lock_until = None
            return

        self.login_attempts += 1
        if self.login_attempts >= max_attempts and not self.is_locked:
            self.lock_until = utcnow() + timedelta(minutes=lock_minutes)

    def reset_login_attempts(self) -> None:
        self.login_attempts = 0
        self.lock_until = None

    @classmethod
    def create(
        cls,
        name: str,
        email: str,
        password: str,
        phone: str | None = None,
        role: UserRole = UserRole.USER,
    ) -> "User":
        """Factory method to create a user with hashed password."""
        user = cls(
            name=name.strip(),
            email=email.lower().strip(),
            password_hash="",
            phone=phone,
            role=role.value,
        )
        user.set_password(password)
        return user

    def to_public(self) -> dict[str, Any]:
        """Serializable view without credentials or lockout state."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "avatar": self.avatar,
            "role": self.role,
            "status": self.status,
            "isActive": self.is_active,
            "lastLoginAt": _iso(self.last_login_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class CloudPC(SQLModel, table=True):
    """A simulated cloud PC owned by one user."""

    __tablename__ = "cloudpcs"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    name: str = Field(max_length=50)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=32)
    status: str = Field(default=CloudPCStatus.STOPPED.value, index=True, max_length=20)
    os: str = Field(max_length=20)
    cpu: int
    memory: int
    storage: int
    ip: str = Field(max_length=15)
    port: int
    bandwidth: int = Field(default=100)
    location: str = Field(default=Location.BEIJING.value, max_length=20)
    pricing: dict[str, Any] = Field(
        default_factory=lambda: {"hourly": 0.0, "currency": Currency.CNY.value},
        sa_column=Column(JSON)
    )
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    description: Optional[str] = Field(default=None, max_length=500)
    connection_info: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    logs: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    snapshots: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now(), index=True)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )

    @property
    def runtime(self) -> int:
        """Seconds since the last status change while running, else 0."""
        if self.status != CloudPCStatus.RUNNING.value:
            return 0
        updated = as_utc(self.updated_at) or utcnow()
        return max(0, int((utcnow() - updated).total_seconds()))

    @property
    def estimated_cost(self) -> str:
        hourly = float(self.pricing.get("hourly", 0))
        return f"{hourly * self.runtime / 3600:.4f}"

    def add_log(self, level: LogLevel, message: str, source: str = "user") -> None:
        """Append a log entry, keeping the most recent MAX_CLOUDPC_LOGS."""
        entry = {
            "level": level.value,
            "message": message,
            "source": source,
            "timestamp": utcnow().isoformat(),
        }
        # Reassign so SQLAlchemy sees the JSON column change
        self.logs = [*self.logs, entry][-MAX_CLOUDPC_LOGS:]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "user": self.user_id,
            "status": self.status,
            "os": self.os,
            "cpu": self.cpu,
            "memory": self.memory,
            "storage": self.storage,
            "ip": self.ip,
            "port": self.port,
            "bandwidth": self.bandwidth,
            "location": self.location,
            "pricing": self.pricing,
            "tags": self.tags,
            "description": self.description,
            "connectionInfo": self.connection_info,
            "logs": self.logs,
            "snapshots": self.snapshots,
            "runtime": self.runtime,
            "estimatedCost": self.estimated_cost,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
