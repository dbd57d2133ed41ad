#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
cloud PC management backend. All configuration is centralized here so that
the cache layer, the WebSocket registry, the lifecycle scheduler and the HTTP
API read the same values.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped views (settings.redis, settings.auth, ...) for readability
- Easy testing with override mechanisms

Author: System Architect
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the key-value cache store.

    STAGE-0.1: Redis connection configuration

    Reconnection follows a linear backoff of attempt * 50ms capped at 2s,
    giving up after REDIS_RECONNECT_ATTEMPTS tries.
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_RECONNECT_ATTEMPTS: int = Field(default=10, description="Reconnect attempts before giving up")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class DatabaseSettings(BaseSettings):
    """
    Record store configuration.

    STAGE-0.2: Database connection configuration
    """

    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./cloudpc.db",
        description="SQLAlchemy async database URL"
    )
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL statements")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class AuthSettings(BaseSettings):
    """
    Authentication configuration (JWT + account lockout).

    STAGE-A: Authentication thresholds
    """

    JWT_SECRET: str = Field(default="change-me-in-production", description="HS256 signing secret")
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT signing algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=10080, description="Access token lifetime (7 days)")
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=30, description="Refresh token lifetime")
    MAX_LOGIN_ATTEMPTS: int = Field(default=5, description="Failed logins before lockout")
    ACCOUNT_LOCK_MINUTES: int = Field(default=120, description="Lockout duration (2 hours)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Caching configuration.

    STAGE-2: Cache behaviour toggles

    Per-category TTLs live in the cache strategy table, not here.
    """

    ENABLE_CACHING: bool = Field(default=True, description="Enable the cache layer")
    CACHE_WARMUP_ON_STARTUP: bool = Field(default=True, description="Warm the cache at startup")
    CACHE_MONITOR_TTL: int = Field(default=60, description="Monitor data cache TTL")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class WebSocketSettings(BaseSettings):
    """
    WebSocket connection registry configuration.

    STAGE-WS: Liveness and session retention
    """

    WS_HEARTBEAT_INTERVAL: float = Field(default=30.0, description="Liveness sweep interval (seconds)")
    WS_SESSION_RETENTION: float = Field(default=3600.0, description="Inactive session retention (seconds)")
    WS_SESSION_SWEEP_INTERVAL: float = Field(default=300.0, description="Session sweep interval (seconds)")
    WS_HISTORY_LIMIT: int = Field(default=100, description="Terminal history entries kept per session")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LifecycleSettings(BaseSettings):
    """
    Simulated lifecycle transition delays.

    STAGE-LC: Transition timers
    """

    LIFECYCLE_START_DELAY: float = Field(default=3.0, description="starting -> running delay")
    LIFECYCLE_STOP_DELAY: float = Field(default=2.0, description="stopping -> stopped delay")
    LIFECYCLE_RESTART_DELAY: float = Field(default=5.0, description="restarting -> running delay")
    CLOUDPC_BASE_URL: str = Field(
        default="https://cloudpc.example.com",
        description="Base URL used for connection endpoints"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limiting configuration.

    STAGE-3: Rate limiting thresholds

    Architectural Decision: slowapi with a moving window
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_DEFAULT: str = Field(default="100/15minutes", description="General API limit per client")
    RATE_LIMIT_AUTH: str = Field(default="5/15minutes", description="Auth endpoint limit per client")
    RATE_LIMIT_STORAGE_URI: str = Field(default="memory://", description="slowapi storage backend")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="Cloud PC Manager", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=5000, description="API port")
    API_BASE_PATH: str = Field(default="/api", description="Prefix for REST routes")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from cloudpc.core.config.settings import get_settings

        settings = get_settings()
        redis_host = settings.redis.REDIS_HOST
        secret = settings.auth.JWT_SECRET

    Fields are declared flat so a single .env file configures everything;
    the grouped views below are built on demand.
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_RECONNECT_ATTEMPTS: int = Field(default=10, description="Reconnect attempts before giving up")

    # Database settings
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./cloudpc.db",
        description="SQLAlchemy async database URL"
    )
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL statements")

    # Auth settings
    JWT_SECRET: str = Field(default="change-me-in-production", description="HS256 signing secret")
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT signing algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=10080, description="Access token lifetime (7 days)")
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=30, description="Refresh token lifetime")
    MAX_LOGIN_ATTEMPTS: int = Field(default=5, description="Failed logins before lockout")
    ACCOUNT_LOCK_MINUTES: int = Field(default=120, description="Lockout duration (2 hours)")

    # Cache settings
    ENABLE_CACHING: bool = Field(default=True, description="Enable the cache layer")
    CACHE_WARMUP_ON_STARTUP: bool = Field(default=True, description="Warm the cache at startup")
    CACHE_MONITOR_TTL: int = Field(default=60, description="Monitor data cache TTL")

    # WebSocket settings
    WS_HEARTBEAT_INTERVAL: float = Field(default=30.0, description="Liveness sweep interval (seconds)")
    WS_SESSION_RETENTION: float = Field(default=3600.0, description="Inactive session retention (seconds)")
    WS_SESSION_SWEEP_INTERVAL: float = Field(default=300.0, description="Session sweep interval (seconds)")
    WS_HISTORY_LIMIT: int = Field(default=100, description="Terminal history entries kept per session")

    # Lifecycle settings
    LIFECYCLE_START_DELAY: float = Field(default=3.0, description="starting -> running delay")
    LIFECYCLE_STOP_DELAY: float = Field(default=2.0, description="stopping -> stopped delay")
    LIFECYCLE_RESTART_DELAY: float = Field(default=5.0, description="restarting -> running delay")
    CLOUDPC_BASE_URL: str = Field(
        default="https://cloudpc.example.com",
        description="Base URL used for connection endpoints"
    )

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_DEFAULT: str = Field(default="100/15minutes", description="General API limit per client")
    RATE_LIMIT_AUTH: str = Field(default="5/15minutes", description="Auth endpoint limit per client")
    RATE_LIMIT_STORAGE_URI: str = Field(default="memory://", description="slowapi storage backend")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="Cloud PC Manager", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=5000, description="API port")
    API_BASE_PATH: str = Field(default="/api", description="Prefix for REST routes")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration views
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_RECONNECT_ATTEMPTS=self.REDIS_RECONNECT_ATTEMPTS,
        )

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return DatabaseSettings(
            DATABASE_URL=self.DATABASE_URL,
            DATABASE_ECHO=self.DATABASE_ECHO,
        )

    @property
    def auth(self) -> AuthSettings:
        """Get authentication settings."""
        return AuthSettings(
            JWT_SECRET=self.JWT_SECRET,
            JWT_ALGORITHM=self.JWT_ALGORITHM,
            JWT_EXPIRE_MINUTES=self.JWT_EXPIRE_MINUTES,
            REFRESH_TOKEN_EXPIRE_DAYS=self.REFRESH_TOKEN_EXPIRE_DAYS,
            MAX_LOGIN_ATTEMPTS=self.MAX_LOGIN_ATTEMPTS,
            ACCOUNT_LOCK_MINUTES=self.ACCOUNT_LOCK_MINUTES,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            ENABLE_CACHING=self.ENABLE_CACHING,
            CACHE_WARMUP_ON_STARTUP=self.CACHE_WARMUP_ON_STARTUP,
            CACHE_MONITOR_TTL=self.CACHE_MONITOR_TTL,
        )

    @property
    def websocket(self) -> WebSocketSettings:
        """Get WebSocket settings."""
        return WebSocketSettings(
            WS_HEARTBEAT_INTERVAL=self.WS_HEARTBEAT_INTERVAL,
            WS_SESSION_RETENTION=self.WS_SESSION_RETENTION,
            WS_SESSION_SWEEP_INTERVAL=self.WS_SESSION_SWEEP_INTERVAL,
            WS_HISTORY_LIMIT=self.WS_HISTORY_LIMIT,
        )

    @property
    def lifecycle(self) -> LifecycleSettings:
        """Get lifecycle transition settings."""
        return LifecycleSettings(
            LIFECYCLE_START_DELAY=self.LIFECYCLE_START_DELAY,
            LIFECYCLE_STOP_DELAY=self.LIFECYCLE_STOP_DELAY,
            LIFECYCLE_RESTART_DELAY=self.LIFECYCLE_RESTART_DELAY,
            CLOUDPC_BASE_URL=self.CLOUDPC_BASE_URL,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_ENABLED=self.RATE_LIMIT_ENABLED,
            RATE_LIMIT_DEFAULT=self.RATE_LIMIT_DEFAULT,
            RATE_LIMIT_AUTH=self.RATE_LIMIT_AUTH,
            RATE_LIMIT_STORAGE_URI=self.RATE_LIMIT_STORAGE_URI,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            DEBUG=self.DEBUG,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            API_BASE_PATH=self.API_BASE_PATH,
            CORS_ORIGINS=self.CORS_ORIGINS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the process-wide settings instance.

    Settings are read once; call reload_settings() after changing the
    environment (tests do this).
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read settings from the environment."""
    global _settings
    _settings = Settings()
    return _settings
