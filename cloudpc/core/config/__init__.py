"""
Configuration Module

Settings (pydantic-settings) and system-wide constants.
"""

from .constants import (
    CloudPCStatus,
    LifecycleAction,
    Stage,
    UserRole,
    UserStatus,
    WSMessageType,
)
from .settings import Settings, get_settings, reload_settings

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "Stage",
    "CloudPCStatus",
    "LifecycleAction",
    "UserRole",
    "UserStatus",
    "WSMessageType",
]
