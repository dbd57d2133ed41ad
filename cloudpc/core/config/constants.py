"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the cloud PC management backend.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
- str-based enums serialize transparently into JSON and the database
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` field of structured logs.

    Format: {PREFIX}.{SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    REQUEST = "1.0_REQUEST"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    CACHE_WRITE = "2.1_CACHE_WRITE"
    CACHE_INVALIDATION = "2.2_CACHE_INVALIDATION"
    RATE_LIMITING = "3.0_RATE_LIMITING"
    AUTHENTICATION = "A.0_AUTHENTICATION"
    LIFECYCLE = "LC.0_LIFECYCLE_TRANSITION"
    WEBSOCKET = "WS.0_WEBSOCKET"
    TERMINAL = "WS.1_TERMINAL"
    LIVENESS = "WS.2_LIVENESS_SWEEP"
    HEALTH = "H.0_HEALTH_CHECK"
    SHUTDOWN = "9.0_SHUTDOWN"


# ============================================================================
# Cloud PC Enumerations
# ============================================================================


class CloudPCStatus(str, Enum):
    """
    Cloud PC lifecycle states.

    STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED
    RUNNING -> RESTARTING -> RUNNING
    ERROR is terminal until an operator intervenes.
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    RESTARTING = "restarting"
    ERROR = "error"


class LifecycleAction(str, Enum):
    """Actions accepted by the lifecycle scheduler."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"


class OperatingSystem(str, Enum):
    WINDOWS_10 = "Windows 10"
    WINDOWS_11 = "Windows 11"
    UBUNTU_20_04 = "Ubuntu 20.04"
    UBUNTU_22_04 = "Ubuntu 22.04"
    CENTOS_8 = "CentOS 8"
    DEBIAN_11 = "Debian 11"


class Location(str, Enum):
    BEIJING = "beijing"
    SHANGHAI = "shanghai"
    GUANGZHOU = "guangzhou"
    SHENZHEN = "shenzhen"


class Currency(str, Enum):
    CNY = "CNY"
    USD = "USD"


class LogLevel(str, Enum):
    """Severity of an entry in a cloud PC's activity log."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# ============================================================================
# User Enumerations
# ============================================================================


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


# ============================================================================
# WebSocket Protocol
# ============================================================================


class WSMessageType(str, Enum):
    """Envelope ``type`` values exchanged on the terminal WebSocket."""

    # Inbound
    TERMINAL_INPUT = "terminal_input"
    TERMINAL_RESIZE = "terminal_resize"
    CLIPBOARD_SYNC = "clipboard_sync"
    MOUSE_EVENT = "mouse_event"
    KEYBOARD_EVENT = "keyboard_event"
    PING = "ping"

    # Outbound
    CONNECTION_ESTABLISHED = "connection_established"
    TERMINAL_WELCOME = "terminal_welcome"
    TERMINAL_OUTPUT = "terminal_output"
    TERMINAL_ERROR = "terminal_error"
    TERMINAL_RESIZED = "terminal_resized"
    CLIPBOARD_SYNCED = "clipboard_synced"
    MOUSE_EVENT_ACK = "mouse_event_ack"
    KEYBOARD_EVENT_ACK = "keyboard_event_ack"
    PONG = "pong"
    STATUS_CHANGED = "status_changed"
    ERROR = "error"


# RFC 6455 close code for policy violations (bad/missing credentials)
WS_POLICY_VIOLATION = 1008

# Pagination bounds shared by list endpoints
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Capped collections on a cloud PC record
MAX_CLOUDPC_LOGS = 100
MAX_TAGS = 10
