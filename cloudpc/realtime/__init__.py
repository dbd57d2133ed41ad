"""
Realtime Module

Terminal WebSocket connections: the registry, envelopes and the simulated shell.
"""

from .connection_registry import ClientSocket, ConnectionRecord, ConnectionRegistry, generate_session_id
from .terminal import TerminalSession, execute_command

__all__ = [
    "ClientSocket",
    "ConnectionRecord",
    "ConnectionRegistry",
    "TerminalSession",
    "execute_command",
    "generate_session_id",
]
