"""
WebSocket Exceptions
"""

from cloudpc.core.exceptions.base import CloudPCBaseError


class WebSocketError(CloudPCBaseError):
    """Base exception for the terminal WebSocket layer."""
    pass


class HandshakeRejectedError(WebSocketError):
    """
    Raised when a connection attempt fails parameter or token checks.

    The endpoint closes the socket with a policy-violation code; the
    connection never reaches the registry.
    """
    pass


class MalformedMessageError(WebSocketError):
    """Raised when an inbound frame is not a JSON object."""
    pass
