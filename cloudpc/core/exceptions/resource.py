"""
Resource Exceptions

Errors raised by services operating on user and cloud PC records.
"""

from cloudpc.core.exceptions.base import APIError


class ResourceNotFoundError(APIError):
    """The record does not exist or is not owned by the caller."""

    status_code = 404


class ConflictError(APIError):
    """
    The request conflicts with current state.

    Examples: duplicate email on register, changing hardware of a
    running cloud PC, an admin demoting themselves.
    """

    status_code = 400


class InvalidTransitionError(ConflictError):
    """
    A lifecycle action is not allowed from the current status.

    Example:
        raise InvalidTransitionError(
            "Cloud PC is already running",
            details={"status": "running", "action": "start"}
        )
    """
    pass
