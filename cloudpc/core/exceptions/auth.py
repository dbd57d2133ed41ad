"""
Authentication and Authorization Exceptions
"""

from cloudpc.core.exceptions.base import APIError


class AuthenticationError(APIError):
    """Missing, malformed or invalid credentials."""

    status_code = 401


class TokenExpiredError(AuthenticationError):
    """The access token verified but its ``exp`` has passed."""
    pass


class AuthorizationError(APIError):
    """Authenticated, but the role does not permit the operation."""

    status_code = 403


class AccountLockedError(APIError):
    """
    Raised after too many failed logins.

    The lock lasts ACCOUNT_LOCK_MINUTES; details carry ``lock_until``.
    """

    status_code = 423
