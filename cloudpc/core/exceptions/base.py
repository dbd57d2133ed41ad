"""
Base Exception Classes

This module contains the root of the exception hierarchy plus the HTTP-aware
APIError branch. Specialized exceptions live in their themed modules.

Author: System Architect
"""

from typing import Any


class CloudPCBaseError(Exception):
    """
    Base exception for all cloud PC backend errors.

    All custom exceptions inherit from this class to enable:
    - Consistent error handling
    - Request ID correlation
    - Structured error logging

    Attributes:
        message: Error message
        request_id: Request ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise CacheConnectionError(
            "Failed to connect to Redis",
            details={"host": "localhost", "port": 6379}
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging.

        Returns:
            Dict with error_type, message, request_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "CloudPCBaseError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        request_id: str | None = None,
        **details
    ) -> "CloudPCBaseError":
        """
        Create an error from another exception.

        Useful for wrapping third-party exceptions (redis, SQLAlchemy, jose)
        with additional context.

        Example:
            >>> try:
            ...     await redis.ping()
            ... except RedisError as e:
            ...     raise CacheConnectionError.from_exception(e, host="localhost")
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, request_id=request_id, details=error_details)


class ConfigurationError(CloudPCBaseError):
    """Raised when configuration is invalid or missing."""
    pass


class APIError(CloudPCBaseError):
    """
    Error that maps directly onto an HTTP response.

    The exception handler in the application layer renders it as
    ``{"success": false, "error": message}`` with ``status_code``.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, request_id=request_id, details=details)
        if status_code is not None:
            self.status_code = status_code
