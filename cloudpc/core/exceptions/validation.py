"""
Validation Exceptions

Raised when request input fails a rule that pydantic models cannot express
on their own (cross-field checks, state-dependent checks).
"""

from cloudpc.core.exceptions.base import APIError


class ValidationError(APIError):
    """
    Raised when request validation fails.

    ``details["errors"]`` holds a list of ``{field, message, value}``.
    """

    status_code = 400
