"""
Error taxonomy for the worker backend.
Every class maps to one HTTP status in flexkazi.main.
"""
from typing import Any, List, Optional


class FlexKaziError(Exception):
    """Base class; ``message`` is safe to show to the user as-is."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(FlexKaziError):
    """Invalid credential, account conflict or rate limiting at the identity provider."""

    status_code = 401


class NotAssigneeError(AuthError):
    """The caller does not hold the task they are acting on."""

    status_code = 403


class NotFoundError(FlexKaziError):
    status_code = 404


class ConflictError(FlexKaziError):
    """
    Another worker won the race for a task.
    ``available`` carries the refreshed available-task list when the caller resynchronized.
    """

    status_code = 409

    def __init__(self, message: str, available: Optional[List[Any]] = None):
        super().__init__(message)
        self.available = available


class ValidationError(FlexKaziError):
    """Malformed input, raised before any remote call is made."""

    status_code = 422


class RemoteUnavailableError(FlexKaziError):
    status_code = 503
