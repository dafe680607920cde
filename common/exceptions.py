from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    """
    Base class for errors that map onto an HTTP status and the {error, details} envelope.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """
    Missing or malformed caller input, raised before any side effect.
    """

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    """
    The request would break a state invariant (duplicate number, edit after PI, ...).
    """

    status_code = status.HTTP_409_CONFLICT


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConfigurationError(AppError):
    """
    Server-side setup the request depends on is missing (e.g. no invoice series for a buyer).
    """

    status_code = status.HTTP_400_BAD_REQUEST


class DependencyError(AppError):
    """
    A downstream collaborator (storage, database, email, remote API) failed.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
