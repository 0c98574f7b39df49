"""Exception taxonomy shared by the registration services and the HTTP layer."""

from __future__ import annotations

from fastapi import status


class RegistrarError(Exception):
    """Base class for failures that map onto an HTTP status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RegistrarError):
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateEnrollmentError(ValidationError):
    """Raised when duplicate enrollment is disabled and the user already holds the course."""


class CapacityError(RegistrarError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(RegistrarError):
    status_code = status.HTTP_401_UNAUTHORIZED


class UnauthorizedError(RegistrarError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(RegistrarError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(RegistrarError):
    # Surfaced to clients as a generic persistence failure.
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "AuthError",
    "CapacityError",
    "ConflictError",
    "DuplicateEnrollmentError",
    "NotFoundError",
    "RegistrarError",
    "UnauthorizedError",
    "ValidationError",
]
