"""Errors raised by the registration and verification flows."""

from fastapi import status


class RegistrationError(Exception):
    """Base class for user-facing registration/verification failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "registration_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RegistrationError):
    """Missing or malformed input."""

    code = "validation_error"


class ConflictError(RegistrationError):
    """Email already registered."""

    code = "conflict"


class NotFoundError(RegistrationError):
    """Token unknown or the account it refers to is gone."""

    code = "not_found"


class ExpiredError(RegistrationError):
    """Token past its expiry; the caller has to start over."""

    code = "expired"


class IntegrityError(RegistrationError):
    """A paired token row is missing or unreadable."""

    code = "integrity_error"


class DispatchError(RegistrationError):
    """The verification email could not be sent."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "dispatch_failed"
