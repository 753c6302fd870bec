"""Custom application exceptions."""

from datetime import datetime


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class MissingFieldException(ValidationException):
    """A required input was not supplied."""

    def __init__(self, field: str, message: str | None = None):
        """Initialize with the name of the missing field."""
        self.field = field
        super().__init__(message or f"{field} is required.")


class InvalidFormatException(ValidationException):
    """Timestamp text matched none of the accepted formats."""

    def __init__(self, text: str, message: str | None = None):
        """Initialize with the offending text."""
        self.text = text
        super().__init__(
            message
            or (
                f"Invalid date format: {text!r}. "
                "Please use YYYY-MM-DD HH:MM or YYYY-MM-DD HH:MM:SS format."
            )
        )


class CapacityExceededException(AppException):
    """A booking would push a slot past its capacity."""

    def __init__(self, instant: datetime, max_concurrent: int):
        """Initialize with 409 status code."""
        self.instant = instant
        self.max_concurrent = max_concurrent
        super().__init__(
            f"Slot {instant:%Y-%m-%d %H:%M} already has {max_concurrent} or more active appointments",
            status_code=409,
        )
