from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested session or account is not found."""

    def __init__(self, message: str = "Record not found") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ConflictError(UserError):
    """Raised when creating a record that already exists."""

    def __init__(self, message: str = "Record already exists") -> None:
        super().__init__(message)


class RateLimitedError(UserError):
    """Raised when proof mail to a destination would be queued for too long."""

    def __init__(self, delay_ms: int) -> None:
        super().__init__(f"Too many requests. Retry after {delay_ms // 1000 + 1} seconds.")
        self.delay_ms = delay_ms


class StorageError(Exception):
    """Raised when the storage backend fails for a reason other than a missing record."""


class CryptoError(Exception):
    """Raised when secret generation or hashing fails."""
