"""Exceptions shared by core and server."""


class ValidationError(ValueError):
    """Raised when user input cannot be accepted."""


class ContestValidationError(ValidationError):
    """Raised when a contest transition is rejected. The state is left unchanged."""


class StorageError(Exception):
    """Raised when the persistence backend fails a read or write."""
