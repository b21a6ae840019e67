"""Domain-specific exceptions for the household budget core."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class ConflictError(ValidationError):
    """Raised when a member name collides with an existing member."""


class RecordNotFoundError(LookupError):
    """Raised when a date bucket or record cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""


class CorruptRecordError(PersistenceError):
    """Raised when a persisted record cannot be parsed back into a model."""


class MirrorError(Exception):
    """Raised by the mirror client when the remote endpoint rejects a call."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        # Transport failures carry no status; server errors may be transient.
        return self.status_code == 0 or self.status_code >= 500
