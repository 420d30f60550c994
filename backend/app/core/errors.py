"""Record service exception hierarchy.

All write-path failures surface as a RecordServiceError subclass. Each
carries the HTTP status and a public message; the global exception handler
in main.py renders them as ``{"error": message}``.
"""

from enum import Enum


class ErrorCode(str, Enum):
    INVALID_COLLECTION = "invalid_collection"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    INTERNAL = "internal"


class RecordServiceError(Exception):
    """Base exception for all record service errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL
    # Server-side failures never expose their message to the client
    public: bool = True

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def public_message(self) -> str:
        if self.public:
            return self.message
        return "The operation could not be completed."


class InvalidCollection(RecordServiceError):
    """Raised when a collection name is unknown or not writable."""

    status_code = 400
    error_code = ErrorCode.INVALID_COLLECTION


class ValidationFailed(RecordServiceError):
    """Raised when a required field is missing or a value cannot be coerced."""

    status_code = 422
    error_code = ErrorCode.VALIDATION_FAILED


class NotFound(RecordServiceError):
    """Raised when no row matches the requested id."""

    status_code = 404
    error_code = ErrorCode.NOT_FOUND


class Conflict(RecordServiceError):
    """Raised on unique constraint violations."""

    status_code = 409
    error_code = ErrorCode.CONFLICT


class StorageUnavailable(RecordServiceError):
    """Raised when the database cannot begin, execute or commit a transaction."""

    status_code = 503
    error_code = ErrorCode.STORAGE_UNAVAILABLE
    public = False


class Internal(RecordServiceError):
    """Raised for any unexpected failure on the write path."""

    status_code = 500
    error_code = ErrorCode.INTERNAL
    public = False
