"""Custom exception classes for the application.

Defines domain-specific exceptions that can be raised throughout the
application and handled consistently by exception handlers.
"""

from typing import Optional, Any, Dict


class AppException(Exception):
    """Base exception class for all application exceptions.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional additional error details.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize application exception.

        Args:
            message: Error message.
            status_code: HTTP status code (default: 500).
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Any):
        """Initialize not found error.

        Args:
            resource: Type of resource (e.g., 'Meal', 'Image').
            identifier: ID or identifier that was not found.
        """
        message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, status_code=404, details={"resource": resource, "id": identifier})


class ValidationError(AppException):
    """Exception raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        """Initialize validation error.

        Args:
            message: Validation error message.
            field: Optional field name that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, status_code=400, details=details)


class InvalidPathError(AppException):
    """Raised when a requested image path resolves outside the blob root."""

    def __init__(self, path: str):
        super().__init__("Invalid path", status_code=400, details={"path": path})


class ImageProcessingError(AppException):
    """Raised when an uploaded image cannot be decoded, converted or resized."""

    def __init__(self, message: str, filename: Optional[str] = None):
        details = {"filename": filename} if filename else {}
        super().__init__(message, status_code=500, details=details)


class StorageError(AppException):
    """Raised when an image blob cannot be written or removed."""

    def __init__(self, message: str, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, status_code=500, details=details)


class IngestionError(AppException):
    """Raised when the photo ingestion pipeline fails.

    The underlying failure is carried in ``details["reason"]`` so callers get
    a machine-readable detail string alongside the generic message.
    """

    def __init__(self, reason: str):
        super().__init__("Failed to process meal", status_code=500, details={"reason": reason})
