"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    ├── ConflictError - State conflicts (duplicates, concurrent modifications)
    └── RateLimitError - Rate limit exceeded

Usage:
    from core.exceptions import ValidationError, NotFoundError

    # Raise with message only
    raise ValidationError("Invalid file type")

    # Raise with error code for client handling
    raise NotFoundError("Album not found", error_code="ALBUM_NOT_FOUND")

    # Raise with additional details
    raise ValidationError(
        "Invalid chunk_index",
        details={"chunk_index": 7, "total_chunks": 3},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (parsing, authentication, etc.).
    Gallery pipeline errors extend this hierarchy in gallery.exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description, safe to show to callers
        error_code: Machine-readable code for client-side handling
        details: Additional error context (logged, never sent to uploaders)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Album not found",
                "error_code": "NOT_FOUND",
                "details": {"album_id": 12}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Malformed or missing request fields
    - Values outside their allowed range (chunk_index, album_id)
    - Disallowed file extensions

    Example:
        raise ValidationError(
            "Invalid chunk_index",
            details={"chunk_index": 4, "total_chunks": 4},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for:
    - Database record not found
    - File missing from disk
    - Paths resolving outside their storage root

    Example:
        raise NotFoundError("Album not found", details={"album_id": album_id})
    """

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    Use for:
    - Missing or non-staff session on admin-only endpoints
    - Invalid or missing CSRF token
    - Private album access without the share key

    Example:
        raise PermissionDeniedError("CSRF invalid", error_code="CSRF_INVALID")
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Concurrent modification conflicts

    Example:
        raise ConflictError(
            "File already exists",
            details={"album_id": album.id, "filename": filename},
        )

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"


class RateLimitError(BaseApplicationError):
    """
    Raised when rate limit is exceeded.

    Use for:
    - Callers locked out after repeated failed attempts

    Example:
        raise RateLimitError(
            "Too many attempts. Please try again later.",
            details={"retry_after": 900},
        )

    Note:
        HTTP 429 Too Many Requests is the appropriate status.
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
