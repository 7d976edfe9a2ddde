"""
Exceptions raised by the upload pipeline and the streaming service.

Each upload stage has its own error so that operators can tell from the
audit log where an upload stopped, and so the view can pick a status code
without inspecting messages.

Exception Hierarchy:
    BaseApplicationError (core.exceptions)
    ├── AssemblyError - a chunk was missing when the last one arrived
    ├── ContentValidationError - assembled bytes are not an allowed image
    ├── ThumbnailError - the thumbnail transform failed
    ├── PersistenceError - the metadata row could not be written
    └── RangeNotSatisfiableError - Range header outside the file
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError


class AssemblyError(BaseApplicationError):
    """Raised when the chunks of an upload cannot be concatenated."""

    default_error_code: str = "MISSING_CHUNK"


class ContentValidationError(BaseApplicationError):
    """Raised when an assembled file fails content sniffing or decoding."""

    default_error_code: str = "INVALID_CONTENT"


class ThumbnailError(BaseApplicationError):
    """Raised when a thumbnail could not be generated."""

    default_error_code: str = "THUMBNAIL_FAILED"


class PersistenceError(BaseApplicationError):
    """Raised when the media record could not be committed."""

    default_error_code: str = "PERSISTENCE_FAILED"


class RangeNotSatisfiableError(BaseApplicationError):
    """
    Raised when a byte range lies outside the requested resource.

    Attributes:
        total_size: Size of the resource, echoed as Content-Range: bytes */<size>
    """

    default_error_code: str = "RANGE_NOT_SATISFIABLE"

    def __init__(self, message: str, total_size: int, **kwargs):
        self.total_size = total_size
        super().__init__(message, **kwargs)
