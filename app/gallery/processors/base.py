"""
Base module for media transform collaborators.

A transform turns one file on disk into another (a photo into a JPEG
thumbnail, a video into a poster frame). Callers only ever see a
TransformResult; a failed transform never raises, and it never leaves a
partial output file behind.

Exception Hierarchy (internal to processors):
    ProcessingError (base)
    ├── PermanentProcessingError (corrupted input, unsupported format)
    └── TransientProcessingError (timeout, I/O, missing binary)

Usage:
    from gallery.processors import ImageThumbnailer, ThumbnailSpec

    result = ImageThumbnailer().transform(src, dst, ThumbnailSpec(width=400))
    if not result.success:
        log(result.error)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

# =============================================================================
# Constants
# =============================================================================

# Timeout for a single external tool invocation (ffmpeg)
VIDEO_FRAME_TIMEOUT = 120  # 2 minutes

# Position of the poster frame in vault videos
VIDEO_FRAME_POSITION = "00:00:05"


# =============================================================================
# Exceptions
# =============================================================================


class ProcessingError(Exception):
    """
    Base exception for all media processing errors.

    Catching this class will catch all processing-related exceptions.
    """

    pass


class PermanentProcessingError(ProcessingError):
    """
    Error that will not go away on retry.

    Raised when processing fails due to:
    - Corrupted or invalid file content
    - Unsupported file format/codec
    - Files exceeding size/complexity limits
    """

    pass


class TransientProcessingError(ProcessingError):
    """
    Error that may succeed on retry.

    Raised when processing fails due to:
    - Timeout during processing
    - Temporary I/O errors (disk full, storage unavailable)
    - External tool unavailable (ffmpeg missing)
    """

    pass


# =============================================================================
# Spec and Result Classes
# =============================================================================


@dataclass(frozen=True)
class ThumbnailSpec:
    """
    What a transform should produce.

    Attributes:
        width: Target width in pixels; height follows the aspect ratio.
        quality: JPEG quality (1-95 is Pillow's useful range).
        strip: Drop EXIF and other metadata from the output.
        progressive: Write an interlaced (progressive) JPEG.
    """

    width: int
    quality: int = 95
    strip: bool = True
    progressive: bool = True


@dataclass
class TransformResult:
    """
    Result of a transform.

    Attributes:
        success: Whether the output file was written completely.
        output_path: The written file, if successful.
        error: Error message if the transform failed.
        transient: True if the failure may go away on retry.

    Example:
        >>> result = transformer.transform(src, dst, spec)
        >>> if result.success:
        ...     print(f"Wrote {result.output_path}")
        ... else:
        ...     print(f"Failed: {result.error}")
    """

    success: bool
    output_path: str | None = None
    error: str | None = None
    transient: bool = False

    @classmethod
    def ok(cls, output_path: str) -> "TransformResult":
        """Create a successful result."""
        return cls(success=True, output_path=output_path)

    @classmethod
    def fail(cls, error: str, transient: bool = False) -> "TransformResult":
        """Create a failed result."""
        return cls(success=False, error=error, transient=transient)


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class MediaTransformer(Protocol):
    """
    Interface for media transform collaborators.

    Implementations take paths and a typed spec only; nothing a client
    sends is ever interpolated into a command line.
    """

    def transform(
        self,
        input_path: str,
        output_path: str,
        spec: ThumbnailSpec,
    ) -> TransformResult:
        """
        Produce output_path from input_path according to spec.

        Returns:
            TransformResult; on failure no file exists at output_path.
        """
        ...


def discard_partial_output(output_path: str) -> None:
    """Remove a partially written output file, if any."""
    try:
        os.unlink(output_path)
    except FileNotFoundError:
        pass
