"""
Gallery file validators.

Provides the two checks an upload goes through:
- Extension allow-list on the (sanitized) client filename, before any write
- Content-based MIME detection with python-magic plus a Pillow decode,
  after the chunks have been assembled

Content checks never trust the extension: a renamed PNG or a text file
named .jpg fails sniffing even though its extension passed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import magic
from django.conf import settings
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Bytes read for magic number detection
MAGIC_HEADER_BYTES = 2048


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ValidationResult:
    """Result of content validation.

    Attributes:
        is_valid: Whether the file passed validation.
        mime_type: Detected MIME type of the file.
        width: Decoded image width in pixels.
        height: Decoded image height in pixels.
        error: Human-readable error message if validation failed.
        error_code: Machine-readable error code if validation failed.
    """

    is_valid: bool
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    error: str | None = None
    error_code: str | None = None


# =============================================================================
# Extension Check
# =============================================================================


def file_extension(filename: str) -> str:
    """Lowercased extension without the dot ("" when there is none)."""
    return os.path.splitext(filename)[1].lstrip(".").lower()


def is_allowed_extension(filename: str, allowed: list[str] | None = None) -> bool:
    """Check a filename against the configured extension allow-list."""
    allowed = allowed if allowed is not None else settings.GALLERY_ALLOWED_EXTENSIONS
    return file_extension(filename) in {ext.lower() for ext in allowed}


# =============================================================================
# Validator Class
# =============================================================================


class ImageContentValidator:
    """Validates assembled uploads using content-based MIME detection.

    Example:
        validator = ImageContentValidator()
        result = validator.validate("/srv/albums/trip/beach.jpg")
        if not result.is_valid:
            os.unlink(path)
    """

    def __init__(self, allowed_mime_types: list[str] | None = None) -> None:
        """Initialize validator with optional custom configuration.

        Args:
            allowed_mime_types: MIME types accepted after sniffing.
                Defaults to settings.GALLERY_ALLOWED_MIME_TYPES.
        """
        self._allowed_mime_types = set(
            allowed_mime_types
            if allowed_mime_types is not None
            else settings.GALLERY_ALLOWED_MIME_TYPES
        )
        self._magic = magic.Magic(mime=True)

    def validate(self, path: str) -> ValidationResult:
        """Validate an assembled file on disk.

        Performs the following checks in order:
        1. MIME type detection from content
        2. MIME type allowlist check
        3. Full decode of the image header and data with Pillow

        Args:
            path: Path of the assembled file.

        Returns:
            ValidationResult with validation outcome and detected file info.
        """
        mime_type = self._detect_mime_type(path)
        if mime_type is None or mime_type not in self._allowed_mime_types:
            return ValidationResult(
                is_valid=False,
                mime_type=mime_type,
                error="Invalid image type",
                error_code="MIME_TYPE_NOT_ALLOWED",
            )

        try:
            with Image.open(path) as img:
                width, height = img.size
                img.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            logger.warning(
                "Image failed to decode",
                extra={"path": path, "error": str(e)},
            )
            return ValidationResult(
                is_valid=False,
                mime_type=mime_type,
                error="Not a valid image",
                error_code="IMAGE_DECODE_FAILED",
            )

        if not width or not height:
            return ValidationResult(
                is_valid=False,
                mime_type=mime_type,
                error="Not a valid image",
                error_code="IMAGE_DECODE_FAILED",
            )

        return ValidationResult(
            is_valid=True,
            mime_type=mime_type,
            width=width,
            height=height,
        )

    def _detect_mime_type(self, path: str) -> str | None:
        """Detect MIME type from file content using libmagic.

        Args:
            path: File to analyze.

        Returns:
            Detected MIME type string, or None if detection failed.
        """
        with open(path, "rb") as f:
            header = f.read(MAGIC_HEADER_BYTES)

        if not header:
            return None

        try:
            return self._magic.from_buffer(header)
        except magic.MagicException as e:
            logger.warning(
                "MIME detection failed",
                extra={"path": path, "error": str(e)},
            )
            return None
