"""
Image thumbnail generation.

Uses Pillow for image manipulation with proper error handling for:
- Corrupted image files
- Unsupported formats
- Images exceeding size limits

Thumbnails are written as JPEG at a fixed width (height follows the aspect
ratio), EXIF orientation applied and metadata stripped. Output goes to a
temporary sibling file first and is renamed into place, so a failed or
interrupted transform never leaves a half-written thumbnail.
"""

from __future__ import annotations

import logging
import os
import tempfile

from PIL import Image, ImageOps, UnidentifiedImageError

from gallery.processors.base import (
    PermanentProcessingError,
    ThumbnailSpec,
    TransformResult,
    TransientProcessingError,
    discard_partial_output,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ImageProcessingError(PermanentProcessingError):
    """
    Raised when image processing fails permanently.

    This exception indicates a non-recoverable error such as:
    - Corrupted image file
    - Unsupported image format
    - Image exceeds size limits
    """

    pass


# =============================================================================
# Transformer
# =============================================================================


class ImageThumbnailer:
    """
    Pillow-backed thumbnail transform for photos.

    Example:
        >>> result = ImageThumbnailer().transform(
        ...     "/srv/albums/trip/beach.jpg",
        ...     "/srv/thumbs/trip/beach.jpg",
        ...     ThumbnailSpec(width=400, quality=95),
        ... )
    """

    def transform(
        self,
        input_path: str,
        output_path: str,
        spec: ThumbnailSpec,
    ) -> TransformResult:
        """Resize input_path to spec.width and write a JPEG to output_path."""
        try:
            self._render(input_path, output_path, spec)
        except ImageProcessingError as e:
            logger.warning(
                "Thumbnail generation failed",
                extra={"input_path": input_path, "error": str(e)},
            )
            return TransformResult.fail(str(e))
        except (TransientProcessingError, OSError) as e:
            logger.error(
                "I/O error during thumbnail generation",
                extra={"input_path": input_path, "error": str(e)},
            )
            return TransformResult.fail(str(e), transient=True)

        logger.info(
            "Generated thumbnail",
            extra={"input_path": input_path, "output_path": output_path},
        )
        return TransformResult.ok(output_path)

    def _render(self, input_path: str, output_path: str, spec: ThumbnailSpec) -> None:
        output_dir = os.path.dirname(output_path)
        os.makedirs(output_dir, exist_ok=True)

        try:
            with Image.open(input_path) as source:
                source.load()
                exif = source.info.get("exif")
                img = ImageOps.exif_transpose(source)
                img = _convert_to_rgb(img)

                width, height = img.size
                target_height = max(1, round(height * spec.width / width))
                img = img.resize((spec.width, target_height), Image.Resampling.LANCZOS)

                save_kwargs = {
                    "format": "JPEG",
                    "quality": spec.quality,
                    "optimize": True,
                    "progressive": spec.progressive,
                }
                if not spec.strip and exif:
                    save_kwargs["exif"] = exif

                fd, temp_path = tempfile.mkstemp(dir=output_dir, suffix=".part")
                try:
                    with os.fdopen(fd, "wb") as out:
                        img.save(out, **save_kwargs)
                    os.replace(temp_path, output_path)
                except BaseException:
                    discard_partial_output(temp_path)
                    raise

        except Image.DecompressionBombError as e:
            raise ImageProcessingError(f"Image exceeds maximum size limit: {e}") from e

        except UnidentifiedImageError as e:
            raise ImageProcessingError(
                f"Cannot identify image format - file may be corrupted: {e}"
            ) from e

        except OSError as e:
            error_str = str(e).lower()
            if "truncated" in error_str or "cannot identify" in error_str:
                raise ImageProcessingError(
                    f"Image file is truncated or corrupted: {e}"
                ) from e
            # Other OSError (disk full, permission denied) may be transient
            raise TransientProcessingError(str(e)) from e


def _convert_to_rgb(img: Image.Image) -> Image.Image:
    """
    Convert image to RGB mode for JPEG output.

    Transparent images are composited onto a white background.
    """
    if img.mode == "RGB":
        return img

    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background

    return img.convert("RGB")
