"""
Gallery processors package.

Provides the media transform collaborators used by the upload pipeline
and the vault:
- Image thumbnails (Pillow)
- Video poster frames (FFmpeg)

Exception Hierarchy:
    ProcessingError (base)
    ├── PermanentProcessingError
    │   └── ImageProcessingError
    └── TransientProcessingError

Transforms report failure through TransformResult rather than raising.

Usage:
    from gallery.processors import ImageThumbnailer, ThumbnailSpec

    result = ImageThumbnailer().transform(src, dst, ThumbnailSpec(width=400))
"""

from gallery.processors.base import (
    MediaTransformer,
    PermanentProcessingError,
    ProcessingError,
    ThumbnailSpec,
    TransformResult,
    TransientProcessingError,
)
from gallery.processors.image import ImageProcessingError, ImageThumbnailer
from gallery.processors.video import VideoFrameExtractor

__all__ = [
    "ImageProcessingError",
    "ImageThumbnailer",
    "MediaTransformer",
    "PermanentProcessingError",
    "ProcessingError",
    "ThumbnailSpec",
    "TransformResult",
    "TransientProcessingError",
    "VideoFrameExtractor",
]
