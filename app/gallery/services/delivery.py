"""
RangeStreamingService for serving album photos and vault videos.

Provides:
- HTTP byte-range support (single range, 206 / 416)
- Streaming in fixed-size blocks through a generator, so one request holds
  one open descriptor and never loads the file into memory
- X-Accel-Redirect handoff to nginx for pre-converted stream variants
- Content-Disposition handling (attachment vs inline)
- Path containment: every resolved path must stay inside its storage root

Authorization is the caller's job (AccessGate); this service only decides
how bytes leave the disk.
"""

from __future__ import annotations

import mimetypes
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import quote

from django.conf import settings
from django.http import HttpResponse, StreamingHttpResponse

from core.exceptions import NotFoundError
from core.services import BaseService
from gallery.audit import log_event
from gallery.exceptions import RangeNotSatisfiableError, ThumbnailError
from gallery.processors import ThumbnailSpec, VideoFrameExtractor

if TYPE_CHECKING:
    from collections.abc import Iterator

    from django.http import HttpRequest, HttpResponseBase

    from gallery.models import MediaItem
    from gallery.processors import MediaTransformer

# Only the single-range form is honoured; anything else is ignored
_RANGE_HEADER = re.compile(r"^bytes=(\d+)-(\d*)$")

NO_STORE = "no-store"
THUMBNAIL_CACHE_CONTROL = "private, max-age=86400"

STREAM_STRATEGY_DIRECT = "direct"
STREAM_STRATEGY_PROXY = "proxy"


class StreamMode(str, Enum):
    """What the caller wants to do with a resource."""

    STREAM = "stream"
    THUMBNAIL = "thumbnail"
    DOWNLOAD = "download"


# =============================================================================
# Range Parsing
# =============================================================================


@dataclass(frozen=True)
class StreamRange:
    """
    A satisfiable byte span of a resource.

    Attributes:
        start: First byte offset (inclusive)
        end: Last byte offset (inclusive)
        total_size: Size of the whole resource
    """

    start: int
    end: int
    total_size: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total_size}"


def parse_range(header: str | None, total_size: int) -> StreamRange | None:
    """
    Parse a Range header against a resource size.

    Args:
        header: Raw Range header value, or None
        total_size: Size of the resource in bytes

    Returns:
        StreamRange for a satisfiable range, or None when the header is
        absent or malformed (the whole resource should be served)

    Raises:
        RangeNotSatisfiableError: start > end, start >= size, or an
            explicit end at or beyond the end of the resource

    Example:
        >>> parse_range("bytes=0-99", 1000).content_range
        'bytes 0-99/1000'
        >>> parse_range("bytes=500-", 1000).length
        500
    """
    if not header:
        return None
    match = _RANGE_HEADER.match(header.strip())
    if match is None:
        return None

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else total_size - 1

    if start > end or start >= total_size or end >= total_size:
        raise RangeNotSatisfiableError(
            "Range not satisfiable",
            total_size=total_size,
            details={"range": header, "size": total_size},
        )
    return StreamRange(start=start, end=end, total_size=total_size)


def iter_file_range(path: str, start: int, length: int, block_size: int) -> Iterator[bytes]:
    """
    Yield ``length`` bytes of ``path`` from ``start`` in block_size pieces.

    The descriptor is closed when the generator finishes or is closed,
    which Django does when the client disconnects.
    """
    f = open(path, "rb")
    try:
        f.seek(start)
        remaining = length
        while remaining > 0:
            block = f.read(min(block_size, remaining))
            if not block:
                break
            remaining -= len(block)
            yield block
    finally:
        f.close()


# =============================================================================
# Service
# =============================================================================


class RangeStreamingService(BaseService):
    """
    Service for delivering media bytes to viewers.

    Serves either by copying bytes itself (strategy "direct") or, when a
    pre-converted stream variant exists and the strategy is "proxy", by
    handing the request to nginx with X-Accel-Redirect. Both produce the
    same externally visible headers.

    Usage:
        # Album photo (after AccessGate.require_album_access)
        response = RangeStreamingService.serve_album_media(
            request, media_item, StreamMode.STREAM
        )

        # Vault video (after AccessGate.require_vault_access)
        response = RangeStreamingService.serve_vault(
            request, StreamMode.DOWNLOAD, "concert.mp4"
        )
    """

    @classmethod
    def resolve_within(cls, root: str, *parts: str) -> str:
        """
        Join parts under root and require the real path to stay inside it.

        Raises:
            NotFoundError: The path escapes root or does not name a file
        """
        real_root = os.path.realpath(root)
        candidate = os.path.realpath(os.path.join(real_root, *parts))
        if os.path.commonpath([real_root, candidate]) != real_root or candidate == real_root:
            cls.get_logger().warning(
                "Path escapes storage root",
                extra={"root": root, "parts": list(parts)},
            )
            raise NotFoundError("Not Found")
        return candidate

    @classmethod
    def serve_file(
        cls,
        path: str,
        *,
        mode: StreamMode = StreamMode.STREAM,
        range_header: str | None = None,
        proxy_path: str | None = None,
        cache_control: str = NO_STORE,
        download_name: str | None = None,
    ) -> HttpResponseBase:
        """
        Build the response for one file on disk.

        Args:
            path: Resolved path of the file to serve
            mode: Download mode sets an attachment disposition
            range_header: Raw Range header from the request
            proxy_path: Internal location nginx should serve instead;
                used only when the stream strategy is "proxy"
            cache_control: Cache-Control header value
            download_name: Filename for Content-Disposition (defaults to basename)

        Returns:
            200 / 206 streaming response, a 416 response, or an empty
            X-Accel-Redirect response

        Raises:
            NotFoundError: The file does not exist
        """
        try:
            total_size = os.stat(path).st_size
        except (FileNotFoundError, NotADirectoryError):
            raise NotFoundError("Not Found") from None

        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        name = cls._encode_filename(download_name or os.path.basename(path))
        disposition = "attachment" if mode is StreamMode.DOWNLOAD else "inline"

        if proxy_path and settings.GALLERY_STREAM_STRATEGY == STREAM_STRATEGY_PROXY:
            # nginx serves the bytes (ranges included) from its internal location
            response: HttpResponseBase = HttpResponse(content_type=content_type)
            response["X-Accel-Redirect"] = proxy_path
        else:
            try:
                byte_range = parse_range(range_header, total_size)
            except RangeNotSatisfiableError as e:
                response = HttpResponse(status=416, content_type=content_type)
                response["Content-Range"] = f"bytes */{e.total_size}"
                cls._apply_common_headers(response, cache_control)
                return response

            if byte_range is None:
                start, length, status = 0, total_size, 200
            else:
                start, length, status = byte_range.start, byte_range.length, 206

            response = StreamingHttpResponse(
                iter_file_range(path, start, length, settings.GALLERY_STREAM_BLOCK_SIZE),
                status=status,
                content_type=content_type,
            )
            response["Content-Length"] = str(length)
            if byte_range is not None:
                response["Content-Range"] = byte_range.content_range

        response["Content-Disposition"] = f'{disposition}; filename="{name}"'
        cls._apply_common_headers(response, cache_control)
        return response

    # =========================================================================
    # Album Media
    # =========================================================================

    @classmethod
    def serve_album_media(
        cls,
        request: "HttpRequest",
        media_item: "MediaItem",
        mode: StreamMode,
    ) -> HttpResponseBase:
        """
        Serve an album photo or its thumbnail.

        Raises:
            NotFoundError: File missing or outside the album roots
        """
        album = media_item.album
        if mode is StreamMode.THUMBNAIL:
            path = cls.resolve_within(
                settings.GALLERY_THUMB_ROOT, album.storage_slug, media_item.filename
            )
            cache_control = THUMBNAIL_CACHE_CONTROL
        else:
            path = cls.resolve_within(
                settings.GALLERY_PUBLIC_ROOT, album.storage_slug, media_item.filename
            )
            cache_control = NO_STORE

        response = cls.serve_file(
            path,
            mode=mode,
            range_header=request.headers.get("Range"),
            cache_control=cache_control,
        )
        if mode is StreamMode.DOWNLOAD:
            log_event(
                "download",
                "album",
                "Photo downloaded",
                extra={"album_id": album.id, "media_id": media_item.id},
                request=request,
            )
        return response

    # =========================================================================
    # Vault
    # =========================================================================

    @classmethod
    def serve_vault(
        cls,
        request: "HttpRequest",
        mode: StreamMode,
        filename: str,
        frame_extractor: "MediaTransformer | None" = None,
    ) -> HttpResponseBase:
        """
        Serve a vault video, its stream variant, or its poster frame.

        Stream mode prefers the pre-converted ``stream/<filename>`` variant
        when one exists. Thumbnail mode extracts a frame on first request
        and caches it as ``thumbs/<stem>.jpg``.

        Raises:
            NotFoundError: Unknown file or a path outside the vault
            ThumbnailError: The poster frame could not be extracted
        """
        if not filename or filename != os.path.basename(filename) or filename.startswith("."):
            raise NotFoundError("Not Found", details={"filename": filename})

        root = settings.GALLERY_VAULT_ROOT
        source = cls.resolve_within(root, filename)
        if not os.path.isfile(source):
            raise NotFoundError("Not Found", details={"filename": filename})

        if mode is StreamMode.THUMBNAIL:
            thumb = cls._vault_thumbnail(source, filename, frame_extractor)
            return cls.serve_file(
                thumb,
                mode=mode,
                cache_control=THUMBNAIL_CACHE_CONTROL,
            )

        range_header = request.headers.get("Range")
        if mode is StreamMode.DOWNLOAD:
            log_event(
                "download",
                "vault",
                "Vault file downloaded",
                extra={"file": filename},
                request=request,
            )
            return cls.serve_file(source, mode=mode, range_header=range_header)

        log_event(
            "view",
            "vault",
            "Vault file streamed",
            extra={"file": filename},
            request=request,
        )
        variant = cls.resolve_within(root, "stream", filename)
        if os.path.isfile(variant):
            return cls.serve_file(
                variant,
                mode=mode,
                range_header=range_header,
                proxy_path=f"{settings.GALLERY_PROXY_PREFIX.rstrip('/')}/stream/{quote(filename)}",
            )
        return cls.serve_file(source, mode=mode, range_header=range_header)

    @classmethod
    def _vault_thumbnail(
        cls,
        source: str,
        filename: str,
        frame_extractor: "MediaTransformer | None",
    ) -> str:
        stem = os.path.splitext(filename)[0]
        thumb = cls.resolve_within(settings.GALLERY_VAULT_ROOT, "thumbs", f"{stem}.jpg")
        if os.path.isfile(thumb):
            return thumb

        extractor = frame_extractor or VideoFrameExtractor()
        result = extractor.transform(
            source,
            thumb,
            ThumbnailSpec(width=settings.GALLERY_VIDEO_THUMBNAIL_WIDTH),
        )
        if not result.success:
            cls.get_logger().warning(
                "Vault thumbnail generation failed",
                extra={"file": filename, "error": result.error},
            )
            raise ThumbnailError("Thumbnail failed", details={"file": filename})
        return thumb

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    @classmethod
    def _apply_common_headers(cls, response: HttpResponseBase, cache_control: str) -> None:
        response["Accept-Ranges"] = "bytes"
        response["Cache-Control"] = cache_control

    @classmethod
    def _encode_filename(cls, filename: str) -> str:
        """
        Encode filename for Content-Disposition header.

        Args:
            filename: Filename on disk

        Returns:
            URL-encoded filename safe for HTTP headers
        """
        return quote(filename, safe="")
