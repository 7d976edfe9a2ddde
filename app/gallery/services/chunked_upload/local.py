"""
Local filesystem implementation of chunk assembly.

Handles chunked uploads by:
- Writing each chunk into the album's arena directory
- Concatenating chunks in order when the last index arrives
- Validating, thumbnailing and committing the assembled photo
- Rolling back every produced file if any of those steps fails

Callers authorize the request (AccessGate) before calling in; this
service assumes the caller is allowed to upload.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import DatabaseError

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from core.services import BaseService, ServiceResult
from gallery.audit import log_event
from gallery.exceptions import ContentValidationError, PersistenceError, ThumbnailError
from gallery.models import Album, MediaItem
from gallery.processors import ImageThumbnailer, ThumbnailSpec
from gallery.protocol import sanitize_filename, sanitize_upload_id
from gallery.services.chunked_upload.arena import ChunkArena
from gallery.services.chunked_upload.base import (
    AssemblyState,
    ChunkReceipt,
    UploadPipeline,
)
from gallery.validators import ImageContentValidator, file_extension, is_allowed_extension

if TYPE_CHECKING:
    from gallery.processors import MediaTransformer


def place_exclusive(source: str, destination: str) -> None:
    """
    Hard-link source to destination, refusing to replace an existing file.

    Raises:
        ConflictError: destination already exists (another upload won)
    """
    try:
        os.link(source, destination)
    except FileExistsError as e:
        raise ConflictError(
            "File already exists",
            details={"path": destination},
        ) from e


def reserve_exclusive(path: str) -> None:
    """Create an empty file at path, failing if anything is already there."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
    except FileExistsError as e:
        raise ConflictError(
            "File already exists",
            details={"path": path},
        ) from e
    os.close(fd)


class LocalChunkAssemblyService(BaseService):
    """
    Chunk assembly service for local filesystem storage.

    Chunks are staged in <album dir>/.chunks/ and concatenated when the
    chunk with index total_chunks - 1 arrives. The assembled file becomes
    visible (a MediaItem row) only after validation, thumbnailing and the
    database insert all succeed.

    Concurrent requests for different upload ids share nothing but the
    filesystem. Originals and thumbnails are placed exclusively: of two
    uploads finishing the same filename, the later one gets a conflict
    and rolls back only its own files. Two requests racing on the same
    upload id (e.g. two tabs reusing an id) are not serialized.
    """

    def __init__(
        self,
        validator: ImageContentValidator | None = None,
        thumbnailer: "MediaTransformer | None" = None,
        thumbnail_spec: ThumbnailSpec | None = None,
    ) -> None:
        """
        Initialize the assembly service.

        Args:
            validator: Content validator for assembled files.
            thumbnailer: Transform producing the album thumbnail.
            thumbnail_spec: Thumbnail dimensions and quality.
                Defaults to GALLERY_THUMBNAIL_WIDTH / GALLERY_THUMBNAIL_QUALITY.
        """
        self.validator = validator or ImageContentValidator()
        self.thumbnailer = thumbnailer or ImageThumbnailer()
        self.thumbnail_spec = thumbnail_spec or ThumbnailSpec(
            width=settings.GALLERY_THUMBNAIL_WIDTH,
            quality=settings.GALLERY_THUMBNAIL_QUALITY,
            strip=True,
            progressive=True,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def receive_chunk(
        self,
        *,
        chunk: bytes | Iterable[bytes],
        chunk_index: int,
        total_chunks: int,
        filename: str,
        upload_id: str,
        album_id: int,
        client_ip: str = "unknown",
    ) -> ServiceResult[ChunkReceipt]:
        """
        Receive and store one chunk; finalize the upload on the last one.

        Args:
            chunk: Chunk bytes, or an iterable of byte blocks
            chunk_index: 0-based index of this chunk
            total_chunks: Declared number of chunks (> 0)
            filename: Client filename (sanitized here)
            upload_id: Client upload id (sanitized here)
            album_id: Target album
            client_ip: Caller address for the audit log

        Returns:
            ServiceResult containing a ChunkReceipt on success, or the
            short operator-safe error message with its error code.
        """
        filename = sanitize_filename(filename)
        upload_id = sanitize_upload_id(upload_id)

        try:
            album = self._validate(
                filename=filename,
                upload_id=upload_id,
                album_id=album_id,
                chunk_index=chunk_index,
                total_chunks=total_chunks,
            )
        except BaseApplicationError as e:
            log_event("error", "upload", e.message, extra=e.details, client_ip=client_ip)
            return ServiceResult.from_exception(e)

        arena = ChunkArena(album.arena_directory)
        try:
            arena.store(upload_id, chunk_index, chunk)
        except OSError as e:
            self.get_logger().error(
                "Failed to save chunk",
                exc_info=True,
                extra={"upload_id": upload_id, "chunk_index": chunk_index},
            )
            log_event(
                "error",
                "upload",
                "Failed to save chunk",
                extra={"upload_id": upload_id, "chunk_index": chunk_index, "error": str(e)},
                client_ip=client_ip,
            )
            return ServiceResult.failure("Chunk save failed", error_code="STORAGE_ERROR")

        receipt = ChunkReceipt(
            upload_id=upload_id,
            chunk_index=chunk_index,
            total_chunks=total_chunks,
        )
        if chunk_index != total_chunks - 1:
            return ServiceResult.success(receipt)

        return self._finalize(album, arena, receipt, filename, client_ip)

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate(
        self,
        *,
        filename: str,
        upload_id: str,
        album_id: int,
        chunk_index: int,
        total_chunks: int,
    ) -> Album:
        """Check every field before anything touches the disk."""
        if not is_allowed_extension(filename):
            raise ValidationError(
                "Invalid file type",
                error_code="INVALID_EXTENSION",
                details={"ext": file_extension(filename)},
            )
        if album_id <= 0:
            raise ValidationError("Invalid album_id", details={"album_id": album_id})
        if not filename or filename.startswith("."):
            raise ValidationError("Invalid filename", details={"filename": filename})
        if total_chunks <= 0:
            raise ValidationError(
                "Invalid total_chunks", details={"total_chunks": total_chunks}
            )
        if chunk_index < 0 or chunk_index >= total_chunks:
            raise ValidationError(
                "Invalid chunk_index",
                details={"chunk_index": chunk_index, "total_chunks": total_chunks},
            )
        if not upload_id:
            raise ValidationError("Invalid upload_id")

        album = Album.objects.filter(pk=album_id).first()
        if album is None:
            raise NotFoundError("Album not found", details={"album_id": album_id})

        # A committed photo is never overwritten; a rollback of the
        # replacement would otherwise delete the committed file
        if MediaItem.objects.filter(album=album, filename=filename).exists():
            raise ConflictError(
                "File already exists",
                details={"album_id": album_id, "filename": filename},
            )

        return album

    # =========================================================================
    # Finalization
    # =========================================================================

    def _finalize(
        self,
        album: Album,
        arena: ChunkArena,
        receipt: ChunkReceipt,
        filename: str,
        client_ip: str,
    ) -> ServiceResult[ChunkReceipt]:
        """Run ASSEMBLING through COMMITTING, rolling back on any failure."""
        pipeline = UploadPipeline(
            upload_id=receipt.upload_id,
            album_id=album.id,
            filename=filename,
        )
        scratch_path = arena.assembly_path(receipt.upload_id)
        final_path = os.path.join(album.directory, filename)
        thumb_path = os.path.join(album.thumbnail_directory, filename)

        try:
            # ASSEMBLING: concatenate into a scratch file inside the arena
            pipeline.advance(AssemblyState.ASSEMBLING)
            pipeline.track(scratch_path)
            size = arena.assemble(receipt.upload_id, receipt.total_chunks, scratch_path)
            arena.discard(receipt.upload_id, receipt.total_chunks)

            # VALIDATING: sniff and decode before the file is placed
            pipeline.advance(AssemblyState.VALIDATING)
            validation = self.validator.validate(scratch_path)
            if not validation.is_valid:
                raise ContentValidationError(
                    validation.error or "Invalid image type",
                    details={"mime": validation.mime_type},
                )
            os.makedirs(album.directory, exist_ok=True)
            place_exclusive(scratch_path, final_path)
            pipeline.track(final_path)
            os.unlink(scratch_path)
            pipeline.untrack(scratch_path)
            arena.remove_if_empty()

            # THUMBNAILING: claim the thumbnail name before rendering into it
            pipeline.advance(AssemblyState.THUMBNAILING)
            reserve_exclusive(thumb_path)
            pipeline.track(thumb_path)
            thumbnail = self.thumbnailer.transform(final_path, thumb_path, self.thumbnail_spec)
            if not thumbnail.success:
                raise ThumbnailError(
                    "Thumbnail failed",
                    details={"error": thumbnail.error},
                )

            # COMMITTING
            pipeline.advance(AssemblyState.COMMITTING)
            media_item = self._commit(album, filename)
            pipeline.advance(AssemblyState.DONE)

        except BaseApplicationError as e:
            pipeline.fail(e.message)
            arena.remove_if_empty()
            log_event(
                "error",
                "upload",
                e.message,
                extra={"album_id": album.id, "filename": filename, **e.details},
                client_ip=client_ip,
            )
            return ServiceResult.from_exception(e)

        except OSError as e:
            pipeline.fail(str(e))
            arena.remove_if_empty()
            self.get_logger().error(
                "Storage error while finalizing upload",
                exc_info=True,
                extra={"upload_id": receipt.upload_id, "album_id": album.id},
            )
            log_event(
                "error",
                "upload",
                "Storage error during assembly",
                extra={"album_id": album.id, "filename": filename},
                client_ip=client_ip,
            )
            return ServiceResult.failure("Upload failed", error_code="STORAGE_ERROR")

        log_event(
            "info",
            "upload",
            "File uploaded successfully",
            extra={"album_id": album.id, "filename": filename, "size": size},
            client_ip=client_ip,
        )
        receipt.state = AssemblyState.DONE
        receipt.media_item = media_item
        return ServiceResult.success(receipt)

    def _commit(self, album: Album, filename: str) -> MediaItem:
        """Insert the media record; nothing is visible before this succeeds."""
        try:
            with self.atomic():
                return MediaItem.objects.create(
                    album=album,
                    filename=filename,
                    title=MediaItem.title_from_filename(filename),
                )
        except DatabaseError as e:
            raise PersistenceError(
                "DB insert failed",
                details={"error": str(e)},
            ) from e
