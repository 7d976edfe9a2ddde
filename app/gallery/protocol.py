"""
Wire contract for one chunk of a resumable photo upload.

One request carries one chunk as multipart form data. The server answers
with the literal body ``OK`` on success; any other body, or any non-2xx
status, is a failure and the body text is the error detail.

This module has no Django dependency so the upload client can share it.

Usage:
    from gallery.protocol import ChunkUpload, is_success

    upload = ChunkUpload(
        chunk=data,
        chunk_index=0,
        total_chunks=3,
        filename="beach.jpg",
        upload_id=new_upload_id(),
        album_id=4,
        csrf_token=token,
    )
    response = client.post(url, data=upload.form_fields(), files=upload.files())
    if not is_success(response.status_code, response.text):
        raise ChunkRejected(response.text)
"""

from __future__ import annotations

import math
import re
import secrets
import string
import time
from dataclasses import dataclass

# =============================================================================
# Constants
# =============================================================================

SUCCESS_TOKEN = "OK"

# Fixed client chunk size (5 MiB)
DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024

# Form field names
FIELD_CHUNK = "chunk"
FIELD_CHUNK_INDEX = "chunk_index"
FIELD_TOTAL_CHUNKS = "total_chunks"
FIELD_FILENAME = "filename"
FIELD_UPLOAD_ID = "upload_id"
FIELD_ALBUM_ID = "album_id"
FIELD_CSRF_TOKEN = "csrf_token"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_UNSAFE_UPLOAD_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_BASE36 = string.digits + string.ascii_lowercase


# =============================================================================
# Helpers
# =============================================================================


def sanitize_filename(value: str) -> str:
    """Replace every character outside [A-Za-z0-9._-] with an underscore."""
    return _UNSAFE_FILENAME_CHARS.sub("_", value or "")


def sanitize_upload_id(value: str) -> str:
    """Drop every character outside [A-Za-z0-9_-]."""
    return _UNSAFE_UPLOAD_ID_CHARS.sub("", value or "")


def total_chunks_for(size: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Number of chunks needed for a file of ``size`` bytes."""
    return math.ceil(size / chunk_size)


def chunk_filename(upload_id: str, chunk_index: int) -> str:
    """Arena filename of one chunk: ``<upload_id>.<index>``."""
    return f"{upload_id}.{chunk_index}"


def new_upload_id() -> str:
    """
    Generate an opaque upload id: ``<epoch millis>_<9 base36 chars>``.

    Only characters that survive sanitize_upload_id() are used.
    """
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{int(time.time() * 1000)}_{suffix}"


def is_success(status_code: int, body: str) -> bool:
    """A chunk response succeeded only on 2xx with exactly the success token."""
    return 200 <= status_code < 300 and body == SUCCESS_TOKEN


# =============================================================================
# Request Shape
# =============================================================================


@dataclass(frozen=True)
class ChunkUpload:
    """
    One chunk upload request.

    Attributes:
        chunk: Raw chunk bytes
        chunk_index: 0-based position of this chunk
        total_chunks: Number of chunks in the whole file (> 0)
        filename: Target filename within the album
        upload_id: Opaque id, stable for every chunk of one file
        album_id: Target album
        csrf_token: Session-bound upload token
    """

    chunk: bytes
    chunk_index: int
    total_chunks: int
    filename: str
    upload_id: str
    album_id: int
    csrf_token: str

    @property
    def is_last(self) -> bool:
        """True for the chunk that triggers assembly."""
        return self.chunk_index == self.total_chunks - 1

    def form_fields(self) -> dict[str, str]:
        """Non-file form fields, stringified for multipart encoding."""
        return {
            FIELD_CHUNK_INDEX: str(self.chunk_index),
            FIELD_TOTAL_CHUNKS: str(self.total_chunks),
            FIELD_FILENAME: self.filename,
            FIELD_UPLOAD_ID: self.upload_id,
            FIELD_ALBUM_ID: str(self.album_id),
            FIELD_CSRF_TOKEN: self.csrf_token,
        }

    def files(self) -> dict[str, tuple[str, bytes, str]]:
        """The chunk payload as a multipart file part."""
        return {FIELD_CHUNK: ("blob", self.chunk, "application/octet-stream")}
