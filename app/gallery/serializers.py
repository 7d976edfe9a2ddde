"""
Serializers for the gallery upload endpoints.

Provides:
- ChunkUploadSerializer: Shape of one chunk upload request
- CsrfTokenSerializer: Upload CSRF token response

Field-level rules (extension, index ranges, album existence) are checked by
the chunk assembly service, in a fixed order, so every failure maps to
exactly one short error message. The serializer only enforces what the
multipart body must physically contain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers

from gallery.protocol import (
    FIELD_ALBUM_ID,
    FIELD_CHUNK_INDEX,
    FIELD_TOTAL_CHUNKS,
)

if TYPE_CHECKING:
    from django.core.files.uploadedfile import UploadedFile

# Value standing in for a missing or non-numeric integer field; always
# rejected by the range checks of the field it replaces
INVALID_INT = -1


def _as_int(value: str | None) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return INVALID_INT


class ChunkUploadSerializer(serializers.Serializer):
    """
    Serializer for one chunk of a resumable upload.

    Integer fields are accepted as text and coerced leniently: a missing or
    garbled value becomes -1 and is reported by the service against its
    own field ("Invalid chunk_index", "Invalid album_id", ...).

    Usage:
        serializer = ChunkUploadSerializer(data=request.data)
        if serializer.is_valid():
            service.receive_chunk(**serializer.validated_data, client_ip=ip)
    """

    chunk = serializers.FileField(
        allow_empty_file=True,
        help_text="Raw chunk bytes (at most one chunk size)",
    )
    chunk_index = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="0-based index of this chunk",
    )
    total_chunks = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="Total number of chunks in the file",
    )
    filename = serializers.CharField(
        required=False,
        allow_blank=True,
        trim_whitespace=False,
        max_length=255,
        help_text="Target filename within the album",
    )
    upload_id = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=100,
        help_text="Opaque id shared by every chunk of one file",
    )
    album_id = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="Target album id",
    )

    def validate_chunk(self, value: "UploadedFile") -> "UploadedFile":
        """Reject chunks larger than the configured chunk size."""
        if value.size > settings.GALLERY_CHUNK_SIZE:
            raise serializers.ValidationError("Chunk too large")
        return value

    def validate(self, attrs: dict) -> dict:
        """Coerce the integer fields and default the text fields."""
        for name in (FIELD_CHUNK_INDEX, FIELD_TOTAL_CHUNKS, FIELD_ALBUM_ID):
            attrs[name] = _as_int(attrs.get(name))
        attrs.setdefault("filename", "")
        attrs.setdefault("upload_id", "")
        return attrs


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Upload token",
            value={"csrf_token": "9f2c4e1ab0d7...64 hex chars"},
            response_only=True,
        ),
    ]
)
class CsrfTokenSerializer(serializers.Serializer):
    """Upload CSRF token bound to the caller's session."""

    csrf_token = serializers.CharField(read_only=True)
