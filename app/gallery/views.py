"""
API views for chunked photo uploads and protected media delivery.

Provides:
- ChunkUploadView: Receive one chunk of a resumable upload
- UploadCsrfTokenView: Hand the session's upload token to the admin UI
- AlbumMediaView: Stream, thumbnail or download a photo of an album
- VaultMediaView: Stream, thumbnail or download a vault video (staff only)

The upload endpoint answers in plain text: the literal "OK" on success or
a short error message, because the upload client compares the body with
the success token rather than parsing JSON.
"""

from __future__ import annotations

from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.authentication import SessionAuthentication
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.helpers import get_client_ip
from gallery.audit import log_event
from gallery.models import MediaItem
from gallery.protocol import FIELD_CSRF_TOKEN, SUCCESS_TOKEN
from gallery.serializers import ChunkUploadSerializer, CsrfTokenSerializer
from gallery.services.access_control import AccessGate
from gallery.services.chunked_upload import get_chunk_assembly_service
from gallery.services.delivery import RangeStreamingService, StreamMode

# HTTP status for each error code a service can report
ERROR_STATUS = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_EXTENSION": status.HTTP_400_BAD_REQUEST,
    "MISSING_CHUNK": status.HTTP_400_BAD_REQUEST,
    "INVALID_CONTENT": status.HTTP_400_BAD_REQUEST,
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    "UNAUTHORIZED": status.HTTP_403_FORBIDDEN,
    "CSRF_INVALID": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "RANGE_NOT_SATISFIABLE": status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
    "RATE_LIMIT_EXCEEDED": status.HTTP_429_TOO_MANY_REQUESTS,
    "THUMBNAIL_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "PERSISTENCE_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "STORAGE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_error(error_code: str | None) -> int:
    """Map a service error code to an HTTP status (500 when unknown)."""
    return ERROR_STATUS.get(error_code or "", status.HTTP_500_INTERNAL_SERVER_ERROR)


def text_response(body: str, status_code: int = status.HTTP_200_OK) -> HttpResponse:
    return HttpResponse(body, status=status_code, content_type="text/plain; charset=utf-8")


def _parse_mode(mode: str) -> StreamMode | None:
    try:
        return StreamMode(mode)
    except ValueError:
        return None


class UploadSessionAuthentication(SessionAuthentication):
    """
    Session authentication without DRF's CSRF enforcement.

    The upload endpoint checks its own session-bound csrf_token field
    (AccessGate.require_uploader) so that a bad token is counted by the
    rate limiter and reported as "CSRF invalid".
    """

    def enforce_csrf(self, request):
        return


class ChunkUploadView(APIView):
    """
    Receive one chunk of a resumable photo upload.

    POST /api/v1/gallery/upload/
        Store a chunk; the chunk with index total_chunks - 1 triggers
        assembly, validation, thumbnailing and commit.

    Authentication:
        Requires an active staff session and the session's upload token
        in the csrf_token field.

    Request:
        Content-Type: multipart/form-data
        - chunk, chunk_index, total_chunks, filename, upload_id,
          album_id, csrf_token

    Response (text/plain):
        200 OK: "OK"
        400 Bad Request: Invalid field, missing chunk, invalid image
        403 Forbidden: "Unauthorized" or "CSRF invalid"
        404 Not Found: "Album not found"
        409 Conflict: "File already exists"
        429 Too Many Requests: Caller locked out
        500 Internal Server Error: Storage, thumbnail or database failure
    """

    authentication_classes = [UploadSessionAuthentication]
    permission_classes = []
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        operation_id="upload_chunk",
        summary="Upload one chunk",
        description=(
            "Store one chunk of a photo upload. Chunks of one file share an "
            "upload_id and are sent in order; the last chunk assembles the file, "
            "validates it as a JPEG, generates its thumbnail and records it in "
            "the album. Any failure after assembly removes every file produced."
        ),
        request={"multipart/form-data": ChunkUploadSerializer},
        responses={
            200: OpenApiResponse(response=OpenApiTypes.STR, description="Literal OK"),
            400: OpenApiResponse(description="Invalid field or content"),
            403: OpenApiResponse(description="Not an admin session or CSRF invalid"),
            404: OpenApiResponse(description="Album not found"),
            409: OpenApiResponse(description="File already exists in the album"),
            429: OpenApiResponse(description="Too many failed attempts"),
            500: OpenApiResponse(description="Storage, thumbnail or database failure"),
        },
        tags=["Gallery - Upload"],
    )
    def post(self, request):
        """Receive one chunk."""
        try:
            AccessGate.require_uploader(request, request.data.get(FIELD_CSRF_TOKEN))
        except BaseApplicationError as e:
            return text_response(e.message, status_for_error(e.error_code))

        serializer = ChunkUploadSerializer(data=request.data)
        if not serializer.is_valid():
            log_event(
                "error",
                "upload",
                "Malformed chunk request",
                extra={"errors": serializer.errors},
                request=request,
            )
            return text_response("Invalid chunk", status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        result = get_chunk_assembly_service().receive_chunk(
            chunk=data["chunk"].chunks(),
            chunk_index=data["chunk_index"],
            total_chunks=data["total_chunks"],
            filename=data["filename"],
            upload_id=data["upload_id"],
            album_id=data["album_id"],
            client_ip=get_client_ip(request),
        )

        if not result.success:
            return text_response(result.error, status_for_error(result.error_code))
        return text_response(SUCCESS_TOKEN)


class UploadCsrfTokenView(APIView):
    """
    Return the upload token bound to the caller's session.

    GET /api/v1/gallery/csrf/

    Authentication:
        Requires an active staff session.

    Response:
        200 OK: {"csrf_token": "..."}
        403 Forbidden: Not an admin session
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_upload_csrf_token",
        summary="Get upload token",
        description="Return (creating on first use) the session's upload CSRF token.",
        responses={
            200: CsrfTokenSerializer,
            403: OpenApiResponse(description="Not an admin session"),
        },
        tags=["Gallery - Upload"],
    )
    def get(self, request):
        """Get the upload token."""
        token = AccessGate.get_csrf_token(request)
        return Response(CsrfTokenSerializer({"csrf_token": token}).data)


class AlbumMediaView(APIView):
    """
    Deliver a photo of an album.

    GET /api/v1/gallery/media/{media_id}/{mode}/
        mode is one of stream, thumbnail, download.

    Access:
        Public albums: anyone.
        Private albums: staff, or ?u=<share key>. Otherwise 404.

    Response:
        200 OK: Full content
        206 Partial Content: Requested byte range
        404 Not Found: Unknown item, hidden album, or file missing
        416 Range Not Satisfiable: Range outside the file
    """

    permission_classes = []

    @extend_schema(
        operation_id="get_album_media",
        summary="Get album media",
        description=(
            "Stream, download or fetch the thumbnail of an album photo. "
            "Supports single byte ranges."
        ),
        parameters=[
            OpenApiParameter(
                name="u",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Share key of a private album",
            ),
        ],
        responses={
            200: OpenApiResponse(description="Binary file content"),
            206: OpenApiResponse(description="Partial binary content"),
            404: OpenApiResponse(description="Not found"),
            416: OpenApiResponse(description="Range not satisfiable"),
        },
        tags=["Gallery - Media"],
    )
    def get(self, request, media_id, mode):
        """Deliver album media."""
        stream_mode = _parse_mode(mode)
        if stream_mode is None:
            return Response({"error": "Not Found"}, status=status.HTTP_404_NOT_FOUND)

        media_item = MediaItem.objects.select_related("album").filter(pk=media_id).first()
        if media_item is None:
            return Response({"error": "Not Found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            AccessGate.require_album_access(
                request, media_item.album, share_key=request.query_params.get("u")
            )
            return RangeStreamingService.serve_album_media(request, media_item, stream_mode)
        except BaseApplicationError as e:
            return Response({"error": e.message}, status=status_for_error(e.error_code))


class VaultMediaView(APIView):
    """
    Deliver a vault video.

    GET /api/v1/gallery/vault/{mode}/{filename}/
        mode is one of stream, thumbnail, download.

    Access:
        Active staff session; locked-out callers receive 429.

    Response:
        200 OK: Full content, or an X-Accel-Redirect handoff
        206 Partial Content: Requested byte range
        403 Forbidden: Not an admin session
        404 Not Found: Unknown file
        416 Range Not Satisfiable: Range outside the file
        429 Too Many Requests: Caller locked out
        500 Internal Server Error: Poster frame extraction failed
    """

    permission_classes = []

    @extend_schema(
        operation_id="get_vault_media",
        summary="Get vault media",
        description=(
            "Stream, download or fetch the poster frame of a vault video. "
            "Stream mode prefers the pre-converted stream variant."
        ),
        responses={
            200: OpenApiResponse(description="Binary file content"),
            206: OpenApiResponse(description="Partial binary content"),
            403: OpenApiResponse(description="Not an admin session"),
            404: OpenApiResponse(description="Not found"),
            416: OpenApiResponse(description="Range not satisfiable"),
            429: OpenApiResponse(description="Too many failed attempts"),
        },
        tags=["Gallery - Vault"],
    )
    def get(self, request, mode, filename):
        """Deliver vault media."""
        try:
            AccessGate.require_vault_access(request)
        except BaseApplicationError as e:
            return Response({"error": e.message}, status=status_for_error(e.error_code))

        stream_mode = _parse_mode(mode)
        if stream_mode is None:
            return Response({"error": "Not Found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            return RangeStreamingService.serve_vault(request, stream_mode, filename)
        except BaseApplicationError as e:
            return Response({"error": e.message}, status=status_for_error(e.error_code))
