"""
HTTP transport for chunk uploads.

One chunk is one multipart POST. The request succeeds only when the server
answers 2xx with the literal success token; anything else raises
ChunkRejected carrying the response body, which the queue shows to the
user as the error detail.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from gallery.protocol import ChunkUpload, is_success

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_PATH = "/api/v1/gallery/upload/"
DEFAULT_CSRF_PATH = "/api/v1/gallery/csrf/"


class ChunkRejected(Exception):
    """
    Raised when a chunk was not accepted.

    Attributes:
        detail: Response body, or the transport error text
        status_code: HTTP status, None when no response was received
    """

    def __init__(self, detail: str, status_code: int | None = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


@runtime_checkable
class ChunkSender(Protocol):
    """Anything that can deliver one chunk or raise ChunkRejected."""

    async def send(self, upload: ChunkUpload) -> None: ...


class HttpChunkSender:
    """
    Chunk sender backed by a shared httpx.AsyncClient.

    The client carries the base URL and the session cookie; this class
    only knows the endpoint paths and the response contract.

    Example:
        async with httpx.AsyncClient(base_url="https://gallery.example") as client:
            sender = HttpChunkSender(client)
            await sender.send(upload)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        upload_path: str = DEFAULT_UPLOAD_PATH,
        csrf_path: str = DEFAULT_CSRF_PATH,
    ) -> None:
        self.client = client
        self.upload_path = upload_path
        self.csrf_path = csrf_path

    async def send(self, upload: ChunkUpload) -> None:
        """
        POST one chunk.

        Raises:
            ChunkRejected: Non-2xx status, unexpected body, or transport error
        """
        try:
            response = await self.client.post(
                self.upload_path,
                data=upload.form_fields(),
                files=upload.files(),
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Chunk request failed",
                extra={
                    "upload_id": upload.upload_id,
                    "chunk_index": upload.chunk_index,
                    "error": str(e),
                },
            )
            raise ChunkRejected(str(e) or e.__class__.__name__) from e

        if not is_success(response.status_code, response.text):
            logger.warning(
                "Chunk rejected",
                extra={
                    "upload_id": upload.upload_id,
                    "chunk_index": upload.chunk_index,
                    "status_code": response.status_code,
                },
            )
            raise ChunkRejected(
                response.text or f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

    async def fetch_csrf_token(self) -> str:
        """
        Fetch the upload token bound to the client's session.

        Raises:
            httpx.HTTPStatusError: The session is not an admin session
        """
        response = await self.client.get(self.csrf_path)
        response.raise_for_status()
        return response.json()["csrf_token"]
