"""
Chunk assembly service package.

Provides resumable, chunked photo uploads over local filesystem storage.
Chunks are staged per album, concatenated when the last index arrives,
then validated, thumbnailed and committed, or rolled back as a whole.

Usage:
    from gallery.services.chunked_upload import get_chunk_assembly_service

    service = get_chunk_assembly_service()
    result = service.receive_chunk(
        chunk=uploaded_file.chunks(),
        chunk_index=2,
        total_chunks=3,
        filename="beach.jpg",
        upload_id="1714560000000_k3j9x0a1b",
        album_id=4,
    )

    if result.success and result.data.committed:
        media_item = result.data.media_item
"""

from gallery.services.chunked_upload.arena import ChunkArena
from gallery.services.chunked_upload.base import (
    AssemblyState,
    ChunkReceipt,
    InvalidTransition,
    UploadPipeline,
)
from gallery.services.chunked_upload.factory import get_chunk_assembly_service
from gallery.services.chunked_upload.local import LocalChunkAssemblyService

__all__ = [
    "AssemblyState",
    "ChunkArena",
    "ChunkReceipt",
    "InvalidTransition",
    "LocalChunkAssemblyService",
    "UploadPipeline",
    "get_chunk_assembly_service",
]
