"""
Factory function for the chunk assembly service.

Views obtain the service through this function so tests can swap the
collaborators (validator, thumbnailer) in one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gallery.services.chunked_upload.local import LocalChunkAssemblyService


def get_chunk_assembly_service() -> "LocalChunkAssemblyService":
    """
    Get the chunk assembly service configured from settings.

    Returns:
        LocalChunkAssemblyService with the default Pillow thumbnailer and
        libmagic content validator

    Usage:
        service = get_chunk_assembly_service()
        result = service.receive_chunk(chunk=data, chunk_index=0, ...)
    """
    from gallery.services.chunked_upload.local import LocalChunkAssemblyService

    return LocalChunkAssemblyService()
