"""
Filesystem staging area for the chunks of in-flight uploads.

Each album has one arena directory (<album dir>/.chunks/). A chunk is
stored as ``<upload_id>.<index>``; the directory listing is the only record
of which chunks have arrived, so the arena survives process restarts and
needs no database rows.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable

from gallery.exceptions import AssemblyError
from gallery.protocol import chunk_filename

logger = logging.getLogger(__name__)

# Copy buffer used while concatenating chunks
COPY_BUFFER_SIZE = 1024 * 1024


class ChunkArena:
    """
    Chunk storage for one album.

    Usage:
        arena = ChunkArena(album.arena_directory)
        arena.store("1714560000000_k3j9x0a1b", 0, uploaded_file.chunks())
        if last_chunk:
            arena.assemble("1714560000000_k3j9x0a1b", total_chunks, temp_path)
            arena.discard("1714560000000_k3j9x0a1b", total_chunks)
    """

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def chunk_path(self, upload_id: str, chunk_index: int) -> str:
        """Path of one stored chunk."""
        return os.path.join(self.directory, chunk_filename(upload_id, chunk_index))

    def assembly_path(self, upload_id: str) -> str:
        """Scratch path the chunks of upload_id are concatenated into."""
        return os.path.join(self.directory, f"{upload_id}.assembling")

    def has_chunk(self, upload_id: str, chunk_index: int) -> bool:
        return os.path.isfile(self.chunk_path(upload_id, chunk_index))

    def store(self, upload_id: str, chunk_index: int, data: bytes | Iterable[bytes]) -> str:
        """
        Persist one chunk.

        The bytes are written to a temporary file and renamed over the final
        chunk path, so a concurrent reader sees either no chunk or the whole
        chunk, and re-sending the same index simply replaces it.

        Args:
            upload_id: Sanitized upload id
            chunk_index: 0-based index of the chunk
            data: Chunk bytes, or an iterable of byte blocks

        Returns:
            Path of the stored chunk
        """
        os.makedirs(self.directory, exist_ok=True)
        target = self.chunk_path(upload_id, chunk_index)
        blocks = [data] if isinstance(data, (bytes, bytearray, memoryview)) else data

        fd, temp_path = tempfile.mkstemp(dir=self.directory, prefix=".", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                for block in blocks:
                    f.write(block)
            os.replace(temp_path, target)
        except BaseException:
            _unlink_quietly(temp_path)
            raise

        return target

    def assemble(self, upload_id: str, total_chunks: int, destination: str) -> int:
        """
        Concatenate chunks 0..total_chunks-1 in order into destination.

        Each chunk is streamed, never loaded whole. If any chunk is missing
        the partially written destination is removed and the stored chunks
        are left in place for a retry.

        Returns:
            Number of bytes written

        Raises:
            AssemblyError: A chunk in [0, total_chunks) is absent
        """
        written = 0
        try:
            with open(destination, "wb") as out:
                for index in range(total_chunks):
                    path = self.chunk_path(upload_id, index)
                    try:
                        source = open(path, "rb")
                    except FileNotFoundError:
                        raise AssemblyError(
                            "Missing chunk",
                            details={"upload_id": upload_id, "chunk_index": index},
                        ) from None
                    with source:
                        while True:
                            block = source.read(COPY_BUFFER_SIZE)
                            if not block:
                                break
                            out.write(block)
                            written += len(block)
        except BaseException:
            _unlink_quietly(destination)
            raise

        return written

    def discard(self, upload_id: str, total_chunks: int) -> None:
        """Delete the stored chunks of one upload and the arena if now empty."""
        for index in range(total_chunks):
            _unlink_quietly(self.chunk_path(upload_id, index))
        self.remove_if_empty()

    def remove_if_empty(self) -> bool:
        """Remove the arena directory when no chunks remain in it."""
        try:
            os.rmdir(self.directory)
        except FileNotFoundError:
            return True
        except OSError:
            # Not empty: other uploads are still staging chunks here
            return False
        logger.debug("Removed empty chunk arena", extra={"directory": self.directory})
        return True


def _unlink_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
