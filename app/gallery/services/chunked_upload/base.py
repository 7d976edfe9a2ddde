"""
Base types for the chunk assembly pipeline.

An upload id moves through a fixed sequence of states once its last chunk
arrives:

    RECEIVING -> ASSEMBLING -> VALIDATING -> THUMBNAILING -> COMMITTING -> DONE

Any failure moves it to FAILED_CLEANUP, which removes every file the
pipeline produced so far. Only DONE leaves anything behind.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gallery.models import MediaItem

logger = logging.getLogger(__name__)


# =============================================================================
# States
# =============================================================================


class AssemblyState(str, Enum):
    """Lifecycle of one upload id on the server."""

    RECEIVING = "receiving"
    ASSEMBLING = "assembling"
    VALIDATING = "validating"
    THUMBNAILING = "thumbnailing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED_CLEANUP = "failed_cleanup"


# Forward transitions; FAILED_CLEANUP is reachable from any non-terminal state
_NEXT_STATE: dict[AssemblyState, AssemblyState] = {
    AssemblyState.RECEIVING: AssemblyState.ASSEMBLING,
    AssemblyState.ASSEMBLING: AssemblyState.VALIDATING,
    AssemblyState.VALIDATING: AssemblyState.THUMBNAILING,
    AssemblyState.THUMBNAILING: AssemblyState.COMMITTING,
    AssemblyState.COMMITTING: AssemblyState.DONE,
}

TERMINAL_STATES = frozenset({AssemblyState.DONE, AssemblyState.FAILED_CLEANUP})


class InvalidTransition(RuntimeError):
    """Raised when the pipeline is asked to skip or repeat a state."""


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class ChunkReceipt:
    """
    Outcome of receiving one chunk.

    Attributes:
        upload_id: Sanitized upload id
        chunk_index: Index of the chunk that was stored
        total_chunks: Declared number of chunks
        state: RECEIVING for intermediate chunks, DONE after a commit
        media_item: The committed record (last chunk only)
    """

    upload_id: str
    chunk_index: int
    total_chunks: int
    state: AssemblyState = AssemblyState.RECEIVING
    media_item: "MediaItem | None" = None

    @property
    def committed(self) -> bool:
        return self.state is AssemblyState.DONE


# =============================================================================
# Pipeline
# =============================================================================


@dataclass
class UploadPipeline:
    """
    State machine for one upload id after its final chunk arrives.

    Files registered with track() are removed when the pipeline fails;
    files the pipeline has handed off (untrack) are left alone.

    Usage:
        pipeline = UploadPipeline(upload_id="abc", album_id=3, filename="a.jpg")
        pipeline.advance(AssemblyState.ASSEMBLING)
        pipeline.track(temp_path)
        ...
        pipeline.fail("Missing chunk")
    """

    upload_id: str
    album_id: int
    filename: str
    state: AssemblyState = AssemblyState.RECEIVING
    history: list[AssemblyState] = field(default_factory=lambda: [AssemblyState.RECEIVING])
    artifacts: list[str] = field(default_factory=list)

    def advance(self, target: AssemblyState) -> None:
        """Move to the next state in sequence."""
        expected = _NEXT_STATE.get(self.state)
        if target is not expected:
            raise InvalidTransition(f"{self.state.value} -> {target.value}")
        self._enter(target)

    def track(self, path: str) -> None:
        """Register a file to delete if the pipeline fails."""
        if path not in self.artifacts:
            self.artifacts.append(path)

    def untrack(self, path: str) -> None:
        """Stop tracking a file (it was moved or deleted)."""
        if path in self.artifacts:
            self.artifacts.remove(path)

    def fail(self, reason: str) -> list[str]:
        """
        Enter FAILED_CLEANUP and delete every tracked file.

        Returns:
            Paths that were actually removed
        """
        if self.state in TERMINAL_STATES:
            raise InvalidTransition(f"{self.state.value} -> {AssemblyState.FAILED_CLEANUP.value}")
        failed_in = self.state
        self._enter(AssemblyState.FAILED_CLEANUP, reason=reason)

        removed = []
        for path in reversed(self.artifacts):
            try:
                os.unlink(path)
                removed.append(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(
                    "Failed to remove upload artifact",
                    extra={"upload_id": self.upload_id, "path": path, "error": str(e)},
                )
        self.artifacts.clear()

        logger.info(
            "Upload rolled back",
            extra={
                "upload_id": self.upload_id,
                "failed_in": failed_in.value,
                "removed": removed,
            },
        )
        return removed

    def _enter(self, target: AssemblyState, reason: str | None = None) -> None:
        previous = self.state
        self.state = target
        self.history.append(target)
        logger.info(
            "Upload state transition",
            extra={
                "upload_id": self.upload_id,
                "album_id": self.album_id,
                "upload_filename": self.filename,
                "from_state": previous.value,
                "to_state": target.value,
                "reason": reason,
            },
        )
