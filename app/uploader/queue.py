"""
Bounded-concurrency upload queue.

One UploadQueueController serves one upload surface (an album). Dropped
files become UploadTasks; at most ``max_parallel`` tasks transfer at once,
however many are queued. Within a task chunks go strictly one after
another, so the server sees them in index order.

Task lifecycle:

    QUEUED -> RECEIVING(index) -> COMPLETE
                               -> FAILED      (a chunk was rejected)
              -> CANCELLED                    (from QUEUED or RECEIVING)

Cancellation is cooperative: a cancelled task issues no further chunk and
frees its slot at once, but a chunk request already in flight is allowed
to finish and its outcome is ignored.

Everything runs on one asyncio event loop; the controller is not
thread-safe.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from gallery.protocol import (
    DEFAULT_CHUNK_SIZE,
    ChunkUpload,
    new_upload_id,
    total_chunks_for,
)
from uploader.transport import ChunkRejected, ChunkSender

logger = logging.getLogger(__name__)

# Default number of tasks transferring at the same time
MAX_PARALLEL = 3


class TaskState(str, Enum):
    """Client-side lifecycle of one file upload."""

    QUEUED = "queued"
    RECEIVING = "receiving"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


def is_image(path: str | os.PathLike) -> bool:
    """Accept files whose guessed MIME type is image/*."""
    mime_type, _ = mimetypes.guess_type(str(path))
    return bool(mime_type and mime_type.startswith("image/"))


# =============================================================================
# Task
# =============================================================================


@dataclass(eq=False)
class UploadTask:
    """
    One file being uploaded.

    Attributes:
        path: Source file on disk
        size: File size in bytes, taken when the task is created
        chunk_size: Bytes per chunk (fixed for the task)
        id: Upload id sent with every chunk
        uploaded_count: Chunks acknowledged by the server
        cancelled: Set by UploadQueueController.cancel()
        state: Current lifecycle state
        current_index: Index of the chunk being sent (RECEIVING only)
        error: Error detail of a failed task
    """

    path: Path
    size: int
    chunk_size: int = DEFAULT_CHUNK_SIZE
    id: str = field(default_factory=new_upload_id)
    uploaded_count: int = 0
    cancelled: bool = False
    state: TaskState = TaskState.QUEUED
    current_index: int | None = None
    error: str | None = None

    @classmethod
    def from_path(cls, path: str | os.PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE) -> "UploadTask":
        path = Path(path)
        return cls(path=path, size=path.stat().st_size, chunk_size=chunk_size)

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def total_chunks(self) -> int:
        return total_chunks_for(self.size, self.chunk_size)

    @property
    def progress(self) -> float:
        """Fraction of chunks acknowledged, 0.0 to 1.0."""
        if not self.total_chunks:
            return 0.0
        return self.uploaded_count / self.total_chunks

    def read_chunk(self, index: int) -> bytes:
        """Read the bytes of chunk ``index`` from the source file."""
        with open(self.path, "rb") as f:
            f.seek(index * self.chunk_size)
            return f.read(self.chunk_size)


# =============================================================================
# Controller
# =============================================================================


class UploadQueueController:
    """
    Queue of uploads for one album with a concurrency bound.

    Usage:
        controller = UploadQueueController(
            sender,
            album_id=4,
            csrf_token=token,
            on_progress=lambda task: print(task.filename, task.progress),
            on_drained=refresh_album,
        )
        controller.add_files(["beach.jpg", "dunes.jpg"])
        await controller.join()
    """

    def __init__(
        self,
        sender: ChunkSender,
        album_id: int,
        csrf_token: str,
        max_parallel: int = MAX_PARALLEL,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        accept: Callable[[str | os.PathLike], bool] = is_image,
        on_progress: Callable[[UploadTask], None] | None = None,
        on_failure: Callable[[UploadTask], None] | None = None,
        on_drained: Callable[[], None] | None = None,
    ) -> None:
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        self.sender = sender
        self.album_id = album_id
        self.csrf_token = csrf_token
        self.max_parallel = max_parallel
        self.chunk_size = chunk_size
        self.accept = accept
        self.on_progress = on_progress
        self.on_failure = on_failure
        self.on_drained = on_drained

        # Tasks shown on the surface (queued or active)
        self.tasks: list[UploadTask] = []
        self.queue: deque[UploadTask] = deque()
        self.active_count = 0

        self._slots: set[str] = set()
        self._runners: dict[str, asyncio.Task] = {}
        self._drained = asyncio.Event()
        self._drained.set()

    # =========================================================================
    # Public API
    # =========================================================================

    def add_files(self, paths: Iterable[str | os.PathLike]) -> list[UploadTask]:
        """
        Enqueue one task per accepted file and start as many as allowed.

        Must be called from inside the running event loop.

        A file that cannot be stat'ed is reported through on_failure and
        does not stop the files after it.

        Returns:
            The queued tasks, in drop order
        """
        created = []
        for path in paths:
            if not self.accept(path):
                logger.info("Skipping file of unaccepted type", extra={"path": str(path)})
                continue
            try:
                task = UploadTask.from_path(path, chunk_size=self.chunk_size)
            except OSError as e:
                task = UploadTask(path=Path(path), size=0, chunk_size=self.chunk_size)
                self._fail(task, f"Could not read file: {e.strerror or e}")
                continue
            created.append(task)
            self.tasks.append(task)
            self.queue.append(task)

        if created:
            self._drained.clear()
            self._pump()
        return created

    def cancel(self, task_id: str) -> bool:
        """
        Cancel a queued or active task.

        A queued task is dropped from the queue without affecting active
        tasks. An active task stops before its next chunk and its slot is
        freed immediately.

        Returns:
            True if a task was cancelled
        """
        task = next((t for t in self.tasks if t.id == task_id), None)
        if task is None or task.state not in (TaskState.QUEUED, TaskState.RECEIVING):
            return False

        task.cancelled = True
        task.state = TaskState.CANCELLED
        logger.info(
            "Upload cancelled",
            extra={"upload_id": task.id, "upload_filename": task.filename},
        )

        if task in self.queue:
            self.queue.remove(task)
            self._drop(task)
            self._check_drained()
        else:
            self._release(task)
        return True

    async def join(self) -> None:
        """Wait until the queue is empty and every task has finished."""
        await self._drained.wait()
        # Cancelled tasks may still be waiting on their last request
        if self._runners:
            await asyncio.gather(*self._runners.values(), return_exceptions=True)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def _pump(self) -> None:
        loop = asyncio.get_running_loop()
        while self.active_count < self.max_parallel and self.queue:
            task = self.queue.popleft()
            self.active_count += 1
            self._slots.add(task.id)
            runner = loop.create_task(self._run(task))
            self._runners[task.id] = runner
            runner.add_done_callback(lambda _, task_id=task.id: self._runners.pop(task_id, None))

    def _release(self, task: UploadTask) -> None:
        """Free the task's slot (once), drop it from the surface, refill."""
        if task.id in self._slots:
            self._slots.discard(task.id)
            self.active_count -= 1
        self._drop(task)
        self._pump()
        self._check_drained()

    def _drop(self, task: UploadTask) -> None:
        if task in self.tasks:
            self.tasks.remove(task)

    def _check_drained(self) -> None:
        if self.queue or self.active_count or self._drained.is_set():
            return
        self._drained.set()
        logger.debug("Upload queue drained", extra={"album_id": self.album_id})
        if self.on_drained is not None:
            self.on_drained()

    # =========================================================================
    # Per-task Transfer
    # =========================================================================

    async def _run(self, task: UploadTask) -> None:
        try:
            await self._transfer(task)
        except ChunkRejected as e:
            self._fail(task, e.detail)
        except OSError as e:
            self._fail(task, f"Could not read file: {e.strerror or e}")
        except Exception as e:
            logger.exception("Unexpected upload error", extra={"upload_id": task.id})
            self._fail(task, str(e) or e.__class__.__name__)
        finally:
            self._release(task)

    async def _transfer(self, task: UploadTask) -> None:
        total = task.total_chunks
        if total == 0:
            # The server requires total_chunks > 0
            self._fail(task, "Empty file")
            return

        index = 0
        while index < total:
            if task.cancelled:
                return
            task.state = TaskState.RECEIVING
            task.current_index = index

            data = await asyncio.to_thread(task.read_chunk, index)
            if task.cancelled:
                return
            await self.sender.send(
                ChunkUpload(
                    chunk=data,
                    chunk_index=index,
                    total_chunks=total,
                    filename=task.filename,
                    upload_id=task.id,
                    album_id=self.album_id,
                    csrf_token=self.csrf_token,
                )
            )
            if task.cancelled:
                # The in-flight chunk landed after cancel; ignore it
                return

            task.uploaded_count += 1
            if self.on_progress is not None:
                self.on_progress(task)
            index += 1

        task.state = TaskState.COMPLETE
        task.current_index = None
        logger.info(
            "Upload complete",
            extra={"upload_id": task.id, "upload_filename": task.filename, "chunks": total},
        )

    def _fail(self, task: UploadTask, detail: str) -> None:
        if task.cancelled:
            return
        task.state = TaskState.FAILED
        task.error = detail
        logger.warning(
            "Upload failed",
            extra={
                "upload_id": task.id,
                "upload_filename": task.filename,
                "chunk_index": task.current_index,
                "error": detail,
            },
        )
        if self.on_failure is not None:
            self.on_failure(task)
