"""
Upload client for the gallery's chunked upload endpoint.

Provides:
- UploadQueueController: bounded-concurrency queue of file uploads
- HttpChunkSender: posts one chunk per request over httpx

Usage:
    import httpx
    from uploader import HttpChunkSender, UploadQueueController

    async with httpx.AsyncClient(base_url=server, cookies=cookies) as client:
        sender = HttpChunkSender(client)
        token = await sender.fetch_csrf_token()
        controller = UploadQueueController(sender, album_id=4, csrf_token=token)
        controller.add_files(paths)
        await controller.join()
"""

from uploader.queue import MAX_PARALLEL, TaskState, UploadQueueController, UploadTask
from uploader.transport import ChunkRejected, ChunkSender, HttpChunkSender

__all__ = [
    "MAX_PARALLEL",
    "ChunkRejected",
    "ChunkSender",
    "HttpChunkSender",
    "TaskState",
    "UploadQueueController",
    "UploadTask",
]
