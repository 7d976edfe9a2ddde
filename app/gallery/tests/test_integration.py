"""
End-to-end upload and playback journeys.

Chunks are cut by the upload client's UploadTask and encoded with the
shared wire contract, then posted through the real endpoint; the result
is fetched back through the media endpoint.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status

from gallery.models import MediaItem
from gallery.processors import TransformResult
from gallery.protocol import ChunkUpload, is_success
from uploader.queue import UploadTask

pytestmark = pytest.mark.django_db

UPLOAD_URL = reverse("gallery:upload")


def _post_file(client, path: Path, album_id: int, csrf_token: str, chunk_size: int):
    """Send every chunk of path in order; return the last response."""
    task = UploadTask.from_path(path, chunk_size=chunk_size)
    response = None
    for index in range(task.total_chunks):
        upload = ChunkUpload(
            chunk=task.read_chunk(index),
            chunk_index=index,
            total_chunks=task.total_chunks,
            filename=task.filename,
            upload_id=task.id,
            album_id=album_id,
            csrf_token=csrf_token,
        )
        form = dict(upload.form_fields())
        form["chunk"] = SimpleUploadedFile("blob", upload.chunk)
        response = client.post(UPLOAD_URL, form, format="multipart")
        if not is_success(response.status_code, response.content.decode()):
            return response
    return response


class TestUploadThenView:
    """Upload a photo in chunks, then view it through a share link."""

    def test_full_journey(
        self, staff_client, api_client, upload_token, album, sample_jpeg, settings, tmp_path
    ) -> None:
        settings.GALLERY_CHUNK_SIZE = 1024
        source = tmp_path / "Beach Day.jpg"
        source.write_bytes(sample_jpeg)

        response = _post_file(staff_client, source, album.id, upload_token, chunk_size=1024)

        assert response.status_code == status.HTTP_200_OK
        assert response.content == b"OK"

        item = MediaItem.objects.get(album=album)
        assert item.filename == "Beach_Day.jpg"
        assert item.title == "Beach_Day"
        assert not Path(album.arena_directory).exists()

        media_url = reverse("gallery:album-media", kwargs={"media_id": item.id, "mode": "stream"})
        thumb_url = reverse(
            "gallery:album-media", kwargs={"media_id": item.id, "mode": "thumbnail"}
        )

        # Private album: hidden without the share key
        assert api_client.get(media_url).status_code == status.HTTP_404_NOT_FOUND

        ranged = api_client.get(media_url, {"u": album.share_key}, HTTP_RANGE="bytes=0-99")
        assert ranged.status_code == status.HTTP_206_PARTIAL_CONTENT
        assert ranged["Content-Range"] == f"bytes 0-99/{len(sample_jpeg)}"
        assert b"".join(ranged.streaming_content) == sample_jpeg[:100]

        thumb = api_client.get(thumb_url, {"u": album.share_key})
        assert thumb.status_code == status.HTTP_200_OK
        assert b"".join(thumb.streaming_content).startswith(b"\xff\xd8")

    def test_retried_chunk_is_idempotent(
        self, staff_client, upload_token, album, sample_jpeg, chunk_form, settings
    ) -> None:
        settings.GALLERY_CHUNK_SIZE = 1024
        chunks = [sample_jpeg[i : i + 1024] for i in range(0, len(sample_jpeg), 1024)]
        total = len(chunks)

        for index, data in enumerate(chunks):
            form = chunk_form(data, index, total, "beach.jpg", upload_token, album.id)
            response = staff_client.post(UPLOAD_URL, form, format="multipart")
            if index == 0:
                # Same chunk again, as after a lost response
                form = chunk_form(data, index, total, "beach.jpg", upload_token, album.id)
                response = staff_client.post(UPLOAD_URL, form, format="multipart")
            assert response.content == b"OK"

        stored = Path(settings.GALLERY_PUBLIC_ROOT) / "summer" / "beach.jpg"
        assert stored.read_bytes() == sample_jpeg


class TestRollbackJourney:
    """A failing thumbnail leaves nothing behind and the upload can be retried."""

    def test_thumbnail_failure_then_retry(
        self, staff_client, upload_token, album, sample_jpeg, settings, tmp_path
    ) -> None:
        source = tmp_path / "beach.jpg"
        source.write_bytes(sample_jpeg)

        with patch(
            "gallery.processors.image.ImageThumbnailer.transform",
            return_value=TransformResult.fail("convert exited 1"),
        ):
            failed = _post_file(
                staff_client, source, album.id, upload_token, chunk_size=len(sample_jpeg)
            )

        assert failed.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert failed.content == b"Thumbnail failed"
        assert not MediaItem.objects.exists()
        assert not (Path(settings.GALLERY_PUBLIC_ROOT) / "summer" / "beach.jpg").exists()
        assert not (Path(settings.GALLERY_THUMB_ROOT) / "summer" / "beach.jpg").exists()

        retried = _post_file(
            staff_client, source, album.id, upload_token, chunk_size=len(sample_jpeg)
        )

        assert retried.content == b"OK"
        assert MediaItem.objects.filter(album=album, filename="beach.jpg").count() == 1
