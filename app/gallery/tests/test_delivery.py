"""
Tests for RangeStreamingService.

Tests cover:
- Range header parsing (satisfiable, unsatisfiable, malformed)
- Full, partial and 416 responses with their headers
- X-Accel-Redirect delegation for stream variants
- Path containment for album and vault files
- Lazy vault poster frames
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from django.test import RequestFactory

from core.exceptions import NotFoundError
from gallery.exceptions import RangeNotSatisfiableError, ThumbnailError
from gallery.processors import ThumbnailSpec, TransformResult
from gallery.services.delivery import (
    NO_STORE,
    THUMBNAIL_CACHE_CONTROL,
    RangeStreamingService,
    StreamMode,
    iter_file_range,
    parse_range,
)
from gallery.tests.conftest import write_file
from gallery.tests.factories import MediaItemFactory

CONTENT = bytes(range(256)) * 4  # 1024 bytes


def _body(response) -> bytes:
    return b"".join(response.streaming_content)


def _get(range_header: str | None = None):
    headers = {"HTTP_RANGE": range_header} if range_header else {}
    return RequestFactory().get("/media/", REMOTE_ADDR="203.0.113.9", **headers)


class FakeFrameExtractor:
    """Frame extractor that writes fixed bytes and counts calls."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.calls: list[tuple[str, str, ThumbnailSpec]] = []

    def transform(self, input_path: str, output_path: str, spec: ThumbnailSpec) -> TransformResult:
        self.calls.append((input_path, output_path, spec))
        if not self.succeed:
            return TransformResult.fail("Failed to extract frame from video")
        write_file(output_path, b"\xff\xd8poster")
        return TransformResult.ok(output_path)


# =============================================================================
# Range Parsing
# =============================================================================


class TestParseRange:
    """Tests for parse_range()."""

    @pytest.mark.parametrize(
        "header, expected",
        [
            ("bytes=0-99", (0, 99, 100)),
            ("bytes=500-", (500, 999, 500)),
            ("bytes=999-999", (999, 999, 1)),
            ("bytes=0-", (0, 999, 1000)),
            (" bytes=10-19 ", (10, 19, 10)),
        ],
    )
    def test_satisfiable(self, header: str, expected: tuple[int, int, int]) -> None:
        byte_range = parse_range(header, 1000)

        assert (byte_range.start, byte_range.end, byte_range.length) == expected
        assert byte_range.content_range == f"bytes {expected[0]}-{expected[1]}/1000"

    @pytest.mark.parametrize(
        "header",
        [None, "", "bytes=-500", "bytes=0-1,5-9", "items=0-9", "bytes=a-b", "bytes 0-9"],
    )
    def test_absent_or_malformed_means_full_content(self, header: str | None) -> None:
        assert parse_range(header, 1000) is None

    @pytest.mark.parametrize(
        "header",
        ["bytes=950-2000", "bytes=1000-", "bytes=1000-1001", "bytes=20-10", "bytes=0-1000"],
    )
    def test_unsatisfiable(self, header: str) -> None:
        with pytest.raises(RangeNotSatisfiableError) as exc_info:
            parse_range(header, 1000)

        assert exc_info.value.total_size == 1000

    def test_empty_resource_has_no_satisfiable_range(self) -> None:
        with pytest.raises(RangeNotSatisfiableError):
            parse_range("bytes=0-", 0)


class TestIterFileRange:
    """Tests for iter_file_range()."""

    def test_reads_span_in_blocks(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "f.bin", CONTENT)

        blocks = list(iter_file_range(str(path), 10, 25, block_size=10))

        assert [len(b) for b in blocks] == [10, 10, 5]
        assert b"".join(blocks) == CONTENT[10:35]

    def test_stops_at_end_of_file(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "f.bin", b"abc")

        assert b"".join(iter_file_range(str(path), 1, 100, block_size=8)) == b"bc"


# =============================================================================
# serve_file
# =============================================================================


class TestServeFile:
    """Tests for RangeStreamingService.serve_file()."""

    def test_full_content(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(str(path))

        assert response.status_code == 200
        assert response["Content-Length"] == "1024"
        assert response["Content-Type"] == "video/mp4"
        assert response["Accept-Ranges"] == "bytes"
        assert response["Cache-Control"] == NO_STORE
        assert response["Content-Disposition"] == 'inline; filename="clip.mp4"'
        assert "Content-Range" not in response
        assert _body(response) == CONTENT

    def test_partial_content(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(str(path), range_header="bytes=0-99")

        assert response.status_code == 206
        assert response["Content-Range"] == "bytes 0-99/1024"
        assert response["Content-Length"] == "100"
        assert _body(response) == CONTENT[:100]

    def test_open_ended_range(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(str(path), range_header="bytes=1000-")

        assert response.status_code == 206
        assert response["Content-Range"] == "bytes 1000-1023/1024"
        assert _body(response) == CONTENT[1000:]

    def test_unsatisfiable_range(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(str(path), range_header="bytes=950-2000")

        assert response.status_code == 416
        assert response["Content-Range"] == "bytes */1024"
        assert response.content == b""

    def test_malformed_range_serves_everything(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(str(path), range_header="bytes=-100")

        assert response.status_code == 200
        assert _body(response) == CONTENT

    def test_download_is_attachment(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "my clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(str(path), mode=StreamMode.DOWNLOAD)

        assert response["Content-Disposition"] == 'attachment; filename="my%20clip.mp4"'

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError):
            RangeStreamingService.serve_file(str(tmp_path / "missing.mp4"))

    def test_proxy_strategy_delegates(self, settings, tmp_path: Path) -> None:
        settings.GALLERY_STREAM_STRATEGY = "proxy"
        path = write_file(tmp_path / "clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(
            str(path), proxy_path="/protected/stream/clip.mp4", range_header="bytes=0-9"
        )

        assert response.status_code == 200
        assert response["X-Accel-Redirect"] == "/protected/stream/clip.mp4"
        assert response["Accept-Ranges"] == "bytes"
        assert response.content == b""

    def test_direct_strategy_ignores_proxy_path(self, tmp_path: Path) -> None:
        path = write_file(tmp_path / "clip.mp4", CONTENT)

        response = RangeStreamingService.serve_file(
            str(path), proxy_path="/protected/stream/clip.mp4"
        )

        assert "X-Accel-Redirect" not in response
        assert _body(response) == CONTENT


class TestResolveWithin:
    """Tests for RangeStreamingService.resolve_within()."""

    def test_inside_root(self, tmp_path: Path) -> None:
        path = RangeStreamingService.resolve_within(str(tmp_path), "a", "b.jpg")

        assert path == str(tmp_path.resolve() / "a" / "b.jpg")

    @pytest.mark.parametrize("parts", [("..", "etc", "passwd"), ("/etc/passwd",), (".",)])
    def test_escape_is_not_found(self, tmp_path: Path, parts: tuple[str, ...]) -> None:
        with pytest.raises(NotFoundError):
            RangeStreamingService.resolve_within(str(tmp_path / "root"), *parts)

    def test_symlink_out_of_root(self, tmp_path: Path) -> None:
        root = tmp_path / "root"
        root.mkdir()
        write_file(tmp_path / "secret.txt", b"secret")
        (root / "link.txt").symlink_to(tmp_path / "secret.txt")

        with pytest.raises(NotFoundError):
            RangeStreamingService.resolve_within(str(root), "link.txt")


# =============================================================================
# Album Media
# =============================================================================


@pytest.mark.django_db
class TestServeAlbumMedia:
    """Tests for RangeStreamingService.serve_album_media()."""

    def test_stream_original(self, album, settings) -> None:
        item = MediaItemFactory(album=album, filename="beach.jpg")
        write_file(Path(settings.GALLERY_PUBLIC_ROOT) / "summer" / "beach.jpg", CONTENT)

        response = RangeStreamingService.serve_album_media(
            _get("bytes=0-9"), item, StreamMode.STREAM
        )

        assert response.status_code == 206
        assert response["Content-Type"] == "image/jpeg"
        assert _body(response) == CONTENT[:10]

    def test_thumbnail_is_cacheable(self, album, settings) -> None:
        item = MediaItemFactory(album=album, filename="beach.jpg")
        write_file(Path(settings.GALLERY_THUMB_ROOT) / "summer" / "beach.jpg", b"thumb")

        response = RangeStreamingService.serve_album_media(_get(), item, StreamMode.THUMBNAIL)

        assert response["Cache-Control"] == THUMBNAIL_CACHE_CONTROL
        assert _body(response) == b"thumb"

    def test_download_is_audited(self, album, settings, caplog) -> None:
        item = MediaItemFactory(album=album, filename="beach.jpg")
        write_file(Path(settings.GALLERY_PUBLIC_ROOT) / "summer" / "beach.jpg", CONTENT)

        with caplog.at_level(logging.INFO, logger="gallery.audit"):
            response = RangeStreamingService.serve_album_media(
                _get(), item, StreamMode.DOWNLOAD
            )

        assert response["Content-Disposition"].startswith("attachment")
        assert "[download] [album] ip:203.0.113.9" in caplog.text

    def test_missing_original(self, album) -> None:
        item = MediaItemFactory(album=album, filename="beach.jpg")

        with pytest.raises(NotFoundError):
            RangeStreamingService.serve_album_media(_get(), item, StreamMode.STREAM)


# =============================================================================
# Vault
# =============================================================================


class TestServeVault:
    """Tests for RangeStreamingService.serve_vault()."""

    def test_stream_source(self, vault_root: Path) -> None:
        write_file(vault_root / "concert.mp4", CONTENT)

        response = RangeStreamingService.serve_vault(
            _get("bytes=100-199"), StreamMode.STREAM, "concert.mp4"
        )

        assert response.status_code == 206
        assert _body(response) == CONTENT[100:200]

    def test_stream_prefers_variant(self, vault_root: Path) -> None:
        write_file(vault_root / "concert.mp4", CONTENT)
        write_file(vault_root / "stream" / "concert.mp4", b"variant")

        response = RangeStreamingService.serve_vault(_get(), StreamMode.STREAM, "concert.mp4")

        assert _body(response) == b"variant"

    def test_stream_variant_via_proxy(self, settings, vault_root: Path) -> None:
        settings.GALLERY_STREAM_STRATEGY = "proxy"
        settings.GALLERY_PROXY_PREFIX = "/protected/"
        write_file(vault_root / "live show.mp4", CONTENT)
        write_file(vault_root / "stream" / "live show.mp4", b"variant")

        response = RangeStreamingService.serve_vault(_get(), StreamMode.STREAM, "live show.mp4")

        assert response["X-Accel-Redirect"] == "/protected/stream/live%20show.mp4"

    def test_stream_is_audited(self, vault_root: Path, caplog) -> None:
        write_file(vault_root / "concert.mp4", CONTENT)

        with caplog.at_level(logging.INFO, logger="gallery.audit"):
            RangeStreamingService.serve_vault(_get(), StreamMode.STREAM, "concert.mp4")

        assert "[view] [vault]" in caplog.text
        assert "Vault file streamed" in caplog.text
        assert '{"file":"concert.mp4"}' in caplog.text

    def test_download_serves_source(self, vault_root: Path, caplog) -> None:
        write_file(vault_root / "concert.mp4", CONTENT)
        write_file(vault_root / "stream" / "concert.mp4", b"variant")

        with caplog.at_level(logging.INFO, logger="gallery.audit"):
            response = RangeStreamingService.serve_vault(
                _get(), StreamMode.DOWNLOAD, "concert.mp4"
            )

        assert _body(response) == CONTENT
        assert response["Content-Disposition"] == 'attachment; filename="concert.mp4"'
        assert "[download] [vault]" in caplog.text

    def test_thumbnail_is_generated_once(self, settings, vault_root: Path) -> None:
        settings.GALLERY_VIDEO_THUMBNAIL_WIDTH = 120
        write_file(vault_root / "concert.mp4", CONTENT)
        extractor = FakeFrameExtractor()

        first = RangeStreamingService.serve_vault(
            _get(), StreamMode.THUMBNAIL, "concert.mp4", frame_extractor=extractor
        )
        second = RangeStreamingService.serve_vault(
            _get(), StreamMode.THUMBNAIL, "concert.mp4", frame_extractor=extractor
        )

        assert _body(first) == b"\xff\xd8poster"
        assert _body(second) == b"\xff\xd8poster"
        assert first["Cache-Control"] == THUMBNAIL_CACHE_CONTROL
        assert len(extractor.calls) == 1
        _, output_path, spec = extractor.calls[0]
        assert output_path.endswith("/thumbs/concert.jpg")
        assert spec.width == 120

    def test_thumbnail_failure(self, vault_root: Path) -> None:
        write_file(vault_root / "concert.mp4", CONTENT)

        with pytest.raises(ThumbnailError):
            RangeStreamingService.serve_vault(
                _get(),
                StreamMode.THUMBNAIL,
                "concert.mp4",
                frame_extractor=FakeFrameExtractor(succeed=False),
            )

        assert not (vault_root / "thumbs" / "concert.jpg").exists()

    @pytest.mark.parametrize("filename", ["", "../secret.mp4", "a/b.mp4", ".hidden.mp4"])
    def test_invalid_names(self, vault_root: Path, filename: str) -> None:
        with pytest.raises(NotFoundError):
            RangeStreamingService.serve_vault(_get(), StreamMode.STREAM, filename)

    def test_unknown_file(self, vault_root: Path) -> None:
        with pytest.raises(NotFoundError):
            RangeStreamingService.serve_vault(_get(), StreamMode.STREAM, "missing.mp4")

    def test_directory_is_not_served(self, vault_root: Path) -> None:
        (vault_root / "stream").mkdir()

        with pytest.raises(NotFoundError):
            RangeStreamingService.serve_vault(_get(), StreamMode.STREAM, "stream")
