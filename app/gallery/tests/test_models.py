"""
Tests for gallery models.
"""

from __future__ import annotations

import os

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError

from gallery.models import Album, MediaItem
from gallery.models.album import sanitize_slug
from gallery.tests.factories import AlbumFactory, MediaItemFactory

pytestmark = pytest.mark.django_db


class TestAlbum:
    """Tests for Album model."""

    @pytest.mark.parametrize(
        "slug, expected",
        [
            ("summer", "summer"),
            ("Summer-2024", "summer-2024"),
            ("../Trips 2024", "___trips_2024"),
            ("a/b\\c", "a_b_c"),
        ],
    )
    def test_sanitize_slug(self, slug: str, expected: str) -> None:
        assert sanitize_slug(slug) == expected

    def test_directories(self, settings) -> None:
        album = AlbumFactory(slug="summer")

        assert album.directory == os.path.join(settings.GALLERY_PUBLIC_ROOT, "summer")
        assert album.thumbnail_directory == os.path.join(settings.GALLERY_THUMB_ROOT, "summer")
        assert album.arena_directory == os.path.join(
            settings.GALLERY_PUBLIC_ROOT, "summer", ".chunks"
        )

    def test_share_keys_are_unique(self) -> None:
        first, second = AlbumFactory(), AlbumFactory()

        assert len(first.share_key) == 64
        assert first.share_key != second.share_key

    def test_slug_is_stored_reduced(self) -> None:
        album = AlbumFactory(slug="Trip")

        album.refresh_from_db()
        assert album.slug == "trip"

    def test_slugs_differing_in_case_share_no_directory(self) -> None:
        AlbumFactory(slug="Trip")

        with pytest.raises(IntegrityError):
            AlbumFactory(slug="trip")

    def test_full_clean_reports_directory_collision(self) -> None:
        AlbumFactory(slug="trip")
        album = Album(name="Trip again", slug="Trip")

        with pytest.raises(ValidationError) as exc_info:
            album.full_clean()

        assert "slug" in exc_info.value.message_dict

    def test_private_by_default(self) -> None:
        assert AlbumFactory().is_public is False


class TestMediaItem:
    """Tests for MediaItem model."""

    def test_title_from_filename(self) -> None:
        assert MediaItem.title_from_filename("beach_day.jpeg") == "beach_day"

    def test_paths(self) -> None:
        item = MediaItemFactory(album=AlbumFactory(slug="summer"), filename="beach.jpg")

        assert item.original_path == os.path.join(item.album.directory, "beach.jpg")
        assert item.thumbnail_path == os.path.join(item.album.thumbnail_directory, "beach.jpg")

    def test_str(self) -> None:
        item = MediaItemFactory(album=AlbumFactory(slug="summer"), filename="beach.jpg")

        assert str(item) == "summer/beach.jpg"

    def test_filename_unique_per_album(self) -> None:
        album = AlbumFactory()
        MediaItemFactory(album=album, filename="beach.jpg")

        with pytest.raises(IntegrityError):
            MediaItemFactory(album=album, filename="beach.jpg")

    def test_same_filename_in_other_album(self) -> None:
        MediaItemFactory(album=AlbumFactory(), filename="beach.jpg")
        MediaItemFactory(album=AlbumFactory(), filename="beach.jpg")

        assert MediaItem.objects.filter(filename="beach.jpg").count() == 2
