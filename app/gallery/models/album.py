"""
Album model.

Provides:
- Storage directory naming (slug reduced to a filesystem-safe form)
- Public/private visibility with a shareable key for private albums
- Cover thumbnail reference
"""

from __future__ import annotations

import os
import re

from django.conf import settings
from django.db import models

from core.helpers import generate_token
from core.models import BaseModel

# Characters allowed in album directory names (after lowercasing)
_UNSAFE_SLUG_CHARS = re.compile(r"[^a-z0-9_-]")


def generate_share_key() -> str:
    """Return a 64-character hex key for sharing a private album."""
    return generate_token(32)


def sanitize_slug(value: str) -> str:
    """
    Reduce a slug to the characters allowed in a directory name.

    Lowercases the value and replaces anything outside [a-z0-9_-]
    with an underscore, so "../Trips 2024" becomes "___trips_2024".
    """
    return _UNSAFE_SLUG_CHARS.sub("_", value.lower())


class Album(BaseModel):
    """
    A named collection of photos stored under its own directory.

    Originals live at GALLERY_PUBLIC_ROOT/<storage_slug>/<filename> and
    thumbnails at GALLERY_THUMB_ROOT/<storage_slug>/<filename>.

    Attributes:
        name: Display name
        slug: URL slug, stored reduced to its directory-safe form
        is_public: Public albums are visible to everyone
        share_key: Secret key granting read access to a private album
        thumbnail: Media item used as the album cover
    """

    name = models.CharField(
        max_length=200,
        help_text="Display name of the album",
    )
    slug = models.SlugField(
        max_length=100,
        unique=True,
        help_text="URL slug, also used to name the album's storage directory",
    )
    is_public = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Public albums can be viewed without a share key",
    )
    share_key = models.CharField(
        max_length=64,
        unique=True,
        default=generate_share_key,
        help_text="Secret key for sharing a private album",
    )
    thumbnail = models.ForeignKey(
        "gallery.MediaItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Media item used as the album cover",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "album"
        verbose_name_plural = "albums"

    def __str__(self) -> str:
        return self.name

    def clean(self) -> None:
        super().clean()
        # Reduced before validate_unique runs, so "Trip" collides with "trip"
        self.slug = sanitize_slug(self.slug)

    def save(self, *args, **kwargs) -> None:
        # Stored in directory form: one slug, one storage directory
        self.slug = sanitize_slug(self.slug)
        super().save(*args, **kwargs)

    @property
    def storage_slug(self) -> str:
        """Filesystem-safe directory name for this album."""
        return sanitize_slug(self.slug)

    @property
    def directory(self) -> str:
        """Absolute directory holding this album's originals."""
        return os.path.join(settings.GALLERY_PUBLIC_ROOT, self.storage_slug)

    @property
    def thumbnail_directory(self) -> str:
        """Absolute directory holding this album's thumbnails."""
        return os.path.join(settings.GALLERY_THUMB_ROOT, self.storage_slug)

    @property
    def arena_directory(self) -> str:
        """Directory where chunks of in-flight uploads are staged."""
        return os.path.join(self.directory, ".chunks")
