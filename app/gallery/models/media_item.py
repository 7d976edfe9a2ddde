"""
MediaItem model for committed photos.

A MediaItem row exists only once its original and thumbnail are both on
disk. The upload pipeline writes the row last and removes both files if
the insert fails.
"""

from __future__ import annotations

import os

from django.db import models

from core.models import BaseModel


class MediaItem(BaseModel):
    """
    A photo committed to an album.

    Attributes:
        album: Owning album
        filename: Sanitized filename, unique within the album
        title: Display title (filename without extension by default)
    """

    album = models.ForeignKey(
        "gallery.Album",
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Album this photo belongs to",
    )
    filename = models.CharField(
        max_length=255,
        help_text="Sanitized filename on disk",
    )
    title = models.CharField(
        max_length=255,
        blank=True,
        help_text="Display title",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["album", "filename"],
                name="unique_media_item_filename_per_album",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.album.slug}/{self.filename}"

    @staticmethod
    def title_from_filename(filename: str) -> str:
        """Return the filename without its extension."""
        return os.path.splitext(filename)[0]

    @property
    def original_path(self) -> str:
        """Absolute path of the original file."""
        return os.path.join(self.album.directory, self.filename)

    @property
    def thumbnail_path(self) -> str:
        """Absolute path of the generated thumbnail."""
        return os.path.join(self.album.thumbnail_directory, self.filename)
