"""
Gallery models package.

Exports:
    Album: A named collection of photos with its own storage directory
    MediaItem: A committed photo inside an album
"""

from gallery.models.album import Album
from gallery.models.media_item import MediaItem

__all__ = [
    "Album",
    "MediaItem",
]
