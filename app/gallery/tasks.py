"""
Celery tasks for gallery housekeeping.

This module provides periodic tasks for:
- Removing chunks of uploads that were abandoned mid-transfer

Usage:
    from gallery.tasks import cleanup_abandoned_arenas

    # Normally run by celery beat (see CELERY_BEAT_SCHEDULE)
    cleanup_abandoned_arenas.delay()
"""

from __future__ import annotations

import logging
import os
import time

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)

# Directory name of the per-album chunk arena
ARENA_DIRNAME = ".chunks"


@shared_task
def cleanup_abandoned_arenas() -> dict:
    """
    Periodic task to remove stale chunk files.

    Scans every <public_root>/<album>/.chunks/ directory and deletes chunk
    files (and leftover scratch files) whose modification time is older
    than GALLERY_ARENA_EXPIRY_HOURS. Arenas left empty are removed.

    Files newer than the threshold are never touched, so an upload that is
    still receiving chunks is not disturbed.

    Returns:
        Dict with count of files and arenas removed.
    """
    public_root = settings.GALLERY_PUBLIC_ROOT
    if not os.path.isdir(public_root):
        return {"removed_files": 0, "removed_arenas": 0, "errors": []}

    threshold = time.time() - settings.GALLERY_ARENA_EXPIRY_HOURS * 3600

    removed_files = 0
    removed_arenas = 0
    errors = []

    for album_entry in os.scandir(public_root):
        if not album_entry.is_dir(follow_symlinks=False):
            continue

        arena = os.path.join(album_entry.path, ARENA_DIRNAME)
        if not os.path.isdir(arena):
            continue

        for entry in os.scandir(arena):
            if not entry.is_file(follow_symlinks=False):
                continue
            if entry.stat().st_mtime >= threshold:
                # Too new, the upload may still be in progress
                continue
            try:
                os.unlink(entry.path)
                removed_files += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                errors.append(f"Failed to remove {entry.path}: {e}")

        try:
            os.rmdir(arena)
            removed_arenas += 1
            logger.info(
                "Removed empty chunk arena",
                extra={
                    "event_type": "arena_cleanup",
                    "album_directory": album_entry.name,
                },
            )
        except OSError:
            # Still holds chunks of an upload in progress
            pass

    logger.info(
        "Abandoned arena cleanup complete",
        extra={
            "event_type": "arena_cleanup_complete",
            "removed_files": removed_files,
            "removed_arenas": removed_arenas,
            "error_count": len(errors),
        },
    )

    return {
        "removed_files": removed_files,
        "removed_arenas": removed_arenas,
        "errors": errors,
    }
