"""
Test fixtures for gallery app.

Provides fixtures for:
- Storage roots under tmp_path (every test gets its own filesystem)
- Staff and anonymous API clients with session authentication
- Upload tokens bound to the staff session
- Sample JPEG bytes and chunk helpers
"""

from __future__ import annotations

import io
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework.test import APIClient

from gallery.services.access_control import CSRF_SESSION_KEY
from gallery.tests.factories import AlbumFactory, UserFactory

if TYPE_CHECKING:
    from django.contrib.auth.models import User

    from gallery.models import Album


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def gallery_roots(settings, tmp_path: Path) -> Path:
    """Point every gallery storage root and the rate limit ledger at tmp_path."""
    settings.GALLERY_PUBLIC_ROOT = str(tmp_path / "albums")
    settings.GALLERY_THUMB_ROOT = str(tmp_path / "thumbs")
    settings.GALLERY_VAULT_ROOT = str(tmp_path / "vault")
    settings.GALLERY_RATE_LIMIT_FILE = str(tmp_path / "state" / "rate_limits.json")
    settings.GALLERY_STREAM_STRATEGY = "direct"
    return tmp_path


@pytest.fixture
def vault_root(settings) -> Path:
    """Create and return the vault directory."""
    root = Path(settings.GALLERY_VAULT_ROOT)
    root.mkdir(parents=True, exist_ok=True)
    return root


# =============================================================================
# User and Client Fixtures
# =============================================================================


@pytest.fixture
def api_client() -> APIClient:
    """Return unauthenticated API client."""
    return APIClient()


@pytest.fixture
def staff_user(db) -> "User":
    """Create a gallery administrator."""
    return UserFactory(is_staff=True)


@pytest.fixture
def regular_user(db) -> "User":
    """Create a logged-in user without admin rights."""
    return UserFactory()


@pytest.fixture
def staff_client(staff_user: "User") -> APIClient:
    """Return API client logged in with a staff session."""
    client = APIClient()
    client.force_login(staff_user)
    return client


@pytest.fixture
def upload_token(staff_client: APIClient) -> str:
    """Bind an upload token to the staff client's session and return it."""
    token = "a" * 64
    session = staff_client.session
    session[CSRF_SESSION_KEY] = token
    session.save()
    return token


@pytest.fixture
def album(db) -> "Album":
    """Create a private album."""
    return AlbumFactory(name="Summer", slug="summer")


@pytest.fixture
def public_album(db) -> "Album":
    """Create a public album."""
    return AlbumFactory(name="Open House", slug="open-house", is_public=True)


# =============================================================================
# File Fixtures
# =============================================================================


def make_jpeg(width: int = 640, height: int = 480, color: str = "red") -> bytes:
    """Encode a solid-colour JPEG."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=color).save(buffer, format="JPEG")
    return buffer.getvalue()


def split_chunks(data: bytes, chunk_size: int) -> list[bytes]:
    """Split bytes into consecutive chunks of chunk_size."""
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]


@pytest.fixture
def sample_jpeg() -> bytes:
    """Generate valid JPEG bytes large enough to span several small chunks."""
    return make_jpeg()


@pytest.fixture
def sample_png() -> bytes:
    """Generate valid PNG bytes (not an allowed upload type)."""
    buffer = io.BytesIO()
    Image.new("RGBA", (50, 50), color=(0, 0, 255, 128)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def chunk_form():
    """
    Build the multipart body of one chunk request.

    Usage:
        response = staff_client.post(url, chunk_form(data, 0, 1, "a.jpg", token, album.id))
    """

    def build(
        data: bytes,
        chunk_index: int,
        total_chunks: int,
        filename: str,
        csrf_token: str,
        album_id: int,
        upload_id: str = "1714560000000_abcdefghi",
    ) -> dict:
        return {
            "chunk": SimpleUploadedFile("blob", data, content_type="application/octet-stream"),
            "chunk_index": str(chunk_index),
            "total_chunks": str(total_chunks),
            "filename": filename,
            "upload_id": upload_id,
            "album_id": str(album_id),
            "csrf_token": csrf_token,
        }

    return build


def write_file(path: str | os.PathLike, data: bytes) -> Path:
    """Write bytes to path, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
