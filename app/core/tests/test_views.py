"""
Tests for core infrastructure views.
"""

import pytest
from django.urls import reverse

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def local_cache(settings):
    settings.CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}


class TestHealthCheck:
    """Tests for the health_check view."""

    def test_healthy(self, client, settings, tmp_path) -> None:
        settings.GALLERY_PUBLIC_ROOT = str(tmp_path / "albums" / "not-created-yet")

        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "storage": "writable",
        }

    def test_unwritable_storage(self, client, settings, tmp_path) -> None:
        root = tmp_path / "albums"
        root.mkdir()
        root.chmod(0o500)
        settings.GALLERY_PUBLIC_ROOT = str(root)

        try:
            response = client.get(reverse("health_check"))
        finally:
            root.chmod(0o700)

        if response.json()["storage"] == "writable":
            pytest.skip("running as a user that ignores directory permissions")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
