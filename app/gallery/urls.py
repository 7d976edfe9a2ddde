"""
URL configuration for gallery app.

API Documentation Groups (following [App Name] - [Group Name] pattern):

Gallery - Upload:
    GET /csrf/                                    - Get the session's upload token
    POST /upload/                                 - Upload one chunk

Gallery - Media:
    GET /media/{media_id}/{mode}/                 - Stream, thumbnail or download a photo

Gallery - Vault:
    GET /vault/{mode}/{filename}/                 - Stream, thumbnail or download a video
"""

from django.urls import path

from gallery.views import (
    AlbumMediaView,
    ChunkUploadView,
    UploadCsrfTokenView,
    VaultMediaView,
)

app_name = "gallery"

urlpatterns = [
    # Upload
    path("csrf/", UploadCsrfTokenView.as_view(), name="csrf-token"),
    path("upload/", ChunkUploadView.as_view(), name="upload"),
    # Album media
    path(
        "media/<int:media_id>/<str:mode>/",
        AlbumMediaView.as_view(),
        name="album-media",
    ),
    # Vault
    path(
        "vault/<str:mode>/<str:filename>/",
        VaultMediaView.as_view(),
        name="vault-media",
    ),
]
