"""
AccessGate for upload authorization and media visibility.

Provides:
- Admin check for uploads and the vault (active staff session)
- Per-session upload CSRF tokens compared in constant time
- Lockout of callers with repeated CSRF failures (via a RateLimiter)
- Album visibility (public, staff, or holder of the album share key)

All checks run before any side effect of the request they guard.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import NotFoundError, PermissionDeniedError, RateLimitError
from core.helpers import constant_time_equals, generate_token, get_client_ip
from core.services import BaseService
from gallery.audit import log_event
from gallery.services.rate_limit import FileRateLimiter

if TYPE_CHECKING:
    from django.http import HttpRequest

    from core.protocols import RateLimiter
    from gallery.models import Album

# Session key holding the upload CSRF token
CSRF_SESSION_KEY = "gallery_upload_csrf"


def get_rate_limiter() -> "RateLimiter":
    """Return the configured rate limiter."""
    return FileRateLimiter.from_settings()


class AccessGate(BaseService):
    """
    Centralized authorization checks for the gallery.

    Usage:
        # Guard an upload; raises on failure
        AccessGate.require_uploader(request, request.POST.get("csrf_token"))

        # Album visibility
        AccessGate.require_album_access(request, album, share_key=request.GET.get("u"))

        # Hand the upload token to the admin UI
        token = AccessGate.get_csrf_token(request)
    """

    @classmethod
    def is_authorized(cls, request: "HttpRequest") -> bool:
        """Return True if the request carries an active staff session."""
        user = getattr(request, "user", None)
        return bool(
            user is not None
            and getattr(user, "is_authenticated", False)
            and user.is_active
            and user.is_staff
        )

    @classmethod
    def get_csrf_token(cls, request: "HttpRequest") -> str:
        """Return the session's upload token, creating it on first use."""
        token = request.session.get(CSRF_SESSION_KEY)
        if not token:
            token = generate_token(32)
            request.session[CSRF_SESSION_KEY] = token
        return token

    @classmethod
    def csrf_valid(cls, request: "HttpRequest", token: str | None) -> bool:
        """Compare a submitted token with the session's token."""
        return constant_time_equals(request.session.get(CSRF_SESSION_KEY), token)

    @classmethod
    def require_uploader(
        cls,
        request: "HttpRequest",
        token: str | None,
        limiter: "RateLimiter | None" = None,
    ) -> None:
        """
        Ensure the caller may upload.

        Order of checks:
        1. Caller not locked out by the rate limiter
        2. Active staff session
        3. Valid upload CSRF token (a failure is recorded against the caller)

        Raises:
            RateLimitError: Caller is locked out
            PermissionDeniedError: Not an admin, or CSRF token invalid
        """
        limiter = limiter or get_rate_limiter()
        client_ip = get_client_ip(request)

        if limiter.locked(client_ip):
            log_event("alert", "upload", "Rate limited", client_ip=client_ip)
            raise RateLimitError("Too many attempts")

        if not cls.is_authorized(request):
            log_event("auth", "upload", "No admin session - unauthorized", client_ip=client_ip)
            raise PermissionDeniedError("Unauthorized", error_code="UNAUTHORIZED")

        if not cls.csrf_valid(request, token):
            limiter.record_failure(client_ip)
            log_event("auth", "upload", "CSRF invalid - unauthorized", client_ip=client_ip)
            raise PermissionDeniedError("CSRF invalid", error_code="CSRF_INVALID")

    @classmethod
    def require_vault_access(
        cls,
        request: "HttpRequest",
        limiter: "RateLimiter | None" = None,
    ) -> None:
        """
        Ensure the caller may read the vault.

        Raises:
            RateLimitError: Caller is locked out
            PermissionDeniedError: Not an admin
        """
        limiter = limiter or get_rate_limiter()
        client_ip = get_client_ip(request)

        if limiter.locked(client_ip):
            log_event("alert", "vault", "Rate limited", client_ip=client_ip)
            raise RateLimitError("Too many attempts")

        if not cls.is_authorized(request):
            log_event("auth", "vault", "Unauthorized vault access", client_ip=client_ip)
            raise PermissionDeniedError("Not authenticated", error_code="UNAUTHORIZED")

    @classmethod
    def can_view_album(
        cls,
        request: "HttpRequest",
        album: "Album",
        share_key: str | None = None,
    ) -> bool:
        """
        Check album visibility.

        Public albums are visible to everyone; private albums to staff and
        to anyone presenting the album's share key.
        """
        if album.is_public or cls.is_authorized(request):
            return True
        return constant_time_equals(album.share_key, share_key)

    @classmethod
    def require_album_access(
        cls,
        request: "HttpRequest",
        album: "Album",
        share_key: str | None = None,
    ) -> None:
        """
        Ensure the caller may view the album.

        Raises:
            NotFoundError: Private album without staff session or share key.
                Reported as not found so private albums cannot be probed.
        """
        if not cls.can_view_album(request, album, share_key):
            log_event(
                "alert",
                "album",
                "Private album access denied",
                extra={"album_id": album.id},
                request=request,
            )
            raise NotFoundError("Not Found", details={"album_id": album.id})
