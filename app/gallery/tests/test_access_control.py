"""
Tests for AccessGate.

Tests cover:
- Upload guard ordering (lockout, admin session, CSRF token)
- CSRF failures feeding the rate limiter
- Vault guard
- Album visibility by public flag, staff session and share key
"""

from __future__ import annotations

import logging

import pytest
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory

from core.exceptions import NotFoundError, PermissionDeniedError, RateLimitError
from gallery.services.access_control import CSRF_SESSION_KEY, AccessGate
from gallery.services.rate_limit import FileRateLimiter
from gallery.tests.factories import AlbumFactory, UserFactory

pytestmark = pytest.mark.django_db


@pytest.fixture
def limiter(tmp_path) -> FileRateLimiter:
    return FileRateLimiter(str(tmp_path / "ledger.json"), max_attempts=2)


def _request(user=None, session=None, ip: str = "203.0.113.9"):
    request = RequestFactory().post("/upload/", REMOTE_ADDR=ip)
    request.user = user or AnonymousUser()
    request.session = session if session is not None else {}
    return request


class TestIsAuthorized:
    """Tests for AccessGate.is_authorized()."""

    def test_staff_is_authorized(self) -> None:
        assert AccessGate.is_authorized(_request(UserFactory(is_staff=True)))

    def test_anonymous_is_not_authorized(self) -> None:
        assert not AccessGate.is_authorized(_request())

    def test_non_staff_is_not_authorized(self) -> None:
        assert not AccessGate.is_authorized(_request(UserFactory()))

    def test_inactive_staff_is_not_authorized(self) -> None:
        assert not AccessGate.is_authorized(_request(UserFactory(is_staff=True, is_active=False)))


class TestCsrfToken:
    """Tests for the per-session upload token."""

    def test_token_is_created_once(self) -> None:
        request = _request()

        first = AccessGate.get_csrf_token(request)
        second = AccessGate.get_csrf_token(request)

        assert len(first) == 64
        assert first == second
        assert request.session[CSRF_SESSION_KEY] == first

    def test_valid_token(self) -> None:
        request = _request(session={CSRF_SESSION_KEY: "abc"})

        assert AccessGate.csrf_valid(request, "abc")
        assert not AccessGate.csrf_valid(request, "abd")

    def test_missing_session_token_never_matches(self) -> None:
        assert not AccessGate.csrf_valid(_request(), "")
        assert not AccessGate.csrf_valid(_request(), None)


class TestRequireUploader:
    """Tests for AccessGate.require_uploader()."""

    def test_admin_with_valid_token_passes(self, limiter: FileRateLimiter) -> None:
        request = _request(UserFactory(is_staff=True), {CSRF_SESSION_KEY: "tok"})

        AccessGate.require_uploader(request, "tok", limiter=limiter)

    def test_non_admin_is_unauthorized(self, limiter: FileRateLimiter) -> None:
        request = _request(UserFactory(), {CSRF_SESSION_KEY: "tok"})

        with pytest.raises(PermissionDeniedError) as exc_info:
            AccessGate.require_uploader(request, "tok", limiter=limiter)

        assert exc_info.value.message == "Unauthorized"
        assert exc_info.value.error_code == "UNAUTHORIZED"

    def test_bad_token_records_failure(self, limiter: FileRateLimiter) -> None:
        request = _request(UserFactory(is_staff=True), {CSRF_SESSION_KEY: "tok"})

        with pytest.raises(PermissionDeniedError) as exc_info:
            AccessGate.require_uploader(request, "wrong", limiter=limiter)

        assert exc_info.value.message == "CSRF invalid"
        assert exc_info.value.error_code == "CSRF_INVALID"
        assert not limiter.locked("203.0.113.9")

        with pytest.raises(PermissionDeniedError):
            AccessGate.require_uploader(request, "wrong", limiter=limiter)
        assert limiter.locked("203.0.113.9")

    def test_lockout_is_checked_first(self, limiter: FileRateLimiter) -> None:
        """A locked caller is refused even with valid credentials."""
        limiter.record_failure("203.0.113.9")
        limiter.record_failure("203.0.113.9")
        request = _request(UserFactory(is_staff=True), {CSRF_SESSION_KEY: "tok"})

        with pytest.raises(RateLimitError):
            AccessGate.require_uploader(request, "tok", limiter=limiter)

    def test_lockout_is_per_address(self, limiter: FileRateLimiter) -> None:
        limiter.record_failure("203.0.113.9")
        limiter.record_failure("203.0.113.9")
        request = _request(
            UserFactory(is_staff=True), {CSRF_SESSION_KEY: "tok"}, ip="198.51.100.7"
        )

        AccessGate.require_uploader(request, "tok", limiter=limiter)

    def test_unauthorized_is_audited(self, limiter: FileRateLimiter, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="gallery.audit"):
            with pytest.raises(PermissionDeniedError):
                AccessGate.require_uploader(_request(), "tok", limiter=limiter)

        assert "[auth] [upload] ip:203.0.113.9" in caplog.text

    def test_uses_configured_limiter_by_default(self, settings) -> None:
        settings.GALLERY_RATE_LIMIT_MAX_ATTEMPTS = 1
        request = _request(UserFactory(is_staff=True), {CSRF_SESSION_KEY: "tok"})

        with pytest.raises(PermissionDeniedError):
            AccessGate.require_uploader(request, "wrong")
        with pytest.raises(RateLimitError):
            AccessGate.require_uploader(request, "tok")


class TestRequireVaultAccess:
    """Tests for AccessGate.require_vault_access()."""

    def test_admin_passes(self, limiter: FileRateLimiter) -> None:
        AccessGate.require_vault_access(_request(UserFactory(is_staff=True)), limiter=limiter)

    def test_anonymous_is_refused(self, limiter: FileRateLimiter) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            AccessGate.require_vault_access(_request(), limiter=limiter)

        assert exc_info.value.message == "Not authenticated"

    def test_locked_caller_is_refused(self, limiter: FileRateLimiter) -> None:
        limiter.record_failure("203.0.113.9")
        limiter.record_failure("203.0.113.9")

        with pytest.raises(RateLimitError):
            AccessGate.require_vault_access(_request(UserFactory(is_staff=True)), limiter=limiter)


class TestAlbumAccess:
    """Tests for album visibility."""

    def test_public_album_is_visible(self) -> None:
        album = AlbumFactory(is_public=True)

        assert AccessGate.can_view_album(_request(), album)

    def test_private_album_needs_staff(self) -> None:
        album = AlbumFactory()

        assert not AccessGate.can_view_album(_request(), album)
        assert AccessGate.can_view_album(_request(UserFactory(is_staff=True)), album)

    def test_share_key_opens_private_album(self) -> None:
        album = AlbumFactory()

        assert AccessGate.can_view_album(_request(), album, share_key=album.share_key)
        assert not AccessGate.can_view_album(_request(), album, share_key="guess")
        assert not AccessGate.can_view_album(_request(), album, share_key="")

    def test_denied_album_reads_as_not_found(self) -> None:
        album = AlbumFactory()

        with pytest.raises(NotFoundError):
            AccessGate.require_album_access(_request(), album)
