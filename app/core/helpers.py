"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Token generation (cryptographic)
- Timing-safe token comparison
- HTTP request helpers (client IP extraction)

These utilities are pure infrastructure - they have no knowledge
of albums, uploads or streaming.

Usage:
    from core.helpers import constant_time_equals, generate_token, get_client_ip

    token = generate_token(32)
    ok = constant_time_equals(token, submitted)
    ip = get_client_ip(request)
"""

from __future__ import annotations

import hmac
import secrets
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def generate_token(length: int = 32) -> str:
    """
    Generate a cryptographically secure random token.

    Args:
        length: Number of bytes (resulting string is 2x length in hex)

    Returns:
        Hexadecimal token string

    Example:
        token = generate_token(32)  # Returns 64-character hex string
    """
    return secrets.token_hex(length)


def constant_time_equals(expected: str | None, provided: str | None) -> bool:
    """
    Compare two tokens without leaking timing information.

    Missing or empty values never compare equal, so an unset session
    token cannot be matched by an empty submission.

    Args:
        expected: The server-side token
        provided: The token submitted by the client

    Returns:
        True only if both tokens are non-empty and identical
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Checks X-Forwarded-For header for proxy chains.

    Args:
        request: Django HTTP request

    Returns:
        Client IP address string ("unknown" when the server did not supply one)

    Example:
        ip = get_client_ip(request)
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # Take the first IP in the chain (original client)
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip or "unknown"
