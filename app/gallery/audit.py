"""
Access audit trail.

Every upload outcome, authorization failure and media access is written to
the ``gallery.audit`` logger, which settings.LOGGING routes to access.log.

Line format (timestamp added by the formatter):
    2024-05-01 12:00:00 [action] [type] ip:203.0.113.9 details {"extra":"data"}

Actions are lowercase: error, alert, auth, info, view, download.
The structured fields are also attached as logging ``extra`` so log
shippers can index them without parsing the line.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from core.helpers import get_client_ip

if TYPE_CHECKING:
    from django.http import HttpRequest

audit_logger = logging.getLogger("gallery.audit")

_LEVELS = {
    "error": logging.ERROR,
    "alert": logging.WARNING,
    "auth": logging.WARNING,
}


def log_event(
    action: str,
    event_type: str,
    details: str = "",
    extra: dict[str, Any] | None = None,
    request: HttpRequest | None = None,
    client_ip: str | None = None,
) -> None:
    """
    Write one line to the access audit log.

    Args:
        action: Event category (error, alert, auth, info, view, download)
        event_type: Module or context (upload, vault, album, stream)
        details: Brief description of the event
        extra: Additional structured data, JSON encoded at the end of the line
        request: Request the event belongs to; used for the client IP
        client_ip: Explicit client IP when no request is at hand
    """
    action = action.lower()
    event_type = event_type.lower()
    if client_ip is None:
        client_ip = get_client_ip(request) if request is not None else "unknown"

    payload = json.dumps(extra, separators=(",", ":")) if extra else ""
    line = f"[{action}] [{event_type}] ip:{client_ip} {details} {payload}".strip()

    audit_logger.log(
        _LEVELS.get(action, logging.INFO),
        line,
        extra={
            "audit_action": action,
            "audit_type": event_type,
            "client_ip": client_ip,
            "audit_extra": extra or {},
        },
    )
