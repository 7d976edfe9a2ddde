"""
File-backed failed-attempt rate limiter.

The ledger is a single JSON document mapping a caller identity (client IP)
to its recent failure timestamps and an optional lockout deadline:

    {
        "203.0.113.9": {"attempts": [1714560000, 1714560004], "locked_until": 1714560904}
    }

Every mutation reads the whole document, merges, writes a temporary file and
atomically renames it over the ledger, holding a process-wide lock while it
does so. Readers therefore never see a torn document. Two worker processes
mutating at the same instant can still lose one recorded attempt; the
ledger is a deterrent, not an accounting system.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from typing import Any

from django.conf import settings

logger = logging.getLogger(__name__)

_LEDGER_LOCK = threading.Lock()


class FileRateLimiter:
    """
    Rate limiter persisted in a JSON file.

    An identity is locked once it has max_attempts failures within the
    last lockout_seconds, and stays locked until locked_until passes.

    Satisfies core.protocols.RateLimiter.

    Usage:
        limiter = FileRateLimiter.from_settings()
        if limiter.locked(ip):
            raise RateLimitError("Too many attempts")
        if not csrf_ok:
            limiter.record_failure(ip)
    """

    def __init__(
        self,
        path: str,
        max_attempts: int = 5,
        lockout_seconds: int = 900,
    ) -> None:
        self.path = path
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds

    @classmethod
    def from_settings(cls) -> "FileRateLimiter":
        """Build a limiter from the GALLERY_RATE_LIMIT_* settings."""
        return cls(
            path=settings.GALLERY_RATE_LIMIT_FILE,
            max_attempts=settings.GALLERY_RATE_LIMIT_MAX_ATTEMPTS,
            lockout_seconds=settings.GALLERY_RATE_LIMIT_LOCKOUT_SECONDS,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def locked(self, identity: str) -> bool:
        """Return True if the identity is currently locked out."""
        entry = self._load().get(identity)
        if not entry:
            return False

        now = time.time()
        if entry.get("locked_until", 0) > now:
            return True
        return len(self._recent(entry.get("attempts", []), now)) >= self.max_attempts

    def record_failure(self, identity: str) -> None:
        """Record one failed attempt; lock the identity at the threshold."""
        with _LEDGER_LOCK:
            data = self._load()
            now = time.time()
            entry = data.get(identity) or {}

            attempts = self._recent(entry.get("attempts", []), now)
            attempts.append(now)
            entry["attempts"] = attempts

            if len(attempts) >= self.max_attempts:
                entry["locked_until"] = now + self.lockout_seconds
                logger.warning(
                    "Identity locked out after repeated failures",
                    extra={
                        "identity": identity,
                        "attempts": len(attempts),
                        "lockout_seconds": self.lockout_seconds,
                    },
                )

            data[identity] = entry
            self._save(data)

    def clear(self, identity: str) -> None:
        """Forget every recorded attempt for the identity."""
        with _LEDGER_LOCK:
            data = self._load()
            if data.pop(identity, None) is not None:
                self._save(data)

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    def _recent(self, attempts: list[float], now: float) -> list[float]:
        return [t for t in attempts if now - t < self.lockout_seconds]

    def _load(self) -> dict[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(
                "Rate limit ledger unreadable, starting fresh",
                extra={"path": self.path},
            )
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(temp_path, self.path)
        except BaseException:
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass
            raise
