"""
Protocol definitions for generic infrastructure services.

This module defines Protocol classes that specify interfaces
for generic infrastructure concerns like attempt throttling.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy mocking in tests

Available Protocols:
    RateLimiter: Failed-attempt ledger keyed by caller identity

Usage:
    from core.protocols import RateLimiter

    def guard(limiter: RateLimiter, ip: str) -> None:
        if limiter.locked(ip):
            raise RateLimitError("Too many attempts")

    class InMemoryLimiter:
        def locked(self, identity): ...
        def record_failure(self, identity): ...
        def clear(self, identity): ...

    # InMemoryLimiter is a valid RateLimiter
    # even without explicit inheritance (duck typing)
    limiter: RateLimiter = InMemoryLimiter()

Note:
    - Protocols are primarily for type checking
    - @runtime_checkable allows isinstance() checks
    - For media transform collaborators, see gallery.processors.base
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class RateLimiter(Protocol):
    """
    Protocol for failed-attempt rate limiters.

    An identity (usually a client IP) becomes locked after too many
    recorded failures inside the lockout window, and stays locked
    until the window passes or the ledger entry is cleared.
    """

    def locked(self, identity: str) -> bool:
        """
        Check whether an identity is currently locked out.

        Args:
            identity: Caller identity (client IP)

        Returns:
            True if further attempts must be refused
        """
        ...

    def record_failure(self, identity: str) -> None:
        """
        Record one failed attempt for an identity.

        Args:
            identity: Caller identity (client IP)
        """
        ...

    def clear(self, identity: str) -> None:
        """Forget all recorded attempts for an identity."""
        ...
