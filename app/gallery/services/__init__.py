"""Gallery services for chunked uploads, access control, and media delivery."""

from gallery.services.access_control import AccessGate, get_rate_limiter
from gallery.services.delivery import RangeStreamingService, StreamMode, parse_range
from gallery.services.rate_limit import FileRateLimiter

__all__ = [
    "AccessGate",
    "FileRateLimiter",
    "RangeStreamingService",
    "StreamMode",
    "get_rate_limiter",
    "parse_range",
]
