"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the gallery domain but are
essential for application infrastructure, such as health checks.
"""

import os

from django.conf import settings
from django.db import connection
from django.http import JsonResponse


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    This endpoint is used by:
    - Docker health checks
    - Load balancers (nginx upstream checks)

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"
        - storage: "writable" or "unwritable"

    HTTP Status Codes:
        200: All systems operational
        503: Database unreachable or media storage not writable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "storage": "writable"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
        "storage": "unknown",
    }
    is_healthy = True

    # Check database connectivity
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        is_healthy = False

    # Check cache connectivity
    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
            # Cache failure is not critical - degraded but still healthy
    except Exception:
        health_status["cache"] = "disconnected"

    # Uploads land in the public root. The root is created lazily on first upload, so check the nearest
    # existing ancestor
    probe = os.path.abspath(settings.GALLERY_PUBLIC_ROOT)
    while not os.path.exists(probe) and os.path.dirname(probe) != probe:
        probe = os.path.dirname(probe)
    if os.path.isdir(probe) and os.access(probe, os.W_OK):
        health_status["storage"] = "writable"
    else:
        health_status["storage"] = "unwritable"
        is_healthy = False

    if not is_healthy:
        health_status["status"] = "unhealthy"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)
