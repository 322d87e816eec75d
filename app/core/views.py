"""
Core views providing infrastructure endpoints.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for load balancers and orchestration.

    The database is required. The cache backs webhook deduplication and
    rate limiting, so an unreachable cache is reported as "degraded"
    rather than failing the check.

    Returns:
        JsonResponse with "status", "database" and "cache" keys.
        200 when the database is reachable, 503 otherwise.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    status_code = 200

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.error("Health check: database unreachable", exc_info=True)
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        status_code = 503

    try:
        cache.set("health_check", "ok", timeout=1)
        cache_ok = cache.get("health_check") == "ok"
    except Exception:  # backend-specific connection errors
        logger.warning("Health check: cache unreachable", exc_info=True)
        cache_ok = False

    health_status["cache"] = "connected" if cache_ok else "disconnected"
    if not cache_ok and status_code == 200:
        health_status["status"] = "degraded"

    return JsonResponse(health_status, status=status_code)
