"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the business domain but are
essential for application infrastructure, such as health checks.
"""

from django.conf import settings
from django.http import JsonResponse


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    This endpoint is used by:
    - Docker health checks
    - Load balancers
    - Uptime monitors

    The service owns no database, so health is defined by whether the
    payment gateway credentials are present. Cache problems only degrade
    throttling and never fail the check.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - stripe: "configured" or "missing"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: All systems operational
        503: Gateway credentials missing

    Example Response:
        {
            "status": "healthy",
            "stripe": "configured",
            "cache": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "stripe": "configured",
        "cache": "unknown",
    }
    is_healthy = True

    if not settings.STRIPE_SECRET_KEY or not settings.STRIPE_WEBHOOK_SECRET:
        health_status["stripe"] = "missing"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Check cache connectivity
    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)
