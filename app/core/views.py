"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the chat domain but are
essential for running the service, such as health checks.
"""

import logging

from channels.layers import get_channel_layer
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Used by Docker health checks, Kubernetes probes and load balancers.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - channel_layer: backend class name, or "unconfigured"

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "channel_layer": "RedisChannelLayer"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "channel_layer": "unconfigured",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Realtime fan-out degrades gracefully; REST keeps working without it
    channel_layer = get_channel_layer()
    if channel_layer is not None:
        health_status["channel_layer"] = channel_layer.__class__.__name__

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)
