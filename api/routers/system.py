"""
System / health API router.

Handles the root endpoint and health checks.
"""

import logging

from fastapi import APIRouter, HTTPException

from api.health import API_VERSION
from api.middleware import get_request_id

router = APIRouter(tags=["System"])

logger = logging.getLogger(__name__)


@router.get("/")
async def root():
    """
    API root endpoint.

    Returns basic API information and available endpoint categories.
    """
    return {
        "name": "HOUSECALL API",
        "version": API_VERSION,
        "status": "operational",
        "docs": "/api/docs",
        "endpoints": {
            "health": "/api/health",
            "coverage": "/api/coverage/...",
            "bookings": "/api/bookings/...",
            "family_members": "/api/family-members/...",
            "admin": "/api/admin/...",
            "dashboard": "/api/dashboard/...",
        }
    }


@router.get("/api/health")
async def health_check():
    """
    Health check for load balancers.

    Components: database, Redis (rate limiting), zone registry.
    """
    from api.health import perform_full_health_check
    result = await perform_full_health_check()
    result["request_id"] = get_request_id()
    return result


@router.get("/api/health/live")
async def liveness_check():
    """Liveness probe: the process is up."""
    from api.health import perform_liveness_check
    return await perform_liveness_check()


@router.get("/api/health/ready")
async def readiness_check():
    """Readiness probe: 503 until the database is reachable."""
    from api.health import perform_readiness_check
    result = await perform_readiness_check()

    if result.get("status") != "ready":
        raise HTTPException(status_code=503, detail="Service not ready")

    return result
