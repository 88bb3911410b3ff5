"""
Health checks for HOUSECALL API.

Database and Redis connectivity plus a zone registry check: a service with
no active zones answers "not served" for every address, which is reported as
degraded.
"""
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from enum import Enum
from dataclasses import dataclass

import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.config import settings

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class HealthStatus(Enum):
    """Health check status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""
    name: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


def _elapsed_ms(start: datetime) -> float:
    return round((datetime.now(timezone.utc) - start).total_seconds() * 1000, 2)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_database_health() -> ComponentHealth:
    """Check database connectivity with a trivial query."""
    start = datetime.now(timezone.utc)

    try:
        from api.database import SessionLocal

        db = SessionLocal()
        try:
            result = db.execute(text("SELECT 1")).scalar()
        finally:
            db.close()

        if result == 1:
            return ComponentHealth(
                name="database",
                status=HealthStatus.HEALTHY,
                latency_ms=_elapsed_ms(start),
                message="Database connected",
            )
        return ComponentHealth(
            name="database",
            status=HealthStatus.UNHEALTHY,
            message="Unexpected query result",
        )

    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return ComponentHealth(
            name="database",
            status=HealthStatus.UNHEALTHY,
            latency_ms=_elapsed_ms(start),
            message=f"Connection failed: {type(e).__name__}",
        )


def check_redis_health() -> ComponentHealth:
    """Check Redis connectivity (used only for rate limiting)."""
    start = datetime.now(timezone.utc)

    if not settings.redis_enabled:
        return ComponentHealth(
            name="redis",
            status=HealthStatus.HEALTHY,
            message="Redis disabled (not required)",
        )

    try:
        client = redis.from_url(
            settings.redis_url,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        if client.ping():
            return ComponentHealth(
                name="redis",
                status=HealthStatus.HEALTHY,
                latency_ms=_elapsed_ms(start),
                message="Redis connected",
            )
        return ComponentHealth(
            name="redis",
            status=HealthStatus.DEGRADED,
            message="Ping failed",
        )

    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        # Rate limiting is lost, requests still work
        return ComponentHealth(
            name="redis",
            status=HealthStatus.DEGRADED,
            latency_ms=_elapsed_ms(start),
            message=f"Connection failed: {type(e).__name__}",
        )


def check_zone_registry_health() -> ComponentHealth:
    """Report how many zones take part in matching."""
    try:
        from api.database import SessionLocal
        from api.zone_registry import ZoneRegistry

        db = SessionLocal()
        try:
            registry = ZoneRegistry(db)
            total = len(registry.list_zones())
            active = len(registry.list_active_zones_by_priority())
        finally:
            db.close()

    except SQLAlchemyError as e:
        logger.error(f"Zone registry health check failed: {e}")
        return ComponentHealth(
            name="zones",
            status=HealthStatus.UNHEALTHY,
            message=f"Query failed: {type(e).__name__}",
        )

    if active == 0:
        return ComponentHealth(
            name="zones",
            status=HealthStatus.DEGRADED,
            message="No active zones; every location is out of service",
            details={"total": total, "active": 0},
        )
    return ComponentHealth(
        name="zones",
        status=HealthStatus.HEALTHY,
        message=f"{active} active zone(s)",
        details={"total": total, "active": active},
    )


async def perform_full_health_check() -> Dict[str, Any]:
    """
    Check every component.

    Returns:
        Dict with overall status and component details
    """
    start = datetime.now(timezone.utc)

    components = [
        check_database_health(),
        check_redis_health(),
        check_zone_registry_health(),
    ]

    statuses = {c.status for c in components}
    if HealthStatus.UNHEALTHY in statuses:
        overall_status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        overall_status = HealthStatus.DEGRADED
    else:
        overall_status = HealthStatus.HEALTHY

    return {
        "status": overall_status.value,
        "timestamp": _now_iso(),
        "version": API_VERSION,
        "environment": settings.environment,
        "check_duration_ms": _elapsed_ms(start),
        "components": {
            c.name: {
                "status": c.status.value,
                "latency_ms": c.latency_ms,
                "message": c.message,
                **({"details": c.details} if c.details else {}),
            }
            for c in components
        },
    }


async def perform_liveness_check() -> Dict[str, Any]:
    """Liveness: the process answers. No dependency checks."""
    return {
        "status": "alive",
        "timestamp": _now_iso(),
    }


async def perform_readiness_check() -> Dict[str, Any]:
    """Readiness: the database is reachable."""
    db_health = check_database_health()
    is_ready = db_health.status == HealthStatus.HEALTHY

    return {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": _now_iso(),
        "database": db_health.status.value,
    }
