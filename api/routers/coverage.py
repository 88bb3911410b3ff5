"""
Public coverage API router.

Answers "do you serve this location, and with which visit types?". Coverage
checks are always best-effort: a matching failure is answered as "not
served" rather than an error.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request

from api.geocoding import normalize_and_geocode
from api.rate_limit import limiter, get_rate_limit_string
from api.schemas import CoverageCheckRequest, CoverageResponse, PublicZoneResponse
from api.zone_registry import ZoneRegistry, get_coverage_resolver, get_zone_registry
from src.coverage.errors import MatchingError, ValidationError
from src.coverage.resolver import (
    CoverageResolver,
    CoverageResult,
    get_available_visit_types,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/coverage", tags=["Coverage"])


def check_coverage_best_effort(
    resolver: CoverageResolver, address: str, lat: float, lng: float
) -> CoverageResult:
    """check_coverage, with MatchingError answered as "not served"."""
    try:
        return resolver.check_coverage(address, lat, lng)
    except MatchingError as e:
        logger.warning(f"Coverage check degraded to no coverage: {e}")
        return CoverageResult(
            address=address,
            lat=lat,
            lng=lng,
            zone=None,
            available_types=get_available_visit_types(None),
        )


async def resolve_query(body: CoverageCheckRequest):
    """
    (label, lat, lng, normalized address) for a coverage query.

    Coordinates are used as given; an address is geocoded.
    """
    if body.has_coordinates:
        label = body.address or f"{body.lat:.6f}, {body.lng:.6f}"
        return label, body.lat, body.lng, None
    if body.address and body.address.strip():
        location = await normalize_and_geocode(body.address.strip())
        return body.address.strip(), location.lat, location.lng, location.normalized
    raise ValidationError("Provide an address or lat/lng")


@router.get("/zones", response_model=List[PublicZoneResponse])
async def list_public_zones(registry: ZoneRegistry = Depends(get_zone_registry)):
    """Active zones in matching order, without geometry."""
    return [
        PublicZoneResponse(
            id=str(zone.id),
            name=zone.name,
            allow_phone_call=zone.allow_phone_call,
            allow_house_call=zone.allow_house_call,
            priority=zone.priority,
        )
        for zone in registry.list_active_zones_by_priority()
    ]


@router.post("/check", response_model=CoverageResponse)
@limiter.limit(get_rate_limit_string())
async def check_coverage(
    request: Request,
    body: CoverageCheckRequest,
    resolver: CoverageResolver = Depends(get_coverage_resolver),
):
    """
    Check service coverage for an address or coordinates.

    Returns the matched zone (id and name), available visit types with a
    customer-facing message, and is_in_service_area.
    """
    label, lat, lng, _ = await resolve_query(body)
    result = check_coverage_best_effort(resolver, label, lat, lng)
    return result.to_dict()
