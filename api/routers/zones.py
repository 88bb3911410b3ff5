"""
Service zone administration API router.

Create, update, activate/deactivate and delete zones, plus a zone-test tool
that reports which zone an address or coordinate falls in. All endpoints
require an administrator key.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.audit import create_audit_log, principal_id
from api.auth import require_admin
from api.models import APIKey, Zone
from api.routers.coverage import check_coverage_best_effort, resolve_query
from api.schemas import (
    CoverageCheckRequest,
    CreateZoneRequest,
    MessageResponse,
    SetZoneActiveRequest,
    UpdateZoneRequest,
    ZoneListResponse,
    ZoneResponse,
    ZoneTestResponse,
)
from api.zone_registry import ZoneRegistry, get_coverage_resolver, get_zone_registry
from src.coverage.resolver import CoverageResolver

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/zones",
    tags=["Admin: Zones"],
)


def _zone_to_response(zone: Zone) -> ZoneResponse:
    """Convert ORM zone to response model."""
    return ZoneResponse(
        id=str(zone.id),
        name=zone.name,
        boundary=zone.boundary_data,
        allow_phone_call=zone.allow_phone_call,
        allow_house_call=zone.allow_house_call,
        phone_calls_full=zone.phone_calls_full,
        house_calls_full=zone.house_calls_full,
        priority=zone.priority,
        is_active=zone.is_active,
        created_at=zone.created_at,
        updated_at=zone.updated_at,
    )


def _audit_zone(registry: ZoneRegistry, action: str, zone: Zone, admin: Optional[APIKey],
                request: Request, changes=None):
    create_audit_log(
        registry.db,
        action,
        admin_id=principal_id(admin),
        entity_type="zone",
        entity_id=zone.id,
        changes=changes,
        request=request,
    )


@router.get("", response_model=ZoneListResponse)
async def list_zones(
    admin: Optional[APIKey] = Depends(require_admin),
    registry: ZoneRegistry = Depends(get_zone_registry),
):
    """All zones, active or not, in matching order."""
    zones = registry.list_zones()
    return ZoneListResponse(
        count=len(zones),
        zones=[_zone_to_response(z) for z in zones],
    )


@router.post("", response_model=ZoneResponse, status_code=201)
async def create_zone(
    request: Request,
    body: CreateZoneRequest,
    admin: Optional[APIKey] = Depends(require_admin),
    registry: ZoneRegistry = Depends(get_zone_registry),
):
    """Create a zone from a GeoJSON Polygon or MultiPolygon boundary."""
    zone = registry.create_zone(body.model_dump(exclude_none=True))
    _audit_zone(registry, "zone_created", zone, admin, request,
                changes={"name": zone.name, "priority": zone.priority})
    return _zone_to_response(zone)


@router.post("/test", response_model=ZoneTestResponse)
async def test_zone_match(
    body: CoverageCheckRequest,
    admin: Optional[APIKey] = Depends(require_admin),
    resolver: CoverageResolver = Depends(get_coverage_resolver),
):
    """Zone-test tool: which zone would a booking at this location get?"""
    label, lat, lng, normalized = await resolve_query(body)
    result = check_coverage_best_effort(resolver, label, lat, lng)
    return {**result.to_dict(), "normalized_address": normalized}


@router.get("/{zone_id}", response_model=ZoneResponse)
async def get_zone(
    zone_id: str,
    admin: Optional[APIKey] = Depends(require_admin),
    registry: ZoneRegistry = Depends(get_zone_registry),
):
    return _zone_to_response(registry.get_zone(zone_id))


@router.put("/{zone_id}", response_model=ZoneResponse)
async def update_zone(
    request: Request,
    zone_id: str,
    body: UpdateZoneRequest,
    admin: Optional[APIKey] = Depends(require_admin),
    registry: ZoneRegistry = Depends(get_zone_registry),
):
    """Partial update; fields not sent keep their values."""
    partial = body.model_dump(exclude_unset=True)
    zone = registry.update_zone(zone_id, partial)
    _audit_zone(registry, "zone_updated", zone, admin, request,
                changes={"fields": sorted(partial)})
    return _zone_to_response(zone)


@router.patch("/{zone_id}/active", response_model=ZoneResponse)
async def set_zone_active(
    request: Request,
    zone_id: str,
    body: SetZoneActiveRequest,
    admin: Optional[APIKey] = Depends(require_admin),
    registry: ZoneRegistry = Depends(get_zone_registry),
):
    """Include or exclude a zone from matching."""
    zone = registry.set_active(zone_id, body.is_active)
    _audit_zone(registry, "zone_updated", zone, admin, request,
                changes={"is_active": zone.is_active})
    return _zone_to_response(zone)


@router.delete("/{zone_id}", response_model=MessageResponse)
async def delete_zone(
    request: Request,
    zone_id: str,
    admin: Optional[APIKey] = Depends(require_admin),
    registry: ZoneRegistry = Depends(get_zone_registry),
):
    """Delete a zone permanently. Matched bookings keep the zone name."""
    zone = registry.delete_zone(zone_id)
    _audit_zone(registry, "zone_deleted", zone, admin, request,
                changes={"name": zone.name})
    return MessageResponse(message=f"Zone {zone.name} deleted")
