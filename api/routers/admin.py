"""
Booking administration and audit trail API router.

All endpoints require an administrator key.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.audit import create_audit_log, list_audit_logs, principal_id
from api.auth import require_admin
from api.booking_service import booking_to_response
from api.database import get_db
from api.models import APIKey, AuditLog, Booking, Zone, parse_entity_id
from api.schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    BookingListResponse,
    BookingResponse,
    HeatmapPoint,
    HeatmapResponse,
    MessageResponse,
    OverrideBookingRequest,
    UpdateBookingStatusRequest,
)
from src.coverage.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

STATUS_AUDIT_ACTIONS = {
    "confirmed": "booking_confirmed",
    "cancelled": "booking_cancelled",
}


def _get_booking(db, booking_id: str) -> Booking:
    booking = db.get(Booking, parse_entity_id("Booking", booking_id))
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking


def audit_to_response(entry: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=str(entry.id),
        action=entry.action,
        account_id=str(entry.account_id) if entry.account_id else None,
        admin_id=str(entry.admin_id) if entry.admin_id else None,
        entity_type=entry.entity_type,
        entity_id=str(entry.entity_id) if entry.entity_id else None,
        changes=entry.changes,
        reason=entry.reason,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        created_at=entry.created_at,
    )


def _created_between(query, start_date: Optional[datetime], end_date: Optional[datetime]):
    if start_date:
        query = query.filter(Booking.created_at >= start_date)
    if end_date:
        query = query.filter(Booking.created_at <= end_date)
    return query


# =============================================================================
# Bookings
# =============================================================================


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    status: Optional[str] = Query(None),
    zone_id: Optional[str] = Query(None),
    visit_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """All bookings, newest first, with optional filters."""
    query = db.query(Booking)
    if status:
        query = query.filter(Booking.status == status)
    if zone_id:
        query = query.filter(Booking.zone_id == parse_entity_id("Zone", zone_id))
    if visit_type:
        query = query.filter(Booking.visit_type == visit_type)
    query = _created_between(query, start_date, end_date)

    bookings = query.order_by(Booking.created_at.desc()).all()
    return BookingListResponse(
        count=len(bookings),
        bookings=[booking_to_response(b) for b in bookings],
    )


@router.get("/bookings/heatmap", response_model=HeatmapResponse)
async def booking_heatmap(
    visit_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """Booking locations for the demand map. No patient data."""
    query = db.query(Booking.lat, Booking.lng, Booking.visit_type, Booking.created_at)
    if visit_type:
        query = query.filter(Booking.visit_type == visit_type)
    query = _created_between(query, start_date, end_date)

    points = [
        HeatmapPoint(lat=lat, lng=lng, visit_type=vt, created_at=created)
        for lat, lng, vt, created in query.all()
    ]
    return HeatmapResponse(count=len(points), points=points)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking_details(
    booking_id: str,
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    return booking_to_response(_get_booking(db, booking_id))


@router.put("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    request: Request,
    booking_id: str,
    body: UpdateBookingStatusRequest,
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """Change status, assign a provider, or set the scheduled time."""
    booking = _get_booking(db, booking_id)
    old_status = booking.status

    if body.status:
        booking.status = body.status
    if body.assigned_provider:
        booking.assigned_provider = body.assigned_provider.model_dump()
    if body.scheduled_time:
        booking.scheduled_time = body.scheduled_time

    db.commit()
    db.refresh(booking)

    logger.info(f"Booking {booking.id} status {old_status} -> {booking.status}")
    create_audit_log(
        db,
        STATUS_AUDIT_ACTIONS.get(body.status, "booking_updated"),
        admin_id=principal_id(admin),
        entity_type="booking",
        entity_id=booking.id,
        changes={"old_status": old_status, "new_status": booking.status},
        reason=body.reason,
        request=request,
    )
    return booking_to_response(booking)


@router.put("/bookings/{booking_id}/override", response_model=BookingResponse)
async def override_booking(
    request: Request,
    booking_id: str,
    body: OverrideBookingRequest,
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """
    Override a booking's zone and allowed visit types.

    A reason is required. Without override_zone_id the booking keeps its zone.
    """
    if not body.reason or not body.reason.strip():
        raise ValidationError("Reason is required for override")

    booking = _get_booking(db, booking_id)
    original_zone_id = booking.zone_id
    original_visit_type = booking.visit_type

    override_zone = None
    if body.override_zone_id:
        override_zone = db.get(Zone, parse_entity_id("Zone", body.override_zone_id))
        if override_zone is None:
            raise NotFoundError("Zone", body.override_zone_id)

    allowed = body.allowed_visit_types
    booking.override = {
        "is_overridden": True,
        "original_zone_id": str(original_zone_id) if original_zone_id else None,
        "override_zone_id": str(override_zone.id) if override_zone else (
            str(original_zone_id) if original_zone_id else None
        ),
        "allowed_visit_types": {
            "phone_call": allowed.phone_call if allowed else True,
            "house_call": allowed.house_call if allowed else True,
        },
        "reason": body.reason.strip(),
        "overridden_by": str(admin.id) if admin is not None else None,
        "overridden_at": datetime.now(timezone.utc).isoformat(),
    }
    if override_zone is not None:
        booking.zone_id = override_zone.id
        booking.matched_zone_name = override_zone.name

    db.commit()
    db.refresh(booking)

    logger.info(f"Booking {booking.id} overridden")
    create_audit_log(
        db,
        "booking_overridden",
        admin_id=principal_id(admin),
        entity_type="booking",
        entity_id=booking.id,
        changes={
            "original": {"zone_id": original_zone_id, "visit_type": original_visit_type},
            "override": booking.override,
        },
        reason=body.reason.strip(),
        request=request,
    )
    return booking_to_response(booking)


@router.delete("/bookings/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    request: Request,
    booking_id: str,
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    booking = _get_booking(db, booking_id)
    deleted_id = booking.id
    changes = {"status": booking.status, "visit_type": booking.visit_type}

    db.delete(booking)
    db.commit()

    create_audit_log(
        db,
        "booking_deleted",
        admin_id=principal_id(admin),
        entity_type="booking",
        entity_id=deleted_id,
        changes=changes,
        request=request,
    )
    return MessageResponse(message="Booking deleted")


# =============================================================================
# Audit trail
# =============================================================================


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def get_audit_logs(
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """Audit entries, newest first, at most 1000."""
    entries = list_audit_logs(
        db,
        action=action,
        entity_type=entity_type,
        entity_id=parse_entity_id("AuditLog entity", entity_id) if entity_id else None,
        start_date=start_date,
        end_date=end_date,
    )
    return AuditLogListResponse(
        count=len(entries),
        audit_logs=[audit_to_response(e) for e in entries],
    )
