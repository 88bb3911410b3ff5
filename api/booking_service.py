"""
Booking creation.

Every booking is stamped with the zone its location falls in. Matching is
best-effort: a failure to match never blocks a booking. Whether an
out-of-area booking is accepted depends on settings.enforce_zone_restriction.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from api.audit import create_audit_log, principal_id
from api.auth import owner_clause
from api.config import settings
from api.geocoding import AddressData, normalize_and_geocode, reverse_geocode
from api.models import APIKey, Booking, FamilyMember, parse_entity_id
from api.schemas import BookingResponse, CreateBookingRequest
from src.coverage.errors import MatchingError, NotFoundError, ValidationError
from src.coverage.resolver import CoverageResolver, get_available_visit_types

logger = logging.getLogger(__name__)

VISIT_TYPES = ("phone_call", "house_call")
BOOKING_STATUSES = ("new", "needs_review", "confirmed", "completed", "cancelled")

PATIENT_NOT_FOUND = "Patient not found. Please select a valid patient."


def booking_to_response(booking: Booking) -> BookingResponse:
    """Convert ORM booking to response model."""
    return BookingResponse(
        id=str(booking.id),
        status=booking.status,
        visit_type=booking.visit_type,
        address_raw=booking.address_raw,
        address_normalized=booking.address_normalized,
        street=booking.street,
        city=booking.city,
        province=booking.province,
        postal_code=booking.postal_code,
        country=booking.country,
        lat=booking.lat,
        lng=booking.lng,
        unit_buzzer=booking.unit_buzzer,
        access_instructions=booking.access_instructions,
        zone_id=str(booking.zone_id) if booking.zone_id else None,
        matched_zone_name=booking.matched_zone_name,
        family_member_id=str(booking.family_member_id) if booking.family_member_id else None,
        patient_info=booking.patient_info or {},
        contact_phone=booking.contact_phone,
        contact_email=booking.contact_email,
        confirmation_method=booking.confirmation_method,
        reason_for_visit=booking.reason_for_visit,
        notes=booking.notes,
        scheduled_time=booking.scheduled_time,
        assigned_provider=booking.assigned_provider,
        override=booking.override,
        safety_acknowledgements=booking.safety_acknowledgements,
        account_id=str(booking.account_id) if booking.account_id else None,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


def _validate_request(body: CreateBookingRequest) -> None:
    if not body.family_member_id:
        raise ValidationError("Please select a patient")
    if not body.contact_phone:
        raise ValidationError("Phone number is required")
    if not body.contact_email:
        raise ValidationError("Email address is required")
    if body.visit_type not in VISIT_TYPES:
        raise ValidationError("Please select visit type: phone_call or house_call")


async def resolve_location(body: CreateBookingRequest) -> AddressData:
    """
    Coordinates from "use my location" are reverse geocoded; a typed
    address is forward geocoded.

    Raises:
        ValidationError: Neither coordinates nor address given
        GeocodingError: The typed address could not be geocoded
    """
    if body.lat is not None and body.lng is not None:
        return await reverse_geocode(body.lat, body.lng)
    if body.address and body.address.strip():
        return await normalize_and_geocode(body.address.strip())
    raise ValidationError(
        "Location is required. Provide lat/lng (from current location) or address"
    )


def match_zone_best_effort(resolver: CoverageResolver, lat: float, lng: float):
    """Matched zone or None; matching failures count as no zone."""
    try:
        return resolver.find_matching_zone(lat, lng).zone
    except MatchingError as e:
        logger.warning(f"Zone matching failed for booking, continuing without zone: {e}")
        return None


def _check_visit_type_available(zone, visit_type: str) -> None:
    available = get_available_visit_types(zone)
    if not (available.phone_call or available.house_call):
        raise ValidationError(available.message)
    if visit_type == "house_call" and not available.house_call:
        raise ValidationError("House call visits are not available at this location")
    if visit_type == "phone_call" and not available.phone_call:
        raise ValidationError("Phone call visits are not available at this location")


def _find_patient(db: Session, api_key: Optional[APIKey], family_member_id: str) -> FamilyMember:
    try:
        member_id = parse_entity_id("FamilyMember", family_member_id)
    except NotFoundError:
        raise ValidationError(PATIENT_NOT_FOUND) from None

    member = (
        db.query(FamilyMember)
        .filter(
            FamilyMember.id == member_id,
            owner_clause(FamilyMember.account_id, api_key),
            FamilyMember.is_active.is_(True),
        )
        .first()
    )
    if member is None:
        raise ValidationError(PATIENT_NOT_FOUND)
    return member


def _patient_snapshot(member: FamilyMember) -> Dict[str, Any]:
    return {
        "first_name": member.first_name,
        "last_name": member.last_name,
        "dob": member.dob.isoformat() if member.dob else None,
        "phin": member.phin,
        "mhsc": member.mhsc,
    }


async def create_booking(
    db: Session,
    api_key: Optional[APIKey],
    body: CreateBookingRequest,
    resolver: CoverageResolver,
    request: Optional[Request] = None,
) -> Booking:
    """
    Create a booking for the calling account.

    Raises:
        ValidationError: Missing fields, unknown patient, or (with zone
            restriction enforced) a visit type not offered at the location
        GeocodingError: Typed address could not be geocoded
    """
    _validate_request(body)
    location = await resolve_location(body)

    zone = match_zone_best_effort(resolver, location.lat, location.lng)
    if settings.enforce_zone_restriction:
        _check_visit_type_available(zone, body.visit_type)

    member = _find_patient(db, api_key, body.family_member_id)

    safety = body.safety_acknowledgements
    booking = Booking(
        visit_type=body.visit_type,
        address_raw=body.address or location.raw,
        address_normalized=location.normalized,
        street=location.street,
        city=location.city,
        province=location.province,
        postal_code=location.postal_code,
        country=location.country,
        lat=location.lat,
        lng=location.lng,
        unit_buzzer=body.unit_buzzer,
        access_instructions=body.access_instructions,
        zone_id=zone.id if zone is not None else None,
        matched_zone_name=zone.name if zone is not None else None,
        family_member_id=member.id,
        patient_info=_patient_snapshot(member),
        contact_phone=body.contact_phone,
        contact_email=body.contact_email,
        confirmation_method="email",
        reason_for_visit=body.reason_for_visit,
        notes=body.notes,
        account_id=principal_id(api_key),
        safety_acknowledgements={
            "not_for_emergencies": safety.not_for_emergencies if safety else True,
            "call_911_acknowledged": safety.call_911_acknowledged if safety else True,
        },
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)

    logger.info(
        f"Booking {booking.id} created: {booking.visit_type}, "
        f"zone={booking.matched_zone_name or 'none'}"
    )

    create_audit_log(
        db,
        "booking_created",
        account_id=principal_id(api_key),
        entity_type="booking",
        entity_id=booking.id,
        changes={
            "visit_type": booking.visit_type,
            "status": booking.status,
            "zone_id": booking.zone_id,
            "matched_zone_name": booking.matched_zone_name,
        },
        request=request,
    )
    return booking
