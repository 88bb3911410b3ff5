"""
Account booking API router.

Accounts create bookings and see their own; administrators may read any
booking.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from api.auth import get_api_key, is_admin, owner_clause
from api.booking_service import booking_to_response, create_booking
from api.database import get_db
from api.models import APIKey, Booking, parse_entity_id
from api.rate_limit import limiter, get_rate_limit_string
from api.schemas import BookingListResponse, BookingResponse, CreateBookingRequest
from api.zone_registry import get_coverage_resolver
from src.coverage.errors import NotFoundError
from src.coverage.resolver import CoverageResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=201)
@limiter.limit(get_rate_limit_string())
async def create_booking_endpoint(
    request: Request,
    body: CreateBookingRequest,
    api_key: Optional[APIKey] = Depends(get_api_key),
    resolver: CoverageResolver = Depends(get_coverage_resolver),
    db=Depends(get_db),
):
    """Book a phone call or house call for one of the account's patients."""
    booking = await create_booking(db, api_key, body, resolver, request=request)
    return booking_to_response(booking)


@router.get("", response_model=BookingListResponse)
async def list_my_bookings(
    api_key: Optional[APIKey] = Depends(get_api_key),
    db=Depends(get_db),
):
    """The calling account's bookings, newest first."""
    bookings = (
        db.query(Booking)
        .filter(owner_clause(Booking.account_id, api_key))
        .order_by(Booking.created_at.desc())
        .all()
    )
    return BookingListResponse(
        count=len(bookings),
        bookings=[booking_to_response(b) for b in bookings],
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    api_key: Optional[APIKey] = Depends(get_api_key),
    db=Depends(get_db),
):
    """A booking owned by the caller (any booking for administrators)."""
    booking = db.get(Booking, parse_entity_id("Booking", booking_id))
    if booking is None:
        raise NotFoundError("Booking", booking_id)

    owner = api_key.id if api_key is not None else None
    if booking.account_id != owner and not is_admin(api_key):
        raise HTTPException(status_code=403, detail="Not authorized to access this booking")

    return booking_to_response(booking)
