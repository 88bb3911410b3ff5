"""Booking API schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class SafetyAcknowledgements(BaseModel):
    not_for_emergencies: bool = True
    call_911_acknowledged: bool = True


class CreateBookingRequest(BaseModel):
    """
    Booking request from the app.

    Required fields are checked by the booking service so that each missing
    field gets its own message.
    """
    family_member_id: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    visit_type: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    unit_buzzer: Optional[str] = None
    access_instructions: Optional[str] = None
    reason_for_visit: Optional[str] = None
    notes: Optional[str] = None
    safety_acknowledgements: Optional[SafetyAcknowledgements] = None


class BookingResponse(BaseModel):
    """Booking record."""
    id: str
    status: str
    visit_type: str
    address_raw: str
    address_normalized: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    lat: float
    lng: float
    unit_buzzer: Optional[str] = None
    access_instructions: Optional[str] = None
    zone_id: Optional[str] = None
    matched_zone_name: Optional[str] = None
    family_member_id: Optional[str] = None
    patient_info: Dict[str, Any]
    contact_phone: str
    contact_email: Optional[str] = None
    confirmation_method: str
    reason_for_visit: Optional[str] = None
    notes: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    assigned_provider: Optional[Dict[str, Any]] = None
    override: Optional[Dict[str, Any]] = None
    safety_acknowledgements: Optional[Dict[str, Any]] = None
    account_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BookingListResponse(BaseModel):
    count: int
    bookings: List[BookingResponse]


class AssignedProvider(BaseModel):
    provider_id: Optional[str] = None
    provider_name: str


class UpdateBookingStatusRequest(BaseModel):
    """Admin status / provider / schedule update."""
    status: Optional[Literal["new", "needs_review", "confirmed", "completed", "cancelled"]] = None
    assigned_provider: Optional[AssignedProvider] = None
    scheduled_time: Optional[datetime] = None
    reason: Optional[str] = None


class AllowedVisitTypes(BaseModel):
    phone_call: bool = True
    house_call: bool = True


class OverrideBookingRequest(BaseModel):
    """Admin override of a booking's zone assignment."""
    override_zone_id: Optional[str] = None
    allowed_visit_types: Optional[AllowedVisitTypes] = None
    reason: Optional[str] = None


class HeatmapPoint(BaseModel):
    lat: float
    lng: float
    visit_type: str
    created_at: datetime


class HeatmapResponse(BaseModel):
    count: int
    points: List[HeatmapPoint]
