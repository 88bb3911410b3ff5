"""Service zone API schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictBool, StrictInt

from .coverage import CoverageResponse


class CreateZoneRequest(BaseModel):
    """Request to create a service zone. Name and boundary are checked by the registry."""
    name: Optional[str] = None
    boundary: Optional[Dict[str, Any]] = Field(
        None, description="GeoJSON Polygon or MultiPolygon, [lng, lat] positions"
    )
    allow_phone_call: Optional[StrictBool] = None
    allow_house_call: Optional[StrictBool] = None
    phone_calls_full: Optional[StrictBool] = None
    house_calls_full: Optional[StrictBool] = None
    priority: Optional[StrictInt] = None
    is_active: Optional[StrictBool] = None


class UpdateZoneRequest(BaseModel):
    """Partial update; only fields sent are changed."""
    name: Optional[str] = None
    boundary: Optional[Dict[str, Any]] = None
    allow_phone_call: Optional[StrictBool] = None
    allow_house_call: Optional[StrictBool] = None
    phone_calls_full: Optional[StrictBool] = None
    house_calls_full: Optional[StrictBool] = None
    priority: Optional[StrictInt] = None
    is_active: Optional[StrictBool] = None


class SetZoneActiveRequest(BaseModel):
    is_active: StrictBool


class ZoneResponse(BaseModel):
    """Full zone record (admin)."""
    id: str
    name: str
    boundary: Dict[str, Any]
    allow_phone_call: bool
    allow_house_call: bool
    phone_calls_full: bool
    house_calls_full: bool
    priority: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ZoneListResponse(BaseModel):
    count: int
    zones: List[ZoneResponse]


class PublicZoneResponse(BaseModel):
    """Zone summary shown to the public: no geometry."""
    id: str
    name: str
    allow_phone_call: bool
    allow_house_call: bool
    priority: int


class ZoneTestResponse(CoverageResponse):
    """Admin zone-test tool: coverage plus the normalized address."""
    normalized_address: Optional[str] = None
