"""Coverage check API schemas."""

from typing import Optional

from pydantic import BaseModel

from .common import LocationQuery


class CoverageCheckRequest(LocationQuery):
    """Coverage lookup by address or by coordinates (coordinates win when both are sent)."""


class ZoneRefModel(BaseModel):
    id: str
    name: str


class AvailableTypesModel(BaseModel):
    phone_call: bool
    house_call: bool
    message: str
    zone_name: Optional[str] = None


class CoverageResponse(BaseModel):
    address: str
    lat: float
    lng: float
    zone: Optional[ZoneRefModel] = None
    available_types: AvailableTypesModel
    is_in_service_area: bool
