"""Common shared schemas used across multiple domains."""

from typing import Optional

from pydantic import BaseModel, Field


class LocationQuery(BaseModel):
    """Either a free-text address or a coordinate pair."""
    address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


class MessageResponse(BaseModel):
    message: str
