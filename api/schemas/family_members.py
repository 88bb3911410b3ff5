"""Family member (patient) API schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _not_in_future(value: Optional[date]) -> Optional[date]:
    if value is not None and value > date.today():
        raise ValueError("Date of birth cannot be in the future")
    return value


class CreateFamilyMemberRequest(BaseModel):
    """
    New patient. Either first_name/last_name or a single name, which is
    split on whitespace.
    """
    name: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    dob: date
    address: Optional[str] = Field(None, max_length=500)
    phin: Optional[str] = Field(None, max_length=50)
    mhsc: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @field_validator("dob")
    @classmethod
    def validate_dob(cls, v):
        return _not_in_future(v)


class UpdateFamilyMemberRequest(BaseModel):
    name: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    dob: Optional[date] = None
    address: Optional[str] = Field(None, max_length=500)
    phin: Optional[str] = Field(None, max_length=50)
    mhsc: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @field_validator("dob")
    @classmethod
    def validate_dob(cls, v):
        return _not_in_future(v)


class FamilyMemberResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    dob: date
    address: Optional[str] = None
    phin: Optional[str] = None
    mhsc: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class FamilyMemberListResponse(BaseModel):
    count: int
    family_members: List[FamilyMemberResponse]
