"""
Family member (patient) API router.

Patients belong to the calling account. Deletion is soft: the row stays so
existing bookings keep their link.
"""

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Request

from api.audit import create_audit_log, principal_id
from api.auth import get_api_key, owner_clause
from api.database import get_db
from api.models import APIKey, FamilyMember, parse_entity_id
from api.schemas import (
    CreateFamilyMemberRequest,
    FamilyMemberListResponse,
    FamilyMemberResponse,
    MessageResponse,
    UpdateFamilyMemberRequest,
)
from src.coverage.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/family-members", tags=["Family Members"])


def split_name(name: str) -> Tuple[str, str]:
    """
    "Jane Q Doe" -> ("Jane", "Q Doe"). A single token is used for both
    first and last name.
    """
    parts = name.split()
    if not parts:
        raise ValidationError("Name is required")
    first = parts[0]
    last = " ".join(parts[1:]) or first
    return first, last


def _member_to_response(member: FamilyMember) -> FamilyMemberResponse:
    return FamilyMemberResponse(
        id=str(member.id),
        first_name=member.first_name,
        last_name=member.last_name,
        dob=member.dob,
        address=member.address,
        phin=member.phin,
        mhsc=member.mhsc,
        notes=member.notes,
        is_active=member.is_active,
        created_at=member.created_at,
        updated_at=member.updated_at,
    )


def _get_owned_member(db, api_key: Optional[APIKey], member_id: str) -> FamilyMember:
    member = (
        db.query(FamilyMember)
        .filter(
            FamilyMember.id == parse_entity_id("FamilyMember", member_id),
            owner_clause(FamilyMember.account_id, api_key),
            FamilyMember.is_active.is_(True),
        )
        .first()
    )
    if member is None:
        raise NotFoundError("FamilyMember", member_id)
    return member


@router.get("", response_model=FamilyMemberListResponse)
async def list_family_members(
    api_key: Optional[APIKey] = Depends(get_api_key),
    db=Depends(get_db),
):
    """The account's active patients, newest first."""
    members = (
        db.query(FamilyMember)
        .filter(
            owner_clause(FamilyMember.account_id, api_key),
            FamilyMember.is_active.is_(True),
        )
        .order_by(FamilyMember.created_at.desc())
        .all()
    )
    return FamilyMemberListResponse(
        count=len(members),
        family_members=[_member_to_response(m) for m in members],
    )


@router.get("/{member_id}", response_model=FamilyMemberResponse)
async def get_family_member(
    member_id: str,
    api_key: Optional[APIKey] = Depends(get_api_key),
    db=Depends(get_db),
):
    return _member_to_response(_get_owned_member(db, api_key, member_id))


@router.post("", response_model=FamilyMemberResponse, status_code=201)
async def create_family_member(
    request: Request,
    body: CreateFamilyMemberRequest,
    api_key: Optional[APIKey] = Depends(get_api_key),
    db=Depends(get_db),
):
    """Add a patient. Accepts first_name/last_name or a single name."""
    if body.first_name and body.last_name:
        first_name, last_name = body.first_name.strip(), body.last_name.strip()
    elif body.name:
        first_name, last_name = split_name(body.name)
    else:
        raise ValidationError("First and last name (or name) are required")

    member = FamilyMember(
        account_id=principal_id(api_key),
        first_name=first_name,
        last_name=last_name,
        dob=body.dob,
        address=body.address,
        phin=body.phin,
        mhsc=body.mhsc,
        notes=body.notes,
    )
    db.add(member)
    db.commit()
    db.refresh(member)

    logger.info(f"Family member {member.id} added")
    create_audit_log(
        db,
        "family_member_added",
        account_id=principal_id(api_key),
        entity_type="family_member",
        entity_id=member.id,
        request=request,
    )
    return _member_to_response(member)


@router.put("/{member_id}", response_model=FamilyMemberResponse)
async def update_family_member(
    request: Request,
    member_id: str,
    body: UpdateFamilyMemberRequest,
    api_key: Optional[APIKey] = Depends(get_api_key),
    db=Depends(get_db),
):
    """Partial update; only fields sent are changed."""
    member = _get_owned_member(db, api_key, member_id)

    updates = body.model_dump(exclude_unset=True)
    name = updates.pop("name", None)
    if name:
        updates["first_name"], updates["last_name"] = split_name(name)

    for field in ("first_name", "last_name"):
        if field in updates and not (updates[field] or "").strip():
            raise ValidationError(f"{field} cannot be empty")
    if "dob" in updates and updates["dob"] is None:
        raise ValidationError("dob cannot be empty")

    for key, value in updates.items():
        setattr(member, key, value.strip() if key in ("first_name", "last_name") else value)
    db.commit()
    db.refresh(member)

    create_audit_log(
        db,
        "family_member_updated",
        account_id=principal_id(api_key),
        entity_type="family_member",
        entity_id=member.id,
        changes={"fields": sorted(updates)},
        request=request,
    )
    return _member_to_response(member)


@router.delete("/{member_id}", response_model=MessageResponse)
async def delete_family_member(
    request: Request,
    member_id: str,
    api_key: Optional[APIKey] = Depends(get_api_key),
    db=Depends(get_db),
):
    """Soft delete: the patient disappears from lists and can no longer be booked."""
    member = _get_owned_member(db, api_key, member_id)
    member.is_active = False
    db.commit()

    create_audit_log(
        db,
        "family_member_deleted",
        account_id=principal_id(api_key),
        entity_type="family_member",
        entity_id=member.id,
        request=request,
    )
    return MessageResponse(message="Family member removed")
