"""
Audit trail for booking, patient and zone changes.

Audit writes never break the request that triggered them: failures are
logged and the entry is dropped.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, List, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.models import APIKey, AuditLog

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = (
    "booking_created",
    "booking_updated",
    "booking_confirmed",
    "booking_cancelled",
    "booking_overridden",
    "booking_deleted",
    "zone_created",
    "zone_updated",
    "zone_deleted",
    "family_member_added",
    "family_member_updated",
    "family_member_deleted",
)

ENTITY_TYPES = ("booking", "zone", "family_member")

MAX_AUDIT_ROWS = 1000


def principal_id(api_key: Optional[APIKey]) -> Optional[uuid.UUID]:
    """Id of the calling key, None when auth is disabled."""
    return api_key.id if api_key is not None else None


def create_audit_log(
    db: Session,
    action: str,
    account_id: Optional[uuid.UUID] = None,
    admin_id: Optional[uuid.UUID] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    changes: Any = None,
    reason: Optional[str] = None,
    request: Optional[Request] = None,
) -> Optional[AuditLog]:
    """
    Append an audit entry.

    Returns:
        AuditLog, or None when the entry could not be written
    """
    if action not in AUDIT_ACTIONS:
        logger.error(f"Unknown audit action: {action}")
        return None

    ip_address = user_agent = None
    if request is not None:
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")
        if user_agent:
            user_agent = user_agent[:500]

    entry = AuditLog(
        action=action,
        account_id=account_id,
        admin_id=admin_id,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=jsonable_encoder(changes) if changes is not None else None,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error creating audit log ({action}): {e}")
        db.rollback()
        return None

    return entry


def list_audit_logs(
    db: Session,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = MAX_AUDIT_ROWS,
) -> List[AuditLog]:
    """Filtered audit entries, newest first, capped at MAX_AUDIT_ROWS."""
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if start_date:
        query = query.filter(AuditLog.created_at >= start_date)
    if end_date:
        query = query.filter(AuditLog.created_at <= end_date)

    return query.order_by(AuditLog.created_at.desc()).limit(min(limit, MAX_AUDIT_ROWS)).all()
