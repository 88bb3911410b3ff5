"""Audit log API schemas."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: str
    action: str
    account_id: Optional[str] = None
    admin_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    changes: Optional[Any] = None
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    count: int
    audit_logs: List[AuditLogResponse]
