"""
SQLAlchemy models for HOUSECALL database.
"""

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Text,
    JSON,
    Uuid,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid


from api.database import Base
from src.coverage.errors import NotFoundError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class APIKey(Base):
    """API key for authentication. Each key is one account."""

    __tablename__ = "api_keys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    key_hash = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    rate_limit = Column(Integer, default=1000)
    extra_metadata = Column("metadata", JSON, nullable=True)

    def __repr__(self):
        return f"<APIKey(name='{self.name}', active={self.is_active}, admin={self.is_admin})>"


class Zone(Base):
    """Service zone with a GeoJSON Polygon/MultiPolygon boundary."""

    __tablename__ = "zones"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # {"type": "Polygon" | "MultiPolygon", "coordinates": [...]}
    boundary_data = Column(JSON, nullable=False)
    allow_phone_call = Column(Boolean, default=True, nullable=False)
    allow_house_call = Column(Boolean, default=True, nullable=False)
    phone_calls_full = Column(Boolean, default=False, nullable=False)
    house_calls_full = Column(Boolean, default=False, nullable=False)
    priority = Column(Integer, default=0, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    # Creation order; tie-break between equal priorities
    sequence = Column(Integer, nullable=False, unique=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    bookings = relationship("Booking", back_populates="zone")

    __table_args__ = (
        Index("ix_zones_active_priority", "is_active", "priority"),
    )

    def __repr__(self):
        return f"<Zone(name='{self.name}', priority={self.priority}, active={self.is_active})>"


class FamilyMember(Base):
    """Patient registered under an account."""

    __tablename__ = "family_members"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("api_keys.id"), nullable=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    dob = Column(Date, nullable=False)
    address = Column(String(500), nullable=True)
    phin = Column(String(50), nullable=True)
    mhsc = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    bookings = relationship("Booking", back_populates="family_member")

    __table_args__ = (
        Index("ix_family_members_account_active", "account_id", "is_active"),
    )

    def __repr__(self):
        return f"<FamilyMember(name='{self.first_name} {self.last_name}')>"


class Booking(Base):
    """Visit booking request."""

    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    status = Column(String(20), default="new", nullable=False, index=True)
    visit_type = Column(String(20), nullable=False)

    # Address snapshot
    address_raw = Column(String(500), nullable=False)
    address_normalized = Column(String(500), nullable=True)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(50), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), default="Canada", nullable=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    unit_buzzer = Column(String(100), nullable=True)
    access_instructions = Column(Text, nullable=True)

    # Zone matching (name is a snapshot; survives zone deletion)
    zone_id = Column(Uuid, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True, index=True)
    matched_zone_name = Column(String(255), nullable=True)

    # Patient snapshot at booking time
    family_member_id = Column(Uuid, ForeignKey("family_members.id"), nullable=True)
    patient_info = Column(JSON, nullable=False)

    # Contact
    contact_phone = Column(String(50), nullable=False)
    contact_email = Column(String(255), nullable=True)
    confirmation_method = Column(String(10), default="email", nullable=False)

    # Visit details
    reason_for_visit = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    scheduled_time = Column(DateTime, nullable=True)
    assigned_provider = Column(JSON, nullable=True)
    override = Column(JSON, nullable=True)
    safety_acknowledgements = Column(JSON, nullable=True)

    account_id = Column(Uuid, ForeignKey("api_keys.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    zone = relationship("Zone", back_populates="bookings")
    family_member = relationship("FamilyMember", back_populates="bookings")

    __table_args__ = (
        Index("ix_bookings_account_created", "account_id", "created_at"),
        Index("ix_bookings_status_created", "status", "created_at"),
        Index("ix_bookings_zone_status", "zone_id", "status"),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, visit_type={self.visit_type}, status={self.status})>"


class AuditLog(Base):
    """Append-only record of administrative and booking actions."""

    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    action = Column(String(50), nullable=False, index=True)
    account_id = Column(Uuid, nullable=True)
    admin_id = Column(Uuid, nullable=True, index=True)
    entity_type = Column(String(30), nullable=True)
    entity_id = Column(Uuid, nullable=True)
    changes = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', entity={self.entity_type}:{self.entity_id})>"


def parse_entity_id(entity: str, value) -> uuid.UUID:
    """Parse a path/body id; malformed ids are reported as not found."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(entity, value) from None
