"""
Zone registry: persistence and write validation for service zones.

The registry owns all Zone rows. Writes are validated here (independently of
the HTTP schemas) so every caller, including the CLI, gets the same rules.
Matching order is priority descending, then creation sequence descending.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.config import settings
from api.database import get_db
from api.models import Booking, Zone, parse_entity_id
from src.coverage.boundary import parse_boundary
from src.coverage.errors import BoundaryError, NotFoundError, ValidationError
from src.coverage.resolver import CoverageResolver

logger = logging.getLogger(__name__)

ZONE_DEFAULTS: Dict[str, Any] = {
    "allow_phone_call": True,
    "allow_house_call": True,
    "phone_calls_full": False,
    "house_calls_full": False,
    "priority": 0,
    "is_active": True,
}

BOOLEAN_FIELDS = (
    "allow_phone_call",
    "allow_house_call",
    "phone_calls_full",
    "house_calls_full",
    "is_active",
)

UPDATABLE_FIELDS = ("name", "boundary") + BOOLEAN_FIELDS + ("priority",)

SEQUENCE_ATTEMPTS = 5


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Zone name is required")
    return name.strip()


def _validate_boundary(boundary: Any) -> Dict[str, Any]:
    if not boundary:
        raise ValidationError("Zone boundary is required")
    try:
        return parse_boundary(boundary).to_geojson()
    except BoundaryError as e:
        raise ValidationError(f"Invalid boundary: {e}") from e


def _validate_field(key: str, value: Any) -> Any:
    if key == "name":
        return _validate_name(value)
    if key == "boundary":
        return _validate_boundary(value)
    if key in BOOLEAN_FIELDS:
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be a boolean")
        return value
    if key == "priority":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("priority must be an integer")
        return value
    raise ValidationError(f"Unknown zone field: {key}")


class ZoneRegistry:
    """CRUD for service zones backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def _next_sequence(self) -> int:
        current = self.db.query(func.max(Zone.sequence)).scalar()
        return (current or 0) + 1

    def create_zone(self, data: Dict[str, Any]) -> Zone:
        """
        Create a zone.

        Args:
            data: name and boundary (required) plus optional flags/priority

        Returns:
            Zone: The persisted zone

        Raises:
            ValidationError: Missing name/boundary or invalid field values
        """
        name = _validate_name(data.get("name"))
        boundary = _validate_boundary(data.get("boundary"))

        values = dict(ZONE_DEFAULTS)
        for key in ZONE_DEFAULTS:
            if data.get(key) is not None:
                values[key] = _validate_field(key, data[key])

        for attempt in range(1, SEQUENCE_ATTEMPTS + 1):
            zone = Zone(
                name=name,
                boundary_data=boundary,
                sequence=self._next_sequence(),
                **values,
            )
            self.db.add(zone)
            try:
                self.db.commit()
                break
            except IntegrityError:
                # Another writer took the same sequence number
                self.db.rollback()
                if attempt == SEQUENCE_ATTEMPTS:
                    raise
                logger.warning(f"Zone sequence {zone.sequence} taken, retrying ({attempt})")
        self.db.refresh(zone)

        logger.info(f"Created zone {zone.name} ({zone.id}), priority {zone.priority}")
        return zone

    def get_zone(self, zone_id: Union[str, uuid.UUID]) -> Zone:
        """Get a zone by id or raise NotFoundError."""
        zone = self.db.get(Zone, parse_entity_id("Zone", zone_id))
        if zone is None:
            raise NotFoundError("Zone", zone_id)
        return zone

    def update_zone(self, zone_id: Union[str, uuid.UUID], partial: Dict[str, Any]) -> Zone:
        """
        Apply a partial update. Fields absent from partial keep their values.

        Raises:
            NotFoundError: Unknown zone id
            ValidationError: Invalid value for a supplied field
        """
        zone = self.get_zone(zone_id)

        changes = {}
        for key, value in partial.items():
            if key not in UPDATABLE_FIELDS:
                raise ValidationError(f"Unknown zone field: {key}")
            changes[key] = _validate_field(key, value)

        for key, value in changes.items():
            setattr(zone, "boundary_data" if key == "boundary" else key, value)

        self.db.commit()
        self.db.refresh(zone)

        logger.info(f"Updated zone {zone.id}: {sorted(changes)}")
        return zone

    def set_active(self, zone_id: Union[str, uuid.UUID], is_active: bool) -> Zone:
        """Toggle whether a zone takes part in matching."""
        return self.update_zone(zone_id, {"is_active": is_active})

    def delete_zone(self, zone_id: Union[str, uuid.UUID]) -> Zone:
        """
        Delete a zone permanently.

        Bookings matched to it keep matched_zone_name; their zone_id is
        cleared.
        """
        zone = self.get_zone(zone_id)

        detached = (
            self.db.query(Booking)
            .filter(Booking.zone_id == zone.id)
            .update({Booking.zone_id: None}, synchronize_session=False)
        )
        self.db.delete(zone)
        self.db.commit()

        logger.info(f"Deleted zone {zone.name} ({zone.id}); detached {detached} bookings")
        return zone

    def list_zones(self) -> List[Zone]:
        """All zones in matching order, active or not."""
        return (
            self.db.query(Zone)
            .order_by(Zone.priority.desc(), Zone.sequence.desc())
            .all()
        )

    def list_active_zones_by_priority(self) -> List[Zone]:
        """Active zones in the order they are tried when matching."""
        return (
            self.db.query(Zone)
            .filter(Zone.is_active.is_(True))
            .order_by(Zone.priority.desc(), Zone.sequence.desc())
            .all()
        )


def get_zone_registry(db: Session = Depends(get_db)) -> ZoneRegistry:
    """FastAPI dependency for the zone registry."""
    return ZoneRegistry(db)


def get_coverage_resolver(
    registry: ZoneRegistry = Depends(get_zone_registry),
) -> CoverageResolver:
    """FastAPI dependency for the coverage resolver."""
    return CoverageResolver(registry, fail_closed=settings.zone_matching_fail_closed)


def build_resolver(db: Session, fail_closed: Optional[bool] = None) -> CoverageResolver:
    """Resolver for code running outside a request (CLI, services)."""
    if fail_closed is None:
        fail_closed = settings.zone_matching_fail_closed
    return CoverageResolver(ZoneRegistry(db), fail_closed=fail_closed)
