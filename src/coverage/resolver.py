"""
Coverage resolution: coordinate -> service zone -> available visit types.

The resolver reads active zones from a registry in priority order, tests the
point against each boundary and stops at the first match. Every zone it looks
at produces an explicit ZoneEvaluation so that a zone with a corrupt stored
boundary is skipped (and reported) without aborting the other zones.

Visit type availability:
- phone call available = allow_phone_call and not phone_calls_full
- house call available = allow_house_call and not house_calls_full
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from src.coverage.boundary import parse_boundary
from src.coverage.errors import BoundaryError, MatchingError

logger = logging.getLogger(__name__)


MESSAGE_BOTH = "Good news — we offer both phone and in-home visits in your area."
MESSAGE_PHONE_ONLY = "We currently offer phone appointments in your area."
MESSAGE_HOUSE_ONLY = "In-home doctor visits are available in your area."
MESSAGE_NOT_SERVED = "Sorry — we don't currently serve this location."


class ZoneSource(Protocol):
    """Anything that can list active zones in matching order."""

    def list_active_zones_by_priority(self) -> Sequence[Any]:
        ...


class ZoneOutcome(Enum):
    """Result of testing one zone against a point."""
    MATCHED = "matched"
    NO_MATCH = "no_match"
    SKIPPED = "skipped"


@dataclass
class ZoneEvaluation:
    """Per-zone evaluation record."""
    zone_id: str
    outcome: ZoneOutcome
    reason: Optional[str] = None


@dataclass
class MatchResult:
    """
    Outcome of a zone lookup.

    zone is None when no active zone contains the point. That is a normal
    result, distinct from a MatchingError.
    """
    zone: Optional[Any]
    evaluations: List[ZoneEvaluation] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.zone is not None

    @property
    def skipped(self) -> List[ZoneEvaluation]:
        return [e for e in self.evaluations if e.outcome is ZoneOutcome.SKIPPED]


@dataclass
class VisitAvailability:
    """Which visit types are offered at a location."""
    phone_call: bool
    house_call: bool
    message: str
    zone_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "phone_call": self.phone_call,
            "house_call": self.house_call,
            "message": self.message,
        }
        if self.zone_name is not None:
            result["zone_name"] = self.zone_name
        return result


@dataclass
class ZoneRef:
    """Zone identity exposed to callers (never the full record)."""
    id: str
    name: str


@dataclass
class CoverageResult:
    """Answer to "do you serve this location?"."""
    address: str
    lat: float
    lng: float
    zone: Optional[ZoneRef]
    available_types: VisitAvailability

    @property
    def is_in_service_area(self) -> bool:
        return self.available_types.phone_call or self.available_types.house_call

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "lat": self.lat,
            "lng": self.lng,
            "zone": {"id": self.zone.id, "name": self.zone.name} if self.zone else None,
            "available_types": self.available_types.to_dict(),
            "is_in_service_area": self.is_in_service_area,
        }


def _select_message(phone_call: bool, house_call: bool) -> str:
    if phone_call and house_call:
        return MESSAGE_BOTH
    if phone_call:
        return MESSAGE_PHONE_ONLY
    if house_call:
        return MESSAGE_HOUSE_ONLY
    return MESSAGE_NOT_SERVED


def get_available_visit_types(zone: Optional[Any]) -> VisitAvailability:
    """
    Derive visit type availability for a matched zone.

    Args:
        zone: Matched zone, or None when the location is not covered

    Returns:
        VisitAvailability; zone_name is set whenever a zone was given
    """
    if zone is None:
        return VisitAvailability(
            phone_call=False,
            house_call=False,
            message=MESSAGE_NOT_SERVED,
        )

    phone_call = bool(zone.allow_phone_call) and not zone.phone_calls_full
    house_call = bool(zone.allow_house_call) and not zone.house_calls_full

    return VisitAvailability(
        phone_call=phone_call,
        house_call=house_call,
        message=_select_message(phone_call, house_call),
        zone_name=zone.name,
    )


def evaluate_zone(zone: Any, lat: float, lng: float) -> ZoneEvaluation:
    """Test one zone's stored boundary against a point."""
    zone_id = str(zone.id)
    try:
        boundary = parse_boundary(zone.boundary_data)
        inside = boundary.contains(lat, lng)
    except BoundaryError as e:
        return ZoneEvaluation(zone_id, ZoneOutcome.SKIPPED, reason=str(e))
    except (TypeError, ValueError, ArithmeticError) as e:
        return ZoneEvaluation(
            zone_id, ZoneOutcome.SKIPPED, reason=f"{type(e).__name__}: {e}"
        )

    return ZoneEvaluation(
        zone_id, ZoneOutcome.MATCHED if inside else ZoneOutcome.NO_MATCH
    )


class CoverageResolver:
    """
    Resolves coordinates against the active service zones.

    Zones are read fresh on every call; nothing is cached because capacity
    flags change between requests.
    """

    def __init__(self, zones: ZoneSource, fail_closed: bool = False):
        self.zones = zones
        self.fail_closed = fail_closed

    def find_matching_zone(self, lat: float, lng: float) -> MatchResult:
        """
        Find the highest-priority active zone containing a point.

        Args:
            lat, lng: Point to resolve

        Returns:
            MatchResult with the zone (or None) and per-zone evaluations

        Raises:
            MatchingError: If zones cannot be fetched, or a zone boundary is
                malformed while fail_closed is set
        """
        try:
            zones = self.zones.list_active_zones_by_priority()
        except Exception as e:
            logger.error(f"Zone lookup failed: {e}")
            raise MatchingError(f"Zone matching failed: {e}") from e

        evaluations: List[ZoneEvaluation] = []
        for zone in zones:
            evaluation = evaluate_zone(zone, lat, lng)
            evaluations.append(evaluation)

            if evaluation.outcome is ZoneOutcome.SKIPPED:
                logger.warning(
                    f"Skipping zone {evaluation.zone_id} ({zone.name}): "
                    f"malformed boundary: {evaluation.reason}"
                )
                if self.fail_closed:
                    raise MatchingError(
                        f"Malformed boundary: {evaluation.reason}",
                        zone_id=evaluation.zone_id,
                    )
                continue

            if evaluation.outcome is ZoneOutcome.MATCHED:
                return MatchResult(zone=zone, evaluations=evaluations)

        return MatchResult(zone=None, evaluations=evaluations)

    def check_coverage(self, address: str, lat: float, lng: float) -> CoverageResult:
        """Match a labelled location and describe what is offered there."""
        match = self.find_matching_zone(lat, lng)
        zone = match.zone

        return CoverageResult(
            address=address,
            lat=lat,
            lng=lng,
            zone=ZoneRef(id=str(zone.id), name=zone.name) if zone is not None else None,
            available_types=get_available_visit_types(zone),
        )
