"""Service zone geometry and coverage resolution."""

from .boundary import Boundary, MultiPolygon, Polygon, parse_boundary
from .errors import (
    BoundaryError,
    CoverageError,
    GeocodingError,
    MatchingError,
    NotFoundError,
    ValidationError,
)
from .resolver import (
    CoverageResolver,
    CoverageResult,
    MatchResult,
    VisitAvailability,
    ZoneEvaluation,
    ZoneOutcome,
    get_available_visit_types,
)

__all__ = [
    "Boundary",
    "MultiPolygon",
    "Polygon",
    "parse_boundary",
    "BoundaryError",
    "CoverageError",
    "GeocodingError",
    "MatchingError",
    "NotFoundError",
    "ValidationError",
    "CoverageResolver",
    "CoverageResult",
    "MatchResult",
    "VisitAvailability",
    "ZoneEvaluation",
    "ZoneOutcome",
    "get_available_visit_types",
]
