"""
Error taxonomy for zone administration, coverage matching and geocoding.

ValidationError and NotFoundError are client errors raised by administrative
writes. MatchingError is raised only for unexpected failures while evaluating
zones; an uncovered location is never an error.
"""

from typing import Optional


class CoverageError(Exception):
    """Base class for all coverage domain errors."""


class ValidationError(CoverageError):
    """Malformed or missing input on a write."""


class BoundaryError(ValidationError):
    """Structurally invalid Polygon / MultiPolygon boundary."""


class NotFoundError(CoverageError):
    """A referenced record does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class MatchingError(CoverageError):
    """Unexpected failure while fetching or evaluating zones."""

    def __init__(self, message: str, zone_id: Optional[str] = None):
        self.zone_id = zone_id
        if zone_id is not None:
            message = f"{message} (zone {zone_id})"
        super().__init__(message)


class GeocodingError(CoverageError):
    """An address could not be resolved to coordinates."""
