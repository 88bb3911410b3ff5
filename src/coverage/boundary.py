"""
Service zone boundaries.

Zone geometry is stored GeoJSON-style: {"type": ..., "coordinates": ...} with
[longitude, latitude] positions. Stored geometry is parsed into one of two
variants before matching:

- Polygon: an outer ring followed by zero or more holes
- MultiPolygon: a list of polygons; the point may fall in any of them

Containment is a planar ray casting test with longitude as x and latitude as
y. A point lying exactly on a ring edge or vertex belongs to the zone, for
the outer ring and for holes alike. A point on a hole edge is therefore
inside the zone, unlike turf-style point-in-polygon tests that treat the
hole boundary as part of the hole.

Rings must be closed, have at least 4 positions and enclose a non-zero area;
collinear or single-point rings are rejected.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple, Union

from src.coverage.errors import BoundaryError

# (longitude, latitude)
Position = Tuple[float, float]
Ring = Tuple[Position, ...]

MIN_RING_POINTS = 4
EDGE_TOLERANCE = 1e-12

POLYGON = "Polygon"
MULTI_POLYGON = "MultiPolygon"


def _on_segment(x: float, y: float, a: Position, b: Position) -> bool:
    """Check if (x, y) lies on the segment a-b."""
    (x1, y1), (x2, y2) = a, b
    cross = (x - x1) * (y2 - y1) - (y - y1) * (x2 - x1)
    if abs(cross) > EDGE_TOLERANCE:
        return False
    return min(x1, x2) <= x <= max(x1, x2) and min(y1, y2) <= y <= max(y1, y2)


def point_on_ring(x: float, y: float, ring: Sequence[Position]) -> bool:
    """Check if (x, y) lies on any edge of a closed ring."""
    for i in range(len(ring) - 1):
        if _on_segment(x, y, ring[i], ring[i + 1]):
            return True
    return False


def ring_area(ring: Sequence[Position]) -> float:
    """Signed shoelace area of a closed ring (square degrees)."""
    total = 0.0
    for i in range(len(ring) - 1):
        (x1, y1), (x2, y2) = ring[i], ring[i + 1]
        total += x1 * y2 - x2 * y1
    return total / 2


def point_in_ring(x: float, y: float, ring: Sequence[Position]) -> bool:
    """
    Ray casting test for a single ring.

    Edge points are not classified here; callers check point_on_ring first.

    Args:
        x, y: Point to test (longitude, latitude)
        ring: Closed ring of (longitude, latitude) vertices

    Returns:
        True if the point is strictly inside the ring
    """
    n = len(ring)
    inside = False

    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]

        if ((yi > y) != (yj > y)) and \
           (x < (xj - xi) * (y - yi) / (yj - yi) + xi):
            inside = not inside

        j = i

    return inside


@dataclass(frozen=True)
class Polygon:
    """A single polygon: outer ring plus optional holes."""
    rings: Tuple[Ring, ...]

    @property
    def outer(self) -> Ring:
        return self.rings[0]

    @property
    def holes(self) -> Tuple[Ring, ...]:
        return self.rings[1:]

    def contains(self, lat: float, lng: float) -> bool:
        """Check if point is inside the polygon (edges included)."""
        if point_on_ring(lng, lat, self.outer):
            return True
        if not point_in_ring(lng, lat, self.outer):
            return False

        for hole in self.holes:
            if point_on_ring(lng, lat, hole):
                return True
            if point_in_ring(lng, lat, hole):
                return False

        return True

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": POLYGON,
            "coordinates": [[list(p) for p in ring] for ring in self.rings],
        }


@dataclass(frozen=True)
class MultiPolygon:
    """Several polygons forming one zone boundary."""
    polygons: Tuple[Polygon, ...]

    def contains(self, lat: float, lng: float) -> bool:
        """Check constituent polygons in listed order; any match counts."""
        for polygon in self.polygons:
            if polygon.contains(lat, lng):
                return True
        return False

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": MULTI_POLYGON,
            "coordinates": [
                [[list(p) for p in ring] for ring in polygon.rings]
                for polygon in self.polygons
            ],
        }


Boundary = Union[Polygon, MultiPolygon]


def _parse_position(raw: Any) -> Position:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        raise BoundaryError(f"Position must be a [longitude, latitude] pair, got {raw!r}")

    lng, lat = raw[0], raw[1]
    for value in (lng, lat):
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise BoundaryError(f"Coordinates must be numeric, got {raw!r}")
        if not math.isfinite(value):
            raise BoundaryError(f"Coordinates must be finite, got {raw!r}")

    if not -180 <= lng <= 180:
        raise BoundaryError(f"Longitude out of range: {lng}")
    if not -90 <= lat <= 90:
        raise BoundaryError(f"Latitude out of range: {lat}")

    return float(lng), float(lat)


def _parse_ring(raw: Any) -> Ring:
    if not isinstance(raw, (list, tuple)):
        raise BoundaryError("Ring must be a list of positions")
    if len(raw) < MIN_RING_POINTS:
        raise BoundaryError(
            f"Ring must have at least {MIN_RING_POINTS} points, got {len(raw)}"
        )

    ring = tuple(_parse_position(p) for p in raw)
    if ring[0] != ring[-1]:
        raise BoundaryError("Ring is not closed: first and last points differ")
    if len(set(ring)) < 3:
        raise BoundaryError("Ring is degenerate: fewer than 3 distinct vertices")
    if ring_area(ring) == 0:
        raise BoundaryError("Ring is degenerate: vertices are collinear")
    return ring


def _parse_polygon(raw: Any) -> Polygon:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise BoundaryError("Polygon must contain at least one ring")
    return Polygon(rings=tuple(_parse_ring(r) for r in raw))


def parse_boundary(data: Any) -> Boundary:
    """
    Parse a GeoJSON-style Polygon or MultiPolygon into a Boundary.

    Args:
        data: Mapping with "type" and "coordinates" keys

    Returns:
        Polygon or MultiPolygon

    Raises:
        BoundaryError: If the geometry is structurally invalid
    """
    if not isinstance(data, dict):
        raise BoundaryError("Boundary must be an object with type and coordinates")

    geometry_type = data.get("type")
    coordinates = data.get("coordinates")
    if coordinates is None:
        raise BoundaryError("Boundary coordinates are required")

    if geometry_type == POLYGON:
        return _parse_polygon(coordinates)

    if geometry_type == MULTI_POLYGON:
        if not isinstance(coordinates, (list, tuple)) or not coordinates:
            raise BoundaryError("MultiPolygon must contain at least one polygon")
        return MultiPolygon(polygons=tuple(_parse_polygon(p) for p in coordinates))

    raise BoundaryError(
        f"Unsupported boundary type {geometry_type!r}; expected {POLYGON} or {MULTI_POLYGON}"
    )

