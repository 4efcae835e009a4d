"""Polygon geometry helpers."""

from typing import List, Sequence, Tuple

from polygon_weather.config import MAX_VERTICES, MIN_VERTICES

# Below this signed area the ring is treated as degenerate
DEGENERATE_AREA: float = 1e-10


class InvalidGeometry(ValueError):
    """Raised when a vertex ring cannot be used."""
    pass


def open_ring(ring: Sequence[Tuple[float, float]]) -> List[Tuple[float, float]]:
    """Return the ring without its closing point, if it has one."""
    points = [tuple(point) for point in ring]
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return points


def close_ring(ring: Sequence[Tuple[float, float]]) -> List[Tuple[float, float]]:
    """Return the ring with the first point repeated at the end."""
    points = [tuple(point) for point in ring]
    if points and points[0] != points[-1]:
        points.append(points[0])
    return points


def centroid(ring: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    """Calculate the area-weighted centroid of a polygon.

    Uses the shoelace formula on (lat, lng) pairs. Closed and open rings
    give the same result. Degenerate rings (collinear or coincident
    points) fall back to the arithmetic mean of the vertices.

    Args:
        ring: Sequence of (lat, lng) vertices

    Returns:
        Tuple of (lat, lng)

    Raises:
        InvalidGeometry: If the ring has no points
    """
    if len(ring) == 0:
        raise InvalidGeometry("Cannot calculate centroid of empty polygon")

    points = open_ring(ring)
    count = len(points)

    area = 0.0
    centroid_lat = 0.0
    centroid_lng = 0.0

    for i in range(count):
        lat1, lng1 = points[i]
        lat2, lng2 = points[(i + 1) % count]

        cross = lat1 * lng2 - lat2 * lng1
        area += cross
        centroid_lat += (lat1 + lat2) * cross
        centroid_lng += (lng1 + lng2) * cross

    area /= 2

    if abs(area) < DEGENERATE_AREA:
        avg_lat = sum(lat for lat, _ in points) / count
        avg_lng = sum(lng for _, lng in points) / count
        return avg_lat, avg_lng

    return centroid_lat / (6 * area), centroid_lng / (6 * area)


def bounding_box(
    ring: Sequence[Tuple[float, float]]
) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Return ((min_lat, min_lng), (max_lat, max_lng)) of a ring.

    An empty ring yields a zero box.
    """
    if len(ring) == 0:
        return (0.0, 0.0), (0.0, 0.0)

    lats = [point[0] for point in ring]
    lngs = [point[1] for point in ring]
    return (min(lats), min(lngs)), (max(lats), max(lngs))


def validate_ring(ring: Sequence[Tuple[float, float]]) -> None:
    """Check that a ring is an acceptable polygon outline.

    The ring must be closed and hold between MIN_VERTICES and MAX_VERTICES
    distinct vertices, not counting the closing point.

    Raises:
        InvalidGeometry: Describing the first problem found
    """
    points = [tuple(point) for point in ring]

    if len(points) < MIN_VERTICES:
        raise InvalidGeometry(f"Polygon must have at least {MIN_VERTICES} points")

    if points[0] != points[-1]:
        raise InvalidGeometry("Polygon must be closed (first and last points should match)")

    distinct = len(set(open_ring(points)))
    if distinct < MIN_VERTICES:
        raise InvalidGeometry(f"Polygon must have at least {MIN_VERTICES} distinct points")
    if distinct > MAX_VERTICES:
        raise InvalidGeometry(f"Polygon cannot have more than {MAX_VERTICES} points")
