"""Area, perimeter, and centroid of rings on a spherical earth.

Rings are ``(lng, lat)`` sequences in WGS84 degrees. Signed area follows the
RFC 7946 convention: counter-clockwise exteriors are positive.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from .models import BoundingBox, RingMetrics, Vertex
from .rings import Coord, normalize_ring

EARTH_RADIUS_M = 6_371_000.0
SQUARE_METERS_PER_HECTARE = 10_000.0


def signed_area_m2(ring: Any) -> float:
    """Spherical-excess area of a ring in square meters.

    Positive for counter-clockwise rings, negative for clockwise ones, zero for
    fewer than three vertices or collinear input.
    """
    coords = normalize_ring(ring)
    return _signed_area_m2(coords)


def _signed_area_m2(coords: list[Coord]) -> float:
    n = len(coords)
    if n < 3:
        return 0.0

    total = 0.0
    for i in range(n):
        lng1, lat1 = coords[i]
        lng2, lat2 = coords[(i + 1) % n]
        total += math.radians(lng2 - lng1) * (
            2 + math.sin(math.radians(lat1)) + math.sin(math.radians(lat2))
        )
    # The edge sum is negative for counter-clockwise rings.
    return -total * EARTH_RADIUS_M**2 / 2


def area(ring: Any) -> float:
    """Signed ring area in hectares."""
    return signed_area_m2(ring) / SQUARE_METERS_PER_HECTARE


def polygon_area(exterior: Any, holes: Iterable[Any] = ()) -> float:
    """Area in hectares of an exterior ring minus its holes, winding ignored."""
    return net_area_m2(exterior, holes) / SQUARE_METERS_PER_HECTARE


def net_area_m2(exterior: Any, holes: Iterable[Any] = ()) -> float:
    total = abs(signed_area_m2(exterior))
    for hole in holes:
        total -= abs(signed_area_m2(hole))
    return max(total, 0.0)


def distance_m(a: Coord, b: Coord) -> float:
    """Great-circle (haversine) distance between two coordinates in meters."""
    lng1, lat1 = a
    lng2, lat2 = b
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def perimeter(ring: Any) -> float:
    """Ring perimeter in meters, including the closing edge."""
    coords = normalize_ring(ring)
    return _perimeter(coords)


def _perimeter(coords: list[Coord]) -> float:
    n = len(coords)
    if n < 2:
        return 0.0
    return sum(distance_m(coords[i], coords[(i + 1) % n]) for i in range(n))


def centroid(ring: Any) -> Vertex | None:
    """Arithmetic mean of the ring's vertices, or ``None`` for an empty ring."""
    coords = normalize_ring(ring)
    return _centroid(coords)


def _centroid(coords: list[Coord]) -> Vertex | None:
    if not coords:
        return None
    return Vertex(
        lng=sum(c[0] for c in coords) / len(coords),
        lat=sum(c[1] for c in coords) / len(coords),
    )


def bounding_box(ring: Any) -> BoundingBox | None:
    coords = normalize_ring(ring)
    return _bounding_box(coords)


def _bounding_box(coords: list[Coord]) -> BoundingBox | None:
    if not coords:
        return None
    lngs = [c[0] for c in coords]
    lats = [c[1] for c in coords]
    return BoundingBox(min_lng=min(lngs), min_lat=min(lats), max_lng=max(lngs), max_lat=max(lats))


def vertex_count(ring: Any) -> int:
    return len(normalize_ring(ring))


def vertex_angles(ring: Any) -> list[float | None]:
    """Angle in degrees between the two edges meeting at each vertex.

    Computed on a local equirectangular projection around the vertex, so the
    result is in ``[0, 180]``: a value near zero is a spike, whichever side of
    the boundary it points to. ``None`` where an adjacent edge has no length.
    """
    coords = normalize_ring(ring)
    n = len(coords)
    if n < 3:
        return [None] * n

    angles: list[float | None] = []
    for i in range(n):
        lng, lat = coords[i]
        scale = math.cos(math.radians(lat))
        prev_lng, prev_lat = coords[i - 1]
        next_lng, next_lat = coords[(i + 1) % n]

        ax, ay = (prev_lng - lng) * scale, prev_lat - lat
        bx, by = (next_lng - lng) * scale, next_lat - lat
        norm = math.hypot(ax, ay) * math.hypot(bx, by)
        if norm == 0:
            angles.append(None)
            continue

        cos_theta = max(-1.0, min(1.0, (ax * bx + ay * by) / norm))
        angles.append(math.degrees(math.acos(cos_theta)))
    return angles


def metrics(ring: Any, holes: Iterable[Any] = ()) -> RingMetrics:
    """Bundle area, perimeter, centroid, bounding box, and vertex count.

    Hole areas are subtracted from the area. The other figures describe the
    exterior ring alone.
    """
    coords = normalize_ring(ring)
    area_m2 = net_area_m2(coords, holes)
    return RingMetrics(
        area_hectares=area_m2 / SQUARE_METERS_PER_HECTARE,
        area_square_meters=area_m2,
        perimeter_meters=_perimeter(coords),
        centroid=_centroid(coords),
        bounding_box=_bounding_box(coords),
        vertex_count=len(coords),
    )
