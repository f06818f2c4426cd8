"""Ring normalisation and GeoJSON interchange.

Every public entry point funnels caller geometry through :func:`normalize_ring`,
which returns an *open* ring: a list of ``(lng, lat)`` float tuples without the
closing duplicate. Edge ``i`` joins vertex ``i`` to vertex ``(i + 1) % n``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Any

from .exceptions import InvalidRingError
from .models import Vertex

Coord = tuple[float, float]


def normalize_ring(ring: Any) -> list[Coord]:
    """Coerce caller input into an open ring of float tuples.

    Accepts ``(lng, lat)`` pairs (an optional third altitude value is ignored)
    or :class:`Vertex` models, closed or open. Raises :class:`InvalidRingError`
    for anything that is not a sequence of finite, in-range coordinates. Short
    rings are returned as-is; it is up to the caller to judge them.
    """
    if ring is None:
        raise InvalidRingError("Ring is required")
    if isinstance(ring, (str, bytes)) or not isinstance(ring, Iterable):
        raise InvalidRingError(f"Ring must be a sequence of coordinates, got {type(ring).__name__}")

    coords = [_coerce_vertex(item, i) for i, item in enumerate(ring)]

    if len(coords) >= 2 and coords[0] == coords[-1]:
        coords.pop()
    return coords


def _coerce_vertex(item: Any, index: int) -> Coord:
    if isinstance(item, Vertex):
        lng, lat = item.lng, item.lat
    elif isinstance(item, Sequence) and not isinstance(item, (str, bytes)):
        if len(item) not in (2, 3):
            raise InvalidRingError(f"Vertex {index} must have 2 or 3 components, got {len(item)}")
        lng, lat = item[0], item[1]
    else:
        raise InvalidRingError(f"Vertex {index} is not a coordinate pair: {item!r}")

    try:
        lng = float(lng)
        lat = float(lat)
    except (TypeError, ValueError) as exc:
        raise InvalidRingError(f"Vertex {index} has non-numeric coordinates: {item!r}") from exc

    if not (math.isfinite(lng) and math.isfinite(lat)):
        raise InvalidRingError(f"Vertex {index} has non-finite coordinates: {item!r}")
    if not -180.0 <= lng <= 180.0 or not -90.0 <= lat <= 90.0:
        raise InvalidRingError(f"Vertex {index} is outside WGS84 bounds: ({lng}, {lat})")
    return lng, lat


def edges(ring: list[Coord]) -> list[tuple[Coord, Coord]]:
    """Return the cyclic edge list of an open ring."""
    n = len(ring)
    return [(ring[i], ring[(i + 1) % n]) for i in range(n)]


def are_adjacent(i: int, j: int, n: int) -> bool:
    """Whether edges ``i`` and ``j`` of an ``n``-edge ring share a vertex."""
    return abs(i - j) == 1 or abs(i - j) == n - 1


def close_ring(ring: list[Coord]) -> list[Coord]:
    if ring and ring[0] != ring[-1]:
        return [*ring, ring[0]]
    return list(ring)


def ring_from_geojson(geometry: dict[str, Any]) -> tuple[list[Coord], list[list[Coord]]]:
    """Split a GeoJSON ``Polygon`` into ``(exterior, holes)`` open rings."""
    if not isinstance(geometry, dict):
        raise InvalidRingError("GeoJSON geometry must be an object")
    if geometry.get("type") == "Feature":
        geometry = geometry.get("geometry") or {}
    if geometry.get("type") != "Polygon":
        raise InvalidRingError(f"Unsupported GeoJSON geometry type: {geometry.get('type')}")

    rings = geometry.get("coordinates") or []
    if not rings:
        raise InvalidRingError("Polygon has no rings")
    exterior = normalize_ring(rings[0])
    holes = [normalize_ring(r) for r in rings[1:]]
    return exterior, holes


def ring_to_geojson(ring: Any, holes: Iterable[Any] = ()) -> dict[str, Any]:
    """Build a closed GeoJSON ``Polygon`` geometry (RFC 7946)."""
    rings = [normalize_ring(ring), *(normalize_ring(h) for h in holes)]
    return {
        "type": "Polygon",
        "coordinates": [[list(c) for c in close_ring(r)] for r in rings],
    }


def shared_vertices(a: tuple[Coord, Coord], b: tuple[Coord, Coord]) -> set[Coord]:
    """Coordinates that appear as an endpoint of both segments."""
    return set(a) & set(b)


def near(p: Coord, q: Coord, tolerance: float) -> bool:
    return abs(p[0] - q[0]) <= tolerance and abs(p[1] - q[1]) <= tolerance


def planar_signed_area(ring: list[Coord]) -> float:
    """Shoelace area in coordinate units; positive for counter-clockwise rings."""
    n = len(ring)
    return sum(ring[i][0] * ring[(i + 1) % n][1] - ring[(i + 1) % n][0] * ring[i][1] for i in range(n)) / 2


def orient(ring: list[Coord], counter_clockwise: bool = True) -> list[Coord]:
    """Return ``ring`` wound in the requested direction."""
    is_ccw = planar_signed_area(ring) > 0
    return list(ring) if is_ccw == counter_clockwise else list(reversed(ring))


def shared_vertex_indices(i: int, j: int, ring: list[Coord]) -> tuple[int, int] | None:
    """Vertex positions ``(p, q)`` where edges ``i`` and ``j`` meet at one coordinate.

    ``p`` is an endpoint of edge ``i`` and ``q`` an endpoint of edge ``j``.
    ``None`` if the edges have no endpoint in common.
    """
    n = len(ring)
    for p in (i, (i + 1) % n):
        for q in (j, (j + 1) % n):
            if ring[p] == ring[q]:
                return p, q
    return None


def _distinct_neighbour(ring: list[Coord], index: int, step: int) -> Coord | None:
    n = len(ring)
    center = ring[index]
    for k in range(1, n):
        candidate = ring[(index + step * k) % n]
        if candidate != center:
            return candidate
    return None


def crosses_at_vertex(ring: list[Coord], p: int, q: int) -> bool:
    """Whether the ring passes through the repeated vertex at ``p`` and ``q`` crosswise.

    Each visit enters and leaves the vertex along two rays. The visits cross
    when the rays of the second visit fall on opposite sides of the first
    visit's wedge. Visits that touch, or that share a ray, do not cross.
    """
    center = ring[p]
    rays = [
        _distinct_neighbour(ring, p, -1),
        _distinct_neighbour(ring, p, 1),
        _distinct_neighbour(ring, q, -1),
        _distinct_neighbour(ring, q, 1),
    ]
    if any(r is None for r in rays):
        return False

    angles = [math.atan2(r[1] - center[1], r[0] - center[0]) for r in rays]
    if len(set(angles)) < 4:
        return False

    a_in, a_out, b_in, b_out = angles
    span = (a_out - a_in) % math.tau
    return ((b_in - a_in) % math.tau < span) != ((b_out - a_in) % math.tau < span)
