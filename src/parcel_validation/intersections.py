"""Self-intersection detection with a three-tier fallback chain.

Each tier is a plain function ``(ring) -> list[IntersectionPoint]``.
:func:`detect` tries them in order and keeps the first non-empty result:

1. ``planar``: GEOS simplicity test, then an STRtree pass over the edges to
   locate each hit. Endpoint touches and collinear overlaps are reported; a
   vertex the ring visits twice counts only where the two visits cross.
2. ``sweepline``: independent sweep-line pass (see :mod:`.sweepline`).
3. ``brute_force``: strict parametric test that ignores endpoint touches.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from shapely import STRtree
from shapely.errors import ShapelyError
from shapely.geometry import LineString
from shapely.geometry.base import BaseGeometry

from .models import IntersectionPoint
from .rings import (
    Coord,
    are_adjacent,
    close_ring,
    crosses_at_vertex,
    edges,
    near,
    normalize_ring,
    shared_vertex_indices,
)
from .sweepline import TIER_NAME as SWEEPLINE
from .sweepline import sweepline_intersections

logger = logging.getLogger(__name__)

PLANAR = "planar"
BRUTE_FORCE = "brute_force"

# Fraction of each edge excluded at both ends by the brute-force pass.
ENDPOINT_MARGIN = 1e-4
PARALLEL_EPSILON = 1e-10
# Degrees. About a millimetre at the equator.
DEDUPE_TOLERANCE = 1e-8
SHARED_VERTEX_TOLERANCE = 1e-12

Tier = Callable[[Any], list[IntersectionPoint]]


def planar_intersections(ring: Any) -> list[IntersectionPoint]:
    coords = normalize_ring(ring)
    n = len(coords)
    if n < 4:
        return []

    segments = edges(coords)
    # Zero-length edges from repeated vertices carry no crossing of their own.
    indices = [i for i, (a, b) in enumerate(segments) if a != b]
    if not indices or LineString(close_ring(coords)).is_simple:
        return []

    lines = [LineString(segments[i]) for i in indices]
    tree = STRtree(lines)
    hits, others = tree.query(lines, predicate="intersects")

    found: list[IntersectionPoint] = []
    for h, o in sorted(zip(hits.tolist(), others.tolist())):
        i, j = indices[h], indices[o]
        if i >= j or are_adjacent(i, j, n):
            continue
        point = _planar_hit(coords, i, j, lines[h].intersection(lines[o]))
        if point is not None:
            found.append(IntersectionPoint(lng=point[0], lat=point[1], edge_a=i, edge_b=j, tier=PLANAR))
    return found


def _planar_hit(coords: list[Coord], i: int, j: int, hit: BaseGeometry) -> Coord | None:
    """Reduce the intersection of edges ``i`` and ``j`` to one reported point."""
    if hit.is_empty:
        return None
    if hit.geom_type == "LineString":
        mid = hit.interpolate(0.5, normalized=True)
        return mid.x, mid.y
    if hit.geom_type != "Point":
        hit = hit.representative_point()

    point = (hit.x, hit.y)
    shared = shared_vertex_indices(i, j, coords)
    if shared is not None and near(point, coords[shared[0]], SHARED_VERTEX_TOLERANCE):
        return point if crosses_at_vertex(coords, *shared) else None
    return point


def brute_force_intersections(ring: Any) -> list[IntersectionPoint]:
    coords = normalize_ring(ring)
    n = len(coords)
    if n < 4:
        return []

    segments = edges(coords)
    found: list[IntersectionPoint] = []
    for i in range(n):
        for j in range(i + 2, n):
            if i == 0 and j == n - 1:
                continue
            point = _strict_intersection(segments[i], segments[j])
            if point is not None:
                found.append(IntersectionPoint(lng=point[0], lat=point[1], edge_a=i, edge_b=j, tier=BRUTE_FORCE))
    return found


def _strict_intersection(a: tuple[Coord, Coord], b: tuple[Coord, Coord]) -> Coord | None:
    """Crossing strictly inside both segments, endpoint touches excluded."""
    (x1, y1), (x2, y2) = a
    (x3, y3), (x4, y4) = b
    dx1, dy1 = x2 - x1, y2 - y1
    dx2, dy2 = x4 - x3, y4 - y3

    denom = dx1 * dy2 - dy1 * dx2
    longest = max((dx1 * dx1 + dy1 * dy1) ** 0.5, (dx2 * dx2 + dy2 * dy2) ** 0.5)
    if longest == 0 or abs(denom) < longest * PARALLEL_EPSILON:
        return None

    dx3, dy3 = x3 - x1, y3 - y1
    t = (dx3 * dy2 - dy3 * dx2) / denom
    u = (dx3 * dy1 - dy3 * dx1) / denom

    low, high = ENDPOINT_MARGIN, 1 - ENDPOINT_MARGIN
    if low < t < high and low < u < high:
        return x1 + t * dx1, y1 + t * dy1
    return None


DETECTION_TIERS: tuple[tuple[str, Tier], ...] = (
    (PLANAR, planar_intersections),
    (SWEEPLINE, sweepline_intersections),
    (BRUTE_FORCE, brute_force_intersections),
)


def dedupe_points(points: list[IntersectionPoint], tolerance: float = DEDUPE_TOLERANCE) -> list[IntersectionPoint]:
    """Drop points within ``tolerance`` degrees of an earlier one."""
    unique: list[IntersectionPoint] = []
    for p in points:
        if not any(near((p.lng, p.lat), (q.lng, q.lat), tolerance) for q in unique):
            unique.append(p)
    return unique


def detect(ring: Any) -> list[IntersectionPoint]:
    """Return the self-intersection points of a ring; empty means simple.

    Raises :class:`~parcel_validation.exceptions.InvalidRingError` for malformed
    input. Degenerate but well-formed rings (duplicates only, fewer than four
    vertices) yield an empty list.
    """
    coords = normalize_ring(ring)
    if len(coords) < 4:
        return []

    for name, tier in DETECTION_TIERS:
        try:
            points = tier(coords)
        except (ArithmeticError, ValueError, ShapelyError):
            logger.warning("Self-intersection tier %s failed, trying next", name, exc_info=True)
            continue
        if points:
            points = dedupe_points(points)
            logger.debug("Self-intersection detected via %s: %d point(s)", name, len(points))
            return points
    return []


SELF_CHECK_SHAPES: dict[str, tuple[list[Coord], int]] = {
    "bowtie": ([(0, 0), (1, 1), (1, 0), (0, 1)], 1),
    "square": ([(0, 0), (1, 0), (1, 1), (0, 1)], 0),
    "figure_eight": ([(0, 0), (2, 2), (2, 0), (0, 2)], 1),
    "triangle": ([(0, 0), (1, 0), (0.5, 1)], 0),
}


def self_check() -> dict[str, dict[str, bool]]:
    """Run the ground-truth shapes through every tier.

    Returns ``{tier: {shape: passed}}``. A failing tier is logged but does not
    stop the chain from working; the fallbacks exist for exactly that case.
    """
    results: dict[str, dict[str, bool]] = {}
    for name, tier in DETECTION_TIERS:
        outcome = {}
        for shape, (ring, expected) in SELF_CHECK_SHAPES.items():
            outcome[shape] = len(dedupe_points(tier(ring))) == expected
        if not all(outcome.values()):
            logger.warning("Self-intersection tier %s failed self-check: %s", name, outcome)
        results[name] = outcome
    return results
