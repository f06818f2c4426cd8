"""Sweep-line self-intersection pass.

Edges are sorted into left/right endpoint events along the x axis. Each new
edge is tested against the open edges whose y extent overlaps its own. This
is the plain active-set sweep, not Bentley-Ottmann: there are no crossing
events and no ordered status structure, so the worst case stays quadratic in
the number of edges. Parcel rings are capped at a few hundred vertices, where
the sort plus the pruned scan is cheap.

Segment tests use orientation signs rather than a parametric solve, which
means collinear overlaps between non-adjacent edges are reported too. Where
two edges meet only at a vertex the ring visits twice, the hit is reported
if the two visits cross there.
"""

from __future__ import annotations

from typing import Any

from .models import IntersectionPoint
from .rings import (
    Coord,
    are_adjacent,
    crosses_at_vertex,
    edges,
    near,
    normalize_ring,
    shared_vertex_indices,
    shared_vertices,
)

TIER_NAME = "sweepline"

_START = 0
_END = 1
# Points this close to a vertex shared by both edges are the vertex itself.
_SHARED_VERTEX_TOLERANCE = 1e-12


def sweepline_intersections(ring: Any) -> list[IntersectionPoint]:
    coords = normalize_ring(ring)
    n = len(coords)
    if n < 4:
        return []

    segments = edges(coords)
    spans = [(min(a[1], b[1]), max(a[1], b[1])) for a, b in segments]
    events: list[tuple[float, int, float, int]] = []
    for i, (a, b) in enumerate(segments):
        left, right = (a, b) if a <= b else (b, a)
        events.append((left[0], _START, left[1], i))
        events.append((right[0], _END, right[1], i))
    # Starts sort ahead of ends at the same x so touching edges meet in the active set.
    events.sort()

    found: list[IntersectionPoint] = []
    active: set[int] = set()
    for _, kind, _, i in events:
        if kind == _END:
            active.discard(i)
            continue

        low, high = spans[i]
        for j in sorted(active):
            if are_adjacent(i, j, n) or spans[j][1] < low or spans[j][0] > high:
                continue
            point = segment_intersection(segments[i], segments[j])
            if point is None:
                point = _crossing_at_shared_vertex(coords, i, j)
            if point is None:
                continue
            edge_a, edge_b = min(i, j), max(i, j)
            found.append(
                IntersectionPoint(lng=point[0], lat=point[1], edge_a=edge_a, edge_b=edge_b, tier=TIER_NAME)
            )
        active.add(i)

    found.sort(key=lambda p: (p.edge_a, p.edge_b))
    return found


def _crossing_at_shared_vertex(coords: list[Coord], i: int, j: int) -> Coord | None:
    shared = shared_vertex_indices(i, j, coords)
    if shared is None or not crosses_at_vertex(coords, *shared):
        return None
    return coords[shared[0]]


def _orientation(p: Coord, q: Coord, r: Coord) -> int:
    value = (q[0] - p[0]) * (r[1] - p[1]) - (q[1] - p[1]) * (r[0] - p[0])
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _within_box(p: Coord, q: Coord, r: Coord) -> bool:
    """Whether ``r`` lies inside the bounding box of segment ``p``-``q``."""
    return min(p[0], q[0]) <= r[0] <= max(p[0], q[0]) and min(p[1], q[1]) <= r[1] <= max(p[1], q[1])


def segment_intersection(a: tuple[Coord, Coord], b: tuple[Coord, Coord]) -> Coord | None:
    """Return a point common to both segments, ignoring vertices they share."""
    a1, a2 = a
    b1, b2 = b
    o1 = _orientation(a1, a2, b1)
    o2 = _orientation(a1, a2, b2)
    o3 = _orientation(b1, b2, a1)
    o4 = _orientation(b1, b2, a2)
    shared = shared_vertices(a, b)

    if o1 == o2 == o3 == o4 == 0:
        candidates = [p for p in (b1, b2, a1, a2) if _within_box(a1, a2, p) and _within_box(b1, b2, p)]
        for p in candidates:
            if p not in shared:
                return p
        return None

    if o1 != o2 and o3 != o4:
        dx1, dy1 = a2[0] - a1[0], a2[1] - a1[1]
        dx2, dy2 = b2[0] - b1[0], b2[1] - b1[1]
        denom = dx1 * dy2 - dy1 * dx2
        if denom == 0:
            return None
        t = ((b1[0] - a1[0]) * dy2 - (b1[1] - a1[1]) * dx2) / denom
        point = (a1[0] + t * dx1, a1[1] + t * dy1)
        if any(near(point, s, _SHARED_VERTEX_TOLERANCE) for s in shared):
            return None
        return point

    return None
