"""Rule-based validation of a captured boundary ring."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from . import geodesic
from .intersections import detect
from .models import (
    IssueCode,
    Severity,
    ValidationIssue,
    ValidationRuleSet,
    ValidationVerdict,
    Vertex,
)
from .rings import Coord, normalize_ring

DUPLICATE_VERTEX_TOLERANCE_M = 0.01
# Square meters.
ZERO_AREA_TOLERANCE_M2 = 0.01
NEAR_LIMIT_RATIO = 0.9


def validate(ring: Any, rules: ValidationRuleSet | None = None, holes: Iterable[Any] = ()) -> ValidationVerdict:
    """Apply ``rules`` to ``ring`` and collect every error and warning.

    ``holes`` are interior rings of the same parcel. Their area is taken off
    before the area bounds are checked and in the reported metrics; the other
    rules look at the exterior ring only.

    All rules run regardless of earlier failures, so one verdict can report
    several problems. Metrics are always filled in, even for invalid rings.
    Raises :class:`~parcel_validation.exceptions.InvalidRingError` only for
    malformed input.
    """
    coords = normalize_ring(ring)
    hole_coords = [normalize_ring(h) for h in holes]
    if rules is None:
        rules = ValidationRuleSet()

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    _check_vertex_count(coords, rules, errors, warnings)
    if not rules.allow_self_intersection:
        _check_self_intersection(coords, errors)
    _check_area(coords, hole_coords, rules, errors, warnings)
    _check_duplicates(coords, warnings)
    if rules.detect_spikes:
        _check_spikes(coords, rules, warnings)

    return ValidationVerdict(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        metrics=geodesic.metrics(coords, hole_coords),
    )


def _error(code: IssueCode, message: str, **kwargs: Any) -> ValidationIssue:
    return ValidationIssue(code=code, severity=Severity.ERROR, message=message, **kwargs)


def _warning(code: IssueCode, message: str, **kwargs: Any) -> ValidationIssue:
    return ValidationIssue(code=code, severity=Severity.WARNING, message=message, **kwargs)


def _check_vertex_count(
    coords: list[Coord],
    rules: ValidationRuleSet,
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    count = len(coords)
    context = {"vertex_count": count, "min_vertices": rules.min_vertices, "max_vertices": rules.max_vertices}

    if count < rules.min_vertices:
        errors.append(
            _error(IssueCode.TOO_FEW_VERTICES, f"Need at least {rules.min_vertices} corners", context=context)
        )

    if count > rules.max_vertices:
        errors.append(
            _error(
                IssueCode.TOO_MANY_VERTICES,
                f"Too many corners ({count}). Maximum is {rules.max_vertices}.",
                context=context,
            )
        )
    elif count > NEAR_LIMIT_RATIO * rules.max_vertices:
        warnings.append(
            _warning(
                IssueCode.VERTICES_NEAR_LIMIT,
                f"Corners: {count}/{rules.max_vertices} - approaching limit. Consider simplifying.",
                context=context,
            )
        )


def _check_self_intersection(coords: list[Coord], errors: list[ValidationIssue]) -> None:
    points = detect(coords)
    if not points:
        return
    first = points[0]
    errors.append(
        _error(
            IssueCode.SELF_INTERSECTION,
            "Boundary lines are crossing. Adjust the corners to fix this.",
            location=Vertex(lng=first.lng, lat=first.lat),
            context={
                "edge_a": first.edge_a,
                "edge_b": first.edge_b,
                "intersection_count": len(points),
                "tier": first.tier,
            },
        )
    )


def _check_area(
    coords: list[Coord],
    holes: list[list[Coord]],
    rules: ValidationRuleSet,
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    signed_m2 = geodesic.signed_area_m2(coords)
    hectares = geodesic.net_area_m2(coords, holes) / geodesic.SQUARE_METERS_PER_HECTARE

    if abs(signed_m2) <= ZERO_AREA_TOLERANCE_M2:
        errors.append(_error(IssueCode.AREA_ZERO, "Boundary encloses no area"))
    elif signed_m2 < 0:
        errors.append(
            _error(
                IssueCode.AREA_NEGATIVE,
                "Boundary is wound clockwise. Reverse the corner order.",
                context={"signed_area_hectares": signed_m2 / geodesic.SQUARE_METERS_PER_HECTARE},
            )
        )

    if rules.max_area_hectares is not None and hectares > rules.max_area_hectares:
        errors.append(
            _error(
                IssueCode.AREA_EXCEEDS_MAXIMUM,
                f"Area ({hectares:.2f} ha) exceeds maximum ({rules.max_area_hectares} ha)",
                context={"area_hectares": hectares, "max_area_hectares": rules.max_area_hectares},
            )
        )

    if hectares < rules.min_area_hectares:
        warnings.append(
            _warning(
                IssueCode.AREA_BELOW_MINIMUM,
                f"Area ({hectares:.4f} ha) is very small (minimum: {rules.min_area_hectares} ha)",
                context={"area_hectares": hectares, "min_area_hectares": rules.min_area_hectares},
            )
        )


def _check_duplicates(coords: list[Coord], warnings: list[ValidationIssue]) -> None:
    n = len(coords)
    if n < 2:
        return

    repeated = [
        (i + 1) % n
        for i in range(n)
        if geodesic.distance_m(coords[i], coords[(i + 1) % n]) < DUPLICATE_VERTEX_TOLERANCE_M
    ]
    if repeated:
        warnings.append(
            _warning(
                IssueCode.DUPLICATE_VERTICES,
                f"{len(repeated)} corner(s) repeat the previous corner",
                location=Vertex(lng=coords[repeated[0]][0], lat=coords[repeated[0]][1]),
                context={"vertex_indices": repeated},
            )
        )


def _check_spikes(coords: list[Coord], rules: ValidationRuleSet, warnings: list[ValidationIssue]) -> None:
    threshold = rules.spike_angle_threshold_degrees
    for index, angle in enumerate(geodesic.vertex_angles(coords)):
        if angle is None or angle >= threshold:
            continue
        lng, lat = coords[index]
        warnings.append(
            _warning(
                IssueCode.SPIKE_DETECTED,
                f"Corner {index + 1} forms a spike ({angle:.1f}°)",
                location=Vertex(lng=lng, lat=lat),
                context={"vertex_index": index, "angle_degrees": angle},
            )
        )
