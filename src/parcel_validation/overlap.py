"""Self-overlap filtering for boundaries that are being edited.

When a stored boundary is edited, an overlap query against the store reports
the boundary's own previous version as a conflict. The strategies below tell
that case apart from a genuine conflict with another record. They run only
for candidates whose record id matches the record under edit, and the first
strategy that matches drops the candidate.

Every drop is returned as a :class:`FilterDecision` and logged, so the audit
trail survives even when the host discards the logs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import cached_property
from typing import Any

from shapely.errors import ShapelyError
from shapely.geometry import Polygon
from shapely.validation import explain_validity

from . import geodesic
from .exceptions import ContainmentError
from .models import (
    AnnotatedOverlap,
    EditSessionContext,
    FilterDecision,
    OverlapCandidate,
    OverlapTolerances,
    OverlapVerdict,
)
from .rings import Coord, normalize_ring

logger = logging.getLogger(__name__)


def ring_contains(outer: Any, inner: Any) -> bool:
    """Whether ``outer`` fully contains ``inner`` (shared boundaries allowed).

    Raises :class:`ContainmentError` if either ring is not a valid polygon.
    """
    try:
        outer_poly = Polygon(normalize_ring(outer))
        inner_poly = Polygon(normalize_ring(inner))
    except (ValueError, ShapelyError) as exc:
        raise ContainmentError(f"Cannot build polygons for containment test: {exc}") from exc

    for label, poly in (("current", outer_poly), ("stored", inner_poly)):
        if not poly.is_valid:
            raise ContainmentError(f"{label} ring is invalid: {explain_validity(poly)}")

    try:
        return bool(outer_poly.contains(inner_poly))
    except ShapelyError as exc:
        raise ContainmentError(f"Containment test failed: {exc}") from exc


@dataclass
class _Evaluation:
    candidate: OverlapCandidate
    context: EditSessionContext
    current_ring: list[Coord]
    current_area: float
    tolerances: OverlapTolerances

    @property
    def percentage(self) -> float:
        return _percentage_of_input(self.candidate, self.current_area)

    @property
    def initial_area(self) -> float | None:
        return self.context.initial_area_hectares

    @cached_property
    def contains_stored(self) -> bool | None:
        """Containment of the stored ring in the current one; ``None`` if untestable."""
        stored = self.candidate.ring or self.context.initial_ring
        try:
            if not stored:
                raise ContainmentError("No stored ring available")
            return ring_contains(self.current_ring, stored)
        except ContainmentError as exc:
            logger.warning("Spatial containment check failed for record %s: %s", self.candidate.record_id, exc)
            return None

    def inputs(self) -> dict[str, Any]:
        return {
            "overlap_percentage": self.percentage,
            "overlap_area_hectares": self.candidate.overlap_area_hectares,
            "current_area_hectares": self.current_area,
            "initial_area_hectares": self.initial_area,
        }

    def decide(self, strategy: str, reason: str, **extra: Any) -> FilterDecision:
        return FilterDecision(
            record_id=self.candidate.record_id,
            strategy=strategy,
            reason=reason,
            inputs={**self.inputs(), **extra},
        )


def _shrunk(ev: _Evaluation) -> FilterDecision | None:
    initial = ev.initial_area
    if initial is None or ev.percentage < ev.tolerances.shrunk_min_percentage:
        return None
    if initial <= ev.current_area:
        return None
    return ev.decide(
        "shrunk",
        f"Polygon was shrunk (initial={initial:.4f} ha > current={ev.current_area:.4f} ha) "
        f"and overlap is {ev.percentage:.1f}%",
    )


def _same_size(ev: _Evaluation) -> FilterDecision | None:
    if ev.percentage < ev.tolerances.same_size_min_percentage:
        return None
    diff = abs(ev.candidate.overlap_area_hectares - ev.current_area)
    threshold = ev.current_area * ev.tolerances.same_size_area_ratio
    if diff > threshold:
        return None
    return ev.decide(
        "same_size",
        f"Overlap area ({ev.candidate.overlap_area_hectares:.4f} ha) matches current area "
        f"({ev.current_area:.4f} ha) within {threshold:.4f} ha",
        area_difference_hectares=diff,
    )


def _expanded_initial_diff(ev: _Evaluation) -> float | None:
    initial = ev.initial_area
    if initial is None or initial <= 0 or ev.current_area <= initial:
        return None
    return abs(ev.candidate.overlap_area_hectares - initial)


def _expanded(ev: _Evaluation) -> FilterDecision | None:
    diff = _expanded_initial_diff(ev)
    if diff is None or ev.contains_stored is not True:
        return None
    threshold = ev.initial_area * ev.tolerances.expanded_area_ratio
    if diff > threshold:
        return None
    return ev.decide(
        "expanded",
        f"Expanded polygon contains the stored geometry and overlap area "
        f"({ev.candidate.overlap_area_hectares:.4f} ha) approximates initial area ({ev.initial_area:.4f} ha)",
        area_difference_hectares=diff,
    )


def _expanded_fallback(ev: _Evaluation) -> FilterDecision | None:
    diff = _expanded_initial_diff(ev)
    # Only when the containment test could not run at all.
    if diff is None or ev.contains_stored is not None:
        return None
    threshold = ev.initial_area * ev.tolerances.expanded_fallback_area_ratio
    if diff > threshold:
        return None
    return ev.decide(
        "expanded_fallback",
        f"Polygon expanded and overlap area ({ev.candidate.overlap_area_hectares:.4f} ha) "
        f"approximates initial area ({ev.initial_area:.4f} ha); containment unavailable",
        area_difference_hectares=diff,
    )


def _shifted(ev: _Evaluation) -> FilterDecision | None:
    initial = ev.initial_area
    if initial is None or initial <= 0:
        return None
    diff = abs(ev.candidate.overlap_area_hectares - initial)
    threshold = initial * ev.tolerances.shifted_area_ratio
    if diff > threshold:
        return None
    return ev.decide(
        "shifted",
        f"Overlap area ({ev.candidate.overlap_area_hectares:.4f} ha) is within "
        f"{ev.tolerances.shifted_area_ratio:.0%} of initial area ({initial:.4f} ha)",
        area_difference_hectares=diff,
    )


Strategy = Callable[[_Evaluation], FilterDecision | None]

STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("shrunk", _shrunk),
    ("same_size", _same_size),
    ("expanded", _expanded),
    ("expanded_fallback", _expanded_fallback),
    ("shifted", _shifted),
)


def _percentage_of_input(candidate: OverlapCandidate, current_area: float) -> float:
    if candidate.overlap_percentage_of_input is not None:
        return candidate.overlap_percentage_of_input
    if current_area <= 0:
        return 0.0
    return candidate.overlap_area_hectares / current_area * 100


def _annotate(candidate: OverlapCandidate, current_area: float) -> AnnotatedOverlap:
    of_existing = None
    if candidate.ring:
        existing_area = abs(geodesic.area(candidate.ring))
        if existing_area > 0:
            of_existing = candidate.overlap_area_hectares / existing_area * 100
    return AnnotatedOverlap(
        record_id=candidate.record_id,
        overlap_area_hectares=candidate.overlap_area_hectares,
        overlap_percentage_of_input=_percentage_of_input(candidate, current_area),
        overlap_percentage_of_existing=of_existing,
    )


def _skip_reason(candidate: OverlapCandidate, context: EditSessionContext, current_area: float) -> str | None:
    if not context.is_edit_mode:
        return "not in edit mode"
    if context.current_record_id is None or candidate.record_id != context.current_record_id:
        return "different record"
    if current_area <= 0:
        return "no current area"
    return None


def filter_overlaps(
    ring: Any,
    edit_context: EditSessionContext | dict[str, Any] | None,
    raw_overlaps: Iterable[OverlapCandidate | dict[str, Any]],
    tolerances: OverlapTolerances | None = None,
) -> OverlapVerdict:
    """Drop overlap candidates that are the record under edit.

    ``ring`` is the boundary as it was when the overlap query was issued.
    Candidates for other records are always kept.
    """
    coords = normalize_ring(ring)
    if edit_context is None:
        context = EditSessionContext()
    elif isinstance(edit_context, EditSessionContext):
        context = edit_context
    else:
        context = EditSessionContext.model_validate(edit_context)
    if tolerances is None:
        tolerances = OverlapTolerances()

    candidates = [c if isinstance(c, OverlapCandidate) else OverlapCandidate.model_validate(c) for c in raw_overlaps]
    current_area = abs(geodesic.area(coords))

    kept: list[AnnotatedOverlap] = []
    dropped: list[FilterDecision] = []
    for candidate in candidates:
        skip = _skip_reason(candidate, context, current_area)
        if skip is not None:
            logger.info("Self-overlap filter skipped for record %s: %s", candidate.record_id, skip)
            kept.append(_annotate(candidate, current_area))
            continue

        ev = _Evaluation(
            candidate=candidate,
            context=context,
            current_ring=coords,
            current_area=current_area,
            tolerances=tolerances,
        )
        decision = None
        for _, strategy in STRATEGIES:
            decision = strategy(ev)
            if decision is not None:
                break

        if decision is None:
            logger.info(
                "Keeping overlap with record %s: no self-overlap strategy matched (%s)",
                candidate.record_id,
                ev.inputs(),
            )
            kept.append(_annotate(candidate, current_area))
            continue

        logger.info(
            "Filtered self-overlap with record %s via %s: %s %s",
            candidate.record_id,
            decision.strategy,
            decision.reason,
            decision.inputs,
        )
        dropped.append(decision)

    if dropped:
        logger.info("Self-overlap filter removed %d of %d overlap(s)", len(dropped), len(candidates))
    return OverlapVerdict(overlaps=kept, filtered=dropped, current_area_hectares=current_area)
