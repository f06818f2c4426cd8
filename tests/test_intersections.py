"""Tests for the self-intersection tiers and the fallback chain."""

import logging
import random

import pytest

from parcel_validation import InvalidRingError, detect, self_check
from parcel_validation.intersections import (
    DETECTION_TIERS,
    brute_force_intersections,
    dedupe_points,
    planar_intersections,
)
from parcel_validation.models import IntersectionPoint
from parcel_validation.sweepline import sweepline_intersections

TIERS = [pytest.param(fn, id=name) for name, fn in DETECTION_TIERS]

L_SHAPE = [(0, 0), (2, 0), (2, 1), (1, 1), (1, 2), (0, 2)]
COMB = [(0, 0), (5, 0), (5, 3), (4, 3), (4, 1), (3, 1), (3, 3), (2, 3), (2, 1), (1, 1), (1, 3), (0, 3)]
FIGURE_EIGHT = [(0, 0), (2, 2), (2, 0), (0, 2), (0, 1), (2, 1)]
# Two loops that pass through (37.01, -0.49) twice and cross there.
PINCH = (37.01, -0.49)
CROSSED_PINCH = [(36.99, -0.51), PINCH, (37.02, -0.48), (37.02, -0.50), PINCH, (36.99, -0.47)]
# Two loops that meet at (1, 1) without crossing.
TOUCHING_PINCH = [(0, 0), (1, 1), (2, 0), (3, 0), (3, 2), (1, 1), (0, 2)]


class TestSimpleRings:
    @pytest.mark.parametrize("tier", TIERS)
    @pytest.mark.parametrize("ring", [L_SHAPE, COMB], ids=["l_shape", "comb"])
    def test_concave_rings_are_simple(self, tier, ring):
        assert tier(ring) == []

    @pytest.mark.parametrize("tier", TIERS)
    def test_square_is_simple(self, tier, unit_square):
        assert tier(unit_square) == []

    @pytest.mark.parametrize("tier", TIERS)
    def test_real_parcel_is_simple(self, tier, parcel):
        assert tier(parcel) == []

    @pytest.mark.parametrize("tier", TIERS)
    def test_repeated_vertex_is_not_a_crossing(self, tier):
        ring = [(0, 0), (1, 0), (1, 0), (1, 1), (0, 1)]
        assert tier(ring) == []

    def test_chain_on_simple_ring(self, parcel):
        assert detect(parcel) == []


class TestBowtie:
    @pytest.mark.parametrize("tier", TIERS)
    def test_single_crossing_at_center(self, tier, bowtie):
        points = dedupe_points(tier(bowtie))
        assert len(points) == 1
        assert points[0].lng == pytest.approx(0.5)
        assert points[0].lat == pytest.approx(0.5)
        assert (points[0].edge_a, points[0].edge_b) == (0, 2)

    def test_chain_reports_first_tier(self, bowtie):
        points = detect(bowtie)
        assert len(points) == 1
        assert points[0].tier == "planar"

    def test_closed_ring_gives_same_answer(self, bowtie):
        assert detect([*bowtie, bowtie[0]]) == detect(bowtie)


class TestFigureEight:
    def test_chain_finds_crossings(self):
        assert len(detect(FIGURE_EIGHT)) >= 1

    @pytest.mark.parametrize("tier", TIERS)
    def test_every_tier_finds_the_center_crossing(self, tier):
        points = tier(FIGURE_EIGHT)
        assert any(p.lng == pytest.approx(1.0) and p.lat == pytest.approx(1.0) for p in points)

    def test_points_are_deduplicated(self):
        points = detect(FIGURE_EIGHT)
        coords = [(round(p.lng, 6), round(p.lat, 6)) for p in points]
        assert len(coords) == len(set(coords))


class TestTriangles:
    def test_random_triangles_never_intersect(self):
        rng = random.Random(7)
        for _ in range(200):
            ring = [(rng.uniform(-10, 10), rng.uniform(-10, 10)) for _ in range(3)]
            assert detect(ring) == []

    @pytest.mark.parametrize("tier", TIERS)
    def test_tiers_short_circuit_triangles(self, tier):
        assert tier([(0, 0), (1, 0), (0.5, 1)]) == []


class TestTierDifferences:
    # Edge 3 runs back along edge 0 without sharing a vertex with it.
    COLLINEAR_OVERLAP = [(0, 0), (4, 0), (4, 2), (3, 0), (1, 0), (0, -1)]

    def test_sweepline_reports_collinear_overlap(self):
        points = sweepline_intersections(self.COLLINEAR_OVERLAP)
        assert any((p.edge_a, p.edge_b) == (0, 3) for p in points)

    def test_planar_reports_collinear_overlap_midpoint(self):
        points = planar_intersections(self.COLLINEAR_OVERLAP)
        overlap = next(p for p in points if (p.edge_a, p.edge_b) == (0, 3))
        assert (overlap.lng, overlap.lat) == pytest.approx((2.0, 0.0))

    def test_brute_force_skips_collinear_overlap(self):
        points = brute_force_intersections(self.COLLINEAR_OVERLAP)
        assert not any((p.edge_a, p.edge_b) == (0, 3) for p in points)

    def test_brute_force_ignores_vertex_touch(self):
        # Vertex 3 sits on edge 0 but no edges cross.
        ring = [(0, 0), (4, 0), (4, 2), (2, 0), (0, 2)]
        assert brute_force_intersections(ring) == []
        assert planar_intersections(ring) != []


class TestRepeatedVertexCrossing:
    @pytest.mark.parametrize(
        "tier",
        [pytest.param(planar_intersections, id="planar"), pytest.param(sweepline_intersections, id="sweepline")],
    )
    def test_crossing_at_repeated_vertex_is_found(self, tier):
        points = dedupe_points(tier(CROSSED_PINCH))
        assert [(p.lng, p.lat) for p in points] == [pytest.approx(PINCH)]

    def test_chain_reports_the_pinch(self):
        (point,) = detect(CROSSED_PINCH)
        assert (point.lng, point.lat) == pytest.approx(PINCH)
        assert point.tier == "planar"

    def test_sweepline_covers_planar_failure(self, monkeypatch):
        monkeypatch.setattr(
            "parcel_validation.intersections.DETECTION_TIERS",
            (("empty", lambda ring: []), *DETECTION_TIERS[1:]),
        )
        (point,) = detect(CROSSED_PINCH)
        assert point.tier == "sweepline"

    @pytest.mark.parametrize("tier", TIERS)
    def test_touching_loops_are_not_a_crossing(self, tier):
        assert tier(TOUCHING_PINCH) == []


class TestSweepPruning:
    def test_long_comb_is_simple(self):
        teeth = 150
        ring = [(0.0, 0.0), (float(teeth), 0.0)]
        for k in range(teeth, 0, -1):
            ring += [(k - 0.25, 2.0), (k - 0.75, 2.0), (k - 0.75, 1.0), (k - 1.0, 1.0)]
        ring[-1] = (0.0, 2.0)
        assert sweepline_intersections(ring) == []
        assert detect(ring) == []

    def test_crossing_between_distant_edges(self):
        ring = [(0, 0), (10, 0), (10, 1), (1, 1), (1, 5), (0.5, 5), (0.5, -1), (0, -1)]
        points = sweepline_intersections(ring)
        assert any(p.lng == pytest.approx(0.5) and p.lat == pytest.approx(0.0) for p in points)


class TestChainBehaviour:
    def test_falls_back_when_tier_fails(self, monkeypatch, bowtie, caplog):
        def broken(ring):
            raise ZeroDivisionError("boom")

        monkeypatch.setattr(
            "parcel_validation.intersections.DETECTION_TIERS",
            (("broken", broken), *DETECTION_TIERS[1:]),
        )
        with caplog.at_level(logging.WARNING, logger="parcel_validation.intersections"):
            points = detect(bowtie)
        assert len(points) == 1
        assert points[0].tier == "sweepline"
        assert "broken" in caplog.text

    def test_falls_through_to_later_tier(self, monkeypatch, bowtie):
        monkeypatch.setattr(
            "parcel_validation.intersections.DETECTION_TIERS",
            (("empty", lambda ring: []), DETECTION_TIERS[2]),
        )
        assert detect(bowtie)[0].tier == "brute_force"

    def test_idempotent(self):
        assert detect(FIGURE_EIGHT) == detect(FIGURE_EIGHT)

    def test_duplicate_only_ring_is_empty(self):
        assert detect([(1.0, 1.0)] * 5) == []

    def test_short_rings_are_empty(self):
        assert detect([]) == []
        assert detect([(0, 0), (1, 1)]) == []

    def test_does_not_mutate_input(self, bowtie):
        ring = [list(c) for c in bowtie]
        snapshot = [list(c) for c in ring]
        detect(ring)
        assert ring == snapshot

    def test_malformed_input_raises(self):
        with pytest.raises(InvalidRingError):
            detect(None)
        with pytest.raises(InvalidRingError):
            detect([(0, 0), (1, 1, 1, 1), (2, 0), (0, 2)])


class TestDedupe:
    def test_nearby_points_collapse(self):
        a = IntersectionPoint(lng=1.0, lat=1.0, edge_a=0, edge_b=2, tier="planar")
        b = IntersectionPoint(lng=1.0 + 1e-10, lat=1.0, edge_a=1, edge_b=3, tier="planar")
        c = IntersectionPoint(lng=1.5, lat=1.0, edge_a=0, edge_b=3, tier="planar")
        assert dedupe_points([a, b, c]) == [a, c]


class TestSelfCheck:
    def test_all_tiers_pass(self):
        results = self_check()
        assert set(results) == {"planar", "sweepline", "brute_force"}
        for outcome in results.values():
            assert all(outcome.values())
