"""Tests for spherical area, perimeter, centroid, and bounding box."""

import math

import pytest

from parcel_validation import InvalidRingError, area, bounding_box, centroid, metrics, perimeter, polygon_area
from parcel_validation.geodesic import EARTH_RADIUS_M, distance_m, signed_area_m2, vertex_angles


class TestArea:
    def test_cell_matches_closed_form(self, make_cell):
        ring = make_cell(10.0, 45.0, 74.08)
        assert area(ring) == pytest.approx(74.08, rel=1e-9)

    @pytest.mark.parametrize("lat", [-60.0, -30.0, 0.0, 30.0, 60.0])
    def test_accuracy_across_latitudes(self, make_cell, lat):
        ring = make_cell(0.0, lat, 99.0)
        assert area(ring) == pytest.approx(99.0, rel=1e-3)

    def test_one_degree_equatorial_cell(self):
        ring = [(0, 0), (1, 0), (1, 1), (0, 1)]
        expected_m2 = EARTH_RADIUS_M**2 * math.radians(1) * math.sin(math.radians(1))
        assert signed_area_m2(ring) == pytest.approx(expected_m2, rel=1e-12)

    def test_reversed_winding_is_negative(self, parcel):
        forward = area(parcel)
        backward = area(list(reversed(parcel)))
        assert forward > 0
        assert backward < 0
        assert abs(backward) == pytest.approx(abs(forward), rel=1e-12)

    def test_closed_and_open_rings_agree(self, parcel):
        assert area([*parcel, parcel[0]]) == area(parcel)

    def test_fewer_than_three_vertices_is_zero(self):
        assert area([]) == 0
        assert area([(1.0, 1.0), (2.0, 2.0)]) == 0

    def test_collinear_is_zero(self):
        ring = [(0.0, 0.0), (0.001, 0.0), (0.002, 0.0)]
        assert area(ring) == pytest.approx(0.0, abs=1e-9)

    def test_holes_are_subtracted(self, make_cell):
        outer = make_cell(20.0, -5.0, 50.0)
        hole = list(reversed(make_cell(20.0, -5.0, 10.0)))
        assert polygon_area(outer, [hole]) == pytest.approx(40.0, rel=1e-6)
        assert polygon_area(outer) == pytest.approx(50.0, rel=1e-9)

    def test_metrics_subtract_holes(self, make_cell):
        outer = make_cell(20.0, -5.0, 50.0)
        hole = make_cell(20.0, -5.0, 10.0)
        result = metrics(outer, [hole])
        assert result.area_hectares == pytest.approx(40.0, rel=1e-6)
        assert result.area_square_meters == pytest.approx(400_000.0, rel=1e-6)
        assert result.perimeter_meters == pytest.approx(metrics(outer).perimeter_meters)


class TestPerimeter:
    def test_equatorial_edges(self):
        ring = [(0, 0), (1, 0), (1, 1), (0, 1)]
        one_degree = EARTH_RADIUS_M * math.radians(1)
        assert distance_m((0, 0), (1, 0)) == pytest.approx(one_degree)
        assert distance_m((1, 0), (1, 1)) == pytest.approx(one_degree)
        # The top edge is a great circle at 1°N, slightly shorter than a degree of equator.
        assert 3.99 * one_degree < perimeter(ring) < 4 * one_degree

    def test_includes_closing_edge(self):
        ring = [(0, 0), (0.01, 0), (0, 0.01)]
        legs = distance_m((0, 0), (0.01, 0)) + distance_m((0.01, 0), (0, 0.01)) + distance_m((0, 0.01), (0, 0))
        assert perimeter(ring) == pytest.approx(legs)

    def test_triangle_inequality_bound(self, parcel):
        diagonal = distance_m(parcel[0], parcel[2])
        assert perimeter(parcel) >= 2 * diagonal

    def test_degenerate(self):
        assert perimeter([]) == 0
        assert perimeter([(5.0, 5.0)]) == 0


class TestCentroidAndBounds:
    def test_centroid_is_vertex_mean(self):
        ring = [(0, 0), (4, 0), (4, 2), (0, 2)]
        c = centroid(ring)
        assert (c.lng, c.lat) == (2.0, 1.0)

    def test_closing_vertex_not_double_counted(self):
        ring = [(0, 0), (3, 0), (0, 3), (0, 0)]
        c = centroid(ring)
        assert (c.lng, c.lat) == (1.0, 1.0)

    def test_bounding_box(self):
        box = bounding_box([(-1, 2), (3, -4), (0, 5)])
        assert (box.min_lng, box.min_lat, box.max_lng, box.max_lat) == (-1, -4, 3, 5)
        assert (box.center.lng, box.center.lat) == (1.0, 0.5)

    def test_empty_ring(self):
        assert centroid([]) is None
        assert bounding_box([]) is None


class TestVertexAngles:
    def test_square_corners_are_right_angles(self):
        angles = vertex_angles([(0, 0), (0.001, 0), (0.001, 0.001), (0, 0.001)])
        assert angles == pytest.approx([90.0] * 4, abs=1e-3)

    def test_repeated_vertex_has_no_angle(self):
        angles = vertex_angles([(0, 0), (0.001, 0), (0.001, 0), (0, 0.001)])
        assert angles[1] is None
        assert angles[2] is None


class TestMetrics:
    def test_bundle(self, parcel):
        m = metrics(parcel)
        assert m.area_hectares == pytest.approx(5.0, rel=1e-9)
        assert m.area_square_meters == pytest.approx(50_000, rel=1e-9)
        assert m.vertex_count == 4
        assert m.perimeter_meters > 0
        assert m.centroid.lng == pytest.approx(34.75)

    def test_clockwise_ring_reports_positive_area(self, parcel):
        assert metrics(list(reversed(parcel))).area_hectares == pytest.approx(5.0, rel=1e-9)


class TestInvalidInput:
    @pytest.mark.parametrize(
        "ring",
        [
            None,
            "0,0 1,1 2,2",
            42,
            [(0, 0), (1,), (2, 2)],
            [(0, 0), ("east", 1), (2, 2)],
            [(0, 0), (float("nan"), 1), (2, 2)],
            [(0, 0), (181, 1), (2, 2)],
            [(0, 0), (1, -91), (2, 2)],
        ],
    )
    def test_rejected(self, ring):
        with pytest.raises(InvalidRingError):
            area(ring)

    def test_altitude_is_ignored(self):
        assert area([(0, 0, 10), (1, 0, 20), (1, 1, 30)]) == area([(0, 0), (1, 0), (1, 1)])
