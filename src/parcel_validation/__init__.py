"""Boundary ring validation: self-intersection, geodesic metrics, self-overlap filtering."""

from .exceptions import ContainmentError, InvalidRingError, ParcelValidationError
from .geodesic import area, bounding_box, centroid, metrics, perimeter, polygon_area
from .intersections import detect, self_check
from .kml_reader import read_kmz
from .models import (
    EditSessionContext,
    IntersectionPoint,
    IssueCode,
    OverlapCandidate,
    OverlapTolerances,
    OverlapVerdict,
    Severity,
    ValidationRuleSet,
    ValidationVerdict,
    Vertex,
)
from .overlap import filter_overlaps
from .reader import detect_crs, read_shapefile
from .rings import normalize_ring, ring_from_geojson, ring_to_geojson
from .validator import validate

__all__ = [
    "ContainmentError",
    "EditSessionContext",
    "IntersectionPoint",
    "InvalidRingError",
    "IssueCode",
    "OverlapCandidate",
    "OverlapTolerances",
    "OverlapVerdict",
    "ParcelValidationError",
    "Severity",
    "ValidationRuleSet",
    "ValidationVerdict",
    "Vertex",
    "area",
    "bounding_box",
    "centroid",
    "detect",
    "detect_crs",
    "filter_overlaps",
    "metrics",
    "normalize_ring",
    "perimeter",
    "polygon_area",
    "read_kmz",
    "read_shapefile",
    "ring_from_geojson",
    "ring_to_geojson",
    "self_check",
    "validate",
]
