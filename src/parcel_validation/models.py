"""Pydantic data models for the parcel validation engine."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Vertex(BaseModel):
    """A WGS84 coordinate, longitude first."""

    lng: float
    lat: float


class BoundingBox(BaseModel):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    @property
    def center(self) -> Vertex:
        """Cheap centre estimate for live drawing feedback. Not a true centroid."""
        return Vertex(
            lng=(self.min_lng + self.max_lng) / 2,
            lat=(self.min_lat + self.max_lat) / 2,
        )


class IntersectionPoint(BaseModel):
    """A point where two non-adjacent edges of a ring cross.

    Edge ``i`` joins vertex ``i`` to vertex ``(i + 1) % n`` of the open ring.
    """

    lng: float
    lat: float
    edge_a: int
    edge_b: int
    tier: str


class RingMetrics(BaseModel):
    area_hectares: float
    area_square_meters: float
    perimeter_meters: float
    centroid: Vertex | None = None
    bounding_box: BoundingBox | None = None
    vertex_count: int


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCode(str, Enum):
    TOO_FEW_VERTICES = "TOO_FEW_VERTICES"
    TOO_MANY_VERTICES = "TOO_MANY_VERTICES"
    VERTICES_NEAR_LIMIT = "VERTICES_NEAR_LIMIT"
    SELF_INTERSECTION = "SELF_INTERSECTION"
    AREA_ZERO = "AREA_ZERO"
    AREA_NEGATIVE = "AREA_NEGATIVE"
    AREA_EXCEEDS_MAXIMUM = "AREA_EXCEEDS_MAXIMUM"
    AREA_BELOW_MINIMUM = "AREA_BELOW_MINIMUM"
    DUPLICATE_VERTICES = "DUPLICATE_VERTICES"
    SPIKE_DETECTED = "SPIKE_DETECTED"


class ValidationIssue(BaseModel):
    code: IssueCode
    severity: Severity
    message: str
    location: Vertex | None = None
    context: dict[str, Any] | None = None


class ValidationRuleSet(BaseModel):
    """Rules applied by :func:`parcel_validation.validator.validate`.

    Defaults match the capture widget's out-of-the-box configuration.
    ``max_area_hectares=None`` disables the area cap.
    """

    model_config = ConfigDict(frozen=True)

    min_area_hectares: float = Field(default=0.01, ge=0)
    max_area_hectares: float | None = Field(default=1000.0, gt=0)
    min_vertices: int = Field(default=3, ge=3)
    max_vertices: int = Field(default=100, ge=3)
    allow_self_intersection: bool = False
    detect_spikes: bool = True
    spike_angle_threshold_degrees: float = Field(default=10.0, gt=0, lt=180)


class ValidationVerdict(BaseModel):
    valid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationIssue]
    metrics: RingMetrics


class OverlapCandidate(BaseModel):
    """A stored record reported by the host's spatial-intersection query."""

    record_id: str
    ring: list[tuple[float, float]] | None = None
    overlap_area_hectares: float = Field(ge=0)
    overlap_percentage_of_input: float | None = Field(default=None, ge=0)


class EditSessionContext(BaseModel):
    is_edit_mode: bool = False
    current_record_id: str | None = None
    initial_ring: list[tuple[float, float]] | None = None
    initial_area_hectares: float | None = Field(default=None, ge=0)


class OverlapTolerances(BaseModel):
    """Thresholds for the self-overlap strategies.

    Percentages are on a 0-100 scale, ratios are fractions.
    """

    model_config = ConfigDict(frozen=True)

    shrunk_min_percentage: float = 95.0
    same_size_min_percentage: float = 99.0
    same_size_area_ratio: float = 0.02
    expanded_area_ratio: float = 0.10
    expanded_fallback_area_ratio: float = 0.05
    shifted_area_ratio: float = 0.15


class FilterDecision(BaseModel):
    """Why a candidate was dropped as a self-overlap."""

    record_id: str
    strategy: str
    reason: str
    inputs: dict[str, Any]


class AnnotatedOverlap(BaseModel):
    record_id: str
    overlap_area_hectares: float
    overlap_percentage_of_input: float
    overlap_percentage_of_existing: float | None = None


class OverlapVerdict(BaseModel):
    overlaps: list[AnnotatedOverlap]
    filtered: list[FilterDecision]
    current_area_hectares: float

    @computed_field
    @property
    def has_conflicts(self) -> bool:
        return bool(self.overlaps)


class PolygonRecord(BaseModel):
    """A polygon imported from a shapefile or KML document."""

    index: int
    name: str | None = None
    exterior: list[tuple[float, float]]
    holes: list[list[tuple[float, float]]] = []


class SourceMetadata(BaseModel):
    """Metadata about an imported boundary file."""

    shape_type_name: str
    crs_epsg: int | None = None
    crs_name: str | None = None
    is_projected: bool | None = None
    num_polygons: int
    fields: list[str]


# HTTP request and response bodies


class RingRequest(BaseModel):
    ring: list[tuple[float, float]]
    holes: list[list[tuple[float, float]]] = []


class ValidateRequest(BaseModel):
    ring: list[tuple[float, float]]
    holes: list[list[tuple[float, float]]] = []
    rules: ValidationRuleSet | None = None


class OverlapFilterRequest(BaseModel):
    ring: list[tuple[float, float]]
    edit_context: EditSessionContext | None = None
    overlaps: list[OverlapCandidate]
    tolerances: OverlapTolerances | None = None


class PolygonVerdict(BaseModel):
    polygon: PolygonRecord
    verdict: ValidationVerdict


class ProcessResult(BaseModel):
    """Result of validating every polygon in an uploaded file."""

    metadata: SourceMetadata
    polygons: list[PolygonVerdict]
