"""FastAPI server exposing the validation engine."""

from __future__ import annotations

import csv
import io
import tempfile
import zipfile
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from . import geodesic
from .config import settings
from .exceptions import ParcelValidationError
from .intersections import detect, self_check
from .kml_reader import read_kmz
from .models import (
    IntersectionPoint,
    OverlapFilterRequest,
    OverlapVerdict,
    PolygonRecord,
    PolygonVerdict,
    ProcessResult,
    RingMetrics,
    RingRequest,
    SourceMetadata,
    ValidateRequest,
    ValidationVerdict,
)
from .overlap import filter_overlaps
from .reader import read_shapefile
from .validator import validate

app = FastAPI(title="Parcel Validation", version="0.1.0")


@app.exception_handler(ParcelValidationError)
async def _invalid_geometry(request: Request, exc: ParcelValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/health")
async def health():
    """Report whether every self-intersection tier passes its ground-truth shapes."""
    tiers = self_check()
    return {"status": "ok" if all(all(r.values()) for r in tiers.values()) else "degraded", "tiers": tiers}


@app.post("/metrics", response_model=RingMetrics)
async def ring_metrics(body: RingRequest):
    return geodesic.metrics(body.ring, body.holes)


@app.post("/intersections", response_model=list[IntersectionPoint])
async def ring_intersections(body: RingRequest):
    return detect(body.ring)


@app.post("/validate", response_model=ValidationVerdict)
async def validate_ring(body: ValidateRequest):
    return validate(body.ring, body.rules or settings.default_rules, holes=body.holes)


@app.post("/overlaps/filter", response_model=OverlapVerdict)
async def filter_ring_overlaps(body: OverlapFilterRequest):
    return filter_overlaps(
        body.ring,
        body.edit_context,
        body.overlaps,
        body.tolerances or settings.overlap_tolerances,
    )


@app.post("/process")
async def process_upload(
    files: list[UploadFile],
    format: str = Query("json", pattern="^(csv|json)$"),
):
    """Validate every polygon in an uploaded boundary file.

    Accepts:
    - A single .kmz or .kml file
    - A single .zip containing shapefile components
    - Multiple files (.shp, .shx, .dbf, and optionally .prj)
    """
    uploads = {Path(f.filename or "").suffix.lower(): await f.read() for f in files}

    try:
        polygons, metadata = _read_uploads(uploads, single=len(files) == 1)
    except ParcelValidationError:
        raise
    except (ValueError, zipfile.BadZipFile) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    rules = settings.default_rules
    results = [PolygonVerdict(polygon=p, verdict=validate(p.exterior, rules, holes=p.holes)) for p in polygons]
    result = ProcessResult(metadata=metadata, polygons=results)

    if format == "json":
        return result

    return _issues_to_csv_response(results)


def _read_uploads(uploads: dict[str, bytes], single: bool) -> tuple[list[PolygonRecord], SourceMetadata]:
    """Pick a reader by file extension; ``uploads`` maps extension to content."""
    if single and uploads.keys() & {".kmz", ".kml"}:
        return read_kmz(next(iter(uploads.values())))
    if single and ".zip" in uploads:
        return _read_zipped_shapefile(uploads[".zip"])

    if ".shp" not in uploads:
        raise HTTPException(status_code=400, detail="Missing required .shp file")

    def stream(ext: str) -> io.BytesIO | None:
        return io.BytesIO(uploads[ext]) if ext in uploads else None

    prj = uploads.get(".prj")
    return read_shapefile(
        shp_file=stream(".shp"),
        shx_file=stream(".shx"),
        dbf_file=stream(".dbf"),
        prj_wkt=prj.decode("utf-8", errors="replace") if prj is not None else None,
    )


def _read_zipped_shapefile(content: bytes) -> tuple[list[PolygonRecord], SourceMetadata]:
    with tempfile.TemporaryDirectory() as extract_dir:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            zf.extractall(extract_dir)

        shp_files = sorted(Path(extract_dir).rglob("*.shp"))
        if not shp_files:
            raise HTTPException(status_code=400, detail="No .shp file found in zip archive")
        return read_shapefile(shp_files[0])


def _issues_to_csv_response(results: list[PolygonVerdict]) -> StreamingResponse:
    """Flatten every polygon's issues into a streaming CSV response."""
    fieldnames = [
        "polygon", "name", "valid", "severity", "code", "message",
        "area_hectares", "perimeter_meters", "vertex_count",
    ]

    def generate():
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames)
        writer.writeheader()
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for item in results:
            verdict = item.verdict
            base = {
                "polygon": item.polygon.index,
                "name": item.polygon.name or "",
                "valid": verdict.valid,
                "area_hectares": round(verdict.metrics.area_hectares, 4),
                "perimeter_meters": round(verdict.metrics.perimeter_meters, 2),
                "vertex_count": verdict.metrics.vertex_count,
            }
            issues = verdict.errors + verdict.warnings
            if not issues:
                writer.writerow({**base, "severity": "", "code": "", "message": ""})
            for issue in issues:
                writer.writerow(
                    {**base, "severity": issue.severity.value, "code": issue.code.value, "message": issue.message}
                )
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    return StreamingResponse(
        generate(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=parcel_validation.csv"},
    )
