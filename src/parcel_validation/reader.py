"""Polygon shapefile reader with CRS auto-detection.

Rings come back in WGS84 lon/lat with RFC 7946 winding (counter-clockwise
exteriors, clockwise holes), ready for the validator.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

import shapefile
from pyproj import CRS, Transformer

from .models import PolygonRecord, SourceMetadata
from .rings import Coord, normalize_ring, orient, planar_signed_area


def detect_crs(prj_source: str | Path | None) -> tuple[int | None, str | None, bool | None]:
    """Parse CRS from a .prj WKT string or file path.

    Returns (epsg_code, crs_name, is_projected) or (None, None, None) on failure.
    """
    if prj_source is None:
        return None, None, None

    wkt = prj_source if isinstance(prj_source, str) else ""
    if isinstance(prj_source, Path):
        if not prj_source.exists():
            return None, None, None
        wkt = prj_source.read_text()

    if not wkt.strip():
        return None, None, None

    try:
        crs = CRS.from_wkt(wkt)
    except Exception:
        return None, None, None

    return crs.to_epsg(), crs.name, crs.is_projected


def read_shapefile(
    shp_path: str | Path | None = None,
    *,
    shp_file: BinaryIO | None = None,
    shx_file: BinaryIO | None = None,
    dbf_file: BinaryIO | None = None,
    prj_wkt: str | None = None,
) -> tuple[list[PolygonRecord], SourceMetadata]:
    """Read a polygon shapefile and return its polygons with metadata.

    Supports two modes:
    - File path: pass ``shp_path`` (the .prj is auto-discovered)
    - File objects: pass ``shp_file``, ``shx_file``, ``dbf_file``, and optionally ``prj_wkt``
    """
    if shp_path is not None:
        shp_path = Path(shp_path)
        sf = shapefile.Reader(str(shp_path))
        prj_path = shp_path.with_suffix(".prj")
        if not prj_path.exists():
            # shp_path might lack an extension (pyshp convention)
            prj_path = Path(str(shp_path) + ".prj")
        epsg, crs_name, is_projected = detect_crs(prj_path if prj_path.exists() else None)
    elif shp_file is not None:
        sf = shapefile.Reader(shp=shp_file, shx=shx_file, dbf=dbf_file)
        epsg, crs_name, is_projected = detect_crs(prj_wkt)
    else:
        raise ValueError("Provide either shp_path or shp_file")

    shape_type_name = sf.shapeTypeName
    fields = [f[0] for f in sf.fields[1:]]  # skip DeletionFlag

    if "POLYGON" not in shape_type_name.upper():
        raise ValueError(f"Unsupported shape type: {shape_type_name}. Only POLYGON shapes are supported.")

    names = [str(r[0]) for r in sf.records()] if fields and sf.dbf else []

    transformer = None
    if is_projected and epsg is not None:
        transformer = Transformer.from_crs(f"EPSG:{epsg}", "EPSG:4326", always_xy=True)

    polygons: list[PolygonRecord] = []
    for shape_idx, shape in enumerate(sf.shapes()):
        name = names[shape_idx] if shape_idx < len(names) else None
        for exterior, holes in _split_parts(shape):
            if transformer is not None:
                exterior = _transform(exterior, transformer)
                holes = [_transform(h, transformer) for h in holes]
            polygons.append(
                PolygonRecord(
                    index=len(polygons) + 1,
                    name=name,
                    exterior=orient(normalize_ring(exterior)),
                    holes=[orient(normalize_ring(h), counter_clockwise=False) for h in holes],
                )
            )

    metadata = SourceMetadata(
        shape_type_name=shape_type_name,
        crs_epsg=epsg,
        crs_name=crs_name,
        is_projected=is_projected,
        num_polygons=len(polygons),
        fields=fields,
    )
    return polygons, metadata


def _split_parts(shape: shapefile.Shape) -> list[tuple[list[Coord], list[list[Coord]]]]:
    """Group a shape's parts into (exterior, holes).

    Shapefile exteriors are clockwise; each counter-clockwise part is a hole of
    the exterior before it.
    """
    part_starts = list(shape.parts)
    groups: list[tuple[list[Coord], list[list[Coord]]]] = []
    for part_idx, start in enumerate(part_starts):
        end = part_starts[part_idx + 1] if part_idx + 1 < len(part_starts) else len(shape.points)
        ring = [(float(x), float(y)) for x, y in (p[:2] for p in shape.points[start:end])]
        if len(ring) < 3:
            continue
        if planar_signed_area(ring) < 0 or not groups:
            groups.append((ring, []))
        else:
            groups[-1][1].append(ring)
    return groups


def _transform(ring: list[Coord], transformer: Transformer) -> list[Coord]:
    """Transform projected x/y to WGS84 lon/lat."""
    xs = [c[0] for c in ring]
    ys = [c[1] for c in ring]
    lons, lats = transformer.transform(xs, ys)
    return list(zip(lons, lats))
