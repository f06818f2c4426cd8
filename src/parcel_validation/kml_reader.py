"""KMZ/KML reader for Placemark polygon boundaries.

KMZ is a zipped KML document. KML coordinates are WGS84 (EPSG:4326)
``longitude,latitude[,altitude]`` tuples.
"""

from __future__ import annotations

import io
import xml.etree.ElementTree as ET
import zipfile
from typing import BinaryIO

from .models import PolygonRecord, SourceMetadata
from .rings import Coord, normalize_ring, orient

KML_NS = "{http://www.opengis.net/kml/2.2}"


def read_kmz(
    file: str | bytes | BinaryIO,
) -> tuple[list[PolygonRecord], SourceMetadata]:
    """Read a KMZ (or plain KML) file and return its polygons with metadata.

    Args:
        file: Path to a .kmz/.kml file, raw bytes, or a file-like object containing KMZ/KML bytes.
    """
    data = _read_bytes(file)

    # KMZ is a ZIP; plain KML is XML text
    if _is_zip(data):
        kml_text = _extract_kml_from_kmz(data)
    else:
        kml_text = data.decode("utf-8", errors="replace")

    root = ET.fromstring(kml_text)
    polygons = _extract_polygons(root)

    metadata = SourceMetadata(
        shape_type_name="KML_POLYGON",
        crs_epsg=4326,
        crs_name="WGS 84",
        is_projected=False,
        num_polygons=len(polygons),
        fields=["name"],
    )
    return polygons, metadata


def _read_bytes(file: str | bytes | BinaryIO) -> bytes:
    if isinstance(file, str):
        with open(file, "rb") as f:
            return f.read()
    if isinstance(file, bytes):
        return file
    return file.read()


def _is_zip(data: bytes) -> bool:
    return data[:4] == b"PK\x03\x04"


def _extract_kml_from_kmz(data: bytes) -> str:
    """Extract the first .kml file from a KMZ (ZIP) archive."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        # Prefer doc.kml, fall back to any .kml
        names = zf.namelist()
        kml_name = next((n for n in names if n.lower() == "doc.kml"), None)
        if kml_name is None:
            kml_name = next((n for n in names if n.lower().endswith(".kml")), None)
        if kml_name is None:
            raise ValueError("No .kml file found in KMZ archive")
        return zf.read(kml_name).decode("utf-8", errors="replace")


def _extract_polygons(root: ET.Element) -> list[PolygonRecord]:
    """Walk every Placemark and collect its Polygon boundaries."""
    polygons: list[PolygonRecord] = []

    for placemark in root.iter(f"{KML_NS}Placemark"):
        name_elem = placemark.find(f"{KML_NS}name")
        name = name_elem.text.strip() if name_elem is not None and name_elem.text else None

        # MultiGeometry nests several Polygon elements under one Placemark
        for polygon in placemark.iter(f"{KML_NS}Polygon"):
            outer = polygon.find(f"{KML_NS}outerBoundaryIs/{KML_NS}LinearRing/{KML_NS}coordinates")
            if outer is None or not outer.text:
                continue
            exterior = _parse_coordinates_text(outer.text)
            if len(exterior) < 3:
                continue

            holes = []
            for inner in polygon.findall(f"{KML_NS}innerBoundaryIs/{KML_NS}LinearRing/{KML_NS}coordinates"):
                if inner.text:
                    hole = _parse_coordinates_text(inner.text)
                    if len(hole) >= 3:
                        holes.append(orient(hole, counter_clockwise=False))

            polygons.append(
                PolygonRecord(index=len(polygons) + 1, name=name, exterior=orient(exterior), holes=holes)
            )

    return polygons


def _parse_coordinates_text(text: str) -> list[Coord]:
    """Parse a KML ``<coordinates>`` text block into an open ring.

    Format: ``lon,lat[,alt] lon,lat[,alt] ...`` (whitespace-separated tuples).
    """
    coords = []
    for token in text.strip().split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        coords.append((float(parts[0]), float(parts[1])))
    return normalize_ring(coords)
