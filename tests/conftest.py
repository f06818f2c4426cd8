import math

import pytest

from parcel_validation.geodesic import EARTH_RADIUS_M

KML_DOC = """<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark>
      <name> Shamba A </name>
      <Polygon>
        <outerBoundaryIs><LinearRing><coordinates>
          36.80,-1.30,0 36.80,-1.29,0 36.81,-1.29,0 36.81,-1.30,0 36.80,-1.30,0
        </coordinates></LinearRing></outerBoundaryIs>
        <innerBoundaryIs><LinearRing><coordinates>
          36.803,-1.297 36.807,-1.297 36.807,-1.293 36.803,-1.293 36.803,-1.297
        </coordinates></LinearRing></innerBoundaryIs>
      </Polygon>
    </Placemark>
    <Placemark>
      <name>Shamba B</name>
      <MultiGeometry>
        <Polygon><outerBoundaryIs><LinearRing><coordinates>
          36.82,-1.30 36.83,-1.30 36.83,-1.29
        </coordinates></LinearRing></outerBoundaryIs></Polygon>
        <Polygon><outerBoundaryIs><LinearRing><coordinates>
          36.84,-1.30 36.85,-1.30
        </coordinates></LinearRing></outerBoundaryIs></Polygon>
      </MultiGeometry>
    </Placemark>
    <Placemark>
      <name>Borehole</name>
      <Point><coordinates>36.80,-1.30</coordinates></Point>
    </Placemark>
  </Document>
</kml>
"""


def cell_ring(center_lng: float, center_lat: float, area_hectares: float) -> list[tuple[float, float]]:
    """Counter-clockwise lon/lat cell whose spherical area is ``area_hectares``.

    A cell bounded by two meridians and two parallels has the closed-form area
    ``R² * dlon * (sin(lat2) - sin(lat1))``, so the size is exact.
    """
    area_m2 = area_hectares * 10_000
    half_dlat = math.degrees(math.sqrt(area_m2) / EARTH_RADIUS_M) / 2
    lat1, lat2 = center_lat - half_dlat, center_lat + half_dlat
    dlon = area_m2 / (EARTH_RADIUS_M**2 * (math.sin(math.radians(lat2)) - math.sin(math.radians(lat1))))
    half_dlon = math.degrees(dlon) / 2
    return [
        (center_lng - half_dlon, lat1),
        (center_lng + half_dlon, lat1),
        (center_lng + half_dlon, lat2),
        (center_lng - half_dlon, lat2),
    ]


@pytest.fixture
def make_cell():
    return cell_ring


@pytest.fixture
def bowtie():
    return [(0.0, 0.0), (1.0, 1.0), (1.0, 0.0), (0.0, 1.0)]


@pytest.fixture
def unit_square():
    return [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]


@pytest.fixture
def parcel(make_cell):
    """A 5 ha parcel in western Kenya."""
    return make_cell(34.75, 0.5, 5.0)


@pytest.fixture
def kml_doc():
    """Two placemark polygons (one with a hole) plus a point placemark."""
    return KML_DOC.encode()
