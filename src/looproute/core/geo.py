from __future__ import annotations
from dataclasses import dataclass
from math import asin, atan2, cos, degrees, radians, sin, sqrt

"""
Geospatial helpers.

Spherical-earth primitives used by the loop synthesizers: projecting a point along
a bearing, computing forward bearings and great-circle distances. Everything here is
pure math (no I/O), so the search code can be tested without any routing service.
"""

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float

    def as_param(self) -> str:
        """Render as the `lat,lng` string most routing APIs expect."""
        return f"{self.lat},{self.lon}"


def destination_point(origin: GeoPoint, bearing_deg: float, distance_km: float) -> GeoPoint:
    """Project a point `distance_km` away from `origin` along the initial `bearing_deg`."""
    lat1 = radians(origin.lat)
    lon1 = radians(origin.lon)
    brng = radians(bearing_deg)
    d = distance_km / EARTH_RADIUS_KM

    lat2 = asin(sin(lat1) * cos(d) + cos(lat1) * sin(d) * cos(brng))
    lon2 = lon1 + atan2(sin(brng) * sin(d) * cos(lat1), cos(d) - sin(lat1) * sin(lat2))
    return GeoPoint(lat=degrees(lat2), lon=degrees(lon2))


def bearing_between(a: GeoPoint, b: GeoPoint) -> float:
    """Forward azimuth from `a` to `b` in degrees, normalized to [0, 360).

    The value is meaningless when `a == b`.
    """
    lat1 = radians(a.lat)
    lat2 = radians(b.lat)
    dlon = radians(b.lon - a.lon)

    y = sin(dlon) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)
    return (degrees(atan2(y, x)) + 360) % 360


def midpoint(a: GeoPoint, b: GeoPoint) -> GeoPoint:
    """Arithmetic mean of the two coordinates (good enough for city-scale legs)."""
    return GeoPoint(lat=(a.lat + b.lat) / 2, lon=(a.lon + b.lon) / 2)


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    r = EARTH_RADIUS_KM * 1000
    lat1 = radians(a.lat)
    lon1 = radians(a.lon)
    lat2 = radians(b.lat)
    lon2 = radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * r * asin(sqrt(h))
