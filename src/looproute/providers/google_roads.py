"""
Road snapper backed by the Google Roads API (`snapToRoads`).

A single-point path is snapped without interpolation. An empty `snappedPoints` list
(open water, parks without ways, restricted areas) means "nothing routable nearby" and
returns `None`.
"""

from __future__ import annotations

from typing import Any

from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint
from looproute.providers.google_common import GoogleMapsTransport


def parse_snapped_point(payload: Any) -> GeoPoint | None:
    if not isinstance(payload, dict):
        return None
    points = payload.get("snappedPoints") or []
    if not points:
        return None
    location = points[0].get("location") or {}
    try:
        return GeoPoint(lat=float(location["latitude"]), lon=float(location["longitude"]))
    except (KeyError, TypeError, ValueError):
        return None


class GoogleRoadsSnapper:
    def __init__(self, transport: GoogleMapsTransport):
        self._transport = transport

    def snap(self, point: GeoPoint, *, deadline: Deadline) -> GeoPoint | None:
        payload = self._transport.get(
            self._transport.settings.providers.google.roads_url,
            params={"path": point.as_param(), "interpolate": "false"},
            deadline=deadline,
        )
        return parse_snapped_point(payload)
