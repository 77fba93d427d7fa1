"""
Route oracle backed by the Google Directions API.

`route()` asks for one path origin -> waypoints (in order) -> destination and returns the
per-leg distance/duration plus the overview polyline. "No route" (ZERO_RESULTS, NOT_FOUND,
or an empty `routes` list) is a normal outcome and returns `None`; any other non-OK
status raises `ProviderError` so the caller can decide how to recover.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint
from looproute.errors import ProviderError
from looproute.providers.google_common import GOOGLE_MODES, GoogleMapsTransport
from looproute.synth.types import RouteLeg, RouteResult, TravelMode

logger = logging.getLogger(__name__)

NO_ROUTE_STATUSES = {"ZERO_RESULTS", "NOT_FOUND", "MAX_ROUTE_LENGTH_EXCEEDED"}


def parse_directions(payload: dict[str, Any]) -> RouteResult | None:
    """Convert a Directions JSON payload into a `RouteResult` (first route only)."""
    status = str(payload.get("status") or "OK")
    if status in NO_ROUTE_STATUSES:
        return None
    if status != "OK":
        message = payload.get("error_message") or status
        raise ProviderError(f"Directions API error: {message}")

    routes = payload.get("routes") or []
    if not routes:
        return None

    route = routes[0]
    legs = tuple(
        RouteLeg(
            distance_m=float(leg["distance"]["value"]),
            duration_s=float(leg["duration"]["value"]),
        )
        for leg in route.get("legs") or []
    )
    if not legs:
        return None
    encoded = str((route.get("overview_polyline") or {}).get("points") or "")
    return RouteResult(legs=legs, encoded_path=encoded)


class GoogleDirectionsOracle:
    def __init__(self, transport: GoogleMapsTransport):
        self._transport = transport

    def route(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        waypoints: Sequence[GeoPoint],
        mode: TravelMode,
        *,
        deadline: Deadline,
    ) -> RouteResult | None:
        params: dict[str, Any] = {
            "origin": origin.as_param(),
            "destination": destination.as_param(),
            "mode": GOOGLE_MODES[mode],
        }
        if waypoints:
            params["waypoints"] = "|".join(p.as_param() for p in waypoints)

        logger.debug("Directions request: %s waypoint(s), mode=%s", len(waypoints), params["mode"])
        payload = self._transport.get(
            self._transport.settings.providers.google.directions_url,
            params=params,
            deadline=deadline,
        )
        if not isinstance(payload, dict):
            raise ProviderError("Unexpected Directions response shape; expected an object.")
        return parse_directions(payload)
