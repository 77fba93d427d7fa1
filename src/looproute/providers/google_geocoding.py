"""
Mandatory-stop lookup backed by the Google Geocoding API.

Only the first result is used; disambiguation is left to the caller. Failure to resolve
is surfaced as `UpstreamLookupError` and fails the whole request.
"""

from __future__ import annotations

import logging

import httpx

from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint
from looproute.errors import UpstreamLookupError
from looproute.providers.google_common import GoogleMapsTransport

logger = logging.getLogger(__name__)


class GoogleGeocoder:
    def __init__(self, transport: GoogleMapsTransport):
        self._transport = transport

    def lookup(self, address: str, *, deadline: Deadline) -> GeoPoint:
        """Resolve `address` to a coordinate.

        Raises:
            UpstreamLookupError: If the address is empty, unknown, or the service fails.
        """
        query = address.strip()
        if not query:
            raise UpstreamLookupError("Mandatory stop address is empty.")

        try:
            payload = self._transport.get(
                self._transport.settings.providers.google.geocode_url,
                params={"address": query},
                deadline=deadline,
            )
        except httpx.HTTPError as exc:
            raise UpstreamLookupError(f'Could not look up location for: "{query}"') from exc

        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            raise UpstreamLookupError(f'Could not find location for: "{query}"')

        try:
            location = results[0]["geometry"]["location"]
            point = GeoPoint(lat=float(location["lat"]), lon=float(location["lng"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamLookupError(f'Unexpected geocoding result for: "{query}"') from exc

        logger.info("Resolved mandatory stop %r to %s", query, point.as_param())
        return point
