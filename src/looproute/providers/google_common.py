"""
Shared plumbing for the Google Maps Platform adapters.

Every Google call goes through `GoogleMapsTransport.get`, which:
- requires an API key (raises `ProviderConfigError` otherwise),
- applies the optional shared rate limiter,
- clamps the HTTP timeout to the request deadline.
"""

from __future__ import annotations

import logging
from typing import Any

from looproute.config.settings import Settings
from looproute.core.deadline import Deadline
from looproute.core.http import get_json
from looproute.core.rate_limit import TokenBucketRateLimiter
from looproute.errors import ProviderConfigError
from looproute.synth.types import TravelMode

logger = logging.getLogger(__name__)

# Google's `mode` / `dirflg` vocabulary for our travel modes.
GOOGLE_MODES: dict[TravelMode, str] = {
    TravelMode.CYCLING: "bicycling",
    TravelMode.WALKING: "walking",
}


def build_rate_limiter(settings: Settings) -> TokenBucketRateLimiter | None:
    cfg = settings.providers.google.rate_limit
    if cfg.max_per_minute and cfg.max_per_minute > 0:
        return TokenBucketRateLimiter(max_per_minute=cfg.max_per_minute, burst=cfg.burst)
    return None


class GoogleMapsTransport:
    def __init__(self, settings: Settings, *, rate_limiter: TokenBucketRateLimiter | None = None):
        self._settings = settings
        self._rate_limiter = rate_limiter

    @property
    def settings(self) -> Settings:
        return self._settings

    def _require_key(self) -> str:
        key = self._settings.providers.google.api_key
        if not key:
            raise ProviderConfigError(
                "Missing Google Maps API key. Set GOOGLE_MAPS_API_KEY in your environment or .env."
            )
        return key

    def get(self, url: str, *, params: dict[str, Any], deadline: Deadline) -> Any:
        """GET a Google endpoint with the API key appended.

        Raises:
            ProviderConfigError: If no API key is configured.
            SearchTimeout: If the deadline is spent before the call goes out.
            httpx.HTTPError: On transport errors or non-2xx status codes.
        """
        key = self._require_key()
        if self._rate_limiter is not None:
            self._rate_limiter.acquire(deadline=deadline)
        timeout = deadline.cap_timeout(self._settings.app.http_timeout_seconds)
        return get_json(url, params={**params, "key": key}, timeout_seconds=timeout)
