"""
LLM route enhancer (Gemini `generateContent` over httpx).

Given the draft waypoints of a loop, asks the model to nudge them toward more pleasant
roads (parks, riversides, quiet streets) while keeping the same number of waypoints and
the mandatory stop in place. The answer is parsed as a JSON array of `{lat, lng}`.

This adapter raises on anything unexpected; `looproute.planner.generate` treats every
failure as "keep the draft", so the enhancer can never break a request.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Sequence

from looproute.config.settings import Settings
from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint
from looproute.core.http import post_json
from looproute.errors import ProviderConfigError
from looproute.synth.types import TravelMode

logger = logging.getLogger(__name__)

# Model output is echoed with limited precision; closer than this counts as "unchanged".
MANDATORY_MATCH_EPS_DEG = 1e-5

_PROMPT = """\
You are improving a {mode} loop route that starts and ends at ({start_lat:.6f}, {start_lng:.6f}).
The loop should be about {target_km:.1f} km long.
The current waypoints, in visiting order, are:
{waypoints_json}
{mandatory_line}
Move the waypoints (by at most a few hundred meters each) onto roads or paths that are
pleasant for {mode}: parks, rivers, quiet streets, dedicated lanes. Keep the overall shape
and distance.
Return ONLY a JSON array of exactly {n} objects: [{{"lat": ..., "lng": ...}}, ...]
"""


def extract_json_array(text: str) -> list[Any] | None:
    """Find and parse the first JSON array in `text` (models sometimes add commentary)."""
    text = text.strip()
    try:
        parsed = json.loads(text)
        if isinstance(parsed, list):
            return parsed
    except ValueError:
        pass

    match = re.search(r"\[.*\]", text, re.DOTALL)
    if match:
        try:
            parsed = json.loads(match.group())
            if isinstance(parsed, list):
                return parsed
        except ValueError:
            pass
    return None


def build_prompt(
    start: GeoPoint,
    draft: Sequence[GeoPoint],
    target_distance_km: float,
    mode: TravelMode,
    mandatory_point: GeoPoint | None,
) -> str:
    mandatory_line = ""
    if mandatory_point is not None:
        index = list(draft).index(mandatory_point)
        mandatory_line = (
            f"Waypoint #{index + 1} ({mandatory_point.lat:.6f}, {mandatory_point.lon:.6f}) is a "
            "mandatory stop: return it unchanged at the same position.\n"
        )
    waypoints_json = json.dumps([{"lat": p.lat, "lng": p.lon} for p in draft])
    return _PROMPT.format(
        mode=mode.value,
        start_lat=start.lat,
        start_lng=start.lon,
        target_km=target_distance_km,
        waypoints_json=waypoints_json,
        mandatory_line=mandatory_line,
        n=len(draft),
    )


def _reply_text(payload: Any) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        return "".join(str(part.get("text") or "") for part in parts)
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError("Enhancer response has no candidate text.") from exc


def parse_waypoints(
    items: list[Any],
    draft: Sequence[GeoPoint],
    mandatory_point: GeoPoint | None,
) -> list[GeoPoint]:
    """Validate the model's waypoints against the draft.

    Raises:
        ValueError: Wrong count, malformed entries, or a moved mandatory stop.
    """
    if len(items) != len(draft):
        raise ValueError(f"Enhancer returned {len(items)} waypoints, expected {len(draft)}.")
    try:
        points = [GeoPoint(lat=float(item["lat"]), lon=float(item["lng"])) for item in items]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError("Enhancer waypoint JSON is missing lat/lng keys.") from exc

    if mandatory_point is not None:
        index = list(draft).index(mandatory_point)
        got = points[index]
        if (
            abs(got.lat - mandatory_point.lat) > MANDATORY_MATCH_EPS_DEG
            or abs(got.lon - mandatory_point.lon) > MANDATORY_MATCH_EPS_DEG
        ):
            raise ValueError("Enhancer moved the mandatory stop.")
        points[index] = mandatory_point
    return points


class LlmRouteEnhancer:
    def __init__(self, settings: Settings):
        self._settings = settings

    def with_settings(self, settings: Settings) -> "LlmRouteEnhancer":
        """Same enhancer bound to per-request settings (e.g. an overridden temperature)."""
        return LlmRouteEnhancer(settings)

    def improve(
        self,
        start: GeoPoint,
        draft: Sequence[GeoPoint],
        target_distance_km: float,
        mode: TravelMode,
        mandatory_point: GeoPoint | None,
        *,
        deadline: Deadline,
    ) -> list[GeoPoint]:
        cfg = self._settings.providers.enhancer
        if not cfg.api_key:
            raise ProviderConfigError("Missing enhancer API key. Set LOOPROUTE_ENHANCER_API_KEY.")

        prompt = build_prompt(start, draft, target_distance_km, mode, mandatory_point)
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": cfg.temperature,
                "responseMimeType": "application/json",
            },
        }
        url = f"{cfg.base_url.rstrip('/')}/models/{cfg.model}:generateContent"

        logger.info("Requesting waypoint enhancement for %s waypoint(s)", len(draft))
        payload = post_json(
            url,
            payload=body,
            params={"key": cfg.api_key},
            timeout_seconds=deadline.cap_timeout(cfg.timeout_seconds),
        )
        raw = _reply_text(payload)
        logger.debug("Enhancer reply: %s", raw[:300])

        items = extract_json_array(raw)
        if items is None:
            raise ValueError("Enhancer did not return a JSON array.")
        return parse_waypoints(items, draft, mandatory_point)
