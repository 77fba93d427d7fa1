"""
Loop synthesizer for requests with a mandatory stop.

Routes start -> stop -> start first. If that already covers the target (within the
acceptance threshold, or longer), it is returned as-is. Otherwise one detour point is
inserted on each side of the stop, offset perpendicular to the leg from its midpoint,
and the loop is routed once more. This is a one-shot geometric estimate: the detour is
not re-measured or corrected against the real road network.
"""

from __future__ import annotations

import logging
import random

from looproute.config.settings import DetourSettings
from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint, bearing_between, destination_point, midpoint
from looproute.errors import FATAL_ERRORS
from looproute.synth.protocols import RouteOracle
from looproute.synth.types import DEFAULT_RNG, Candidate, LoopResult, TargetSpec

logger = logging.getLogger(__name__)

STRATEGY = "waypoint_loop"


def detour_point(a: GeoPoint, b: GeoPoint, offset_m: float, sign: int) -> GeoPoint:
    """Point `offset_m` off the a->b leg, from its midpoint, rotated +90 (sign=1) or -90 (sign=-1)."""
    rotated = (bearing_between(a, b) + 90 * sign + 360) % 360
    return destination_point(midpoint(a, b), rotated, offset_m / 1000)


class WaypointLoopSynthesizer:
    def __init__(
        self,
        oracle: RouteOracle,
        *,
        settings: DetourSettings | None = None,
        rng: random.Random | None = None,
    ):
        self._oracle = oracle
        self._settings = settings or DetourSettings()
        self._rng = rng or DEFAULT_RNG

    def _random_sign(self) -> int:
        return 1 if self._rng.random() > 0.5 else -1

    def _route(self, spec: TargetSpec, waypoints: list[GeoPoint], deadline: Deadline) -> Candidate | None:
        deadline.check()
        try:
            route = self._oracle.route(spec.start, spec.start, waypoints, spec.mode, deadline=deadline)
        except FATAL_ERRORS:
            raise
        except Exception as exc:
            logger.info("Routing through %s waypoint(s) failed: %s", len(waypoints), exc)
            return None
        if route is None:
            return None
        return Candidate(origin=spec.start, destination=spec.start, waypoints=tuple(waypoints), route=route)

    def synthesize(self, spec: TargetSpec, *, deadline: Deadline | None = None) -> LoopResult | None:
        """Return a loop through `spec.mandatory_point`, or `None` if it cannot be routed."""
        if spec.mandatory_point is None:
            raise ValueError("WaypointLoopSynthesizer requires a mandatory point")
        deadline = deadline or Deadline.unbounded()
        stop = spec.mandatory_point

        direct = self._route(spec, [stop], deadline)
        if direct is None:
            logger.warning("No direct route through mandatory stop %s", stop.as_param())
            return None

        deficit = spec.target_distance_m - direct.distance_m
        if deficit <= self._settings.accept_error_m:
            logger.info("Direct loop via stop is %.0fm (target %.0fm); no detour needed", direct.distance_m, spec.target_distance_m)
            return LoopResult(
                candidate=direct,
                waypoints_used=(stop,),
                strategy=STRATEGY,
                meta={"route_calls": 1, "direct_distance_m": direct.distance_m, "deficit_m": deficit},
            )

        offset_m = deficit / self._settings.deficit_divisor
        detour_out = detour_point(spec.start, stop, offset_m, self._random_sign())
        detour_in = detour_point(stop, spec.start, offset_m, self._random_sign())

        waypoints = [detour_out, stop, detour_in]
        candidate = self._route(spec, waypoints, deadline)
        if candidate is None:
            logger.warning("Detour loop via %s could not be routed", stop.as_param())
            return None

        logger.info(
            "Detour loop: direct=%.0fm deficit=%.0fm offset=%.0fm routed=%.0fm",
            direct.distance_m,
            deficit,
            offset_m,
            candidate.distance_m,
        )
        return LoopResult(
            candidate=candidate,
            waypoints_used=tuple(waypoints),
            strategy=STRATEGY,
            meta={
                "route_calls": 2,
                "direct_distance_m": direct.distance_m,
                "deficit_m": deficit,
                "detour_offset_m": offset_m,
            },
        )
