"""
Random loop synthesizer.

Turns "start + target distance" into a routable 3-waypoint loop:
- pick a base bearing (random for most attempts, a fixed N/E/S/W sweep for the last ones),
- walk three legs 90 degrees apart, snapping each projected point to the road network,
- route start -> w1 -> w2 -> w3 -> start and compare the routed distance to the target,
- rescale the leg distance with a damped proportional controller and try again.

The best candidate is tracked across the whole search, not per attempt. Snap misses and
oracle misses only abandon the current attempt; the search fails only if no attempt ever
produced a routed candidate.
"""

from __future__ import annotations

import logging
import random

from looproute.config.settings import SearchSettings
from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint, destination_point
from looproute.errors import FATAL_ERRORS
from looproute.synth.protocols import RoadSnapper, RouteOracle
from looproute.synth.types import DEFAULT_RNG, Candidate, LoopResult, SearchState, TargetSpec

logger = logging.getLogger(__name__)

STRATEGY = "random_loop"


def next_leg_distance(leg_distance_m: float, actual_m: float, target_m: float, factor: float) -> float:
    """Damped proportional update of the leg length.

    factor=0 freezes the leg, factor=1 rescales it exactly by target/actual.
    """
    error_ratio = target_m / actual_m
    return leg_distance_m * ((1 - factor) + error_ratio * factor)


def base_bearing(attempt: int, settings: SearchSettings, rng: random.Random) -> float:
    """Random bearing for early attempts, then the fixed fallback sweep in order."""
    sweep_from = settings.main_attempts - len(settings.fallback_bearings)
    if attempt < sweep_from:
        return rng.random() * 360
    return float(settings.fallback_bearings[attempt - sweep_from]) % 360


def leg_bearings(b0: float) -> tuple[float, float, float]:
    return (b0 % 360, (b0 + 90) % 360, (b0 + 180) % 360)


class RandomLoopSynthesizer:
    """Searches for a loop through three snapped waypoints whose routed length matches the target."""

    def __init__(
        self,
        oracle: RouteOracle,
        snapper: RoadSnapper,
        *,
        settings: SearchSettings | None = None,
        rng: random.Random | None = None,
    ):
        self._oracle = oracle
        self._snapper = snapper
        self._settings = settings or SearchSettings()
        self._rng = rng or DEFAULT_RNG

    def _snap_chain(
        self,
        spec: TargetSpec,
        bearings: tuple[float, float, float],
        leg_distance_m: float,
        state: SearchState,
        deadline: Deadline,
    ) -> list[GeoPoint] | None:
        """Project and snap the three waypoints; `None` as soon as one cannot be snapped."""
        waypoints: list[GeoPoint] = []
        current = spec.start
        for bearing in bearings:
            theoretical = destination_point(current, bearing, leg_distance_m / 1000)
            deadline.check()
            state.snap_calls += 1
            try:
                snapped = self._snapper.snap(theoretical, deadline=deadline)
            except FATAL_ERRORS:
                raise
            except Exception as exc:
                logger.info("Snap failed near %s (bearing=%.1f): %s", theoretical.as_param(), bearing, exc)
                return None
            if snapped is None:
                logger.debug("No road near %s (bearing=%.1f)", theoretical.as_param(), bearing)
                return None
            waypoints.append(snapped)
            current = snapped
        return waypoints

    def _route(self, spec: TargetSpec, waypoints: list[GeoPoint], state: SearchState, deadline: Deadline) -> Candidate | None:
        deadline.check()
        state.route_calls += 1
        try:
            route = self._oracle.route(spec.start, spec.start, waypoints, spec.mode, deadline=deadline)
        except FATAL_ERRORS:
            raise
        except Exception as exc:
            logger.info("Routing failed for attempt=%s iter=%s: %s", state.attempt, state.refine_iter, exc)
            return None
        if route is None:
            return None
        return Candidate(origin=spec.start, destination=spec.start, waypoints=tuple(waypoints), route=route)

    def _run_attempt(self, spec: TargetSpec, state: SearchState, deadline: Deadline) -> None:
        cfg = self._settings
        target = spec.target_distance_m
        bearings = leg_bearings(base_bearing(state.attempt, cfg, self._rng))
        state.leg_distance_m = target / 4

        for refine_iter in range(cfg.refine_iterations):
            state.refine_iter = refine_iter
            waypoints = self._snap_chain(spec, bearings, state.leg_distance_m, state, deadline)
            if waypoints is None:
                return

            candidate = self._route(spec, waypoints, state, deadline)
            if candidate is None:
                return

            actual = candidate.distance_m
            error = abs(actual - target)
            if state.offer(candidate, error):
                logger.debug(
                    "New best loop: attempt=%s iter=%s distance=%.0fm error=%.0fm",
                    state.attempt,
                    refine_iter,
                    actual,
                    error,
                )
            if actual <= 0:
                return
            state.leg_distance_m = next_leg_distance(state.leg_distance_m, actual, target, cfg.adjustment_factor)

    def synthesize(self, spec: TargetSpec, *, deadline: Deadline | None = None) -> LoopResult | None:
        """Return the best loop found, or `None` if no attempt produced a routed candidate.

        Raises:
            SearchTimeout: If `deadline` expires mid-search (no partial result is returned).
            ProviderConfigError: If a provider is not configured (e.g., missing API key).
        """
        deadline = deadline or Deadline.unbounded()
        cfg = self._settings
        state = SearchState()

        for attempt in range(cfg.main_attempts):
            state.attempt = attempt
            state.attempts_used = attempt + 1
            self._run_attempt(spec, state, deadline)
            if state.best is not None and state.best_error_m < cfg.accept_error_m:
                break

        meta = {
            "attempts": state.attempts_used,
            "snap_calls": state.snap_calls,
            "route_calls": state.route_calls,
        }
        if state.best is None:
            logger.warning("Random loop search exhausted after %s attempts", state.attempts_used)
            return None

        logger.info(
            "Random loop found: distance=%.0fm target=%.0fm error=%.0fm attempts=%s",
            state.best.distance_m,
            spec.target_distance_m,
            state.best_error_m,
            state.attempts_used,
        )
        return LoopResult(
            candidate=state.best,
            waypoints_used=state.best.waypoints,
            strategy=STRATEGY,
            meta={**meta, "error_m": state.best_error_m},
        )
