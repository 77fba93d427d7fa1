from __future__ import annotations

# This module is the "orchestrator" for one loop request.
# It wires together:
# - domain input (LoopRequest)
# - providers (Google Directions/Roads/Geocoding + optional LLM enhancer)
# - the loop synthesizers (random search, or detour construction around a mandatory stop)
# - the final authoritative re-route and the response payload (LoopResponse)
#
# Failure policy:
# - snap/oracle misses are absorbed inside the synthesizers,
# - enhancer failures silently fall back to the draft waypoints,
# - only bad input, lookup failures, timeouts and total search exhaustion reach the caller.

import logging
import random
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Sequence

from looproute.config.overrides import apply_settings_overrides
from looproute.config.settings import Settings, get_settings
from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint
from looproute.domain.models import GeoPoint as ApiGeoPoint
from looproute.domain.models import LoopRequest, LoopResponse
from looproute.errors import (
    FATAL_ERRORS,
    InputValidationError,
    SearchExhausted,
    SearchTimeout,
    UpstreamLookupError,
)
from looproute.providers.enhancer import LlmRouteEnhancer
from looproute.providers.google_common import GoogleMapsTransport, build_rate_limiter
from looproute.providers.google_directions import GoogleDirectionsOracle
from looproute.providers.google_geocoding import GoogleGeocoder
from looproute.providers.google_roads import GoogleRoadsSnapper
from looproute.synth.protocols import RoadSnapper, RouteEnhancer, RouteOracle
from looproute.synth.random_loop import RandomLoopSynthesizer
from looproute.synth.types import Candidate, LoopResult, TargetSpec, TravelMode
from looproute.synth.waypoint_loop import WaypointLoopSynthesizer

logger = logging.getLogger(__name__)

# Google Maps `dirflg` per travel mode (b = bicycling, w = walking).
DIRFLG = {TravelMode.CYCLING: "b", TravelMode.WALKING: "w"}


@dataclass
class Providers:
    """The external collaborators one request talks to."""

    oracle: RouteOracle
    snapper: RoadSnapper
    geocoder: GoogleGeocoder | None = None
    enhancer: RouteEnhancer | None = None


@dataclass(frozen=True)
class PlannedLoop:
    """Final outcome of the planner before it is rendered into a `LoopResponse`."""

    spec: TargetSpec
    candidate: Candidate
    waypoints: tuple[GeoPoint, ...]
    strategy: str
    enhanced: bool
    meta: dict[str, Any] = field(default_factory=dict)


def build_providers(settings: Settings) -> Providers:
    """Create the Google-backed providers (and the enhancer, if enabled)."""
    transport = GoogleMapsTransport(settings, rate_limiter=build_rate_limiter(settings))
    enhancer = LlmRouteEnhancer(settings) if settings.providers.enhancer.enabled else None
    return Providers(
        oracle=GoogleDirectionsOracle(transport),
        snapper=GoogleRoadsSnapper(transport),
        geocoder=GoogleGeocoder(transport),
        enhancer=enhancer,
    )


def maps_link(start: GeoPoint, waypoints: Sequence[GeoPoint], mode: TravelMode, *, base_url: str) -> str:
    """Google Maps directions link for the loop start -> waypoints -> start."""
    stops = [start.as_param(), *(p.as_param() for p in waypoints), start.as_param()]
    return f"{base_url.rstrip('/')}/{'/'.join(stops)}?dirflg={DIRFLG[mode]}"


def synthesize(
    spec: TargetSpec,
    *,
    settings: Settings,
    oracle: RouteOracle,
    snapper: RoadSnapper,
    deadline: Deadline,
    rng: random.Random | None = None,
) -> LoopResult:
    """Run the synthesizer matching `spec` (mandatory stop or not).

    Raises:
        SearchExhausted: If the synthesizer produced no routable candidate.
    """
    if spec.mandatory_point is not None:
        result = WaypointLoopSynthesizer(oracle, settings=settings.detour, rng=rng).synthesize(
            spec, deadline=deadline
        )
    else:
        result = RandomLoopSynthesizer(oracle, snapper, settings=settings.search, rng=rng).synthesize(
            spec, deadline=deadline
        )
    if result is None:
        raise SearchExhausted("Could not generate a valid route.")
    return result


def enhance_waypoints(
    enhancer: RouteEnhancer,
    spec: TargetSpec,
    draft: Sequence[GeoPoint],
    *,
    deadline: Deadline,
) -> tuple[GeoPoint, ...] | None:
    """Ask the enhancer for better waypoints; `None` means "use the draft".

    The output is accepted only if it has the draft's length and keeps the mandatory
    stop unchanged at its position.
    """
    try:
        improved = enhancer.improve(
            spec.start,
            list(draft),
            spec.target_distance_km,
            spec.mode,
            spec.mandatory_point,
            deadline=deadline,
        )
    except SearchTimeout:
        raise
    except Exception as exc:
        logger.warning("Route enhancement failed; using draft waypoints: %s", exc)
        return None

    if not isinstance(improved, (list, tuple)) or len(improved) != len(draft):
        logger.warning("Route enhancement returned a malformed waypoint list; using draft waypoints.")
        return None
    if not all(isinstance(p, GeoPoint) for p in improved):
        logger.warning("Route enhancement returned non-coordinate entries; using draft waypoints.")
        return None
    if spec.mandatory_point is not None:
        index = list(draft).index(spec.mandatory_point)
        if improved[index] != spec.mandatory_point:
            logger.warning("Route enhancement moved the mandatory stop; using draft waypoints.")
            return None
    return tuple(improved)


def _reroute(
    oracle: RouteOracle,
    spec: TargetSpec,
    waypoints: Sequence[GeoPoint],
    deadline: Deadline,
) -> Candidate | None:
    deadline.check()
    try:
        route = oracle.route(spec.start, spec.start, list(waypoints), spec.mode, deadline=deadline)
    except FATAL_ERRORS:
        raise
    except Exception as exc:
        logger.warning("Final re-route failed: %s", exc)
        return None
    if route is None:
        return None
    return Candidate(origin=spec.start, destination=spec.start, waypoints=tuple(waypoints), route=route)


def plan_loop(
    spec: TargetSpec,
    *,
    settings: Settings,
    providers: Providers,
    enhance: bool = False,
    deadline: Deadline | None = None,
    rng: random.Random | None = None,
) -> PlannedLoop:
    """Synthesize a loop, optionally enhance it, and re-route it once for the final numbers."""
    deadline = deadline or Deadline.unbounded()

    result = synthesize(
        spec,
        settings=settings,
        oracle=providers.oracle,
        snapper=providers.snapper,
        deadline=deadline,
        rng=rng,
    )
    draft = result.waypoints_used

    # Enhancement is best-effort: a missing enhancer behaves exactly like a failed one.
    enhanced_waypoints: tuple[GeoPoint, ...] | None = None
    if enhance and providers.enhancer is not None:
        enhanced_waypoints = enhance_waypoints(providers.enhancer, spec, draft, deadline=deadline)
    elif enhance:
        logger.info("Enhancement requested but no enhancer is configured; using draft waypoints.")

    waypoints = enhanced_waypoints or draft
    final = _reroute(providers.oracle, spec, waypoints, deadline)
    if final is None and enhanced_waypoints is not None:
        logger.warning("Enhanced waypoints could not be routed; falling back to the draft.")
        enhanced_waypoints = None
        waypoints = draft
        final = _reroute(providers.oracle, spec, waypoints, deadline)
    if final is None:
        # The synthesizer already routed exactly these waypoints.
        final = result.candidate

    error_m = abs(final.distance_m - spec.target_distance_m)
    return PlannedLoop(
        spec=spec,
        candidate=final,
        waypoints=tuple(waypoints),
        strategy=result.strategy,
        enhanced=enhanced_waypoints is not None,
        meta={**result.meta, "final_error_m": round(error_m, 1)},
    )


def _rebind_providers(providers: Providers, settings: Settings) -> Providers:
    """Point long-lived providers at per-request settings where they read them at call time.

    The Google adapters only use keys, URLs and timeouts, none of which can be overridden.
    """
    rebind = getattr(providers.enhancer, "with_settings", None)
    if rebind is None:
        return providers
    return replace(providers, enhancer=rebind(settings))


def _resolve_mandatory_point(
    request: LoopRequest, providers: Providers, deadline: Deadline
) -> GeoPoint | None:
    if request.mandatory_point is not None:
        return request.mandatory_point.to_core()
    if request.mandatory_address is None:
        return None
    if providers.geocoder is None:
        raise UpstreamLookupError("Address lookup is not available; send mandatory_point coordinates.")
    return providers.geocoder.lookup(request.mandatory_address, deadline=deadline)


def generate_loop(
    request: LoopRequest,
    *,
    settings: Settings | None = None,
    providers: Providers | None = None,
    deadline: Deadline | None = None,
    rng: random.Random | None = None,
) -> LoopResponse:
    """End-to-end entrypoint used by the API and the CLI."""
    started = time.perf_counter()
    base_settings = settings or get_settings()
    try:
        settings = apply_settings_overrides(base_settings, request.settings_overrides)
    except ValueError as exc:
        raise InputValidationError(str(exc)) from exc

    if providers is None:
        providers = build_providers(settings)
    elif settings is not base_settings:
        providers = _rebind_providers(providers, settings)
    deadline = deadline or Deadline(seconds=settings.app.request_timeout_seconds)
    if rng is None and request.seed is not None:
        rng = random.Random(request.seed)

    mandatory_point = _resolve_mandatory_point(request, providers, deadline)
    try:
        spec = TargetSpec(
            start=request.start.to_core(),
            target_distance_m=request.target_distance_km * 1000,
            mode=request.mode,
            mandatory_point=mandatory_point,
        )
    except ValueError as exc:
        raise InputValidationError(str(exc)) from exc

    logger.info(
        "Generating %s loop: start=%s target=%.1fkm mandatory=%s",
        spec.mode.value,
        spec.start.as_param(),
        spec.target_distance_km,
        mandatory_point.as_param() if mandatory_point else None,
    )
    planned = plan_loop(
        spec,
        settings=settings,
        providers=providers,
        enhance=request.enhance,
        deadline=deadline,
        rng=rng,
    )

    candidate = planned.candidate
    return LoopResponse(
        generated_at=datetime.now(timezone.utc),
        encoded_path=candidate.encoded_path,
        total_distance_m=candidate.distance_m,
        total_duration_s=candidate.duration_s,
        maps_url=maps_link(
            spec.start,
            planned.waypoints,
            spec.mode,
            base_url=settings.providers.google.maps_dir_url,
        ),
        mode=spec.mode,
        start=ApiGeoPoint.from_core(spec.start),
        waypoints=[ApiGeoPoint.from_core(p) for p in planned.waypoints],
        meta={
            **planned.meta,
            "strategy": planned.strategy,
            "enhanced": planned.enhanced,
            "target_distance_m": spec.target_distance_m,
            "elapsed_ms": int((time.perf_counter() - started) * 1000),
        },
    )
