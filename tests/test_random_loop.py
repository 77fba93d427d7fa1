import random

import httpx
import pytest

from looproute.config.settings import SearchSettings
from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint, haversine_m
from looproute.errors import ProviderConfigError, SearchTimeout
from looproute.synth.random_loop import (
    RandomLoopSynthesizer,
    base_bearing,
    leg_bearings,
    next_leg_distance,
)
from looproute.synth.types import RouteLeg, RouteResult, TargetSpec, TravelMode


START = GeoPoint(lat=48.8566, lon=2.3522)


class IdentitySnapper:
    def __init__(self):
        self.points: list[GeoPoint] = []

    def snap(self, point, *, deadline):
        self.points.append(point)
        return point


class GeometryOracle:
    """Reports the straight-line length of origin -> waypoints -> destination."""

    def __init__(self):
        self.calls: list[tuple[GeoPoint, GeoPoint, list[GeoPoint]]] = []

    def route(self, origin, destination, waypoints, mode, *, deadline):
        self.calls.append((origin, destination, list(waypoints)))
        stops = [origin, *waypoints, destination]
        legs = tuple(
            RouteLeg(distance_m=haversine_m(a, b), duration_s=haversine_m(a, b) / 5)
            for a, b in zip(stops, stops[1:])
        )
        return RouteResult(legs=legs, encoded_path=f"path-{len(self.calls)}")


class ScriptedOracle:
    """Returns the scripted total distances in order (None = no route)."""

    def __init__(self, distances):
        self._distances = list(distances)
        self.calls = 0

    def route(self, origin, destination, waypoints, mode, *, deadline):
        self.calls += 1
        value = self._distances.pop(0) if self._distances else None
        if value is None:
            return None
        return RouteResult(legs=(RouteLeg(distance_m=value, duration_s=value / 5),), encoded_path=f"p{self.calls}")


def _spec(km=10.0):
    return TargetSpec(start=START, target_distance_m=km * 1000, mode=TravelMode.CYCLING)


def test_next_leg_distance_follows_damped_update_law():
    leg, actual, target, f = 2500.0, 8000.0, 10000.0, 0.75
    assert next_leg_distance(leg, actual, target, f) == pytest.approx(leg * ((1 - f) + f * target / actual))


def test_next_leg_distance_factor_extremes():
    assert next_leg_distance(2500.0, 8000.0, 10000.0, 0.0) == pytest.approx(2500.0)
    assert next_leg_distance(2500.0, 8000.0, 10000.0, 1.0) == pytest.approx(2500.0 * 10000 / 8000)


def test_base_bearing_uses_random_then_fixed_sweep():
    settings = SearchSettings(main_attempts=6)

    class FixedRng:
        def random(self):
            return 0.5

    bearings = [base_bearing(i, settings, FixedRng()) for i in range(6)]
    assert bearings == [180.0, 180.0, 0.0, 90.0, 180.0, 270.0]


def test_leg_bearings_are_90_degrees_apart_and_wrap():
    assert leg_bearings(300.0) == (300.0, 30.0, 120.0)


def test_scenario_geometry_oracle_converges_within_threshold():
    oracle = GeometryOracle()
    snapper = IdentitySnapper()
    synth = RandomLoopSynthesizer(oracle, snapper, settings=SearchSettings(), rng=random.Random(42))

    result = synth.synthesize(_spec(10.0))

    assert result is not None
    assert abs(result.candidate.distance_m - 10_000) < 500
    assert result.meta["attempts"] <= 25
    assert len(result.waypoints_used) == 3
    # Accepted on the first attempt, so the search stopped early.
    assert result.meta["attempts"] == 1


def test_every_candidate_is_a_closed_loop_from_start():
    oracle = GeometryOracle()
    synth = RandomLoopSynthesizer(oracle, IdentitySnapper(), rng=random.Random(1))

    result = synth.synthesize(_spec(7.5))

    assert oracle.calls
    for origin, destination, waypoints in oracle.calls:
        assert origin == START
        assert destination == START
        assert len(waypoints) == 3
    assert result.candidate.origin == START
    assert result.candidate.destination == START


def test_leg_distance_is_rescaled_between_refine_iterations():
    snapper = IdentitySnapper()
    oracle = ScriptedOracle([8000, 8000, 8000])
    settings = SearchSettings(main_attempts=4, refine_iterations=3, accept_error_m=500)
    synth = RandomLoopSynthesizer(oracle, snapper, settings=settings, rng=random.Random(0))

    synth.synthesize(_spec(10.0))

    # First projected point of each refine iteration sits one leg away from start.
    first_points = snapper.points[0:9:3]
    legs = [haversine_m(START, p) for p in first_points]
    assert legs[0] == pytest.approx(2500, abs=0.5)
    assert legs[1] == pytest.approx(2500 * (0.25 + 0.75 * 10000 / 8000), abs=0.5)
    assert legs[2] == pytest.approx(legs[1] * (0.25 + 0.75 * 10000 / 8000), abs=0.5)


def test_snap_miss_abandons_attempt_and_search_moves_on():
    class FlakySnapper(IdentitySnapper):
        def snap(self, point, *, deadline):
            if not self.points:
                self.points.append(point)
                raise httpx.ConnectError("roads down")
            return super().snap(point, deadline=deadline)

    oracle = GeometryOracle()
    synth = RandomLoopSynthesizer(oracle, FlakySnapper(), rng=random.Random(3))

    result = synth.synthesize(_spec(10.0))

    assert result is not None
    assert result.meta["attempts"] == 2
    # Attempt 0: one failed snap. Attempt 1: three refine iterations of three snaps.
    assert result.meta["snap_calls"] == 1 + 9
    assert result.meta["route_calls"] == 3


def test_snap_returning_none_skips_remaining_bearings():
    class NoRoadsSnapper:
        calls = 0

        def snap(self, point, *, deadline):
            NoRoadsSnapper.calls += 1
            return None

    oracle = ScriptedOracle([])
    settings = SearchSettings(main_attempts=6)
    synth = RandomLoopSynthesizer(oracle, NoRoadsSnapper(), settings=settings, rng=random.Random(5))

    assert synth.synthesize(_spec(10.0)) is None
    assert NoRoadsSnapper.calls == 6
    assert oracle.calls == 0


def test_oracle_miss_abandons_attempt():
    class FirstMissOracle(GeometryOracle):
        def route(self, origin, destination, waypoints, mode, *, deadline):
            if not self.calls:
                self.calls.append((origin, destination, list(waypoints)))
                return None
            return super().route(origin, destination, waypoints, mode, deadline=deadline)

    snapper = IdentitySnapper()
    synth = RandomLoopSynthesizer(FirstMissOracle(), snapper, rng=random.Random(9))

    result = synth.synthesize(_spec(10.0))

    assert result.meta["attempts"] == 2
    assert result.meta["snap_calls"] == 3 + 9
    assert result.meta["route_calls"] == 1 + 3


def test_best_candidate_is_tracked_across_attempts():
    # attempt 0: 9000 is best; attempt 1 is worse everywhere; attempts 2-3 never route.
    oracle = ScriptedOracle([9000, 13000, 14000, 7000, 6000, 12000, None, None])
    settings = SearchSettings(main_attempts=4, refine_iterations=3, accept_error_m=500)
    synth = RandomLoopSynthesizer(oracle, IdentitySnapper(), settings=settings, rng=random.Random(11))

    result = synth.synthesize(_spec(10.0))

    assert result.candidate.distance_m == 9000
    assert result.candidate.encoded_path == "p1"
    assert result.meta["error_m"] == 1000
    assert result.meta["attempts"] == 4


def test_exhausted_search_returns_none():
    oracle = ScriptedOracle([None] * 100)
    synth = RandomLoopSynthesizer(oracle, IdentitySnapper(), settings=SearchSettings(main_attempts=5))
    assert synth.synthesize(_spec(10.0)) is None
    assert oracle.calls == 5


def test_expired_deadline_aborts_search():
    synth = RandomLoopSynthesizer(GeometryOracle(), IdentitySnapper(), rng=random.Random(0))
    with pytest.raises(SearchTimeout):
        synth.synthesize(_spec(10.0), deadline=Deadline(seconds=0))


def test_timeout_raised_by_provider_is_not_swallowed():
    class TimingOutSnapper:
        def snap(self, point, *, deadline):
            raise SearchTimeout("budget spent")

    synth = RandomLoopSynthesizer(GeometryOracle(), TimingOutSnapper(), rng=random.Random(0))
    with pytest.raises(SearchTimeout):
        synth.synthesize(_spec(10.0))


def test_missing_provider_config_is_not_treated_as_snap_miss():
    class UnconfiguredSnapper:
        def snap(self, point, *, deadline):
            raise ProviderConfigError("no key")

    synth = RandomLoopSynthesizer(GeometryOracle(), UnconfiguredSnapper(), rng=random.Random(0))
    with pytest.raises(ProviderConfigError):
        synth.synthesize(_spec(10.0))


def test_seeded_rng_makes_search_reproducible():
    def run():
        synth = RandomLoopSynthesizer(GeometryOracle(), IdentitySnapper(), rng=random.Random(1234))
        return synth.synthesize(_spec(12.0)).waypoints_used

    assert run() == run()
