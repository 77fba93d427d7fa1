"""
Search data types.

These are plain frozen dataclasses shared by both synthesizers and the planner. They are
deliberately independent from the pydantic request/response models in
`looproute.domain.models`, so the search can run without the API layer.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from looproute.core.geo import GeoPoint

# Process-wide random source shared by both synthesizers; tests and `seed` pass their own.
DEFAULT_RNG = random.Random()


class TravelMode(str, Enum):
    CYCLING = "cycling"
    WALKING = "walking"


@dataclass(frozen=True)
class TargetSpec:
    """What one loop request asks for. Read-only for the whole search."""

    start: GeoPoint
    target_distance_m: float
    mode: TravelMode = TravelMode.CYCLING
    mandatory_point: GeoPoint | None = None

    def __post_init__(self) -> None:
        if not self.target_distance_m > 0:
            raise ValueError("target_distance_m must be > 0")

    @property
    def target_distance_km(self) -> float:
        return self.target_distance_m / 1000


@dataclass(frozen=True)
class RouteLeg:
    distance_m: float
    duration_s: float


@dataclass(frozen=True)
class RouteResult:
    """One routed path as returned by a `RouteOracle`."""

    legs: tuple[RouteLeg, ...]
    encoded_path: str

    @property
    def distance_m(self) -> float:
        return sum(leg.distance_m for leg in self.legs)

    @property
    def duration_s(self) -> float:
        return sum(leg.duration_s for leg in self.legs)


@dataclass(frozen=True)
class Candidate:
    """A fully routed loop: origin -> waypoints -> destination."""

    origin: GeoPoint
    destination: GeoPoint
    waypoints: tuple[GeoPoint, ...]
    route: RouteResult

    @property
    def distance_m(self) -> float:
        return self.route.distance_m

    @property
    def duration_s(self) -> float:
        return self.route.duration_s

    @property
    def encoded_path(self) -> str:
        return self.route.encoded_path


@dataclass
class SearchState:
    """Mutable bookkeeping for one random-loop search (never shared across requests)."""

    attempt: int = 0
    refine_iter: int = 0
    leg_distance_m: float = 0.0
    best: Candidate | None = None
    best_error_m: float = float("inf")
    attempts_used: int = 0
    snap_calls: int = 0
    route_calls: int = 0

    def offer(self, candidate: Candidate, error_m: float) -> bool:
        """Keep `candidate` if it beats the best error seen so far in this search."""
        if error_m < self.best_error_m:
            self.best = candidate
            self.best_error_m = error_m
            return True
        return False


@dataclass(frozen=True)
class LoopResult:
    """A synthesizer's answer: the chosen candidate and the waypoints that produced it."""

    candidate: Candidate
    waypoints_used: tuple[GeoPoint, ...]
    strategy: str
    meta: dict[str, Any] = field(default_factory=dict)
