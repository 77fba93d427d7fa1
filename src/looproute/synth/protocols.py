"""
Collaborator contracts for the loop search.

The synthesizers only ever talk to these three protocols; concrete adapters live in
`looproute.providers`. Tests plug in small stub classes with the same signatures.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint
from looproute.synth.types import RouteResult, TravelMode


class RouteOracle(Protocol):
    def route(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        waypoints: Sequence[GeoPoint],
        mode: TravelMode,
        *,
        deadline: Deadline,
    ) -> RouteResult | None:
        """Route through `waypoints` in order. `None` means no route exists."""
        ...


class RoadSnapper(Protocol):
    def snap(self, point: GeoPoint, *, deadline: Deadline) -> GeoPoint | None:
        """Nearest routable point, or `None` if `point` is not near any routable way."""
        ...


class RouteEnhancer(Protocol):
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
        """Return exactly `len(draft)` waypoints, keeping `mandatory_point` in place."""
        ...
