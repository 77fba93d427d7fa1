"""
Domain models (Pydantic).

These types are the stable "contract" between the transport layers and the planner:
- API/CLI inputs (`LoopRequest`)
- the generated loop (`LoopResponse`)

The request model also accepts the legacy web-client payload
(`startLocation`, `targetDistance`, `travelMode`, `mandatoryWaypoint`, `enhanceWithAI`)
so older frontends keep working.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from looproute.core.geo import GeoPoint as CoreGeoPoint
from looproute.synth.types import TravelMode

_MODE_ALIASES = {
    "cycling": TravelMode.CYCLING,
    "bicycling": TravelMode.CYCLING,
    "bike": TravelMode.CYCLING,
    "walking": TravelMode.WALKING,
    "walk": TravelMode.WALKING,
}


def normalize_mode(value: Any) -> TravelMode:
    """Map client mode spellings (BICYCLING, walking, ...) to `TravelMode`; unknown -> cycling."""
    if isinstance(value, TravelMode):
        return value
    return _MODE_ALIASES.get(str(value or "").strip().lower(), TravelMode.CYCLING)


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180, validation_alias=AliasChoices("lon", "lng"))

    def to_core(self) -> CoreGeoPoint:
        return CoreGeoPoint(lat=self.lat, lon=self.lon)

    @classmethod
    def from_core(cls, point: CoreGeoPoint) -> "GeoPoint":
        return cls(lat=point.lat, lon=point.lon)


class LoopRequest(BaseModel):
    """End-user request payload for one loop generation."""

    start: GeoPoint = Field(..., validation_alias=AliasChoices("start", "startLocation"))
    target_distance_km: float = Field(
        ..., gt=0, le=500, validation_alias=AliasChoices("target_distance_km", "targetDistance")
    )
    mode: TravelMode = Field(TravelMode.CYCLING, validation_alias=AliasChoices("mode", "travelMode"))
    mandatory_point: GeoPoint | None = None
    mandatory_address: str | None = Field(
        default=None, validation_alias=AliasChoices("mandatory_address", "mandatoryWaypoint")
    )
    enhance: bool = Field(False, validation_alias=AliasChoices("enhance", "enhanceWithAI"))
    seed: int | None = None
    settings_overrides: dict[str, Any] | None = None

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> TravelMode:
        return normalize_mode(value)

    @field_validator("mandatory_address")
    @classmethod
    def _blank_address_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @model_validator(mode="after")
    def _one_mandatory_source(self) -> "LoopRequest":
        if self.mandatory_point is not None and self.mandatory_address is not None:
            raise ValueError("Provide either mandatory_point or mandatory_address, not both.")
        return self


class LoopResponse(BaseModel):
    """A generated loop, ready for a map client."""

    generated_at: datetime
    encoded_path: str
    total_distance_m: float
    total_duration_s: float
    maps_url: str
    mode: TravelMode
    start: GeoPoint
    waypoints: list[GeoPoint]
    meta: dict[str, Any] = Field(default_factory=dict)
