# src/looproute/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/looproute/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `GOOGLE_MAPS_API_KEY`, `LOOPROUTE_ENHANCER_API_KEY`)
- an external YAML file via `LOOPROUTE_CONFIG_PATH`

Design rule:
- Search bounds and thresholds live in YAML, not hard-coded in the synthesizers.
"""

from __future__ import annotations

import copy
import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from looproute.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `looproute.config`."""
    text = resources.files("looproute.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "LoopRoute"
    http_timeout_seconds: float = 15
    request_timeout_seconds: float = 30
    log_level: str = "INFO"


class SearchSettings(BaseModel):
    """Bounds for the random loop search.

    `accept_error_m` is an approximation of "close enough" on real roads; it has no
    derivation beyond being small relative to typical 5-50 km loops.
    """

    main_attempts: int = Field(25, ge=4, le=200)
    refine_iterations: int = Field(3, ge=1, le=20)
    adjustment_factor: float = Field(0.75, ge=0, le=1)
    accept_error_m: float = Field(500, ge=0)
    fallback_bearings: list[float] = Field(default_factory=lambda: [0.0, 90.0, 180.0, 270.0])

    @model_validator(mode="after")
    def _validate_fallback(self) -> "SearchSettings":
        if len(self.fallback_bearings) > self.main_attempts:
            raise ValueError("search.fallback_bearings cannot outnumber search.main_attempts")
        return self


class DetourSettings(BaseModel):
    """One-shot detour construction for loops with a mandatory stop.

    `deficit_divisor` = 4 splits the missing distance over the outbound and inbound legs
    and halves it again, since an off-path point adds about twice its offset.
    """

    accept_error_m: float = Field(500, ge=0)
    deficit_divisor: float = Field(4, gt=0)


class RateLimitSettings(BaseModel):
    max_per_minute: float = 0
    burst: float | None = None


class GoogleSettings(BaseModel):
    directions_url: str
    roads_url: str
    geocode_url: str
    maps_dir_url: str = "https://www.google.com/maps/dir/"
    api_key: str | None = None
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)


class EnhancerSettings(BaseModel):
    enabled: bool = False
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-1.5-flash"
    timeout_seconds: float = 10
    temperature: float = Field(0.4, ge=0, le=2)
    api_key: str | None = None


class ProvidersSettings(BaseModel):
    google: GoogleSettings
    enhancer: EnhancerSettings = Field(default_factory=EnhancerSettings)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    detour: DetourSettings = Field(default_factory=DetourSettings)
    providers: ProvidersSettings


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("LOOPROUTE_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    maps_key = os.getenv("GOOGLE_MAPS_API_KEY")
    if maps_key:
        data.setdefault("providers", {}).setdefault("google", {})["api_key"] = maps_key

    enhancer_key = os.getenv("LOOPROUTE_ENHANCER_API_KEY")
    if enhancer_key:
        enhancer = data.setdefault("providers", {}).setdefault("enhancer", {})
        enhancer["api_key"] = enhancer_key
        enhancer.setdefault("enabled", True)

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("LOOPROUTE_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def _logging_config() -> dict[str, Any]:
    return _read_package_yaml("logging.yaml")


def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (a fresh copy, callers may mutate it)."""
    return copy.deepcopy(_logging_config())
