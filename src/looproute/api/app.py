# src/looproute/api/app.py
"""
FastAPI application wiring.

`create_app()` builds the JSON API (no UI is served here; map clients call it directly).
Business logic lives in `looproute.api.routes` and `looproute.planner`.

Run locally with: `uvicorn looproute.api.app:app --reload`
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from looproute.config.settings import get_settings
from looproute.core.logging import configure_logging

from .routes import router

_LOCALHOST_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y"}


def _cors_options() -> dict | None:
    """CORS middleware kwargs from env, or None to leave CORS off.

    - LOOPROUTE_CORS_ORIGINS: comma-separated explicit origins
    - LOOPROUTE_CORS_ALLOW_ORIGIN_REGEX: custom origin regex
    - LOOPROUTE_CORS_ALLOW_LOCAL=0: drop the default localhost allowance
    """
    origins = [o.strip() for o in os.getenv("LOOPROUTE_CORS_ORIGINS", "").split(",") if o.strip()]
    regex = os.getenv("LOOPROUTE_CORS_ALLOW_ORIGIN_REGEX", "").strip()
    if not regex and not origins and _env_flag("LOOPROUTE_CORS_ALLOW_LOCAL", True):
        regex = _LOCALHOST_ORIGIN_REGEX
    if not origins and not regex:
        return None
    return {
        "allow_origins": origins,
        "allow_origin_regex": regex or None,
        "allow_credentials": False,
        "allow_methods": ["GET", "POST"],
        "allow_headers": ["*"],
    }


def create_app() -> FastAPI:
    configure_logging()
    api = FastAPI(title="LoopRoute API", version="0.1.0", description=f"{get_settings().app.name} loop generator")
    cors = _cors_options()
    if cors is not None:
        api.add_middleware(CORSMiddleware, **cors)
    api.include_router(router)
    return api


app = create_app()
