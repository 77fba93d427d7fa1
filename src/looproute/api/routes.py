"""
API routes.

Endpoints:
- POST `/api/generate-loop`: main loop generation entrypoint.
- GET  `/api/settings`: public settings (search knobs, no credentials).
- GET  `/api/health`: liveness + provider configuration status.
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache

from fastapi import APIRouter, HTTPException

from looproute.config.overrides import allowed_override_paths
from looproute.config.settings import get_settings
from looproute.domain.models import LoopRequest, LoopResponse
from looproute.errors import (
    InputValidationError,
    LoopRouteError,
    ProviderConfigError,
    SearchExhausted,
    SearchTimeout,
    UpstreamLookupError,
)
from looproute.planner.generate import Providers, build_providers, generate_loop

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_ERROR: list[tuple[type[LoopRouteError], int]] = [
    (InputValidationError, 400),
    (UpstreamLookupError, 422),
    (SearchExhausted, 502),
    (SearchTimeout, 504),
    (ProviderConfigError, 500),
]


def _status_for(exc: LoopRouteError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


@lru_cache
def _providers() -> Providers:
    return build_providers(get_settings())


@router.post("/api/generate-loop", response_model=LoopResponse)
def post_generate_loop(request: LoopRequest) -> LoopResponse:
    """Generate a closed loop for the validated request."""
    settings = get_settings()
    request_id = uuid.uuid4().hex[:12]
    try:
        result = generate_loop(request, settings=settings, providers=_providers())
    except LoopRouteError as e:
        logger.warning("Loop request %s failed (%s): %s", request_id, e.code, e)
        raise HTTPException(
            status_code=_status_for(e),
            detail={"code": e.code, "message": str(e), "request_id": request_id},
        ) from e
    except Exception as e:
        logger.exception("Loop request %s crashed", request_id)
        raise HTTPException(
            status_code=500,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to generate loop itinerary.", "request_id": request_id},
        ) from e
    return result.model_copy(update={"meta": {**result.meta, "request_id": request_id}})


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return safe-to-expose settings (credentials and provider URLs removed)."""
    settings = get_settings()
    return {
        "app": {
            "name": settings.app.name,
            "request_timeout_seconds": settings.app.request_timeout_seconds,
        },
        "search": settings.search.model_dump(mode="json"),
        "detour": settings.detour.model_dump(mode="json"),
        "enhancer": {"enabled": settings.providers.enhancer.enabled},
        "overridable": allowed_override_paths(),
    }


@router.get("/api/health")
def get_health() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "google_configured": bool(settings.providers.google.api_key),
        "enhancer_configured": bool(
            settings.providers.enhancer.enabled and settings.providers.enhancer.api_key
        ),
    }
