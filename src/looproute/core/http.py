"""
JSON-over-HTTP for the provider adapters.

Google Directions/Roads/Geocoding are plain GETs; the route enhancer POSTs a JSON body.
Both go through `_request_json`, which opens a short-lived `httpx.Client` per call (each
call carries its own deadline-capped timeout) and raises on non-2xx answers so the
caller decides whether the failure is a miss or a hard error.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "looproute/0.1.0 (+https://local)"


def _request_json(
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None,
    headers: dict[str, str] | None,
    json_body: dict[str, Any] | None,
    timeout_seconds: float,
) -> Any:
    merged_headers = {"User-Agent": DEFAULT_USER_AGENT, **(headers or {})}
    with httpx.Client(timeout=timeout_seconds) as client:
        resp = client.request(method, url, params=params, headers=merged_headers, json=json_body)
    if resp.is_error:
        # Never log `params`: they carry the API key.
        logger.warning("%s %s -> HTTP %s", method, resp.request.url.copy_with(query=None), resp.status_code)
    resp.raise_for_status()
    return resp.json()


def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 15,
) -> Any:
    """GET `url` and decode the JSON body.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx status codes.
        ValueError: If the body is not JSON.
    """
    return _request_json("GET", url, params=params, headers=headers, json_body=None, timeout_seconds=timeout_seconds)


def post_json(
    url: str,
    *,
    payload: dict[str, Any],
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 15,
) -> Any:
    """POST `payload` as JSON and decode the JSON answer (same errors as `get_json`)."""
    return _request_json("POST", url, params=params, headers=headers, json_body=payload, timeout_seconds=timeout_seconds)
