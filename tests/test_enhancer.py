import json

import pytest

import looproute.providers.enhancer as enhancer_mod
from looproute.config.settings import get_settings
from looproute.core.deadline import Deadline
from looproute.core.geo import GeoPoint
from looproute.errors import ProviderConfigError
from looproute.providers.enhancer import LlmRouteEnhancer, extract_json_array, parse_waypoints
from looproute.synth.types import TravelMode


START = GeoPoint(lat=48.8566, lon=2.3522)
STOP = GeoPoint(lat=48.8738, lon=2.2950)
DRAFT = [GeoPoint(lat=48.865, lon=2.33), STOP, GeoPoint(lat=48.860, lon=2.31)]


def _settings(api_key="gemini-key"):
    settings = get_settings()
    enhancer = settings.providers.enhancer.model_copy(update={"enabled": True, "api_key": api_key})
    providers = settings.providers.model_copy(update={"enhancer": enhancer})
    return settings.model_copy(update={"providers": providers})


def _gemini_reply(text):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def test_improve_posts_prompt_and_pins_mandatory_stop(monkeypatch):
    calls = []
    reply = [
        {"lat": 48.8655, "lng": 2.3305},
        {"lat": STOP.lat + 4e-6, "lng": STOP.lon - 4e-6},
        {"lat": 48.8604, "lng": 2.3102},
    ]

    def fake_post(url, *, payload=None, params=None, headers=None, timeout_seconds=15):
        calls.append({"url": url, "payload": payload, "params": params})
        return _gemini_reply(json.dumps(reply))

    monkeypatch.setattr(enhancer_mod, "post_json", fake_post)

    out = LlmRouteEnhancer(_settings()).improve(
        START, DRAFT, 12.0, TravelMode.CYCLING, STOP, deadline=Deadline.unbounded()
    )

    assert out[0] == GeoPoint(lat=48.8655, lon=2.3305)
    # Echoed within precision: the exact mandatory stop is kept.
    assert out[1] == STOP
    assert calls[0]["url"].endswith(":generateContent")
    assert calls[0]["params"] == {"key": "gemini-key"}
    prompt = calls[0]["payload"]["contents"][0]["parts"][0]["text"]
    assert "Waypoint #2" in prompt
    assert "exactly 3 objects" in prompt


def test_improve_requires_api_key():
    with pytest.raises(ProviderConfigError):
        LlmRouteEnhancer(_settings(api_key=None)).improve(
            START, DRAFT, 12.0, TravelMode.CYCLING, None, deadline=Deadline.unbounded()
        )


def test_improve_rejects_non_array_reply(monkeypatch):
    monkeypatch.setattr(enhancer_mod, "post_json", lambda url, **kwargs: _gemini_reply("Sorry, I cannot help."))
    with pytest.raises(ValueError, match="JSON array"):
        LlmRouteEnhancer(_settings()).improve(
            START, DRAFT, 12.0, TravelMode.WALKING, None, deadline=Deadline.unbounded()
        )


def test_extract_json_array_skips_commentary():
    text = 'Here you go:\n```json\n[{"lat": 1, "lng": 2}]\n```\nEnjoy the ride!'
    assert extract_json_array(text) == [{"lat": 1, "lng": 2}]
    assert extract_json_array('{"lat": 1}') is None
    assert extract_json_array("no json here") is None


def test_parse_waypoints_rejects_wrong_count():
    with pytest.raises(ValueError, match="expected 3"):
        parse_waypoints([{"lat": 1, "lng": 2}], DRAFT, None)


def test_parse_waypoints_rejects_missing_keys():
    with pytest.raises(ValueError, match="lat/lng"):
        parse_waypoints([{"lat": 1}, {"lat": 2}, {"lat": 3}], DRAFT, None)


def test_parse_waypoints_rejects_moved_mandatory_stop():
    items = [{"lat": p.lat, "lng": p.lon} for p in DRAFT]
    items[1] = {"lat": STOP.lat + 0.01, "lng": STOP.lon}
    with pytest.raises(ValueError, match="mandatory stop"):
        parse_waypoints(items, DRAFT, STOP)
