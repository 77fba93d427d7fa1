"""
Per-request settings overrides.

A loop request (API `settings_overrides`, CLI `--set section.key=VALUE`) may retune the
search for a single run, e.g. more attempts in a sparse rural area or a looser acceptance
threshold. Only whitelisted knobs can change: API keys and provider URLs never can.
The merged payload is re-validated as a whole `Settings`, so range checks still apply.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping

from looproute.config.settings import Settings

logger = logging.getLogger(__name__)

# `True` opens a whole subtree; a nested dict opens only the listed keys.
ALLOWED_SETTINGS_OVERRIDES_TREE: dict[str, Any] = {
    "search": True,
    "detour": True,
    "providers": {
        "enhancer": {"temperature": True},
    },
}


def allowed_override_paths(tree: Mapping[str, Any] = ALLOWED_SETTINGS_OVERRIDES_TREE, prefix: str = "") -> list[str]:
    """Dotted paths clients may override (a path also opens everything below it)."""
    paths: list[str] = []
    for key, allowed in tree.items():
        dotted = f"{prefix}{key}"
        if allowed is True:
            paths.append(dotted)
        else:
            paths.extend(allowed_override_paths(allowed, prefix=f"{dotted}."))
    return paths


def _walk(overrides: Mapping[str, Any], tree: Mapping[str, Any], path: tuple[str, ...]) -> Iterator[tuple[tuple[str, ...], Any]]:
    """Yield `(path, value)` leaves of `overrides` that the whitelist opens."""
    for key, value in overrides.items():
        here = (*path, key)
        allowed = tree.get(key)
        if allowed is None:
            raise ValueError(f"settings_overrides contains a disallowed key: '{'.'.join(here)}'")
        if allowed is True:
            yield here, value
        elif isinstance(value, Mapping):
            yield from _walk(value, allowed, here)
        else:
            raise ValueError(f"settings_overrides key '{'.'.join(here)}' must be a mapping")


def _set_path(target: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    *parents, leaf = path
    node = target
    for key in parents:
        node = node.setdefault(key, {})
    current = node.get(leaf)
    if isinstance(current, dict) and isinstance(value, Mapping):
        for sub_key, sub_value in value.items():
            _set_path(current, (sub_key,), sub_value)
    else:
        node[leaf] = value


def apply_settings_overrides(settings: Settings, overrides: Mapping[str, Any] | None) -> Settings:
    """Return a copy of `settings` with `overrides` merged in (the input is never mutated).

    Raises:
        ValueError: On a disallowed key or a value that fails validation.
    """
    if not overrides:
        return settings

    leaves = list(_walk(overrides, ALLOWED_SETTINGS_OVERRIDES_TREE, ()))
    payload = settings.model_dump(mode="python")
    for path, value in leaves:
        _set_path(payload, path, value)

    logger.debug("Applying settings overrides: %s", ", ".join(".".join(p) for p, _ in leaves))
    return Settings.model_validate(payload)
