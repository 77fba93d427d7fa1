"""
Logging setup shared by the API and the CLI.

The handler/formatter layout lives in `src/looproute/config/logging.yaml`; the level comes
from `app.log_level` (env `LOOPROUTE_LOG_LEVEL`) unless the CLI passes one explicitly.
"""

from __future__ import annotations

import logging
import logging.config

from looproute.config.settings import get_logging_config, get_settings

# Kept at WARNING at every app level: they log one line per HTTP call.
_CHATTY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str | None = None) -> None:
    """Apply the packaged dictConfig at `level` (or the configured default)."""
    resolved = (level or get_settings().app.log_level).upper()
    if not isinstance(logging.getLevelName(resolved), int):
        raise ValueError(f"Unknown log level: {resolved!r}")

    config = get_logging_config()
    config.setdefault("root", {})["level"] = resolved
    for handler in config.get("handlers", {}).values():
        handler["level"] = resolved

    loggers = config.setdefault("loggers", {})
    for name in _CHATTY_LOGGERS:
        loggers.setdefault(name, {})["level"] = "WARNING"

    logging.config.dictConfig(config)
