"""
`.env` discovery for local development.

Google Maps and enhancer keys usually live in a repo-local `.env`. The API (uvicorn), the
CLI and pytest start from different working directories, so the file is searched for
upwards from the CWD, stopping at the first directory that looks like a checkout.
`LOOPROUTE_ENV_FILE` points at an explicit file instead.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_FILE_VAR = "LOOPROUTE_ENV_FILE"


def find_env_file(start: Path | None = None) -> Path | None:
    """Return the `.env` to load, or None when there is none."""
    explicit = os.getenv(ENV_FILE_VAR)
    if explicit:
        path = Path(explicit).expanduser().resolve()
        return path if path.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return candidate
        # Do not wander out of the checkout into unrelated parent directories.
        if (directory / "pyproject.toml").is_file() or (directory / ".git").exists():
            return None
    return None


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load `.env` once (existing process variables win); returns the file loaded."""
    env_path = find_env_file()
    if env_path is None:
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path
