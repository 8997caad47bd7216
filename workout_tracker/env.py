from __future__ import annotations

import os

PRIMARY_PREFIX = "WORKOUT_TRACKER_"


def get_env(name: str, default: str | None = None) -> str | None:
    """Resolve a `WORKOUT_TRACKER_*` environment variable."""
    value = os.getenv(f"{PRIMARY_PREFIX}{name}")
    if value is not None:
        return value
    return default
