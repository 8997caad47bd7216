from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .env import get_env

DEFAULT_UNITS = "metric"
SUPPORTED_UNITS: tuple[str, ...] = ("metric", "imperial")
UNIT_LABELS: dict[str, dict[str, str]] = {
    "metric": {"weight": "kg", "distance": "km"},
    "imperial": {"weight": "lbs", "distance": "mi"},
}


@dataclass(frozen=True)
class PBNotificationSettings:
    enabled: bool = True
    notify_weight: bool = True
    notify_reps: bool = True
    notify_duration: bool = True
    notify_distance: bool = True

    def allows(self, metric: str) -> bool:
        if not self.enabled:
            return False
        return bool(getattr(self, f"notify_{metric}", False))


@dataclass(frozen=True)
class AppConfig:
    units: str = DEFAULT_UNITS
    timezone: str | None = None
    pb_notifications: PBNotificationSettings = field(default_factory=PBNotificationSettings)

    @property
    def weight_unit(self) -> str:
        return UNIT_LABELS[self.units]["weight"]

    @property
    def distance_unit(self) -> str:
        return UNIT_LABELS[self.units]["distance"]

    def tzinfo(self) -> ZoneInfo | None:
        """Zone used to derive local calendar days; None means the system zone."""
        if not self.timezone:
            return None
        return ZoneInfo(self.timezone)


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    env_override = get_env("CONFIG")
    if env_override:
        path = Path(env_override).expanduser()
        return path if path.exists() else None

    default_path = Path("config/workout_tracker.toml")
    if default_path.exists():
        return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_units(raw: Any) -> str:
    if not isinstance(raw, str):
        return DEFAULT_UNITS
    candidate = raw.strip().lower()
    return candidate if candidate in SUPPORTED_UNITS else DEFAULT_UNITS


def _coerce_timezone(raw: Any) -> str | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    name = raw.strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    return name


def _coerce_notifications(raw: Mapping[str, Any] | None) -> PBNotificationSettings:
    base = PBNotificationSettings()
    if not raw:
        return base
    values = {}
    for name in ("enabled", "notify_weight", "notify_reps", "notify_duration", "notify_distance"):
        value = raw.get(name, getattr(base, name))
        values[name] = value if isinstance(value, bool) else getattr(base, name)
    return PBNotificationSettings(**values)


def _build_config(raw: Mapping[str, Any]) -> AppConfig:
    notifications_section = raw.get("pb_notifications")
    return AppConfig(
        units=_coerce_units(raw.get("units")),
        timezone=_coerce_timezone(raw.get("timezone")),
        pb_notifications=_coerce_notifications(
            notifications_section if isinstance(notifications_section, Mapping) else None
        ),
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    if not path:
        return AppConfig()
    data = _load_toml(path)
    return _build_config(data)


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for debug/CLI display."""
    config = get_config()
    notifications = config.pb_notifications
    return {
        "units": config.units,
        "weight_unit": config.weight_unit,
        "distance_unit": config.distance_unit,
        "timezone": config.timezone or "system",
        "pb_notifications": {
            "enabled": notifications.enabled,
            "notify_weight": notifications.notify_weight,
            "notify_reps": notifications.notify_reps,
            "notify_duration": notifications.notify_duration,
            "notify_distance": notifications.notify_distance,
        },
        "source": str(_config_path() or "defaults"),
    }
