from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any, Mapping, Optional

LOGGER = logging.getLogger(__name__)

METRIC_FIELDS: tuple[str, ...] = ("reps", "weight", "duration", "distance")
INTEGER_METRICS = frozenset({"reps", "duration"})
PB_METRICS: tuple[str, ...] = ("weight", "reps", "duration", "distance")
METRIC_LABELS = {
    "reps": "Reps",
    "weight": "Weight",
    "duration": "Duration",
    "distance": "Distance",
}

__all__ = [
    "METRIC_FIELDS",
    "PB_METRICS",
    "ValidationError",
    "MissingMetricsError",
    "BodyweightNotConfiguredError",
    "DefinitionNotFoundError",
    "ExerciseType",
    "ExerciseDefinition",
    "StoredWorkoutRecord",
    "SetEntry",
    "ExerciseGroup",
    "FilterSpec",
    "PBDelta",
    "parse_optional_number",
    "parse_muscles",
    "parse_timestamp",
    "local_date",
]


class ValidationError(ValueError):
    """Raised when user-supplied data cannot be normalised safely."""


class MissingMetricsError(ValidationError):
    """No enabled metric carries a value, so there is nothing to log."""


class BodyweightNotConfiguredError(ValidationError):
    """A bodyweight exercise needs the user's bodyweight, which is not set."""

    def __init__(self, message: str = "bodyweight not configured") -> None:
        super().__init__(message)


class DefinitionNotFoundError(ValidationError):
    """An exercise definition could not be resolved for a name or identifier."""


class ExerciseType(str, Enum):
    RESISTANCE = "Resistance"
    BODYWEIGHT = "BodyWeight"
    CARDIO = "Cardio"

    @classmethod
    def parse(cls, value: Any, *, field: str = "exercise_type") -> "ExerciseType":
        """
        Accept the enum itself or any of the spellings the backend has used
        ("BodyWeight", "body-weight", "bodyweight", "Resistance", ...).
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be text; received {value!r}.")
        key = value.strip().lower().replace("-", "").replace("_", "").replace(" ", "")
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValidationError(
            f"{field} must be one of Resistance, BodyWeight, Cardio; received {value!r}."
        )


def parse_optional_number(value: Any, *, integer: bool = False) -> float | int | None:
    """
    Resolve free-form numeric input to a number or None.

    Empty, whitespace-only, non-numeric and non-finite input all mean "absent"
    rather than zero. With `integer=True` fractional values are truncated toward
    zero, the way form inputs for whole quantities are read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    if integer:
        return int(number)
    if isinstance(value, int):
        return value
    return number


def parse_muscles(payload: Any) -> frozenset[str]:
    """Normalise a comma-separated muscle string (or sequence) to a lower-case set."""
    if payload is None:
        return frozenset()
    if isinstance(payload, str):
        tokens = payload.split(",")
    elif isinstance(payload, (list, tuple, set, frozenset)):
        tokens = [str(token) for token in payload]
    else:
        return frozenset()
    return frozenset(token.strip().lower() for token in tokens if token.strip())


def parse_timestamp(value: Any) -> date | datetime | None:
    """
    Parse a stored timestamp, returning None when it cannot be read.

    Date-only text ("2024-05-01") yields a `date`; anything with a time part
    yields a `datetime`, aware when the text carries an offset or `Z`.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    candidate = value.strip()
    if not candidate:
        return None
    if len(candidate) == 10:
        try:
            return date.fromisoformat(candidate)
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def local_date(value: Any, tz: tzinfo | None = None) -> date | None:
    """
    Calendar day of a timestamp as the user sees it.

    Aware timestamps are converted into `tz` (the system zone when None);
    naive timestamps are already local; date-only values carry no time of day
    and are returned unchanged.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    if isinstance(parsed, datetime):
        if parsed.tzinfo is not None:
            try:
                return parsed.astimezone(tz).date()
            except (OverflowError, ValueError):
                return None
        return parsed.date()
    return parsed


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> Optional[int]:
    number = parse_optional_number(value, integer=True)
    return int(number) if number is not None else None


def _record_type(record_id: int, raw: Any) -> ExerciseType:
    if not raw:
        return ExerciseType.RESISTANCE
    try:
        return ExerciseType.parse(raw)
    except ValidationError:
        LOGGER.warning("Workout %s has unknown exercise type %r; treating as Resistance.", record_id, raw)
        return ExerciseType.RESISTANCE


def _coerce_flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(frozen=True)
class ExerciseDefinition:
    """An exercise the user can log, with the metrics it records."""

    name: str
    exercise_type: ExerciseType = ExerciseType.RESISTANCE
    id: Optional[int] = None
    muscles: Optional[str] = None
    log_weight: bool = True
    log_reps: bool = True
    log_duration: bool = False
    log_distance: bool = False
    is_active: bool = True
    alias_target: Optional[str] = None

    @property
    def muscle_set(self) -> frozenset[str]:
        return parse_muscles(self.muscles)

    @property
    def is_bodyweight(self) -> bool:
        return self.exercise_type is ExerciseType.BODYWEIGHT

    @property
    def enabled_metrics(self) -> tuple[str, ...]:
        return tuple(name for name in METRIC_FIELDS if self.logs(name))

    def logs(self, metric: str) -> bool:
        return bool(getattr(self, f"log_{metric}", False))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ExerciseDefinition":
        name = _optional_text(payload.get("name"))
        if not name:
            raise ValidationError("exercise definition name is required.")
        raw_type = payload.get("exercise_type", payload.get("type_", payload.get("type")))
        return cls(
            name=name,
            exercise_type=ExerciseType.parse(raw_type) if raw_type else ExerciseType.RESISTANCE,
            id=_optional_int(payload.get("id")),
            muscles=_optional_text(payload.get("muscles")),
            log_weight=_coerce_flag(payload.get("log_weight"), True),
            log_reps=_coerce_flag(payload.get("log_reps"), True),
            log_duration=_coerce_flag(payload.get("log_duration"), False),
            log_distance=_coerce_flag(payload.get("log_distance"), False),
            is_active=_coerce_flag(payload.get("is_active"), True),
            alias_target=_optional_text(payload.get("alias_target")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "exercise_type": self.exercise_type.value,
            "muscles": self.muscles,
            "log_weight": self.log_weight,
            "log_reps": self.log_reps,
            "log_duration": self.log_duration,
            "log_distance": self.log_distance,
            "is_active": self.is_active,
            "alias_target": self.alias_target,
        }


@dataclass(frozen=True)
class StoredWorkoutRecord:
    """
    One persisted logging event.

    `sets` compresses that many identical sets into a single row; the record is
    only ever replaced wholesale through the persistence collaborator.
    """

    id: int
    exercise_name: str
    date: Any
    exercise_type: ExerciseType = ExerciseType.RESISTANCE
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    duration: Optional[float] = None
    distance: Optional[float] = None
    notes: Optional[str] = None
    bodyweight: Optional[float] = None
    exercise_id: Optional[int] = None
    muscles: Optional[str] = None

    @property
    def effective_sets(self) -> int:
        if self.sets is not None and self.sets > 0:
            return self.sets
        return 1

    def metrics(self) -> dict[str, float | int]:
        """Metric values that are present on the record, in display order."""
        payload: dict[str, float | int] = {}
        for name in METRIC_FIELDS:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "StoredWorkoutRecord":
        """Build a record from collaborator JSON, raising ValidationError on bad rows."""
        record_id = _optional_int(payload.get("id"))
        if record_id is None:
            raise ValidationError(f"workout id is required; received {payload.get('id')!r}.")
        name = _optional_text(payload.get("exercise_name", payload.get("exercise")))
        if not name:
            raise ValidationError(f"workout {record_id} has no exercise name.")
        return cls(
            id=record_id,
            exercise_name=name,
            date=payload.get("date", payload.get("timestamp")),
            exercise_type=_record_type(record_id, payload.get("exercise_type")),
            sets=_optional_int(payload.get("sets")),
            reps=_optional_int(payload.get("reps")),
            weight=parse_optional_number(payload.get("weight")),
            duration=parse_optional_number(
                payload.get("duration", payload.get("duration_minutes"))
            ),
            distance=parse_optional_number(payload.get("distance")),
            notes=_optional_text(payload.get("notes")),
            bodyweight=parse_optional_number(payload.get("bodyweight")),
            exercise_id=_optional_int(payload.get("exercise_id")),
            muscles=_optional_text(payload.get("muscles")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Make the record JSON serialisable."""
        stamp = self.date.isoformat() if isinstance(self.date, (date, datetime)) else self.date
        payload: dict[str, Any] = {
            "id": self.id,
            "exercise_name": self.exercise_name,
            "exercise_type": self.exercise_type.value,
            "date": stamp,
        }
        for name in ("sets", "reps", "weight", "duration", "distance", "notes", "bodyweight"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.exercise_id is not None:
            payload["exercise_id"] = self.exercise_id
        if self.muscles:
            payload["muscles"] = self.muscles
        return payload


@dataclass(frozen=True)
class SetEntry:
    """
    One UI-addressable set exploded from a stored record.

    Entries sharing `record_id` are clones of one compressed record, so editing
    or deleting any of them changes all `set_count` of them.
    """

    ui_id: str
    record_id: int
    index: int
    exercise_name: str
    metrics: Mapping[str, float | int] = field(default_factory=dict)
    set_count: int = 1

    @property
    def shares_record(self) -> bool:
        return self.set_count > 1

    @property
    def has_metrics(self) -> bool:
        return bool(self.metrics)


@dataclass(frozen=True)
class ExerciseGroup:
    exercise_name: str
    entries: tuple[SetEntry, ...]

    @property
    def record_ids(self) -> tuple[int, ...]:
        seen: dict[int, None] = {}
        for entry in self.entries:
            seen.setdefault(entry.record_id, None)
        return tuple(seen)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class FilterSpec:
    """Exercise names and muscles match by membership; every active dimension must hold."""

    exercises: frozenset[str] = frozenset()
    muscles: frozenset[str] = frozenset()
    date: Optional[date] = None

    @classmethod
    def build(
        cls,
        *,
        exercises: Any = None,
        muscles: Any = None,
        on: Any = None,
    ) -> "FilterSpec":
        names = frozenset(
            str(name).strip() for name in (exercises or ()) if str(name).strip()
        )
        day = None
        if on is not None:
            parsed = parse_timestamp(on)
            if parsed is None:
                raise ValidationError(f"date must be YYYY-MM-DD; received {on!r}.")
            day = parsed.date() if isinstance(parsed, datetime) else parsed
        wanted = muscles if isinstance(muscles, str) else list(muscles or ())
        return cls(exercises=names, muscles=parse_muscles(wanted), date=day)

    @property
    def is_empty(self) -> bool:
        return not self.exercises and not self.muscles and self.date is None


@dataclass(frozen=True)
class PBDelta:
    metric: str
    achieved: bool
    new_value: float | int | None
    previous_value: float | int | None = None

    @property
    def improvement(self) -> float | None:
        if self.new_value is None or self.previous_value is None:
            return None
        return float(self.new_value) - float(self.previous_value)
