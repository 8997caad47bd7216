from __future__ import annotations

import dataclasses
import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Iterable, List, Mapping, Protocol, Tuple

from .analysis import records_from_payload
from .config import get_config
from .env import get_env
from .models import (
    PB_METRICS,
    ExerciseDefinition,
    ExerciseType,
    StoredWorkoutRecord,
    ValidationError,
    local_date,
    parse_muscles,
    parse_optional_number,
    parse_timestamp,
)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_DATA_FILENAME = "workouts.json"
LOGGER = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "new_sets": "sets",
    "new_reps": "reps",
    "new_weight": "weight",
    "new_bodyweight": "bodyweight",
    "new_duration": "duration",
    "new_distance_arg": "distance",
    "new_notes": "notes",
}


class StorageError(RuntimeError):
    """Raised when the workout store cannot satisfy a request."""


class WorkoutGateway(Protocol):
    """Commands the view-model engine expects from the persistence side."""

    def list_workouts(self, filters: Mapping[str, Any] | None = None) -> List[StoredWorkoutRecord]: ...

    def list_exercise_definitions(self) -> List[ExerciseDefinition]: ...

    def list_all_muscle_groups(self) -> List[str]: ...

    def get_config(self) -> dict[str, Any]: ...

    def add_workout(self, params: Mapping[str, Any]) -> Tuple[int, dict[str, Any] | None]: ...

    def edit_workout(self, params: Mapping[str, Any]) -> None: ...

    def delete_workouts(self, ids: Iterable[int]) -> List[int]: ...

    def get_previous_workout_details(self, exercise_name: str, n: int) -> List[StoredWorkoutRecord]: ...


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _data_file() -> Path:
    override = get_env("DATA_FILE")
    if override:
        target = Path(override).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        return target
    data_dir = get_env("DATA_DIR")
    base = Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR
    base.mkdir(parents=True, exist_ok=True)
    return base / DEFAULT_DATA_FILENAME


def _empty_state() -> dict[str, Any]:
    return {
        "exercises": [],
        "workouts": [],
        "bodyweights": [],
        "next_exercise_id": 1,
        "next_workout_id": 1,
    }


def _save_state_to_file(data_file: Path, state: Mapping[str, Any]) -> None:
    data_file.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(state, indent=2, sort_keys=True) + "\n"

    with NamedTemporaryFile("w", dir=data_file.parent, delete=False, encoding="utf-8") as tmp:
        tmp.write(payload)
        temp_path = Path(tmp.name)
    temp_path.replace(data_file)


def _load_state_from_file(data_file: Path) -> dict[str, Any]:
    if not data_file.exists():
        return _empty_state()

    raw = data_file.read_text(encoding="utf-8").strip()
    if not raw:
        return _empty_state()
    try:
        state = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError(f"Could not parse {data_file}: {exc}") from exc

    if not isinstance(state, dict):
        raise StorageError(f"{data_file} must contain a JSON object")
    merged = _empty_state()
    merged.update(state)
    return merged


def _sort_key(record: StoredWorkoutRecord) -> tuple[date, int]:
    return (local_date(record.date, timezone.utc) or date.min, record.id)


class JsonWorkoutStore:
    """
    File-backed workout store used by the CLI and tests.

    It plays the backend's role: it assigns identifiers, applies edit
    parameters and works out personal bests when a set is added.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path).expanduser() if path else _data_file()

    def _read(self) -> dict[str, Any]:
        return _load_state_from_file(self.path)

    def _write(self, state: Mapping[str, Any]) -> None:
        _save_state_to_file(self.path, state)

    def _definitions(self, state: Mapping[str, Any]) -> List[ExerciseDefinition]:
        return [ExerciseDefinition.from_mapping(row) for row in state["exercises"]]

    def _find_definition(self, state: Mapping[str, Any], identifier: Any) -> ExerciseDefinition:
        key = str(identifier or "").strip().lower()
        for definition in self._definitions(state):
            if definition.name.lower() == key or (
                definition.id is not None and str(definition.id) == key
            ):
                return definition
        raise StorageError(f"Exercise {identifier!r} not found.")

    def _records(self, state: Mapping[str, Any]) -> List[StoredWorkoutRecord]:
        return records_from_payload(state["workouts"])

    def create_exercise(self, definition: ExerciseDefinition) -> ExerciseDefinition:
        state = self._read()
        for existing in self._definitions(state):
            if existing.name.lower() == definition.name.lower():
                raise StorageError(f"Exercise {definition.name!r} already exists.")
        created = dataclasses.replace(definition, id=int(state["next_exercise_id"]))
        state["exercises"].append(created.to_dict())
        state["next_exercise_id"] += 1
        self._write(state)
        LOGGER.info("Created exercise %s (%s)", created.name, created.id)
        return created

    def add_bodyweight(self, weight: float, *, timestamp: datetime | None = None) -> None:
        value = parse_optional_number(weight)
        if value is None or value <= 0:
            raise ValidationError(f"bodyweight must be a positive number; received {weight!r}.")
        state = self._read()
        state["bodyweights"].append(
            {"timestamp": (timestamp or _now_utc()).isoformat(), "weight": float(value)}
        )
        self._write(state)

    def current_bodyweight(self) -> float | None:
        entries = self._read()["bodyweights"]
        if not entries:
            return None
        latest = max(entries, key=lambda entry: str(entry.get("timestamp", "")))
        return parse_optional_number(latest.get("weight"))

    def list_workouts(self, filters: Mapping[str, Any] | None = None) -> List[StoredWorkoutRecord]:
        filters = filters or {}
        state = self._read()
        records = sorted(self._records(state), key=_sort_key)

        name = filters.get("exercise_name")
        if name:
            records = [r for r in records if r.exercise_name.lower() == str(name).lower()]
        day = filters.get("date")
        if day:
            parsed = parse_timestamp(day)
            records = [r for r in records if local_date(r.date, timezone.utc) == parsed]
        kind = filters.get("exercise_type")
        if kind:
            wanted = ExerciseType.parse(kind)
            records = [r for r in records if r.exercise_type is wanted]
        muscle = filters.get("muscle")
        if muscle:
            wanted_muscles = parse_muscles(muscle)
            records = [r for r in records if parse_muscles(r.muscles) & wanted_muscles]
        limit = filters.get("limit")
        if limit:
            records = records[-int(limit):]
        return records

    def list_exercise_definitions(self) -> List[ExerciseDefinition]:
        return self._definitions(self._read())

    def list_all_muscle_groups(self) -> List[str]:
        muscles: set[str] = set()
        for definition in self.list_exercise_definitions():
            muscles |= definition.muscle_set
        return sorted(muscles)

    def get_config(self) -> dict[str, Any]:
        config = get_config()
        return {
            "units": config.units,
            "bodyweight_unit": config.weight_unit,
            "current_bodyweight": self.current_bodyweight(),
        }

    def _personal_bests(
        self, records: Iterable[StoredWorkoutRecord], row: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        history = list(records)
        result: dict[str, Any] = {}
        for metric in PB_METRICS:
            new_value = parse_optional_number(row.get(metric))
            if new_value is None:
                continue
            previous = [getattr(r, metric) for r in history if getattr(r, metric) is not None]
            previous_best = max(previous) if previous else None
            result[metric] = {
                "achieved": previous_best is not None and new_value > previous_best,
                "new_value": new_value,
                "previous_value": previous_best,
            }
        return result or None

    def add_workout(self, params: Mapping[str, Any]) -> Tuple[int, dict[str, Any] | None]:
        state = self._read()
        definition = self._find_definition(state, params.get("exercise_identifier"))
        record_id = int(state["next_workout_id"])
        row: dict[str, Any] = {
            "id": record_id,
            "exercise_name": definition.name,
            "exercise_id": definition.id,
            "exercise_type": definition.exercise_type.value,
            "muscles": definition.muscles,
            "date": params.get("date") or _now_utc().isoformat(),
            "sets": params.get("sets") or 1,
        }
        for name in ("reps", "weight", "duration", "distance", "notes"):
            if params.get(name) is not None:
                row[name] = params[name]
        if params.get("bodyweight_to_use") is not None:
            row["bodyweight"] = params["bodyweight_to_use"]

        same_exercise = [
            r for r in self._records(state) if r.exercise_name.lower() == definition.name.lower()
        ]
        pb_result = self._personal_bests(same_exercise, row)

        state["workouts"].append({k: v for k, v in row.items() if v is not None})
        state["next_workout_id"] = record_id + 1
        self._write(state)
        LOGGER.info("Logged workout %s for %s", record_id, definition.name)
        return record_id, pb_result

    def edit_workout(self, params: Mapping[str, Any]) -> None:
        state = self._read()
        record_id = params.get("id")
        for row in state["workouts"]:
            if row.get("id") == record_id:
                break
        else:
            raise StorageError(f"Workout {record_id!r} not found.")

        for key, name in EDITABLE_FIELDS.items():
            if key not in params:
                continue
            if params[key] is None:
                row.pop(name, None)
            else:
                row[name] = params[key]
        if params.get("new_exercise_identifier"):
            definition = self._find_definition(state, params["new_exercise_identifier"])
            row.update(
                exercise_name=definition.name,
                exercise_id=definition.id,
                exercise_type=definition.exercise_type.value,
                muscles=definition.muscles,
            )
        if params.get("new_date"):
            parsed = parse_timestamp(params["new_date"])
            if parsed is None:
                raise StorageError(f"Invalid date {params['new_date']!r}.")
            row["date"] = parsed.isoformat()
        self._write(state)
        LOGGER.info("Edited workout %s", record_id)

    def delete_workouts(self, ids: Iterable[int]) -> List[int]:
        wanted = set(ids)
        state = self._read()
        deleted = [row["id"] for row in state["workouts"] if row.get("id") in wanted]
        state["workouts"] = [row for row in state["workouts"] if row.get("id") not in wanted]
        self._write(state)
        LOGGER.info("Deleted workouts %s", deleted)
        return deleted

    def get_previous_workout_details(self, exercise_name: str, n: int) -> List[StoredWorkoutRecord]:
        records = self.list_workouts({"exercise_name": exercise_name})
        return list(reversed(records))[: max(int(n), 0)]
