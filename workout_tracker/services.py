from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Mapping, Sequence

from .models import (
    INTEGER_METRICS,
    METRIC_FIELDS,
    METRIC_LABELS,
    BodyweightNotConfiguredError,
    ExerciseDefinition,
    ExerciseType,
    MissingMetricsError,
    SetEntry,
    StoredWorkoutRecord,
    ValidationError,
    parse_optional_number,
    parse_timestamp,
)

LOGGER = logging.getLogger(__name__)

EDIT_PARAM_NAMES = {
    "sets": "new_sets",
    "reps": "new_reps",
    "weight": "new_weight",
    "bodyweight": "new_bodyweight",
    "duration": "new_duration",
    "distance": "new_distance_arg",
    "notes": "new_notes",
    "date": "new_date",
}


@dataclass(frozen=True)
class FormValues:
    """Raw text of the set form exactly as the user typed it."""

    reps: str = ""
    weight: str = ""
    duration: str = ""
    distance: str = ""
    notes: str = ""

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "FormValues":
        payload = payload or {}
        values = {}
        for name in (*METRIC_FIELDS, "notes"):
            raw = payload.get(name)
            values[name] = "" if raw is None else str(raw)
        return cls(**values)

    def get(self, name: str) -> str:
        return getattr(self, name)

    def with_value(self, name: str, value: Any) -> "FormValues":
        if name not in (*METRIC_FIELDS, "notes"):
            raise ValidationError(f"Unknown form field {name!r}.")
        return dataclasses.replace(self, **{name: "" if value is None else str(value)})

    def to_dict(self) -> dict[str, str]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class AddPayload:
    """Parameters for logging a new set."""

    exercise_identifier: str
    date: str
    sets: int = 1
    reps: int | None = None
    weight: float | None = None
    duration: int | None = None
    distance: float | None = None
    notes: str | None = None
    bodyweight_to_use: float | None = None

    def to_params(self) -> dict[str, Any]:
        """Collaborator parameters; absent fields are left out entirely."""
        return {
            key: value
            for key, value in dataclasses.asdict(self).items()
            if value is not None
        }


@dataclass(frozen=True)
class EditPayload:
    """
    Minimal replacement for one stored record.

    A key in `changes` is sent; a value of None asks the collaborator to clear
    the field, which is different from leaving the key out.
    """

    id: int
    changes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return not self.changes

    @property
    def cleared(self) -> tuple[str, ...]:
        return tuple(name for name, value in self.changes.items() if value is None)

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"id": self.id}
        for name, value in self.changes.items():
            params[EDIT_PARAM_NAMES[name]] = value
        return params


@dataclass(frozen=True)
class DeletePlan:
    """Record ids behind a selection of sets, with how many sets they cover."""

    record_ids: tuple[int, ...]
    affected_sets: int
    selected_sets: int

    @property
    def warning(self) -> str | None:
        if self.affected_sets <= self.selected_sets:
            return None
        return (
            f"Deleting removes {self.affected_sets} sets: the selected sets were "
            "logged together with others and are stored as one entry."
        )


def _format_number(value: float | int | None) -> str:
    if value is None:
        return ""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return str(round(number, 4))


def _parse_field(name: str, text: str) -> float | int | None:
    return parse_optional_number(text, integer=name in INTEGER_METRICS)


def _require_bodyweight(current_bodyweight: Any) -> float:
    bodyweight = parse_optional_number(current_bodyweight)
    if bodyweight is None or bodyweight <= 0:
        raise BodyweightNotConfiguredError()
    return float(bodyweight)


def _logged_timestamp(on: date | datetime | str) -> str:
    """Timestamp for a set logged on a calendar day; noon UTC keeps the day stable."""
    if isinstance(on, datetime):
        return on.isoformat()
    parsed = parse_timestamp(on) if isinstance(on, str) else on
    if isinstance(parsed, datetime):
        return parsed.isoformat()
    if not isinstance(parsed, date):
        raise ValidationError(f"date must be YYYY-MM-DD; received {on!r}.")
    return datetime.combine(parsed, time(12, 0), tzinfo=timezone.utc).isoformat()


def missing_metrics_message(definition: ExerciseDefinition) -> str:
    labels = [METRIC_LABELS[name] for name in definition.enabled_metrics]
    if not labels:
        return f"{definition.name} does not log any metrics."
    return "Please enter at least one value for: " + ", ".join(labels) + "."


def plan_add(
    definition: ExerciseDefinition,
    form: FormValues | Mapping[str, Any],
    on: date | datetime | str,
    current_bodyweight: float | None,
) -> AddPayload:
    """
    Build the payload for logging one new set.

    Only metrics the exercise logs are read. At least one of them must hold a
    number, otherwise MissingMetricsError is raised before anything is sent.
    Bodyweight exercises log bodyweight plus any additional weight.
    """
    values = form if isinstance(form, FormValues) else FormValues.from_mapping(form)

    parsed: dict[str, float | int] = {}
    for name in definition.enabled_metrics:
        number = _parse_field(name, values.get(name))
        if number is not None:
            parsed[name] = number
    if not parsed:
        raise MissingMetricsError(missing_metrics_message(definition))

    bodyweight_to_use: float | None = None
    if definition.is_bodyweight and definition.log_weight:
        bodyweight_to_use = _require_bodyweight(current_bodyweight)
        parsed["weight"] = bodyweight_to_use + float(parsed.get("weight") or 0)
    elif definition.is_bodyweight:
        number = parse_optional_number(current_bodyweight)
        bodyweight_to_use = float(number) if number is not None and number > 0 else None

    notes = values.notes.strip() or None
    return AddPayload(
        exercise_identifier=definition.name,
        date=_logged_timestamp(on),
        sets=1,
        reps=parsed.get("reps"),
        weight=parsed.get("weight"),
        duration=parsed.get("duration"),
        distance=parsed.get("distance"),
        notes=notes,
        bodyweight_to_use=bodyweight_to_use,
    )


def plan_edit(
    definition: ExerciseDefinition,
    form: FormValues | Mapping[str, Any],
    original: FormValues | Mapping[str, Any],
    record_id: int,
    current_bodyweight: float | None,
) -> EditPayload:
    """
    Build a minimal edit for an existing record.

    A field is sent only when its text differs from the pre-filled original.
    Clearing a field asks for null. Text that does not parse as a number is
    left out, as if it had not been touched.
    """
    values = form if isinstance(form, FormValues) else FormValues.from_mapping(form)
    before = original if isinstance(original, FormValues) else FormValues.from_mapping(original)
    if isinstance(record_id, bool) or not isinstance(record_id, int):
        raise ValidationError(f"record id must be an integer; received {record_id!r}.")

    changes: dict[str, Any] = {}
    for name in definition.enabled_metrics:
        text = values.get(name)
        if text == before.get(name):
            continue

        if name == "weight" and definition.is_bodyweight:
            bodyweight = _require_bodyweight(current_bodyweight)
            extra = _parse_field(name, text)
            changes["weight"] = bodyweight + float(extra or 0)
            continue

        if not text.strip():
            changes[name] = None
            continue

        number = _parse_field(name, text)
        if number is None:
            LOGGER.debug("Ignoring unreadable %s %r for workout %s", name, text, record_id)
            continue
        changes[name] = number

    if values.notes != before.notes:
        changes["notes"] = values.notes.strip() or None

    return EditPayload(id=record_id, changes=changes)


def form_values_from_record(record: StoredWorkoutRecord | Mapping[str, Any]) -> FormValues:
    """
    Pre-filled text for editing a record or adding another set like it.

    Bodyweight records show only the additional weight on top of the bodyweight
    that was logged with them.
    """
    if not isinstance(record, StoredWorkoutRecord):
        record = StoredWorkoutRecord.from_mapping(record)

    weight = record.weight
    if (
        record.exercise_type is ExerciseType.BODYWEIGHT
        and weight is not None
        and record.bodyweight is not None
    ):
        weight = round(weight - record.bodyweight, 4)

    return FormValues(
        reps=_format_number(record.reps),
        weight=_format_number(weight),
        duration=_format_number(record.duration),
        distance=_format_number(record.distance),
        notes=record.notes or "",
    )


def prefill_from_previous(
    definition: ExerciseDefinition,
    previous: Sequence[StoredWorkoutRecord | Mapping[str, Any]],
) -> FormValues:
    """Default form values from the last time this exercise was logged."""
    if not previous:
        return FormValues()
    latest = form_values_from_record(previous[0])
    return FormValues(
        **{
            name: latest.get(name) if definition.logs(name) else ""
            for name in METRIC_FIELDS
        }
    )


def plan_delete(entries: Iterable[SetEntry]) -> DeletePlan:
    """Translate selected sets into the record ids a delete call must remove."""
    selected = list(entries)
    counts: dict[int, int] = {}
    for entry in selected:
        counts.setdefault(entry.record_id, entry.set_count)
    return DeletePlan(
        record_ids=tuple(counts),
        affected_sets=sum(counts.values()),
        selected_sets=len(selected),
    )


def edit_scope_warning(entry: SetEntry) -> str | None:
    """Explain that editing one shown set edits every set logged with it."""
    if not entry.shares_record:
        return None
    return (
        f"Editing any shown set here updates all {entry.set_count} sets "
        "logged together."
    )
