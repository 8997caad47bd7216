from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, timedelta, tzinfo
from typing import Any, Optional, Union

from .models import (
    DefinitionNotFoundError,
    ExerciseDefinition,
    ExerciseType,
    FilterSpec,
    StoredWorkoutRecord,
    ValidationError,
    local_date,
    parse_muscles,
)

LOGGER = logging.getLogger(__name__)

TIME_FRAMES: tuple[str, ...] = ("all", "ytd", "last_year", "last_90d", "last_30d")

Definitions = Union[Mapping[str, ExerciseDefinition], Iterable[ExerciseDefinition]]

__all__ = [
    "TIME_FRAMES",
    "DefinitionIndex",
    "resolve_definition",
    "apply_filters",
    "active_dates",
    "month_grid",
    "search_definitions",
    "time_frame_bounds",
    "filter_by_date_range",
]


class DefinitionIndex:
    """Read-only lookup of exercise definitions by identifier and by name."""

    def __init__(self, definitions: Definitions) -> None:
        values = definitions.values() if isinstance(definitions, Mapping) else definitions
        self._by_id: dict[int, ExerciseDefinition] = {}
        self._by_name: dict[str, ExerciseDefinition] = {}
        for definition in values:
            if definition.id is not None:
                self._by_id.setdefault(definition.id, definition)
            self._by_name.setdefault(definition.name.strip().lower(), definition)

    @classmethod
    def wrap(cls, definitions: Union["DefinitionIndex", Definitions]) -> "DefinitionIndex":
        if isinstance(definitions, cls):
            return definitions
        return cls(definitions)

    def find(
        self, *, exercise_id: Optional[int] = None, name: Optional[str] = None
    ) -> Optional[ExerciseDefinition]:
        if exercise_id is not None and exercise_id in self._by_id:
            return self._by_id[exercise_id]
        if name:
            return self._by_name.get(name.strip().lower())
        return None


def resolve_definition(
    target: Union[StoredWorkoutRecord, str],
    definitions: Union[DefinitionIndex, Definitions],
) -> ExerciseDefinition:
    """
    Resolve the definition behind a record (identifier first, then name) or a name.

    Raises DefinitionNotFoundError rather than guessing, so edit and add-set
    flows can be blocked with an explicit error.
    """
    index = DefinitionIndex.wrap(definitions)
    if isinstance(target, StoredWorkoutRecord):
        found = index.find(exercise_id=target.exercise_id, name=target.exercise_name)
        label = target.exercise_name
    else:
        found = index.find(name=target)
        label = target
    if found is None:
        raise DefinitionNotFoundError(f"Exercise definition not found for {label!r}.")
    return found


def _matches_muscles(
    record: StoredWorkoutRecord, muscles: frozenset[str], index: DefinitionIndex
) -> bool:
    definition = index.find(exercise_id=record.exercise_id, name=record.exercise_name)
    if definition is None:
        return False
    return bool(definition.muscle_set & muscles)


def apply_filters(
    records: Sequence[StoredWorkoutRecord],
    spec: FilterSpec,
    definitions: Union[DefinitionIndex, Definitions] = (),
    *,
    tz: tzinfo | None = None,
) -> list[StoredWorkoutRecord]:
    """
    Narrow a workout collection along every active filter dimension.

    Dimensions combine with AND, values inside a dimension with OR. An empty
    spec returns the records unchanged. The function keeps no state, so
    applying the same spec twice gives the same result as applying it once.
    """
    if spec.is_empty:
        return list(records)

    index = DefinitionIndex.wrap(definitions)
    wanted_muscles = parse_muscles(list(spec.muscles))
    matched: list[StoredWorkoutRecord] = []
    for record in records:
        if spec.date is not None and local_date(record.date, tz) != spec.date:
            continue
        if spec.exercises and record.exercise_name not in spec.exercises:
            continue
        if wanted_muscles and not _matches_muscles(record, wanted_muscles, index):
            continue
        matched.append(record)
    return matched


def _raw_date(item: Any) -> Any:
    if isinstance(item, StoredWorkoutRecord):
        return item.date
    if isinstance(item, Mapping):
        return item.get("date", item.get("timestamp"))
    return getattr(item, "date", None)


def active_dates(
    records: Iterable[Any],
    year: int,
    month: int,
    *,
    tz: tzinfo | None = None,
) -> set[str]:
    """
    ISO dates within (year, month) that have at least one record.

    Records with a missing or unreadable date are left out of the index.
    """
    if not 1 <= int(month) <= 12:
        raise ValueError(f"month must be between 1 and 12; received {month!r}.")

    found: set[str] = set()
    for item in records:
        day = local_date(_raw_date(item), tz)
        if day is None:
            LOGGER.debug("Ignoring workout with unreadable date: %r", _raw_date(item))
            continue
        if day.year == year and day.month == month:
            found.add(day.isoformat())
    return found


def month_grid(year: int, month: int, highlighted: set[str]) -> list[list[tuple[int, bool] | None]]:
    """Sunday-first weeks of (day, has_workout) cells; None pads the edges."""
    cal = calendar.Calendar(firstweekday=calendar.SUNDAY)
    weeks: list[list[tuple[int, bool] | None]] = []
    for week in cal.monthdayscalendar(year, month):
        row: list[tuple[int, bool] | None] = []
        for day in week:
            if day == 0:
                row.append(None)
            else:
                row.append((day, date(year, month, day).isoformat() in highlighted))
        weeks.append(row)
    return weeks


def search_definitions(
    definitions: Iterable[ExerciseDefinition],
    *,
    search: str | None = None,
    exercise_type: ExerciseType | str | None = None,
    muscles: Iterable[str] | None = None,
    include_inactive: bool = False,
) -> list[ExerciseDefinition]:
    """Filter the exercise picker by name substring, type and muscles."""
    term = (search or "").strip().lower()
    wanted_type = ExerciseType.parse(exercise_type) if exercise_type else None
    wanted_muscles = parse_muscles(list(muscles or ()))

    selected: list[ExerciseDefinition] = []
    for definition in definitions:
        if not include_inactive and not definition.is_active:
            continue
        if term and term not in definition.name.lower():
            continue
        if wanted_type is not None and definition.exercise_type is not wanted_type:
            continue
        if wanted_muscles and not (definition.muscle_set & wanted_muscles):
            continue
        selected.append(definition)
    return selected


def time_frame_bounds(time_frame: str, today: date | None = None) -> tuple[date | None, date | None]:
    """Inclusive (start, end) dates for a named statistics time frame."""
    today = today or date.today()
    key = (time_frame or "all").strip().lower()
    if key == "all":
        return None, None
    if key == "ytd":
        return date(today.year, 1, 1), today
    if key == "last_year":
        try:
            year_ago = today.replace(year=today.year - 1)
        except ValueError:
            year_ago = today.replace(year=today.year - 1, day=28)
        return year_ago + timedelta(days=1), today
    if key == "last_90d":
        return today - timedelta(days=89), today
    if key == "last_30d":
        return today - timedelta(days=29), today
    raise ValidationError(
        f"time frame must be one of {', '.join(TIME_FRAMES)}; received {time_frame!r}."
    )


def filter_by_date_range(
    records: Iterable[StoredWorkoutRecord],
    start: date | None,
    end: date | None,
    *,
    tz: tzinfo | None = None,
) -> list[StoredWorkoutRecord]:
    """Keep records whose local date lies within [start, end]; open bounds are ignored."""
    kept: list[StoredWorkoutRecord] = []
    for record in records:
        day = local_date(record.date, tz)
        if day is None:
            continue
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        kept.append(record)
    return kept
