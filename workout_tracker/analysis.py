from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Union

from .models import (
    ExerciseGroup,
    SetEntry,
    StoredWorkoutRecord,
    ValidationError,
)

LOGGER = logging.getLogger(__name__)

RecordInput = Union[Mapping[str, Any], StoredWorkoutRecord]


def records_from_payload(rows: Iterable[RecordInput]) -> List[StoredWorkoutRecord]:
    """
    Coerce collaborator rows into records, skipping rows that cannot be trusted.

    A row without an exercise name (or id) is a data-integrity problem: it is
    logged and dropped rather than failing the whole list.
    """
    records: List[StoredWorkoutRecord] = []
    for row in rows:
        if isinstance(row, StoredWorkoutRecord):
            records.append(row)
            continue
        if not isinstance(row, Mapping):
            raise TypeError(f"Unsupported workout type: {type(row)!r}")
        try:
            records.append(StoredWorkoutRecord.from_mapping(row))
        except ValidationError as exc:
            LOGGER.warning("Skipping workout row: %s", exc)
    return records


def expand_record(record: StoredWorkoutRecord) -> List[SetEntry]:
    """
    Explode a stored record into one entry per logged set.

    Every entry carries the record id as its back-reference and the same
    metrics. A record without any metric still yields its entries; a record
    without an exercise name yields nothing.
    """
    if not record.exercise_name or not record.exercise_name.strip():
        LOGGER.warning("Workout %s has no exercise name; skipping.", record.id)
        return []

    count = record.effective_sets
    metrics = record.metrics()
    return [
        SetEntry(
            ui_id=f"{record.id}-{index}",
            record_id=record.id,
            index=index,
            exercise_name=record.exercise_name,
            metrics=dict(metrics),
            set_count=count,
        )
        for index in range(count)
    ]


def group_by_exercise(records: Iterable[RecordInput]) -> List[ExerciseGroup]:
    """
    Group exploded sets by exercise name in first-encountered order.
    """
    grouped: Dict[str, List[SetEntry]] = {}
    for record in records_from_payload(records):
        entries = expand_record(record)
        if not entries:
            continue
        grouped.setdefault(record.exercise_name, []).extend(entries)
    return [
        ExerciseGroup(exercise_name=name, entries=tuple(entries))
        for name, entries in grouped.items()
        if entries
    ]


def entries_for_record(groups: Iterable[ExerciseGroup], record_id: int) -> List[SetEntry]:
    """All displayed sets backed by one record, i.e. what an edit or delete touches."""
    return [
        entry
        for group in groups
        for entry in group.entries
        if entry.record_id == record_id
    ]


def record_ids_for_entries(entries: Iterable[SetEntry]) -> List[int]:
    """Distinct back-references for a selection of sets, in selection order."""
    seen: Dict[int, None] = {}
    for entry in entries:
        seen.setdefault(entry.record_id, None)
    return list(seen)
