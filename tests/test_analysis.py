from __future__ import annotations

import logging

import pytest

from workout_tracker.analysis import (
    entries_for_record,
    expand_record,
    group_by_exercise,
    record_ids_for_entries,
    records_from_payload,
)
from workout_tracker.models import StoredWorkoutRecord


def _record(record_id: int, name: str, **fields) -> StoredWorkoutRecord:
    return StoredWorkoutRecord(id=record_id, exercise_name=name, date="2024-05-01", **fields)


def test_expand_record_emits_one_entry_per_set() -> None:
    record = _record(42, "Bench Press", sets=3, reps=5, weight=100.0)
    entries = expand_record(record)

    assert [entry.ui_id for entry in entries] == ["42-0", "42-1", "42-2"]
    assert all(entry.record_id == 42 for entry in entries)
    assert all(entry.metrics == {"reps": 5, "weight": 100.0} for entry in entries)
    assert all(entry.set_count == 3 for entry in entries)


@pytest.mark.parametrize("sets", [None, 0, -2])
def test_expand_record_treats_missing_sets_as_one(sets) -> None:
    entries = expand_record(_record(7, "Squat", sets=sets, reps=5))
    assert [entry.ui_id for entry in entries] == ["7-0"]
    assert not entries[0].shares_record


def test_expand_record_keeps_sets_without_metrics() -> None:
    entries = expand_record(_record(9, "Plank", sets=2))
    assert len(entries) == 2
    assert not entries[0].has_metrics


def test_expand_record_skips_blank_names(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        assert expand_record(_record(5, "  ", reps=3)) == []
    assert "no exercise name" in caplog.text


def test_group_by_exercise_keeps_first_seen_order() -> None:
    records = [
        _record(1, "Squat", sets=2, reps=5),
        _record(2, "Bench Press", reps=8),
        _record(3, "Squat", reps=3),
    ]
    groups = group_by_exercise(records)

    assert [group.exercise_name for group in groups] == ["Squat", "Bench Press"]
    squat = groups[0]
    assert [entry.ui_id for entry in squat.entries] == ["1-0", "1-1", "3-0"]
    assert squat.record_ids == (1, 3)
    assert len(squat) == 3
    assert sum(len(group) for group in groups) == 4


def test_group_by_exercise_drops_untrusted_rows(caplog) -> None:
    rows = [
        {"id": 1, "exercise_name": "Row", "date": "2024-05-01", "reps": 10},
        {"id": 2, "exercise_name": "", "date": "2024-05-01"},
        {"exercise_name": "Row"},
    ]
    with caplog.at_level(logging.WARNING):
        groups = group_by_exercise(rows)
    assert [group.exercise_name for group in groups] == ["Row"]
    assert "Skipping workout row" in caplog.text


def test_group_by_exercise_on_empty_input() -> None:
    assert group_by_exercise([]) == []


def test_records_from_payload_rejects_unknown_types() -> None:
    with pytest.raises(TypeError):
        records_from_payload([42])


def test_entries_for_record_and_distinct_ids() -> None:
    groups = group_by_exercise([_record(1, "Squat", sets=3), _record(2, "Squat")])
    shared = entries_for_record(groups, 1)
    assert [entry.ui_id for entry in shared] == ["1-0", "1-1", "1-2"]
    selection = [shared[2], groups[0].entries[3], shared[0]]
    assert record_ids_for_entries(selection) == [1, 2]


def test_group_by_exercise_keeps_rows_with_unknown_type() -> None:
    rows = [{"id": 1, "exercise_name": "Run", "exercise_type": "Yoga", "date": "2024-05-01", "reps": 5}]
    groups = group_by_exercise(rows)
    assert [group.exercise_name for group in groups] == ["Run"]
    assert [entry.ui_id for entry in groups[0].entries] == ["1-0"]
