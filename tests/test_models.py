from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from workout_tracker.models import (
    ExerciseDefinition,
    ExerciseType,
    FilterSpec,
    PBDelta,
    StoredWorkoutRecord,
    ValidationError,
    local_date,
    parse_muscles,
    parse_optional_number,
    parse_timestamp,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", None),
        ("   ", None),
        ("abc", None),
        ("nan", None),
        ("inf", None),
        (None, None),
        ("12.5", 12.5),
        (" 7 ", 7.0),
        (3, 3),
    ],
)
def test_parse_optional_number_treats_unreadable_input_as_absent(raw, expected) -> None:
    assert parse_optional_number(raw) == expected


def test_parse_optional_number_truncates_integer_fields() -> None:
    assert parse_optional_number("8.9", integer=True) == 8
    assert parse_optional_number("-2.5", integer=True) == -2


def test_exercise_type_accepts_backend_spellings() -> None:
    assert ExerciseType.parse("BodyWeight") is ExerciseType.BODYWEIGHT
    assert ExerciseType.parse("body-weight") is ExerciseType.BODYWEIGHT
    assert ExerciseType.parse("cardio") is ExerciseType.CARDIO
    with pytest.raises(ValidationError):
        ExerciseType.parse("yoga")


def test_parse_muscles_normalises_case_and_whitespace() -> None:
    assert parse_muscles(" Chest, triceps ,,") == frozenset({"chest", "triceps"})
    assert parse_muscles(["Back"]) == frozenset({"back"})
    assert parse_muscles(None) == frozenset()


def test_parse_timestamp_distinguishes_dates_and_datetimes() -> None:
    assert parse_timestamp("2024-05-01") == date(2024, 5, 1)
    parsed = parse_timestamp("2024-05-01T12:00:00+00:00")
    assert isinstance(parsed, datetime)
    assert parsed.tzinfo is not None
    assert parse_timestamp("not-a-date") is None
    assert parse_timestamp(None) is None


def test_local_date_converts_aware_timestamps_into_zone() -> None:
    late_utc = "2024-05-01T23:30:00+00:00"
    plus_two = timezone(timedelta(hours=2))
    assert local_date(late_utc, plus_two) == date(2024, 5, 2)
    assert local_date(late_utc, timezone.utc) == date(2024, 5, 1)
    assert local_date("2024-05-01T23:30:00", plus_two) == date(2024, 5, 1)
    assert local_date("2024-05-01", plus_two) == date(2024, 5, 1)
    assert local_date("garbage") is None


def test_definition_from_mapping_defaults_and_metrics() -> None:
    definition = ExerciseDefinition.from_mapping(
        {"id": "4", "name": "Pull Up", "exercise_type": "BodyWeight", "muscles": "Back, Biceps"}
    )
    assert definition.id == 4
    assert definition.is_bodyweight
    assert definition.enabled_metrics == ("reps", "weight")
    assert definition.muscle_set == frozenset({"back", "biceps"})
    assert ExerciseDefinition.from_mapping(definition.to_dict()) == definition


def test_definition_requires_name() -> None:
    with pytest.raises(ValidationError):
        ExerciseDefinition.from_mapping({"name": "  "})


def test_record_from_mapping_rejects_missing_identity() -> None:
    with pytest.raises(ValidationError):
        StoredWorkoutRecord.from_mapping({"exercise_name": "Squat"})
    with pytest.raises(ValidationError):
        StoredWorkoutRecord.from_mapping({"id": 3, "exercise_name": ""})


def test_record_effective_sets_and_metrics() -> None:
    record = StoredWorkoutRecord.from_mapping(
        {"id": 1, "exercise": "Squat", "date": "2024-05-01", "sets": 0, "reps": "5", "weight": 100}
    )
    assert record.exercise_name == "Squat"
    assert record.effective_sets == 1
    assert record.metrics() == {"reps": 5, "weight": 100}


def test_filter_spec_build_validates_date() -> None:
    spec = FilterSpec.build(exercises=["Squat", " "], muscles="Chest", on="2024-05-01")
    assert spec.exercises == frozenset({"Squat"})
    assert spec.muscles == frozenset({"chest"})
    assert spec.date == date(2024, 5, 1)
    assert FilterSpec().is_empty
    with pytest.raises(ValidationError):
        FilterSpec.build(on="05/01/2024")


def test_pb_delta_improvement() -> None:
    assert PBDelta("weight", True, 105, 100).improvement == pytest.approx(5.0)
    assert PBDelta("weight", True, 105).improvement is None


def test_local_date_out_of_range_is_unreadable() -> None:
    assert local_date("0001-01-01T00:00:00+05:00", timezone.utc) is None


def test_filter_spec_splits_comma_separated_muscles() -> None:
    assert FilterSpec.build(muscles="Chest, Back").muscles == frozenset({"chest", "back"})


def test_record_with_unknown_exercise_type_is_kept(caplog) -> None:
    record = StoredWorkoutRecord.from_mapping(
        {"id": 1, "exercise_name": "Run", "exercise_type": "Yoga", "date": "2024-05-01", "reps": 5}
    )
    assert record.exercise_type is ExerciseType.RESISTANCE
    assert "unknown exercise type" in caplog.text
