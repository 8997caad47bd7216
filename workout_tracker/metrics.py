from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Iterable, Sequence

import pandas as pd

from .models import StoredWorkoutRecord, ValidationError, local_date

GRAPH_TYPES: tuple[str, ...] = (
    "estimated_1rm",
    "max_weight",
    "max_reps",
    "workout_volume",
    "workout_reps",
    "workout_duration",
    "workout_distance",
)

COLUMNS = [
    "id",
    "date",
    "exercise_name",
    "sets",
    "reps",
    "weight",
    "duration",
    "distance",
    "volume",
]


@dataclass(frozen=True)
class ExerciseSummary:
    total_workouts: int
    total_sets: int
    training_days: int
    first_workout_date: date | None
    last_workout_date: date | None
    avg_workouts_per_week: float | None
    longest_gap_days: int | None


def records_to_dataframe(
    records: Iterable[StoredWorkoutRecord], *, tz: tzinfo | None = None
) -> pd.DataFrame:
    """Normalise records into one row each; rows without a readable date are dropped."""
    rows: list[dict[str, object]] = []
    for record in records:
        day = local_date(record.date, tz)
        if day is None:
            continue
        sets = record.effective_sets
        volume = (
            sets * record.reps * record.weight
            if record.reps is not None and record.weight is not None
            else None
        )
        rows.append(
            {
                "id": record.id,
                "date": pd.Timestamp(day),
                "exercise_name": record.exercise_name,
                "sets": sets,
                "reps": record.reps,
                "weight": record.weight,
                "duration": record.duration,
                "distance": record.distance,
                "volume": volume,
            }
        )
    df = pd.DataFrame(rows, columns=COLUMNS)
    for column in ("reps", "weight", "duration", "distance", "volume"):
        df[column] = pd.to_numeric(df[column], errors="coerce")
    return df.sort_values(["date", "id"]).reset_index(drop=True) if not df.empty else df


def daily_series(
    records: Sequence[StoredWorkoutRecord],
    graph_type: str,
    *,
    tz: tzinfo | None = None,
) -> list[tuple[str, float]]:
    """
    Per-day values for a progress chart as (YYYY-MM-DD, value) pairs.

    Totals count every set a record stands for; maxima look at single sets.
    Days without a value for the chosen metric are left out.
    """
    key = graph_type.strip().lower()
    if key not in GRAPH_TYPES:
        raise ValidationError(f"graph type must be one of {', '.join(GRAPH_TYPES)}; received {graph_type!r}.")

    df = records_to_dataframe(records, tz=tz)
    if df.empty:
        return []

    grouped = df.groupby("date")
    if key == "max_weight":
        series = grouped["weight"].max()
    elif key == "max_reps":
        series = grouped["reps"].max()
    elif key == "estimated_1rm":
        df = df.assign(e1rm=df["weight"] * (1 + df["reps"] / 30.0))
        series = df.groupby("date")["e1rm"].max()
    elif key == "workout_volume":
        series = grouped["volume"].sum(min_count=1)
    elif key == "workout_reps":
        series = (df["reps"] * df["sets"]).groupby(df["date"]).sum(min_count=1)
    elif key == "workout_duration":
        series = (df["duration"] * df["sets"]).groupby(df["date"]).sum(min_count=1)
    else:
        series = (df["distance"] * df["sets"]).groupby(df["date"]).sum(min_count=1)

    series = series.dropna()
    return [(stamp.date().isoformat(), float(value)) for stamp, value in series.items()]


def exercise_summary(
    records: Sequence[StoredWorkoutRecord], *, tz: tzinfo | None = None
) -> ExerciseSummary:
    """Headline statistics for one exercise's history."""
    df = records_to_dataframe(records, tz=tz)
    if df.empty:
        return ExerciseSummary(0, 0, 0, None, None, None, None)

    days = df["date"].drop_duplicates().sort_values().reset_index(drop=True)
    first = days.iloc[0].date()
    last = days.iloc[-1].date()
    weeks = max((last - first).days + 1, 7) / 7.0
    gaps = days.diff().dropna().dt.days
    return ExerciseSummary(
        total_workouts=int(df.shape[0]),
        total_sets=int(df["sets"].sum()),
        training_days=int(days.size),
        first_workout_date=first,
        last_workout_date=last,
        avg_workouts_per_week=float(df.shape[0]) / weeks,
        longest_gap_days=int(gaps.max()) if not gaps.empty else None,
    )
