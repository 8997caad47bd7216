from __future__ import annotations

import json

from typer.testing import CliRunner

from workout_tracker.cli import app
from workout_tracker.config import get_config


def _runner(tmp_path, monkeypatch) -> CliRunner:
    monkeypatch.setenv("WORKOUT_TRACKER_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("WORKOUT_TRACKER_DATA_FILE", raising=False)
    monkeypatch.setenv("WORKOUT_TRACKER_CONFIG", str(tmp_path / "missing.toml"))
    get_config.cache_clear()
    return CliRunner()


def test_cli_smoke(tmp_path, monkeypatch):
    runner = _runner(tmp_path, monkeypatch)

    created = runner.invoke(app, ["exercise-add", "Bench Press", "--muscles", "chest,triceps"])
    assert created.exit_code == 0, created.output
    assert "Created Bench Press (Resistance)." in created.output

    first = runner.invoke(
        app, ["--verbose", "log", "Bench Press", "--date", "2024-05-01", "--reps", "5", "--weight", "100"]
    )
    assert first.exit_code == 0, first.output
    assert "Logged Bench Press (workout 1)." in first.output

    second = runner.invoke(app, ["log", "Bench Press", "--date", "2024-05-03", "--reps", "5", "--weight", "105"])
    assert second.exit_code == 0, second.output
    assert "New personal best: Bench Press!" in second.output
    assert "Max Weight: 105.00 kg (previous 100.00 kg, +5.00 kg)" in second.output

    day_result = runner.invoke(app, ["day", "--date", "2024-05-01"])
    assert day_result.exit_code == 0, day_result.output
    assert "2024-05-01:" in day_result.output
    assert "Bench Press" in day_result.output
    assert "5 reps @ 100.0 kg (workout 1)" in day_result.output

    calendar_result = runner.invoke(app, ["calendar", "--year", "2024", "--month", "5", "--muscle", "chest"])
    assert calendar_result.exit_code == 0, calendar_result.output
    assert "2 active day(s)." in calendar_result.output

    stats_result = runner.invoke(app, ["stats", "Bench Press", "--graph", "max_weight"])
    assert stats_result.exit_code == 0, stats_result.output
    assert "Total workouts: 2" in stats_result.output
    assert "2024-05-03  105.00" in stats_result.output

    edited = runner.invoke(app, ["edit", "1", "--reps", "8"])
    assert edited.exit_code == 0, edited.output
    assert "Updated workout 1." in edited.output

    unchanged = runner.invoke(app, ["edit", "1", "--reps", "8"])
    assert unchanged.exit_code == 0, unchanged.output
    assert "No changes to save." in unchanged.output

    deleted = runner.invoke(app, ["delete", "1-0"])
    assert deleted.exit_code == 0, deleted.output
    assert "Deleted 1 workout(s), 1 set(s)." in deleted.output

    empty_day = runner.invoke(app, ["day", "--date", "2024-05-01"])
    assert "No workouts logged." in empty_day.output


def test_cli_bodyweight_exercise(tmp_path, monkeypatch):
    runner = _runner(tmp_path, monkeypatch)
    runner.invoke(app, ["exercise-add", "Pull Up", "--type", "BodyWeight", "--muscles", "back"])

    blocked = runner.invoke(app, ["log", "Pull Up", "--date", "2024-05-01", "--reps", "8"])
    assert blocked.exit_code == 1
    assert "bodyweight not configured" in blocked.output

    runner.invoke(app, ["bodyweight", "70"])
    logged = runner.invoke(app, ["log", "Pull Up", "--date", "2024-05-01", "--reps", "8", "--weight", "10"])
    assert logged.exit_code == 0, logged.output

    data = json.loads((tmp_path / "data" / "workouts.json").read_text(encoding="utf-8"))
    (row,) = data["workouts"]
    assert row["weight"] == 80.0
    assert row["bodyweight"] == 70.0

    added = runner.invoke(app, ["add-set", "1"])
    assert added.exit_code == 0, added.output
    assert "Logged Pull Up (workout 2)." in added.output


def test_cli_reports_unknown_exercise(tmp_path, monkeypatch):
    runner = _runner(tmp_path, monkeypatch)
    result = runner.invoke(app, ["log", "Deadlift", "--reps", "5"])
    assert result.exit_code == 1
    assert "Exercise definition not found" in result.output


def test_cli_config(tmp_path, monkeypatch):
    runner = _runner(tmp_path, monkeypatch)
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["units"] == "metric"
    assert payload["source"] == "defaults"
