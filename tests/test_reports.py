from __future__ import annotations

import pytest

from workout_tracker.config import AppConfig, PBNotificationSettings
from workout_tracker.models import PBDelta
from workout_tracker.reports import build_notification, format_stat_value, interpret


def test_interpret_returns_only_achieved_metrics() -> None:
    result = {
        "weight": {"achieved": True, "new_value": 105, "previous_value": 100},
        "reps": {"achieved": False, "new_value": 5, "previous_value": 8},
    }
    deltas = interpret(result)
    assert deltas == [PBDelta("weight", True, 105, 100)]
    assert deltas[0].improvement == pytest.approx(5.0)


def test_interpret_without_result_or_achievement() -> None:
    assert interpret(None) is None
    assert interpret({}) is None
    assert interpret({"weight": {"achieved": False, "new_value": 90}}) is None


def test_interpret_keeps_fixed_metric_order() -> None:
    result = {
        "distance": {"achieved": True, "new_value": 10.5, "previous_value": 10},
        "reps": {"achieved": True, "new_value": 12, "previous_value": 10},
        "weight": {"achieved": True, "new_value": 60, "previous_value": None},
    }
    assert [delta.metric for delta in interpret(result)] == ["weight", "reps", "distance"]


def test_format_stat_value() -> None:
    assert format_stat_value(None) == "N/A"
    assert format_stat_value(1, "day", "days") == "1 day"
    assert format_stat_value(3, "day", "days") == "3 days"
    assert format_stat_value(2.346, "kg", precision=2) == "2.35 kg"
    assert format_stat_value("2024-05-01") == "2024-05-01"


def test_build_notification_uses_configured_units() -> None:
    deltas = [PBDelta("weight", True, 105, 100), PBDelta("duration", True, 40, None)]
    notification = build_notification(deltas, AppConfig(units="imperial"), exercise_name="Squat")

    assert notification is not None
    assert notification.title == "New personal best: Squat!"
    rendered = notification.render()
    assert "Max Weight: 105.00 lbs (previous 100.00 lbs, +5.00 lbs)" in rendered
    assert "Max Duration: 40 mins" in rendered


def test_build_notification_respects_settings() -> None:
    deltas = [PBDelta("weight", True, 105, 100)]
    muted = AppConfig(pb_notifications=PBNotificationSettings(notify_weight=False))
    assert build_notification(deltas, muted) is None
    disabled = AppConfig(pb_notifications=PBNotificationSettings(enabled=False))
    assert build_notification(deltas, disabled) is None
    assert build_notification(None, AppConfig()) is None
