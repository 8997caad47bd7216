from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .config import AppConfig
from .models import PB_METRICS, PBDelta, parse_optional_number

PB_TITLES = {
    "weight": "Max Weight",
    "reps": "Max Reps",
    "duration": "Max Duration",
    "distance": "Max Distance",
}


@dataclass(frozen=True)
class PBLine:
    metric: str
    title: str
    value_text: str
    previous_text: str | None
    improvement_text: str | None

    def render(self) -> str:
        text = f"{self.title}: {self.value_text}"
        if self.previous_text is not None:
            text += f" (previous {self.previous_text}"
            if self.improvement_text is not None:
                text += f", {self.improvement_text}"
            text += ")"
        return text


@dataclass(frozen=True)
class PBNotification:
    exercise_name: str | None
    lines: tuple[PBLine, ...]

    @property
    def title(self) -> str:
        if self.exercise_name:
            return f"New personal best: {self.exercise_name}!"
        return "New personal best!"

    def render(self) -> str:
        return "\n".join([self.title, *(f"  {line.render()}" for line in self.lines)])


def _field(source: Any, name: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def interpret(pb_result: Any) -> list[PBDelta] | None:
    """
    Read a personal-best result handed back by a write call.

    Returns the achieved metrics in fixed order (weight, reps, duration,
    distance), or None when no result was given or nothing improved.
    """
    if pb_result is None:
        return None

    deltas: list[PBDelta] = []
    for metric in PB_METRICS:
        entry = _field(pb_result, metric)
        if entry is None:
            continue
        if not bool(_field(entry, "achieved")):
            continue
        deltas.append(
            PBDelta(
                metric=metric,
                achieved=True,
                new_value=parse_optional_number(_field(entry, "new_value")),
                previous_value=parse_optional_number(_field(entry, "previous_value")),
            )
        )
    return deltas or None


def format_stat_value(
    value: float | int | str | None,
    unit: str = "",
    plural: str | None = None,
    precision: int = 0,
) -> str:
    """Display text for a statistic, with a singular/plural unit when given."""
    if value is None:
        return "N/A"
    if isinstance(value, str):
        return value
    text = f"{value:.{precision}f}"
    if not unit:
        return text
    label = unit if value in (1, -1) else (plural or unit)
    return f"{text} {label}"


def _metric_units(metric: str, config: AppConfig) -> tuple[str, str | None, int]:
    if metric == "weight":
        return config.weight_unit, None, 2
    if metric == "distance":
        return config.distance_unit, None, 2
    if metric == "duration":
        return "min", "mins", 0
    return "", None, 0


def build_notification(
    deltas: Sequence[PBDelta] | None,
    config: AppConfig,
    *,
    exercise_name: str | None = None,
) -> PBNotification | None:
    """
    Turn interpreted deltas into display lines, honouring notification settings.

    Values are labelled with the configured units but never converted.
    """
    if not deltas:
        return None

    lines: list[PBLine] = []
    for delta in deltas:
        if not config.pb_notifications.allows(delta.metric):
            continue
        unit, plural, precision = _metric_units(delta.metric, config)
        improvement = delta.improvement
        lines.append(
            PBLine(
                metric=delta.metric,
                title=PB_TITLES[delta.metric],
                value_text=format_stat_value(delta.new_value, unit, plural, precision),
                previous_text=(
                    format_stat_value(delta.previous_value, unit, plural, precision)
                    if delta.previous_value is not None
                    else None
                ),
                improvement_text=(
                    "+" + format_stat_value(improvement, unit, plural, precision)
                    if improvement is not None and improvement > 0
                    else None
                ),
            )
        )
    if not lines:
        return None
    return PBNotification(exercise_name=exercise_name, lines=tuple(lines))
