from __future__ import annotations

import json
import logging
from datetime import date
from typing import List, Mapping, NoReturn, Optional

import typer

from .analysis import group_by_exercise
from .config import AppConfig, as_dict as config_as_dict, get_config
from .filters import (
    TIME_FRAMES,
    DefinitionIndex,
    active_dates,
    apply_filters,
    filter_by_date_range,
    month_grid,
    resolve_definition,
    search_definitions,
    time_frame_bounds,
)
from .metrics import GRAPH_TYPES, daily_series, exercise_summary
from .models import (
    METRIC_FIELDS,
    ExerciseDefinition,
    ExerciseType,
    FilterSpec,
    SetEntry,
    StoredWorkoutRecord,
    ValidationError,
    local_date,
)
from .reports import build_notification, format_stat_value
from .services import AddPayload, edit_scope_warning, plan_delete
from .storage import JsonWorkoutStore, StorageError
from .workflow import LogWorkflow, Submitted

app = typer.Typer(help="Log workout sets and review them by day, month and exercise.")


def _fail(message: str, *, code: int = 1) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _store() -> JsonWorkoutStore:
    return JsonWorkoutStore()


def _describe_metrics(metrics: Mapping[str, float | int], config: AppConfig) -> str:
    if not metrics:
        return "set logged, no metrics"
    parts: list[str] = []
    if "reps" in metrics:
        parts.append(format_stat_value(metrics["reps"], "rep", "reps"))
    if "weight" in metrics:
        parts.append("@ " + format_stat_value(metrics["weight"], config.weight_unit, precision=1))
    if "duration" in metrics:
        parts.append(format_stat_value(metrics["duration"], "min", "mins"))
    if "distance" in metrics:
        parts.append(format_stat_value(metrics["distance"], config.distance_unit, precision=2))
    return " ".join(parts)


def _find_record(store: JsonWorkoutStore, record_id: int) -> StoredWorkoutRecord:
    for record in store.list_workouts():
        if record.id == record_id:
            return record
    _fail(f"Workout {record_id} not found.")


def _apply_options(workflow: LogWorkflow, options: Mapping[str, Optional[str]]) -> None:
    for name, value in options.items():
        if value is not None:
            workflow.update_field(name, value)


def _echo_submission(outcome: Submitted, config: AppConfig) -> None:
    if not outcome.wrote:
        typer.echo("No changes to save.")
        return
    if isinstance(outcome.payload, AddPayload):
        typer.echo(f"Logged {outcome.exercise_name} (workout {outcome.record_id}).")
    else:
        typer.echo(f"Updated workout {outcome.record_id}.")
    notification = build_notification(
        outcome.personal_bests, config, exercise_name=outcome.exercise_name
    )
    if notification is not None:
        typer.secho(notification.render(), fg=typer.colors.GREEN)


@app.command("exercise-add")
def exercise_add(
    name: str = typer.Argument(..., help="Exercise name."),
    exercise_type: str = typer.Option("Resistance", "--type", "-t", help="Resistance, BodyWeight or Cardio."),
    muscles: Optional[str] = typer.Option(None, "--muscles", "-m", help="Comma-separated muscle groups."),
    log_weight: bool = typer.Option(True, "--log-weight/--no-log-weight"),
    log_reps: bool = typer.Option(True, "--log-reps/--no-log-reps"),
    log_duration: bool = typer.Option(False, "--log-duration/--no-log-duration"),
    log_distance: bool = typer.Option(False, "--log-distance/--no-log-distance"),
) -> None:
    """Create an exercise definition."""
    try:
        definition = ExerciseDefinition(
            name=name.strip(),
            exercise_type=ExerciseType.parse(exercise_type),
            muscles=muscles,
            log_weight=log_weight,
            log_reps=log_reps,
            log_duration=log_duration,
            log_distance=log_distance,
        )
        created = _store().create_exercise(definition)
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))
    typer.echo(f"Created {created.name} ({created.exercise_type.value}).")


@app.command()
def exercises(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Name contains this text."),
    exercise_type: Optional[str] = typer.Option(None, "--type", "-t"),
    muscle: List[str] = typer.Option([], "--muscle", help="Muscle group (repeatable)."),
) -> None:
    """List exercise definitions."""
    try:
        found = search_definitions(
            _store().list_exercise_definitions(),
            search=search,
            exercise_type=exercise_type,
            muscles=muscle,
        )
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))
    if not found:
        typer.echo("No exercises found.")
        return
    for definition in found:
        metrics = ", ".join(definition.enabled_metrics) or "none"
        muscles = definition.muscles or "-"
        typer.echo(f"{definition.name} [{definition.exercise_type.value}] muscles={muscles} logs={metrics}")


@app.command()
def bodyweight(weight: float = typer.Argument(..., help="Current bodyweight.")) -> None:
    """Record the current bodyweight used for bodyweight exercises."""
    try:
        _store().add_bodyweight(weight)
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))
    typer.echo(f"Bodyweight set to {weight:g} {get_config().weight_unit}.")


@app.command()
def log(
    exercise: str = typer.Argument(..., help="Exercise name."),
    date_text: Optional[str] = typer.Option(None, "--date", "-d", help="YYYY-MM-DD (defaults to today)."),
    reps: Optional[str] = typer.Option(None, "--reps", "-r"),
    weight: Optional[str] = typer.Option(None, "--weight", "-w", help="Additional weight for bodyweight exercises."),
    duration: Optional[str] = typer.Option(None, "--duration", help="Minutes."),
    distance: Optional[str] = typer.Option(None, "--distance"),
    notes: Optional[str] = typer.Option(None, "--notes"),
    use_previous: bool = typer.Option(False, "--use-previous", help="Start from the last logged values."),
) -> None:
    """Log one set of an exercise."""
    store = _store()
    config = get_config()
    try:
        definition = resolve_definition(exercise, store.list_exercise_definitions())
        workflow = LogWorkflow(
            store,
            on=date_text or date.today(),
            current_bodyweight=store.current_bodyweight(),
        )
        workflow.select_exercise(definition)
        if not use_previous:
            for name in METRIC_FIELDS:
                workflow.update_field(name, "")
        _apply_options(
            workflow,
            {"reps": reps, "weight": weight, "duration": duration, "distance": distance, "notes": notes},
        )
        outcome = workflow.submit()
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))
    _echo_submission(outcome, config)


@app.command("add-set")
def add_set(
    record_id: int = typer.Argument(..., help="Workout to repeat."),
    reps: Optional[str] = typer.Option(None, "--reps", "-r"),
    weight: Optional[str] = typer.Option(None, "--weight", "-w"),
    duration: Optional[str] = typer.Option(None, "--duration"),
    distance: Optional[str] = typer.Option(None, "--distance"),
    notes: Optional[str] = typer.Option(None, "--notes"),
) -> None:
    """Log another set like an existing one, on the same day."""
    store = _store()
    config = get_config()
    record = _find_record(store, record_id)
    try:
        definition = resolve_definition(record, store.list_exercise_definitions())
        workflow = LogWorkflow.start_add_set(
            store,
            definition,
            record,
            on=local_date(record.date, config.tzinfo()) or date.today(),
            current_bodyweight=store.current_bodyweight(),
        )
        _apply_options(
            workflow,
            {"reps": reps, "weight": weight, "duration": duration, "distance": distance, "notes": notes},
        )
        outcome = workflow.submit()
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))
    _echo_submission(outcome, config)


@app.command()
def edit(
    record_id: int = typer.Argument(..., help="Workout to edit."),
    reps: Optional[str] = typer.Option(None, "--reps", "-r", help="New reps ('' clears)."),
    weight: Optional[str] = typer.Option(None, "--weight", "-w", help="New weight ('' clears)."),
    duration: Optional[str] = typer.Option(None, "--duration"),
    distance: Optional[str] = typer.Option(None, "--distance"),
    notes: Optional[str] = typer.Option(None, "--notes"),
) -> None:
    """Edit a logged workout; every set stored with it changes together."""
    store = _store()
    config = get_config()
    record = _find_record(store, record_id)
    try:
        definition = resolve_definition(record, store.list_exercise_definitions())
        workflow = LogWorkflow.start_edit(
            store, definition, record, current_bodyweight=store.current_bodyweight()
        )
        _apply_options(
            workflow,
            {"reps": reps, "weight": weight, "duration": duration, "distance": distance, "notes": notes},
        )
        outcome = workflow.submit()
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))
    if record.effective_sets > 1 and outcome.wrote:
        typer.secho(
            f"Note: this workout stores {record.effective_sets} sets; all of them were updated.",
            fg=typer.colors.YELLOW,
        )
    _echo_submission(outcome, config)


def _entries_by_ui_id(records: List[StoredWorkoutRecord]) -> dict[str, SetEntry]:
    return {
        entry.ui_id: entry
        for group in group_by_exercise(records)
        for entry in group.entries
    }


@app.command()
def delete(
    targets: List[str] = typer.Argument(..., help="Workout ids (42) or set ids (42-1)."),
) -> None:
    """Delete workouts, or the workouts behind the given sets."""
    store = _store()
    records = store.list_workouts()
    entries = _entries_by_ui_id(records)

    selected: list[SetEntry] = []
    for target in targets:
        if target in entries:
            selected.append(entries[target])
            continue
        matching = [entry for entry in entries.values() if str(entry.record_id) == target]
        if not matching:
            _fail(f"Nothing logged matches {target!r}.")
        selected.extend(matching)

    plan = plan_delete(selected)
    if plan.warning:
        typer.secho(plan.warning, fg=typer.colors.YELLOW)
    try:
        deleted = store.delete_workouts(plan.record_ids)
    except StorageError as exc:
        _fail(str(exc))
    typer.echo(f"Deleted {len(deleted)} workout(s), {plan.affected_sets} set(s).")


def _filter_spec(exercise: List[str], muscle: List[str], on: Optional[str]) -> FilterSpec:
    try:
        return FilterSpec.build(exercises=exercise, muscles=muscle, on=on)
    except ValidationError as exc:
        _fail(str(exc))


@app.command()
def day(
    date_text: Optional[str] = typer.Option(None, "--date", "-d", help="YYYY-MM-DD (defaults to today)."),
    exercise: List[str] = typer.Option([], "--exercise", "-e", help="Exercise name (repeatable)."),
    muscle: List[str] = typer.Option([], "--muscle", help="Muscle group (repeatable)."),
) -> None:
    """Show the sets logged on one day, grouped by exercise."""
    store = _store()
    config = get_config()
    spec = _filter_spec(exercise, muscle, date_text or date.today().isoformat())
    try:
        records = apply_filters(
            store.list_workouts(),
            spec,
            DefinitionIndex(store.list_exercise_definitions()),
            tz=config.tzinfo(),
        )
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))

    groups = group_by_exercise(records)
    typer.echo(f"{spec.date.isoformat()}:")
    if not groups:
        typer.echo("  No workouts logged.")
        return
    for group in groups:
        typer.echo(f"  {group.exercise_name}")
        for position, entry in enumerate(group.entries, start=1):
            marker = f" (workout {entry.record_id}, {entry.set_count} sets stored together)" if entry.shares_record else f" (workout {entry.record_id})"
            typer.echo(f"    {position}. {_describe_metrics(entry.metrics, config)}{marker}")
            warning = edit_scope_warning(entry)
            if warning and entry.index == entry.set_count - 1:
                typer.echo(f"       {warning}")


@app.command()
def calendar(
    year: int = typer.Option(date.today().year, "--year", "-y"),
    month: int = typer.Option(date.today().month, "--month", "-m", min=1, max=12),
    exercise: List[str] = typer.Option([], "--exercise", "-e"),
    muscle: List[str] = typer.Option([], "--muscle"),
) -> None:
    """Show which days of a month have workouts (marked with *)."""
    store = _store()
    config = get_config()
    spec = _filter_spec(exercise, muscle, None)
    try:
        records = apply_filters(
            store.list_workouts(),
            spec,
            DefinitionIndex(store.list_exercise_definitions()),
            tz=config.tzinfo(),
        )
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))
    highlighted = active_dates(records, year, month, tz=config.tzinfo())

    typer.echo(f"{year}-{month:02d}")
    typer.echo("  Su  Mo  Tu  We  Th  Fr  Sa")
    for week in month_grid(year, month, highlighted):
        cells = []
        for cell in week:
            if cell is None:
                cells.append("    ")
            else:
                day_number, has_workout = cell
                cells.append(f"{day_number:>3}{'*' if has_workout else ' '}")
        typer.echo("".join(cells).rstrip())
    typer.echo(f"{len(highlighted)} active day(s).")


@app.command()
def stats(
    exercise: str = typer.Argument(..., help="Exercise name."),
    graph: str = typer.Option("max_weight", "--graph", "-g", help=f"One of: {', '.join(GRAPH_TYPES)}."),
    time_frame: str = typer.Option("all", "--time-frame", help=f"One of: {', '.join(TIME_FRAMES)}."),
) -> None:
    """Summary statistics and per-day chart data for an exercise."""
    store = _store()
    config = get_config()
    try:
        definition = resolve_definition(exercise, store.list_exercise_definitions())
        records = store.list_workouts({"exercise_name": definition.name})
        start, end = time_frame_bounds(time_frame)
        records = filter_by_date_range(records, start, end, tz=config.tzinfo())
        summary = exercise_summary(records, tz=config.tzinfo())
        series = daily_series(records, graph, tz=config.tzinfo())
    except (ValidationError, StorageError) as exc:
        _fail(str(exc))

    typer.echo(f"Statistics for '{definition.name}'")
    typer.echo(f"  Total workouts: {format_stat_value(summary.total_workouts)}")
    typer.echo(f"  Total sets: {format_stat_value(summary.total_sets)}")
    typer.echo(f"  First workout: {format_stat_value(summary.first_workout_date and summary.first_workout_date.isoformat())}")
    typer.echo(f"  Last workout: {format_stat_value(summary.last_workout_date and summary.last_workout_date.isoformat())}")
    typer.echo(f"  Avg workouts / week: {format_stat_value(summary.avg_workouts_per_week, precision=2)}")
    typer.echo(f"  Longest gap: {format_stat_value(summary.longest_gap_days, 'day', 'days')}")
    typer.echo(f"  {graph}:")
    if not series:
        typer.echo("    No data available for this selection.")
    for stamp, value in series:
        typer.echo(f"    {stamp}  {value:.2f}")


@app.command("config")
def show_config() -> None:
    """Print the effective configuration."""
    typer.echo(json.dumps(config_as_dict(), indent=2))
