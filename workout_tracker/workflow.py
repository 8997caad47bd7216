from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Union

from .models import ExerciseDefinition, PBDelta, StoredWorkoutRecord
from .reports import interpret
from .services import (
    AddPayload,
    EditPayload,
    FormValues,
    form_values_from_record,
    plan_add,
    plan_edit,
    prefill_from_previous,
)
from .storage import WorkoutGateway

LOGGER = logging.getLogger(__name__)


class WorkflowError(RuntimeError):
    """Raised for a transition the log workflow does not allow."""


@dataclass(frozen=True)
class SelectingExercise:
    pass


@dataclass(frozen=True)
class EnteringDetails:
    definition: ExerciseDefinition
    values: FormValues
    original: FormValues | None = None
    record_id: int | None = None
    preselected: bool = False

    @property
    def is_edit(self) -> bool:
        return self.record_id is not None


@dataclass(frozen=True)
class Submitted:
    exercise_name: str
    record_id: int | None
    wrote: bool
    payload: AddPayload | EditPayload
    personal_bests: tuple[PBDelta, ...] | None = None


WorkflowState = Union[SelectingExercise, EnteringDetails, Submitted]


class LogWorkflow:
    """
    Add, add-set and edit flows for a single logged set.

    Adding starts by selecting an exercise; add-set and edit start directly on
    the details step. Every entry into the details step takes a fresh, immutable
    snapshot of the form, and submitting performs at most one write before the
    workflow closes.
    """

    def __init__(
        self,
        gateway: WorkoutGateway,
        *,
        on: date | datetime | str | None = None,
        current_bodyweight: float | None = None,
        state: WorkflowState | None = None,
    ) -> None:
        self.gateway = gateway
        self.on = on or date.today()
        self.current_bodyweight = current_bodyweight
        self.state: WorkflowState = state or SelectingExercise()

    @classmethod
    def start_add_set(
        cls,
        gateway: WorkoutGateway,
        definition: ExerciseDefinition,
        source: StoredWorkoutRecord | Mapping[str, Any],
        *,
        on: date | datetime | str | None = None,
        current_bodyweight: float | None = None,
    ) -> "LogWorkflow":
        details = EnteringDetails(
            definition=definition,
            values=prefill_from_previous(definition, [source]),
            preselected=True,
        )
        return cls(gateway, on=on, current_bodyweight=current_bodyweight, state=details)

    @classmethod
    def start_edit(
        cls,
        gateway: WorkoutGateway,
        definition: ExerciseDefinition,
        record: StoredWorkoutRecord,
        *,
        current_bodyweight: float | None = None,
    ) -> "LogWorkflow":
        original = form_values_from_record(record)
        details = EnteringDetails(
            definition=definition,
            values=original,
            original=original,
            record_id=record.id,
            preselected=True,
        )
        return cls(gateway, on=record.date, current_bodyweight=current_bodyweight, state=details)

    def _details(self) -> EnteringDetails:
        if not isinstance(self.state, EnteringDetails):
            raise WorkflowError(f"Not entering details (state: {type(self.state).__name__}).")
        return self.state

    def select_exercise(self, definition: ExerciseDefinition) -> EnteringDetails:
        """Move to the details step, pre-filling from the last time it was logged."""
        if not isinstance(self.state, SelectingExercise):
            raise WorkflowError("An exercise can only be selected on the selection step.")
        try:
            previous = self.gateway.get_previous_workout_details(definition.name, 1)
        except Exception as exc:
            LOGGER.warning("Could not fetch previous workout for %r: %s", definition.name, exc)
            previous = []
        self.state = EnteringDetails(
            definition=definition,
            values=prefill_from_previous(definition, previous),
        )
        return self.state

    def update_field(self, name: str, value: Any) -> EnteringDetails:
        details = self._details()
        self.state = EnteringDetails(
            definition=details.definition,
            values=details.values.with_value(name, value),
            original=details.original,
            record_id=details.record_id,
            preselected=details.preselected,
        )
        return self.state

    def back(self) -> SelectingExercise:
        """Return to exercise selection, discarding everything entered."""
        details = self._details()
        if details.preselected:
            raise WorkflowError("This flow started with a chosen exercise; there is no selection step.")
        self.state = SelectingExercise()
        return self.state

    def submit(self) -> Submitted:
        """
        Plan the write and send it to the gateway exactly once.

        Validation errors leave the workflow on the details step. An edit with
        nothing changed closes without calling the gateway.
        """
        details = self._details()
        definition = details.definition

        if details.is_edit:
            payload = plan_edit(
                definition,
                details.values,
                details.original or FormValues(),
                details.record_id,
                self.current_bodyweight,
            )
            if payload.is_noop:
                LOGGER.info("Edit of workout %s changed nothing; skipping write.", details.record_id)
                self.state = Submitted(definition.name, details.record_id, False, payload)
                return self.state
            self.gateway.edit_workout(payload.to_params())
            self.state = Submitted(definition.name, details.record_id, True, payload)
            return self.state

        add_payload = plan_add(definition, details.values, self.on, self.current_bodyweight)
        record_id, pb_result = self.gateway.add_workout(add_payload.to_params())
        deltas = interpret(pb_result)
        self.state = Submitted(
            definition.name,
            record_id,
            True,
            add_payload,
            tuple(deltas) if deltas else None,
        )
        return self.state
