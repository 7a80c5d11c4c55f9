# src/pipeline/state_machine.py — v1
"""Step lifecycle state machine.

Transitions:
    pending      -> in_progress   start_step
    in_progress  -> completed     complete_step
    pending      -> skipped       skip_step
    in_progress  -> skipped       skip_step
    completed    -> pending       go_to_step
    skipped      -> pending       go_to_step

At most one step is in progress at any instant. Every change is published
as a WorkflowEvent through the emitter; observer failures never abort a
transition.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Sequence

from genflow.core.errors import InvalidTransitionError, StepNotFoundError
from genflow.pipeline.events import Observer, WorkflowEventEmitter
from genflow.pipeline.models import (
    AutomationMode,
    StepState,
    StepStatus,
    WorkflowEvent,
    WorkflowEventType,
    WorkflowState,
    utc_now,
)
from genflow.pipeline.registry import StepRegistry

logger = logging.getLogger(__name__)

# Allowed source states per trigger.
_TRANSITIONS: dict[str, tuple[frozenset[StepStatus], StepStatus]] = {
    "start": (frozenset({StepStatus.PENDING}), StepStatus.IN_PROGRESS),
    "complete": (frozenset({StepStatus.IN_PROGRESS}), StepStatus.COMPLETED),
    "skip": (frozenset({StepStatus.PENDING, StepStatus.IN_PROGRESS}), StepStatus.SKIPPED),
    "reset": (frozenset({StepStatus.COMPLETED, StepStatus.SKIPPED}), StepStatus.PENDING),
}


class WorkflowStateMachine:
    """Owns the StepState of every step in a workflow.

    Args:
        steps: Ordered step ids, or a StepRegistry.
        automation_mode: Initial mode for every step.
        emitter: Event emitter; a private one is created if omitted.
    """

    def __init__(
        self,
        steps: Sequence[str] | StepRegistry,
        automation_mode: AutomationMode = AutomationMode.AUTO,
        emitter: WorkflowEventEmitter | None = None,
    ) -> None:
        step_ids = steps.step_ids if isinstance(steps, StepRegistry) else list(steps)
        if not step_ids:
            raise ValueError("A workflow needs at least one step")
        if len(set(step_ids)) != len(step_ids):
            raise ValueError("Step ids must be unique")

        self._order: list[str] = step_ids
        self._index: dict[str, int] = {sid: i for i, sid in enumerate(step_ids)}
        self._steps: dict[str, StepState] = {
            sid: StepState(step_id=sid, automation_mode=automation_mode)
            for sid in step_ids
        }
        self._current_index = 0
        self._global_mode = automation_mode
        self._started_at: datetime | None = None
        self._completed_at: datetime | None = None
        self._emitter = emitter or WorkflowEventEmitter()

    # --- Events ---

    @property
    def emitter(self) -> WorkflowEventEmitter:
        return self._emitter

    def subscribe(
        self,
        observer: Observer,
        event_types: Iterable[WorkflowEventType] | None = None,
    ):
        """Shortcut for ``emitter.subscribe``; returns an unsubscribe function."""
        return self._emitter.subscribe(observer, event_types)

    def _emit(self, event_type: WorkflowEventType, **fields) -> None:
        self._emitter.emit(WorkflowEvent(type=event_type, **fields))

    # --- Queries ---

    @property
    def step_ids(self) -> list[str]:
        return list(self._order)

    def get_current_step(self) -> str:
        return self._order[self._current_index]

    def get_current_step_index(self) -> int:
        return self._current_index

    def get_step_state(self, step_id: str) -> StepState:
        """Return a copy of the step's state."""
        return self._get(step_id).model_copy()

    def get_all_step_states(self) -> list[StepState]:
        return [self._steps[sid].model_copy() for sid in self._order]

    def get_workflow_state(self) -> WorkflowState:
        return WorkflowState(
            steps=self.get_all_step_states(),
            current_step_index=self._current_index,
            global_automation_mode=self._global_mode,
            started_at=self._started_at,
            completed_at=self._completed_at,
        )

    def is_complete(self) -> bool:
        return all(state.status.is_terminal for state in self._steps.values())

    def is_started(self) -> bool:
        return self._started_at is not None

    def in_progress_step(self) -> str | None:
        for sid in self._order:
            if self._steps[sid].status == StepStatus.IN_PROGRESS:
                return sid
        return None

    def get_global_automation_mode(self) -> AutomationMode:
        return self._global_mode

    def get_automation_mode(self, step_id: str) -> AutomationMode:
        return self._get(step_id).automation_mode

    # --- Transitions ---

    def start_step(self, step_id: str) -> None:
        state = self._check("start", step_id)
        active = self.in_progress_step()
        if active is not None:
            raise InvalidTransitionError(
                step_id,
                f"{state.status.value} (step '{active}' is in_progress)",
                StepStatus.IN_PROGRESS.value,
            )

        now = utc_now()
        if self._started_at is None:
            self._started_at = now
            self._emit(WorkflowEventType.WORKFLOW_STARTED, timestamp=now)

        state.status = StepStatus.IN_PROGRESS
        state.started_at = now
        self._current_index = self._index[step_id]
        logger.debug("Step %s started", step_id)
        self._emit(WorkflowEventType.STEP_STARTED, step_id=step_id, timestamp=now)

    def complete_step(self, step_id: str) -> None:
        state = self._check("complete", step_id)
        now = utc_now()
        state.status = StepStatus.COMPLETED
        state.completed_at = now
        logger.debug("Step %s completed", step_id)
        self._emit(WorkflowEventType.STEP_COMPLETED, step_id=step_id, timestamp=now)
        self._check_workflow_completed(now)

    def skip_step(self, step_id: str) -> None:
        state = self._check("skip", step_id)
        now = utc_now()
        state.status = StepStatus.SKIPPED
        state.completed_at = now
        logger.debug("Step %s skipped", step_id)
        self._emit(WorkflowEventType.STEP_SKIPPED, step_id=step_id, timestamp=now)
        self._check_workflow_completed(now)

    def go_to_step(self, step_id: str) -> None:
        """Reset a completed or skipped step to pending and move the cursor to it.

        On an already pending step only the cursor moves.
        """
        state = self._get(step_id)
        if state.status == StepStatus.PENDING:
            self._current_index = self._index[step_id]
            return

        self._check("reset", step_id)
        state.status = StepStatus.PENDING
        state.started_at = None
        state.completed_at = None
        self._current_index = self._index[step_id]
        self._completed_at = None
        logger.debug("Step %s reset to pending", step_id)
        self._emit(WorkflowEventType.STEP_RESET, step_id=step_id)

    # --- Automation control ---

    def set_step_automation_mode(self, step_id: str, mode: AutomationMode) -> None:
        state = self._get(step_id)
        previous = state.automation_mode
        if previous == mode:
            return
        state.automation_mode = mode
        self._emit(
            WorkflowEventType.MODE_CHANGED,
            step_id=step_id,
            previous_value=previous.value,
            new_value=mode.value,
        )

    def set_global_automation_mode(self, mode: AutomationMode) -> None:
        """Change the global mode. Only pending steps take the new mode."""
        previous = self._global_mode
        if previous == mode:
            return
        self._global_mode = mode
        for state in self._steps.values():
            if state.status == StepStatus.PENDING:
                state.automation_mode = mode
        self._emit(
            WorkflowEventType.MODE_CHANGED,
            previous_value=previous.value,
            new_value=mode.value,
        )

    # --- Internals ---

    def _get(self, step_id: str) -> StepState:
        state = self._steps.get(step_id)
        if state is None:
            raise StepNotFoundError(step_id)
        return state

    def _check(self, trigger: str, step_id: str) -> StepState:
        state = self._get(step_id)
        allowed, target = _TRANSITIONS[trigger]
        if state.status not in allowed:
            raise InvalidTransitionError(step_id, state.status.value, target.value)
        return state

    def _check_workflow_completed(self, now: datetime) -> None:
        if self._completed_at is None and self.is_complete():
            self._completed_at = now
            logger.info("Workflow completed")
            self._emit(WorkflowEventType.WORKFLOW_COMPLETED, timestamp=now)
