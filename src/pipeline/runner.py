# src/pipeline/runner.py — v1
"""Workflow runner: drive every step in order through the state machine.

Supports:
  - Skip / manual / auto automation modes per step
  - Fail-fast on the first step failure, with an error snapshot on disk
  - Resume from per-step checkpoints
  - Cooperative cancellation between steps
  - Progress and per-step callbacks (callback failures are logged only)
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from genflow.core.errors import (
    GenflowError,
    MissingProjectContextError,
    StepExecutionError,
    WorkflowAlreadyRunningError,
)
from genflow.logging.context import set_run_context, step_context
from genflow.pipeline.executor import StepExecutor
from genflow.pipeline.manual import ManualStepDetector
from genflow.pipeline.models import (
    AutomationMode,
    StepExecutionContext,
    StepOutput,
    StepStatus,
    WorkflowProgress,
)
from genflow.pipeline.state_machine import WorkflowStateMachine
from genflow.storage.models import WorkflowSnapshot
from genflow.tracking.models import StepExecutionRecord
from genflow.tracking.step_tracker import StepTracker

logger = logging.getLogger(__name__)


@dataclass
class WorkflowConfig:
    """Inputs and callbacks of one run."""

    project_path: str | Path
    project_idea: str
    automation_mode: AutomationMode | None = None
    on_progress: Callable[[int, int, str], Any] | None = None
    on_step_complete: Callable[[str, StepOutput], Any] | None = None
    on_step_skip: Callable[[str], Any] | None = None
    on_manual_step_detected: Callable[[str, StepOutput], Any] | None = None


@dataclass
class WorkflowResult:
    """Result of a full workflow run."""

    success: bool
    completed_count: int = 0
    skipped_count: int = 0
    failed_step: str | None = None
    error: BaseException | None = None
    outputs: dict[str, StepOutput] = field(default_factory=dict)
    records: list[StepExecutionRecord] = field(default_factory=list)
    cancelled: bool = False
    duration_ms: int = 0


class WorkflowRunner:
    """Execute a workflow's steps against a state machine and an executor.

    Args:
        state_machine: Owns step states; one runner per state machine.
        executor: Runs single steps and writes checkpoints.
        tracker: Step record collector (a fresh one if omitted).
    """

    def __init__(
        self,
        state_machine: WorkflowStateMachine,
        executor: StepExecutor,
        tracker: StepTracker | None = None,
    ) -> None:
        self._sm = state_machine
        self._executor = executor
        self._tracker = tracker or StepTracker()
        self._running = False
        self._cancel_requested = False

    @property
    def state_machine(self) -> WorkflowStateMachine:
        return self._sm

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """Request a stop. Honored before the next step starts."""
        if self._running:
            logger.info("Cancellation requested")
            self._cancel_requested = True

    async def run(self, config: WorkflowConfig) -> WorkflowResult:
        """Run every non-terminal step in order.

        Raises:
            WorkflowAlreadyRunningError: If this runner is already running.
            MissingProjectContextError: If project path or idea is empty.
        """
        self._check_preconditions(config)
        self._tracker.reset()
        return await self._run(config, outputs={}, resume=False)

    async def resume(self, config: WorkflowConfig) -> WorkflowResult:
        """Restore state from checkpoints, then continue like ``run``.

        Completed checkpoints are replayed into the state machine and their
        outputs seeded into the result; skipped ones stay skipped. Anything
        else runs again. While a step is still in progress (a failed run on
        this runner), later completed checkpoints stay pending here and are
        replayed by the executor once the run reaches them.
        """
        self._check_preconditions(config)
        self._tracker.reset()

        records = await self._executor.store.load_all(self._sm.step_ids)
        outputs: dict[str, StepOutput] = {}
        active = self._sm.in_progress_step()
        deferred = 0
        for step_id in self._sm.step_ids:
            record = records.get(step_id)
            if record is None or self._sm.get_step_state(step_id).status != StepStatus.PENDING:
                continue
            if record.status == StepStatus.COMPLETED:
                if active is not None:
                    deferred += 1
                    continue
                self._sm.start_step(step_id)
                self._sm.complete_step(step_id)
                if record.output is not None:
                    outputs[step_id] = record.output
                self._tracker.record(
                    step_id, "completed", "checkpoint", attempts=record.attempts
                )
            elif record.status == StepStatus.SKIPPED:
                self._sm.skip_step(step_id)
                self._tracker.record(step_id, "skipped", "checkpoint")

        logger.info(
            "Resuming: %d completed, %d skipped from checkpoints",
            sum(1 for r in records.values() if r.status == StepStatus.COMPLETED),
            sum(1 for r in records.values() if r.status == StepStatus.SKIPPED),
        )
        if deferred:
            logger.info(
                "Step %s still in progress, %d completed checkpoint(s) replayed in order",
                active, deferred,
            )
        return await self._run(config, outputs=outputs, resume=True)

    def get_progress(self) -> WorkflowProgress:
        states = self._sm.get_all_step_states()
        counts = {status: 0 for status in StepStatus}
        for state in states:
            counts[state.status] += 1
        return WorkflowProgress(
            total=len(states),
            pending=counts[StepStatus.PENDING],
            in_progress=counts[StepStatus.IN_PROGRESS],
            completed=counts[StepStatus.COMPLETED],
            skipped=counts[StepStatus.SKIPPED],
            current=self._sm.get_current_step(),
        )

    # --- Internals ---

    def _check_preconditions(self, config: WorkflowConfig) -> None:
        if self._running:
            raise WorkflowAlreadyRunningError()
        if not str(config.project_path or "").strip():
            raise MissingProjectContextError("project_path")
        if not (config.project_idea or "").strip():
            raise MissingProjectContextError("project_idea")

    async def _run(
        self,
        config: WorkflowConfig,
        outputs: dict[str, StepOutput],
        resume: bool,
    ) -> WorkflowResult:
        self._running = True
        self._cancel_requested = False
        start_ns = time.monotonic_ns()
        project_path = Path(config.project_path).expanduser()
        detector = ManualStepDetector(project_path, self._executor.store.state_dir_name)
        result = WorkflowResult(success=False, outputs=outputs)

        run_id = uuid.uuid4().hex[:12]
        set_run_context(run_id, str(project_path))
        if config.automation_mode is not None:
            self._sm.set_global_automation_mode(config.automation_mode)

        step_ids = self._sm.step_ids
        total = len(step_ids)
        logger.info("Workflow %s: %d steps (resume=%s)", run_id, total, resume)

        try:
            for index, step_id in enumerate(step_ids, start=1):
                if self._cancel_requested:
                    logger.warning("Workflow cancelled before %s", step_id)
                    result.cancelled = True
                    break

                with step_context(step_id):
                    self._notify(config.on_progress, index, total, step_id)

                    state = self._sm.get_step_state(step_id)
                    if state.status == StepStatus.COMPLETED:
                        result.completed_count += 1
                        continue
                    if state.status == StepStatus.SKIPPED:
                        result.skipped_count += 1
                        continue

                    t0 = time.monotonic()
                    try:
                        handled = await self._run_step(
                            step_id, state.status, state.automation_mode,
                            config, project_path, detector, result, resume,
                        )
                    except StepExecutionError as exc:
                        self._fail(result, step_id, exc, exc.attempts, t0)
                        break
                    except GenflowError as exc:
                        self._fail(result, step_id, exc, 0, t0)
                        break
                    except Exception as exc:
                        logger.exception("Unexpected error in step %s", step_id)
                        self._fail(result, step_id, exc, 0, t0)
                        break
                    if handled == "skipped":
                        result.skipped_count += 1
                    else:
                        result.completed_count += 1
        finally:
            self._running = False

        result.records = self._tracker.records
        result.success = (
            result.error is None and not result.cancelled and self._sm.is_complete()
        )
        result.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000

        if result.failed_step is not None:
            await self._write_snapshot(project_path, result)
        elif result.success:
            await self._executor.store.clear_snapshot()

        logger.info(
            "Workflow %s finished: success=%s, %d completed, %d skipped, %dms",
            run_id, result.success, result.completed_count,
            result.skipped_count, result.duration_ms,
        )
        return result

    async def _run_step(
        self,
        step_id: str,
        status: StepStatus,
        mode: AutomationMode,
        config: WorkflowConfig,
        project_path: Path,
        detector: ManualStepDetector,
        result: WorkflowResult,
        resume: bool,
    ) -> str:
        """Handle one non-terminal step. Returns "skipped" or "completed"."""
        if mode == AutomationMode.SKIP:
            self._sm.skip_step(step_id)
            await self._executor.mark_step_skipped(step_id)
            self._tracker.record(step_id, "skipped", "skipped")
            self._notify(config.on_step_skip, step_id)
            return "skipped"

        t0 = time.monotonic()
        if mode == AutomationMode.MANUAL:
            manual = await detector.load_manual_output(step_id)
            if manual is not None:
                if status == StepStatus.PENDING:
                    self._sm.start_step(step_id)
                await self._executor.save_manual_output(step_id, manual)
                self._sm.complete_step(step_id)
                result.outputs[step_id] = manual
                self._tracker.record(
                    step_id, "completed", "manual", elapsed_ms=_elapsed_ms(t0)
                )
                self._notify(config.on_manual_step_detected, step_id, manual)
                self._notify(config.on_step_complete, step_id, manual)
                return "completed"
            logger.info("No manual output for %s, running automatically", step_id)

        context = StepExecutionContext(
            project_path=project_path,
            project_idea=config.project_idea,
            previous_outputs=dict(result.outputs),
            resume=resume,
            automation_mode=mode,
        )
        if status == StepStatus.PENDING:
            self._sm.start_step(step_id)
        output = await self._executor.execute_step(step_id, context)
        self._sm.complete_step(step_id)
        result.outputs[step_id] = output

        outcome = self._executor.last_outcome(step_id)
        self._tracker.record(
            step_id,
            "completed",
            self._executor.last_source(step_id) or "generated",
            attempts=outcome.attempts if outcome else 0,
            elapsed_ms=_elapsed_ms(t0),
        )
        self._notify(config.on_step_complete, step_id, output)
        return "completed"

    def _fail(
        self,
        result: WorkflowResult,
        step_id: str,
        exc: BaseException,
        attempts: int,
        t0: float,
    ) -> None:
        logger.error("Workflow stopped at %s: %s", step_id, exc)
        result.failed_step = step_id
        result.error = exc
        self._tracker.record(
            step_id, "failed", "generated",
            attempts=attempts, elapsed_ms=_elapsed_ms(t0), error=str(exc),
        )

    async def _write_snapshot(self, project_path: Path, result: WorkflowResult) -> None:
        outcome = self._executor.last_outcome(result.failed_step or "")
        snapshot = WorkflowSnapshot(
            project_path=str(project_path),
            failed_step=result.failed_step,
            error_message=str(result.error) if result.error else None,
            attempts=outcome.attempts if outcome else 0,
            statuses={s.step_id: s.status for s in self._sm.get_all_step_states()},
        )
        try:
            await self._executor.store.save_snapshot(snapshot)
        except GenflowError as e:
            logger.warning("Could not write error snapshot: %s", e)

    @staticmethod
    def _notify(callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.warning("Callback %r failed: %s", callback, e)


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)
