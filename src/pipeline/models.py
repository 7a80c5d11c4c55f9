# src/pipeline/models.py — v1
"""Workflow data types: step state, events, progress and step outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.SKIPPED)


class AutomationMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    SKIP = "skip"


class StepState(BaseModel):
    """Lifecycle state of one step. Owned by the state machine."""

    step_id: str
    status: StepStatus = StepStatus.PENDING
    automation_mode: AutomationMode = AutomationMode.AUTO
    started_at: datetime | None = None
    completed_at: datetime | None = None


class WorkflowState(BaseModel):
    """Snapshot of the whole workflow. Complete when every step is terminal."""

    steps: list[StepState]
    current_step_index: int = 0
    global_automation_mode: AutomationMode = AutomationMode.AUTO
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return all(step.status.is_terminal for step in self.steps)


class WorkflowEventType(str, Enum):
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_SKIPPED = "step_skipped"
    STEP_RESET = "step_reset"
    MODE_CHANGED = "mode_changed"
    WORKFLOW_STARTED = "workflow_started"
    WORKFLOW_COMPLETED = "workflow_completed"


class WorkflowEvent(BaseModel):
    """Immutable notification of a state machine change."""

    model_config = ConfigDict(frozen=True)

    type: WorkflowEventType
    step_id: str | None = None
    previous_value: str | None = None
    new_value: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class WorkflowProgress(BaseModel):
    """Counts derived from the state machine."""

    total: int
    pending: int
    in_progress: int
    completed: int
    skipped: int
    current: str | None = None

    @property
    def done(self) -> int:
        return self.completed + self.skipped

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return round(100.0 * self.done / self.total, 1)


class StepOutput(BaseModel):
    """Artifact produced by a single step."""

    content: str
    files: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class StepExecutionContext(BaseModel):
    """Inputs available to a step when it runs."""

    project_path: Path
    project_idea: str
    previous_outputs: dict[str, StepOutput] = Field(default_factory=dict)
    resume: bool = False
    automation_mode: AutomationMode = AutomationMode.AUTO
