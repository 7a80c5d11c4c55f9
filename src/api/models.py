# src/api/models.py — v1
"""API-level models: StepStatusEntry, StatusReport.

Status is derived from checkpoint files only, so it can be read without a
running workflow (e.g. by ``genflow status`` after a crash).
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from genflow.pipeline.models import StepStatus, WorkflowProgress
from genflow.storage.models import WorkflowSnapshot


class StepStatusEntry(BaseModel):
    """Checkpoint-derived status of one step."""

    step_id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    attempts: int = 0
    duration_ms: int = 0
    saved_at: datetime | None = None
    error: str | None = None


class StatusReport(BaseModel):
    """Progress of a project and the last recorded failure, if any."""

    project_path: Path
    steps: list[StepStatusEntry] = Field(default_factory=list)
    progress: WorkflowProgress
    last_error: WorkflowSnapshot | None = None

    @property
    def next_step(self) -> str | None:
        """First step that is neither completed nor skipped."""
        for entry in self.steps:
            if not entry.status.is_terminal:
                return entry.step_id
        return None
