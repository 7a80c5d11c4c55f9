# src/storage/models.py — v1
"""Storage domain models: CheckpointRecord and WorkflowSnapshot."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from genflow.pipeline.models import AutomationMode, StepOutput, StepStatus, utc_now

CHECKPOINT_SCHEMA_VERSION = "1"
SNAPSHOT_SCHEMA_VERSION = "1"


class CheckpointErrorInfo(BaseModel):
    """Error details stored with a failed step's checkpoint."""

    message: str
    kind: str | None = None


class CheckpointRecord(BaseModel):
    """Persisted result of one step, one file per step."""

    schema_version: str = CHECKPOINT_SCHEMA_VERSION
    step_id: str
    status: StepStatus
    automation_mode: AutomationMode = AutomationMode.AUTO
    started_at: datetime | None = None
    completed_at: datetime | None = None
    saved_at: datetime = Field(default_factory=utc_now)
    duration_ms: int = 0
    attempts: int = 0
    output: StepOutput | None = None
    error: CheckpointErrorInfo | None = None


class WorkflowSnapshot(BaseModel):
    """Error snapshot written when a run fails, read by ``genflow status``."""

    schema_version: str = SNAPSHOT_SCHEMA_VERSION
    project_path: str
    failed_step: str | None = None
    error_message: str | None = None
    attempts: int = 0
    statuses: dict[str, StepStatus] = Field(default_factory=dict)
    saved_at: datetime = Field(default_factory=utc_now)
