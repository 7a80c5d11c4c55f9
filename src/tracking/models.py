# src/tracking/models.py — v1
"""Tracking domain models: StepExecutionRecord, RunStats."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from genflow.pipeline.models import utc_now

StepSource = Literal["generated", "cache", "checkpoint", "manual", "skipped"]
RecordStatus = Literal["completed", "skipped", "failed"]


class StepExecutionRecord(BaseModel):
    """How a single step was handled during a run."""

    step_id: str
    status: RecordStatus
    source: StepSource
    attempts: int = 0
    elapsed_ms: int = 0
    from_checkpoint: bool = False
    error: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class RunStats(BaseModel):
    """Aggregate over the records of one run."""

    total_steps: int
    completed: int
    skipped: int
    failed: int
    total_attempts: int
    retried_steps: int
    total_elapsed_ms: int
    cache_hits: int
    replayed: int
