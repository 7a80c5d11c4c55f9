# src/tracking/step_tracker.py — v1
"""Per-run step execution tracking.

Accumulates StepExecutionRecord entries for post-run analysis and can
dump them as JSON Lines.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from genflow.tracking.models import (
    RecordStatus,
    RunStats,
    StepExecutionRecord,
    StepSource,
)

logger = logging.getLogger(__name__)


class StepTracker:
    """Accumulates step execution records during a workflow run."""

    def __init__(self) -> None:
        self._records: list[StepExecutionRecord] = []

    def record(
        self,
        step_id: str,
        status: RecordStatus,
        source: StepSource,
        attempts: int = 0,
        elapsed_ms: int = 0,
        error: str | None = None,
    ) -> StepExecutionRecord:
        """Record how a step was handled.

        Args:
            step_id: Step identifier.
            status: Final status of the step in this run.
            source: Where the output came from (generated, cache, checkpoint, manual, skipped).
            attempts: Generation attempts, including the first.
            elapsed_ms: Wall time spent on the step.
            error: Error message for failed steps.
        """
        rec = StepExecutionRecord(
            step_id=step_id,
            status=status,
            source=source,
            attempts=attempts,
            elapsed_ms=elapsed_ms,
            from_checkpoint=source == "checkpoint",
            error=error,
        )
        self._records.append(rec)
        return rec

    @property
    def records(self) -> list[StepExecutionRecord]:
        """All records, in execution order."""
        return list(self._records)

    def reset(self) -> None:
        self._records.clear()

    def stats(self) -> RunStats:
        return RunStats(
            total_steps=len(self._records),
            completed=sum(1 for r in self._records if r.status == "completed"),
            skipped=sum(1 for r in self._records if r.status == "skipped"),
            failed=sum(1 for r in self._records if r.status == "failed"),
            total_attempts=sum(r.attempts for r in self._records),
            retried_steps=sum(1 for r in self._records if r.attempts > 1),
            total_elapsed_ms=sum(r.elapsed_ms for r in self._records),
            cache_hits=sum(1 for r in self._records if r.source == "cache"),
            replayed=sum(1 for r in self._records if r.from_checkpoint),
        )

    def save(self, path: Path) -> None:
        """Save all records to a JSON Lines file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            for rec in self._records:
                f.write(json.dumps(rec.model_dump(mode="json")) + "\n")
        logger.debug("Saved %d step records to %s", len(self._records), path)
