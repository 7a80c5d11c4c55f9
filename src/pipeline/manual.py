# src/pipeline/manual.py — v1
"""Detect step outputs produced by hand outside the engine.

A step in manual mode is satisfied by ``<project>/.genflow/outputs/<step_id>.md``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel

from genflow.core.errors import GenflowError
from genflow.pipeline.models import StepOutput, utc_now
from genflow.storage import layout

logger = logging.getLogger(__name__)


class ManualOutputError(GenflowError):
    """A manual output file exists but cannot be read."""


class ManualStepResult(BaseModel):
    detected: bool
    file_path: Path | None = None
    content: str | None = None
    modified_at: datetime | None = None


class ManualStepDetector:
    """Look up manual output files for a project."""

    def __init__(
        self,
        project_path: str | Path,
        state_dir_name: str = layout.DEFAULT_STATE_DIR,
    ) -> None:
        if not str(project_path):
            raise ValueError("project_path is required")
        self._project = Path(project_path).expanduser()
        self._state_dir_name = state_dir_name

    @property
    def outputs_dir(self) -> Path:
        return layout.outputs_dir(self._project, self._state_dir_name)

    def get_output_path(self, step_id: str) -> Path:
        return layout.manual_output_path(self._project, step_id, self._state_dir_name)

    def has_manual_output(self, step_id: str) -> bool:
        return self.get_output_path(step_id).is_file()

    async def detect(self, step_id: str) -> ManualStepResult:
        path = self.get_output_path(step_id)
        if not path.is_file():
            return ManualStepResult(detected=False)
        try:
            content = path.read_text(encoding="utf-8")
            mtime = path.stat().st_mtime
        except (OSError, UnicodeDecodeError) as e:
            raise ManualOutputError(f"Cannot read manual output {path}: {e}") from e
        return ManualStepResult(
            detected=True,
            file_path=path,
            content=content,
            modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    async def load_manual_output(self, step_id: str) -> StepOutput | None:
        """Return the manual output as a StepOutput, or None if absent or empty."""
        result = await self.detect(step_id)
        if not result.detected or not result.content:
            return None
        logger.info("Manual output detected for %s", step_id)
        return StepOutput(
            content=result.content,
            files=[str(result.file_path)],
            metadata={
                "source": "manual",
                "detected_at": utc_now().isoformat(),
                "original_modified_at": result.modified_at.isoformat() if result.modified_at else None,
            },
        )

    async def detect_all(self, step_ids: Iterable[str]) -> dict[str, ManualStepResult]:
        """Detection results for every step that has a manual output file."""
        found: dict[str, ManualStepResult] = {}
        for step_id in step_ids:
            result = await self.detect(step_id)
            if result.detected:
                found[step_id] = result
        return found
