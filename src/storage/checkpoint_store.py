# src/storage/checkpoint_store.py — v1
"""Per-step checkpoint persistence under ``<project>/.genflow/checkpoints``.

Records are written atomically (temp file + rename). Unreadable files,
invalid JSON and unknown schema versions are logged and reported as
"no checkpoint" so a damaged file never blocks a resume.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from genflow.core.errors import CheckpointError
from genflow.storage import layout
from genflow.storage.models import (
    CHECKPOINT_SCHEMA_VERSION,
    SNAPSHOT_SCHEMA_VERSION,
    CheckpointRecord,
    WorkflowSnapshot,
)

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Read and write CheckpointRecords for one project.

    Args:
        project_path: Root directory of the project being generated.
        state_dir_name: Name of the hidden state directory.
    """

    def __init__(
        self,
        project_path: str | Path,
        state_dir_name: str = layout.DEFAULT_STATE_DIR,
    ) -> None:
        self._project = Path(project_path).expanduser()
        self._state_dir_name = state_dir_name

    @property
    def project_path(self) -> Path:
        return self._project

    @property
    def state_dir_name(self) -> str:
        return self._state_dir_name

    @property
    def checkpoints_dir(self) -> Path:
        return layout.checkpoints_dir(self._project, self._state_dir_name)

    def path_for(self, step_id: str) -> Path:
        return layout.checkpoint_path(self._project, step_id, self._state_dir_name)

    async def save(self, record: CheckpointRecord) -> Path:
        """Write (or overwrite) the checkpoint of ``record.step_id``.

        Raises:
            CheckpointError: If the file cannot be written.
        """
        path = self.path_for(record.step_id)
        _atomic_write(path, record.model_dump_json(indent=2))
        logger.debug("Checkpoint saved: %s (%s)", record.step_id, record.status.value)
        return path

    async def load(self, step_id: str) -> CheckpointRecord | None:
        """Load one checkpoint, or None if missing or unusable."""
        path = self.path_for(step_id)
        if not path.exists():
            return None
        return _read_record(path)

    async def load_all(self, step_ids: list[str]) -> dict[str, CheckpointRecord]:
        """Load checkpoints for the given steps, skipping missing ones."""
        records: dict[str, CheckpointRecord] = {}
        for step_id in step_ids:
            record = await self.load(step_id)
            if record is not None:
                records[step_id] = record
        return records

    async def exists(self, step_id: str) -> bool:
        return self.path_for(step_id).exists()

    async def delete(self, step_id: str) -> None:
        """Explicitly remove a step's checkpoint. Never called by the engine."""
        path = self.path_for(step_id)
        if path.exists():
            path.unlink()

    # --- Error snapshot ---

    @property
    def snapshot_path(self) -> Path:
        return layout.snapshot_path(self._project, self._state_dir_name)

    async def save_snapshot(self, snapshot: WorkflowSnapshot) -> Path:
        path = self.snapshot_path
        _atomic_write(path, snapshot.model_dump_json(indent=2))
        logger.info("Error snapshot saved: %s", path)
        return path

    async def load_snapshot(self) -> WorkflowSnapshot | None:
        path = self.snapshot_path
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict) or data.get("schema_version") != SNAPSHOT_SCHEMA_VERSION:
                logger.warning("Ignoring snapshot %s with unknown schema", path.name)
                return None
            return WorkflowSnapshot.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Failed to read snapshot %s: %s", path, e)
            return None

    async def clear_snapshot(self) -> None:
        path = self.snapshot_path
        if path.exists():
            path.unlink()


def _read_record(path: Path) -> CheckpointRecord | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read checkpoint %s: %s", path, e)
        return None

    if not isinstance(data, dict) or data.get("schema_version") != CHECKPOINT_SCHEMA_VERSION:
        version = data.get("schema_version") if isinstance(data, dict) else None
        logger.warning("Ignoring checkpoint %s with schema %r", path.name, version)
        return None

    try:
        return CheckpointRecord.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid checkpoint %s: %s", path, e)
        return None


def _atomic_write(path: Path, content: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except OSError as e:
        raise CheckpointError(f"Cannot write {path}: {e}") from e
