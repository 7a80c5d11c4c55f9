# src/storage/layout.py — v1
"""Project state directory structure.

    {project_path}/
      .genflow/
        checkpoints/
          {step_id}.json          one CheckpointRecord per step
          workflow-state.json     error snapshot of the last failed run
        outputs/
          {step_id}.md            manually produced step outputs
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_STATE_DIR = ".genflow"
CHECKPOINTS_DIR = "checkpoints"
OUTPUTS_DIR = "outputs"
SNAPSHOT_FILE = "workflow-state.json"


def state_dir(project_path: Path, state_dir_name: str = DEFAULT_STATE_DIR) -> Path:
    """Return the hidden state directory of a project."""
    return Path(project_path) / state_dir_name


def checkpoints_dir(project_path: Path, state_dir_name: str = DEFAULT_STATE_DIR) -> Path:
    return state_dir(project_path, state_dir_name) / CHECKPOINTS_DIR


def outputs_dir(project_path: Path, state_dir_name: str = DEFAULT_STATE_DIR) -> Path:
    return state_dir(project_path, state_dir_name) / OUTPUTS_DIR


def checkpoint_path(
    project_path: Path, step_id: str, state_dir_name: str = DEFAULT_STATE_DIR
) -> Path:
    return checkpoints_dir(project_path, state_dir_name) / f"{_safe(step_id)}.json"


def snapshot_path(project_path: Path, state_dir_name: str = DEFAULT_STATE_DIR) -> Path:
    return checkpoints_dir(project_path, state_dir_name) / SNAPSHOT_FILE


def manual_output_path(
    project_path: Path, step_id: str, state_dir_name: str = DEFAULT_STATE_DIR
) -> Path:
    return outputs_dir(project_path, state_dir_name) / f"{_safe(step_id)}.md"


def _safe(step_id: str) -> str:
    """Keep step ids from escaping their directory."""
    return step_id.replace("/", "_").replace("\\", "_")
