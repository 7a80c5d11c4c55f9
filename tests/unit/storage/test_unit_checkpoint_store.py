# tests/unit/storage/test_unit_checkpoint_store.py — v1
"""Tests for storage/checkpoint_store.py — per-step checkpoint persistence."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from genflow.core.errors import CheckpointError
from genflow.pipeline.models import StepOutput, StepStatus
from genflow.storage.checkpoint_store import CheckpointStore
from genflow.storage.models import CheckpointRecord, WorkflowSnapshot


def _record(step_id: str = "step-01-brainstorming", **kwargs) -> CheckpointRecord:
    kwargs.setdefault("status", StepStatus.COMPLETED)
    kwargs.setdefault("output", StepOutput(content=f"# {step_id}"))
    return CheckpointRecord(step_id=step_id, **kwargs)


class TestSaveLoad:
    @pytest.mark.asyncio
    async def test_roundtrip(self, store):
        path = await store.save(_record(attempts=2))
        assert path == store.checkpoints_dir / "step-01-brainstorming.json"
        loaded = await store.load("step-01-brainstorming")
        assert loaded is not None
        assert loaded.attempts == 2
        assert loaded.output.content == "# step-01-brainstorming"

    @pytest.mark.asyncio
    async def test_no_temp_file_left(self, store):
        await store.save(_record())
        assert [p.name for p in store.checkpoints_dir.iterdir()] == ["step-01-brainstorming.json"]

    @pytest.mark.asyncio
    async def test_overwrite(self, store):
        await store.save(_record(status=StepStatus.IN_PROGRESS, output=None))
        await store.save(_record())
        loaded = await store.load("step-01-brainstorming")
        assert loaded.status == StepStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.load("step-02-research") is None
        assert await store.exists("step-02-research") is False

    @pytest.mark.asyncio
    async def test_custom_state_dir(self, project_dir):
        store = CheckpointStore(project_dir, ".state")
        await store.save(_record())
        assert (project_dir / ".state" / "checkpoints" / "step-01-brainstorming.json").exists()

    @pytest.mark.asyncio
    async def test_write_failure_raises(self, store):
        with patch("genflow.storage.checkpoint_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(CheckpointError, match="disk full"):
                await store.save(_record())


class TestUnusableFiles:
    @pytest.mark.asyncio
    async def test_invalid_json_is_no_checkpoint(self, store, caplog):
        path = store.path_for("step-01-brainstorming")
        path.parent.mkdir(parents=True)
        path.write_text("{truncated", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            assert await store.load("step-01-brainstorming") is None
        assert "Failed to read checkpoint" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_schema_version(self, store):
        path = await store.save(_record())
        data = json.loads(path.read_text(encoding="utf-8"))
        data["schema_version"] = "99"
        path.write_text(json.dumps(data), encoding="utf-8")
        assert await store.load("step-01-brainstorming") is None

    @pytest.mark.asyncio
    async def test_invalid_record(self, store):
        path = store.path_for("step-01-brainstorming")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"schema_version": "1", "status": "exploded"}), encoding="utf-8")
        assert await store.load("step-01-brainstorming") is None

    @pytest.mark.asyncio
    async def test_non_object_json(self, store):
        path = store.path_for("step-01-brainstorming")
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2]", encoding="utf-8")
        assert await store.load("step-01-brainstorming") is None


class TestBulkAndDelete:
    @pytest.mark.asyncio
    async def test_load_all_skips_missing(self, store):
        await store.save(_record("a"))
        await store.save(_record("c", status=StepStatus.SKIPPED, output=None))
        records = await store.load_all(["a", "b", "c"])
        assert set(records) == {"a", "c"}
        assert records["c"].status == StepStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.save(_record("a"))
        await store.delete("a")
        await store.delete("a")
        assert await store.exists("a") is False


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_roundtrip_and_clear(self, store):
        assert await store.load_snapshot() is None
        await store.save_snapshot(
            WorkflowSnapshot(project_path=str(store.project_path), failed_step="b", attempts=4)
        )
        assert store.snapshot_path.name == "workflow-state.json"
        snapshot = await store.load_snapshot()
        assert snapshot.failed_step == "b"
        assert snapshot.attempts == 4
        await store.clear_snapshot()
        assert await store.load_snapshot() is None

    @pytest.mark.asyncio
    async def test_corrupt_snapshot(self, store):
        store.snapshot_path.parent.mkdir(parents=True)
        store.snapshot_path.write_text("nope", encoding="utf-8")
        assert await store.load_snapshot() is None
