# tests/integration/pipeline/test_int_workflow.py — v1
"""Integration tests for the full 12-step workflow.

Covers: pipeline/runner.py, pipeline/executor.py, pipeline/state_machine.py,
        storage/checkpoint_store.py, cache/cache.py, quality/gate.py,
        api/facade.py

No network: every generation call is served by ScriptedGenerator.
"""

from __future__ import annotations

import pytest

from genflow.api.facade import get_status
from genflow.cache.cache import ResponseCache
from genflow.cache.json_store import JsonCacheStore
from genflow.config.settings import Settings
from genflow.llm.errors import GenerationError
from genflow.pipeline.models import StepStatus, WorkflowEventType
from genflow.pipeline.runner import WorkflowConfig, WorkflowRunner
from genflow.pipeline.state_machine import WorkflowStateMachine
from genflow.quality.gate import QualityGate
from genflow.quality.models import FixResult, QualityGateConfig, QualityScore

IDEA = "A habit tracker with streaks and reminders"
ARCHITECTURE = "step-06-architecture"


def _config(project_dir, **kwargs) -> WorkflowConfig:
    return WorkflowConfig(project_path=project_dir, project_idea=IDEA, **kwargs)


class TestFullRun:
    @pytest.mark.asyncio
    async def test_transient_error_is_retried(
        self, make_runner, make_generator, project_dir, store, registry, no_sleep
    ):
        gen = make_generator({"step-04-prd": [GenerationError.network(), "# PRD"]})
        result = await make_runner(gen).run(_config(project_dir))

        assert result.success is True
        assert result.completed_count == 12
        assert result.outputs["step-04-prd"].content == "# PRD"
        prd = await store.load("step-04-prd")
        assert prd.attempts == 2
        assert no_sleep.await_count == 1
        for step_id in registry.step_ids:
            assert (await store.load(step_id)).status == StepStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_events_emitted_in_order(self, registry, make_executor, generator, project_dir):
        events = []
        sm = WorkflowStateMachine(registry)
        sm.subscribe(events.append)
        result = await WorkflowRunner(sm, make_executor(generator)).run(_config(project_dir))

        assert result.success
        types = [e.type for e in events]
        assert types[0] == WorkflowEventType.WORKFLOW_STARTED
        assert types[-1] == WorkflowEventType.WORKFLOW_COMPLETED
        assert types.count(WorkflowEventType.STEP_COMPLETED) == 12

    @pytest.mark.asyncio
    async def test_fatal_error_stops_workflow(
        self, make_runner, make_generator, project_dir, store
    ):
        gen = make_generator({ARCHITECTURE: [GenerationError.auth_failed()]})
        result = await make_runner(gen).run(_config(project_dir))

        assert result.success is False
        assert result.failed_step == ARCHITECTURE
        assert result.completed_count == 5
        assert gen.calls_for(ARCHITECTURE) == 1
        for later in ("step-07-epics-stories", "step-12-qa-testing"):
            assert gen.calls_for(later) == 0
            assert await store.load(later) is None

        record = await store.load(ARCHITECTURE)
        assert record.status == StepStatus.IN_PROGRESS
        assert record.error.kind == "auth_failed"

        report = await get_status(project_dir, settings=Settings(_env_file=None))
        assert report.next_step == ARCHITECTURE
        assert report.last_error.failed_step == ARCHITECTURE


class TestResume:
    @pytest.mark.asyncio
    async def test_resume_never_reexecutes_completed_steps(
        self, make_runner, make_generator, project_dir
    ):
        gen = make_generator({ARCHITECTURE: [GenerationError.auth_failed()]})
        first = await make_runner(gen).run(_config(project_dir))
        assert first.failed_step == ARCHITECTURE
        calls_before = {sid: gen.calls_for(sid) for sid in gen.called_steps}

        # Fresh runner, as after a process restart.
        second = await make_runner(gen).resume(_config(project_dir))

        assert second.success is True
        assert second.completed_count == 12
        for step_id, count in calls_before.items():
            if step_id != ARCHITECTURE:
                assert gen.calls_for(step_id) == count
        assert gen.calls_for(ARCHITECTURE) == 2
        checkpoint_sources = [r.step_id for r in second.records if r.source == "checkpoint"]
        assert len(checkpoint_sources) == 5

    @pytest.mark.asyncio
    async def test_resume_after_success_is_noop(self, make_runner, generator, project_dir):
        await make_runner(generator).run(_config(project_dir))
        calls = len(generator.calls)

        result = await make_runner(generator).resume(_config(project_dir))
        assert result.success is True
        assert len(generator.calls) == calls


class TestCaching:
    @pytest.mark.asyncio
    async def test_rerun_served_from_cache(self, make_runner, generator, project_dir, tmp_path):
        cache = ResponseCache(store=JsonCacheStore(tmp_path / "cache"), default_ttl_s=3600)
        await make_runner(generator, cache=cache).run(_config(project_dir))
        assert len(generator.calls) == 12

        # New project, same idea: identical prompts, disk tier only.
        other = tmp_path / "other"
        other.mkdir()
        fresh_cache = ResponseCache(store=JsonCacheStore(tmp_path / "cache"), default_ttl_s=3600)
        result = await make_runner(generator, cache=fresh_cache).run(_config(other))

        assert result.success
        assert len(generator.calls) == 12
        assert {r.source for r in result.records} == {"cache"}


class TestQualityGate:
    @pytest.mark.asyncio
    async def test_auto_fix_raises_score(self, make_runner, generator, project_dir, store):
        scores = iter([55.0, 72.0])

        class Scorer:
            async def score(self, content: str) -> QualityScore:
                return QualityScore(overall=next(scores, 90.0), grade="C")

        class Fixer:
            async def fix(self, content: str, issues: list[str]) -> FixResult:
                return FixResult(improved_content=content + "\n\n## Risks", changes=["Added risks"])

        runner = make_runner(
            generator,
            quality_gates={"step-04-prd": QualityGate(Scorer(), Fixer())},
            gate_configs={"step-04-prd": QualityGateConfig(min_score=70, max_retries=3)},
        )
        result = await runner.run(_config(project_dir))

        assert result.success
        gate = result.outputs["step-04-prd"].metadata["quality_gate"]
        assert gate["passed"] is True
        assert gate["score"] == 72.0
        assert gate["attempts"] == 1
        assert gate["improvements"] == ["Added risks"]
        saved = await store.load("step-04-prd")
        assert saved.output.content.endswith("## Risks")
