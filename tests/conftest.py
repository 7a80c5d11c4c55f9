# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a scripted generation backend, zero-delay retry policies, project
directories and pre-wired executors/runners. No network access: every
generation call is served by ScriptedGenerator.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock

import pytest

from genflow.cache.cache import ResponseCache
from genflow.llm.base_client import BaseGenerator
from genflow.llm.models import GenerationOptions
from genflow.llm.retry import NO_DELAY_RETRY_CONFIG, RetryPolicy
from genflow.logging.context import clear_context
from genflow.pipeline.executor import StepExecutor
from genflow.pipeline.registry import StepRegistry
from genflow.pipeline.runner import WorkflowRunner
from genflow.pipeline.state_machine import WorkflowStateMachine
from genflow.storage.checkpoint_store import CheckpointStore


class ScriptedGenerator(BaseGenerator):
    """Generation backend replaying scripted responses per step.

    ``script`` maps a step id to a list of items consumed one per call:
    strings are returned, exceptions are raised. Once a step's script is
    exhausted (or absent) the default response ``"# <step_id> output"`` is
    returned.
    """

    def __init__(self, script: dict[str, list[str | BaseException]] | None = None) -> None:
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.calls: list[tuple[str | None, str]] = []

    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        step_id = options.step_id
        self.calls.append((step_id, prompt))
        queue = self.script.get(step_id or "")
        if queue:
            item = queue.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        return f"# {step_id} output"

    def calls_for(self, step_id: str) -> int:
        return sum(1 for sid, _ in self.calls if sid == step_id)

    @property
    def called_steps(self) -> list[str]:
        seen: list[str] = []
        for sid, _ in self.calls:
            if sid is not None and sid not in seen:
                seen.append(sid)
        return seen


# === FIXTURES: Environment ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    """Runs set context variables; keep tests independent."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def registry() -> StepRegistry:
    """The built-in 12-step workflow."""
    return StepRegistry.default()


# === FIXTURES: Generation and retry ===


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def make_generator() -> Callable[..., ScriptedGenerator]:
    """Factory for scripted backends (conftest is not importable in importlib mode)."""
    return ScriptedGenerator


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that records requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def fast_retry(no_sleep: AsyncMock) -> RetryPolicy:
    """Retry policy with the default attempt count and no waiting."""
    return RetryPolicy(NO_DELAY_RETRY_CONFIG, sleep=no_sleep)


# === FIXTURES: Wiring ===


@pytest.fixture
def store(project_dir: Path) -> CheckpointStore:
    return CheckpointStore(project_dir)


@pytest.fixture
def make_executor(
    store: CheckpointStore,
    registry: StepRegistry,
    fast_retry: RetryPolicy,
) -> Callable[..., StepExecutor]:
    """Factory: StepExecutor over the project store with a zero-delay policy."""

    def _make(
        generator: BaseGenerator,
        cache: ResponseCache | None = None,
        **kwargs,
    ) -> StepExecutor:
        kwargs.setdefault("registry", registry)
        kwargs.setdefault("retry_policy", fast_retry)
        return StepExecutor(generator, store, cache=cache, **kwargs)

    return _make


@pytest.fixture
def make_runner(
    registry: StepRegistry,
    make_executor: Callable[..., StepExecutor],
) -> Callable[..., WorkflowRunner]:
    """Factory: WorkflowRunner on a fresh state machine over ``registry``."""

    def _make(generator: BaseGenerator, **executor_kwargs) -> WorkflowRunner:
        state_machine = WorkflowStateMachine(registry)
        return WorkflowRunner(state_machine, make_executor(generator, **executor_kwargs))

    return _make
