# src/api/facade.py — v1
"""Public API facade: wire a workflow from Settings and run it.

Usage:
    from genflow.api.facade import run_workflow
    result = await run_workflow("./my-project", "A todo app for teams", generate)

Every component is constructed here and injected; nothing is a module-level
singleton.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

from genflow.api.models import StatusReport, StepStatusEntry
from genflow.cache.cache import ResponseCache
from genflow.cache.cache_factory import create_cache
from genflow.config.settings import Settings
from genflow.llm.base_client import GeneratorLike, as_generator
from genflow.llm.retry import DelayStrategy, RetryConfig, RetryEventHandler, RetryPolicy
from genflow.pipeline.executor import PromptBuilder, StepExecutor, default_prompt_builder
from genflow.pipeline.models import AutomationMode, StepStatus, WorkflowProgress
from genflow.pipeline.registry import StepRegistry
from genflow.pipeline.runner import WorkflowConfig, WorkflowResult, WorkflowRunner
from genflow.pipeline.state_machine import WorkflowStateMachine
from genflow.quality.gate import QualityGate
from genflow.quality.models import DEFAULT_QUALITY_GATES, QualityGateConfig
from genflow.quality.scoring import LLMContentFixer, LLMQualityScorer
from genflow.storage.checkpoint_store import CheckpointStore

logger = logging.getLogger(__name__)


def retry_config_from_settings(settings: Settings) -> RetryConfig:
    """Translate the ``retry_*`` settings into a RetryConfig."""
    sequence = settings.retry_delay_sequence_list
    return RetryConfig(
        max_retries=settings.retry_max_retries,
        base_delay_s=settings.retry_base_delay_s,
        max_delay_s=settings.retry_max_delay_s,
        strategy=DelayStrategy(settings.retry_strategy),
        delay_sequence=tuple(sequence) if sequence else None,
    )


def gate_configs_from_settings(
    settings: Settings, registry: StepRegistry
) -> dict[str, QualityGateConfig]:
    """Per-step gate configs.

    Steps of a known kind (prd, architecture, epics, story, code-review) keep
    their built-in thresholds; every other step uses the ``quality_*`` settings.
    ``quality_auto_fix`` applies to all steps.
    """
    fallback = QualityGateConfig(
        min_score=settings.quality_min_score,
        max_retries=settings.quality_max_retries,
        auto_fix=settings.quality_auto_fix,
    )
    configs: dict[str, QualityGateConfig] = {}
    for step_id in registry.step_ids:
        config = next(
            (cfg for kind, cfg in DEFAULT_QUALITY_GATES.items() if kind in step_id),
            fallback,
        )
        configs[step_id] = config.model_copy(update={"auto_fix": settings.quality_auto_fix})
    return configs


def build_runner(
    project_path: str | Path,
    generator: GeneratorLike,
    settings: Settings | None = None,
    registry: StepRegistry | None = None,
    use_cache: bool = True,
    cache: ResponseCache | None = None,
    prompt_builder: PromptBuilder = default_prompt_builder,
    on_retry: RetryEventHandler | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> WorkflowRunner:
    """Assemble a WorkflowRunner for one project.

    Args:
        project_path: Project root; state lives under ``<project>/<state_dir_name>``.
        generator: Generation backend or ``async (prompt, options) -> str``.
        settings: Application settings. Loaded from .env if None.
        registry: Step sequence. Defaults to the built-in 12-step workflow.
        use_cache: Disable to bypass the response cache for this run.
        cache: Explicit cache instance, overriding the one built from settings.
        prompt_builder: Builds the prompt of each step.
        on_retry: Optional RetryEvent handler (progress display).
        sleep: Sleep used between retries, injectable for tests.
    """
    settings = settings or Settings()
    registry = registry or StepRegistry.default()
    backend = as_generator(generator)

    if use_cache and cache is None:
        cache = create_cache(settings)
    elif not use_cache:
        cache = None

    retry_policy = RetryPolicy(
        retry_config_from_settings(settings), on_event=on_retry, sleep=sleep
    )

    quality_gates: dict[str, QualityGate] = {}
    gate_configs: dict[str, QualityGateConfig] = {}
    if settings.quality_gate_enabled:
        gate_configs = gate_configs_from_settings(settings, registry)
        for step in registry:
            quality_gates[step.id] = QualityGate(
                scorer=LLMQualityScorer(
                    backend, content_type=step.name, retry_policy=retry_policy
                ),
                fixer=LLMContentFixer(
                    backend, content_type=step.name, retry_policy=retry_policy
                ),
            )

    store = CheckpointStore(project_path, settings.state_dir_name)
    executor = StepExecutor(
        generator=backend,
        store=store,
        registry=registry,
        retry_policy=retry_policy,
        cache=cache,
        prompt_builder=prompt_builder,
        quality_gates=quality_gates,
        gate_configs=gate_configs,
        cache_ttl_s=settings.cache_default_ttl_s,
    )
    state_machine = WorkflowStateMachine(
        registry, automation_mode=AutomationMode(settings.default_automation_mode)
    )

    logger.debug(
        "Runner built: %d steps, backend=%s, cache=%s, quality_gate=%s",
        len(registry), backend.name, cache is not None, settings.quality_gate_enabled,
    )
    return WorkflowRunner(state_machine, executor)


async def run_workflow(
    project_path: str | Path,
    project_idea: str,
    generator: GeneratorLike,
    settings: Settings | None = None,
    automation_mode: AutomationMode | None = None,
    resume: bool = False,
    use_cache: bool = True,
    registry: StepRegistry | None = None,
    **callbacks: Any,
) -> WorkflowResult:
    """Run (or resume) the workflow of a project end-to-end.

    Args:
        project_path: Project root directory.
        project_idea: Free-text description fed to every step.
        generator: Generation backend.
        settings: Application settings. Loaded from .env if None.
        automation_mode: Global mode override for this run.
        resume: Restore completed and skipped steps from checkpoints first.
        use_cache: Disable to bypass the response cache.
        registry: Step sequence. Defaults to the built-in 12-step workflow.
        **callbacks: ``on_progress``, ``on_step_complete``, ``on_step_skip``,
            ``on_manual_step_detected`` (see WorkflowConfig).

    Returns:
        WorkflowResult. Step failures are reported in it, not raised.
    """
    runner = build_runner(
        project_path, generator, settings=settings, registry=registry, use_cache=use_cache
    )
    config = WorkflowConfig(
        project_path=project_path,
        project_idea=project_idea,
        automation_mode=automation_mode,
        **callbacks,
    )
    if resume:
        return await runner.resume(config)
    return await runner.run(config)


async def get_status(
    project_path: str | Path,
    settings: Settings | None = None,
    registry: StepRegistry | None = None,
) -> StatusReport:
    """Read checkpoint-derived progress and the last error snapshot."""
    settings = settings or Settings()
    registry = registry or StepRegistry.default()
    store = CheckpointStore(project_path, settings.state_dir_name)

    records = await store.load_all(registry.step_ids)
    entries: list[StepStatusEntry] = []
    for step in registry:
        record = records.get(step.id)
        if record is None:
            entries.append(StepStatusEntry(step_id=step.id, name=step.name))
            continue
        entries.append(
            StepStatusEntry(
                step_id=step.id,
                name=step.name,
                status=record.status,
                attempts=record.attempts,
                duration_ms=record.duration_ms,
                saved_at=record.saved_at,
                error=record.error.message if record.error else None,
            )
        )

    counts = {status: 0 for status in StepStatus}
    for entry in entries:
        counts[entry.status] += 1
    current = next((e.step_id for e in entries if not e.status.is_terminal), None)

    return StatusReport(
        project_path=store.project_path,
        steps=entries,
        progress=WorkflowProgress(
            total=len(entries),
            pending=counts[StepStatus.PENDING],
            in_progress=counts[StepStatus.IN_PROGRESS],
            completed=counts[StepStatus.COMPLETED],
            skipped=counts[StepStatus.SKIPPED],
            current=current,
        ),
        last_error=await store.load_snapshot(),
    )
