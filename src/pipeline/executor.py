# src/pipeline/executor.py — v1
"""Step executor: prompt, generate (with retry and cache), gate, checkpoint.

The executor never retries by itself; retries belong to the RetryPolicy.
A failed generation or quality gate leaves an in-progress checkpoint carrying
the error for auditing and raises StepExecutionError.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Literal

from genflow.cache.cache import ResponseCache
from genflow.cache.fingerprint import generate_key
from genflow.core.errors import StepExecutionError
from genflow.llm.base_client import GeneratorLike, as_generator
from genflow.llm.errors import classify_error
from genflow.llm.models import GenerationOptions
from genflow.llm.retry import RetryOutcome, RetryPolicy
from genflow.pipeline.models import (
    AutomationMode,
    StepExecutionContext,
    StepOutput,
    StepStatus,
    utc_now,
)
from genflow.pipeline.registry import StepDefinition, StepRegistry
from genflow.quality.gate import QualityGate
from genflow.quality.models import QualityGateConfig, gate_config_for
from genflow.storage.checkpoint_store import CheckpointStore
from genflow.storage.models import CheckpointErrorInfo, CheckpointRecord

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[StepDefinition, StepExecutionContext], str]
OutputSource = Literal["generated", "cache", "checkpoint"]

_PREVIOUS_OUTPUT_LIMIT = 4000


def default_prompt_builder(step: StepDefinition, context: StepExecutionContext) -> str:
    """Minimal prompt: project idea, step name and the outputs so far."""
    parts = [
        f"Project idea:\n{context.project_idea}",
        f"Current step: {step.name}",
    ]
    if step.description:
        parts.append(f"Goal: {step.description}")
    if context.previous_outputs:
        previous = "\n\n".join(
            f"### {step_id}\n{output.content[:_PREVIOUS_OUTPUT_LIMIT]}"
            for step_id, output in context.previous_outputs.items()
        )
        parts.append(f"Previous outputs:\n{previous}")
    parts.append(f"Produce the {step.name} document in markdown.")
    return "\n\n".join(parts)


class StepExecutor:
    """Run one step at a time against the generation backend.

    Args:
        generator: BaseGenerator or ``async (prompt, options) -> str`` callable.
        store: Checkpoint store of the project.
        registry: Step definitions; unknown ids get a bare definition.
        retry_policy: Policy wrapping each generation call.
        cache: Optional response cache keyed by step id and prompt.
        prompt_builder: Builds the prompt for a step.
        quality_gates: Optional per-step quality gates.
        gate_configs: Per-step gate configs; defaults depend on the step kind.
        options: Base generation options.
        cache_ttl_s: TTL for cached responses (cache default if None).
    """

    def __init__(
        self,
        generator: GeneratorLike,
        store: CheckpointStore,
        registry: StepRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        cache: ResponseCache | None = None,
        prompt_builder: PromptBuilder = default_prompt_builder,
        quality_gates: dict[str, QualityGate] | None = None,
        gate_configs: dict[str, QualityGateConfig] | None = None,
        options: GenerationOptions | None = None,
        cache_ttl_s: float | None = None,
    ) -> None:
        self._generator = as_generator(generator)
        self._store = store
        self._registry = registry
        self._retry = retry_policy or RetryPolicy()
        self._cache = cache
        self._prompt_builder = prompt_builder
        self._gates = quality_gates or {}
        self._gate_configs = gate_configs or {}
        self._options = options or GenerationOptions()
        self._cache_ttl_s = cache_ttl_s
        self._outcomes: dict[str, RetryOutcome[str]] = {}
        self._sources: dict[str, OutputSource] = {}

    @property
    def store(self) -> CheckpointStore:
        return self._store

    def last_outcome(self, step_id: str) -> RetryOutcome[str] | None:
        """RetryOutcome of the latest execution of ``step_id`` in this process."""
        return self._outcomes.get(step_id)

    def last_source(self, step_id: str) -> OutputSource | None:
        return self._sources.get(step_id)

    async def execute_step(self, step_id: str, context: StepExecutionContext) -> StepOutput:
        """Produce the output of ``step_id``.

        Raises:
            StepExecutionError: If generation failed after the retry policy gave up,
                or the quality gate could not finish.
        """
        step = self._definition(step_id)

        if context.resume:
            record = await self._store.load(step_id)
            if record is not None and record.status == StepStatus.COMPLETED and record.output:
                logger.info("Replaying completed checkpoint for %s", step_id)
                self._outcomes[step_id] = RetryOutcome(
                    success=True, attempts=0, total_elapsed_s=0.0, result=record.output.content
                )
                self._sources[step_id] = "checkpoint"
                return record.output

        prompt = self._prompt_builder(step, context)
        options = self._options.model_copy(update={"step_id": step_id})
        started_at = utc_now()
        t0 = time.monotonic()

        async def generate_once() -> str:
            return await self._generator.generate(prompt, options)

        async def generate_with_retry() -> str:
            outcome = await self._retry.run(generate_once)
            self._outcomes[step_id] = outcome
            if not outcome.success:
                await self._save_failure(
                    step_id, context, started_at, t0, outcome.attempts, outcome.error
                )
                raise StepExecutionError(step_id, outcome.attempts, outcome.error)
            return outcome.result  # type: ignore[return-value]

        self._outcomes.pop(step_id, None)
        if self._cache is not None:
            key = generate_key(step_id, prompt)
            content = await self._cache.get_or_compute(
                key, generate_with_retry, ttl=self._cache_ttl_s, metadata={"step_id": step_id}
            )
        else:
            content = await generate_with_retry()

        outcome = self._outcomes.get(step_id)
        source: OutputSource
        if outcome is None:
            # Served from cache: generate_with_retry never ran.
            source, attempts = "cache", 0
            self._outcomes[step_id] = RetryOutcome(
                success=True, attempts=0, total_elapsed_s=0.0, result=content
            )
            logger.info("Cache hit for %s", step_id)
        else:
            source, attempts = "generated", outcome.attempts
        self._sources[step_id] = source

        output = StepOutput(
            content=content,
            metadata={
                "step_id": step_id,
                "step_name": step.name,
                "source": source,
                "attempts": attempts,
            },
        )

        gate = self._gates.get(step_id)
        if gate is not None:
            config = self._gate_configs.get(step_id) or gate_config_for(step_id)
            try:
                result = await gate.run_gate(output.content, config)
            except Exception as exc:
                await self._save_failure(step_id, context, started_at, t0, attempts, exc)
                raise StepExecutionError(step_id, attempts, exc) from exc
            output.content = result.content
            output.metadata["quality_gate"] = result.model_dump(exclude={"content"})
            if not result.passed:
                logger.warning(
                    "Step %s below quality threshold (%.0f < %.0f)",
                    step_id, result.score, result.minimum_required,
                )

        duration_ms = int((time.monotonic() - t0) * 1000)
        output.metadata["duration_ms"] = duration_ms
        await self._store.save(
            CheckpointRecord(
                step_id=step_id,
                status=StepStatus.COMPLETED,
                automation_mode=context.automation_mode,
                started_at=started_at,
                completed_at=utc_now(),
                duration_ms=duration_ms,
                attempts=attempts,
                output=output,
            )
        )
        logger.info("Step %s completed (%s, %d attempt(s), %dms)", step_id, source, attempts, duration_ms)
        return output

    async def mark_step_skipped(
        self, step_id: str, automation_mode: AutomationMode = AutomationMode.SKIP
    ) -> None:
        """Write a skipped checkpoint for auditing."""
        now = utc_now()
        await self._store.save(
            CheckpointRecord(
                step_id=step_id,
                status=StepStatus.SKIPPED,
                automation_mode=automation_mode,
                started_at=now,
                completed_at=now,
            )
        )

    async def save_manual_output(
        self,
        step_id: str,
        output: StepOutput,
        automation_mode: AutomationMode = AutomationMode.MANUAL,
    ) -> None:
        """Checkpoint an output that was produced by hand."""
        now = utc_now()
        await self._store.save(
            CheckpointRecord(
                step_id=step_id,
                status=StepStatus.COMPLETED,
                automation_mode=automation_mode,
                started_at=now,
                completed_at=now,
                output=output,
            )
        )

    # --- Internals ---

    def _definition(self, step_id: str) -> StepDefinition:
        if self._registry is not None:
            return self._registry.get_or_raise(step_id)
        return StepDefinition(id=step_id, name=step_id)

    async def _save_failure(
        self,
        step_id: str,
        context: StepExecutionContext,
        started_at,
        t0: float,
        attempts: int,
        error: BaseException | None,
    ) -> None:
        await self._store.save(
            CheckpointRecord(
                step_id=step_id,
                status=StepStatus.IN_PROGRESS,
                automation_mode=context.automation_mode,
                started_at=started_at,
                duration_ms=int((time.monotonic() - t0) * 1000),
                attempts=attempts,
                error=CheckpointErrorInfo(
                    message=str(error) if error else "unknown error",
                    kind=classify_error(error).value if error else None,
                ),
            )
        )
        logger.error("Step %s failed after %d attempt(s): %s", step_id, attempts, error)
