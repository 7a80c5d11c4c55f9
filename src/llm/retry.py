# src/llm/retry.py — v2
"""Retry policy with configurable backoff for unreliable generation calls.

The policy absorbs retryable failures (timeout, rate limit, network) and only
surfaces a failure once attempts are exhausted or a fatal error occurs.
Outcomes are returned, never raised.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Literal, TypeVar

from genflow.llm.errors import classify_error, RETRYABLE_KINDS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DelayStrategy(str, Enum):
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryConfig:
    """Backoff configuration. Delays are in seconds."""

    max_retries: int = 3
    base_delay_s: float = 10.0
    max_delay_s: float = 60.0
    strategy: DelayStrategy = DelayStrategy.EXPONENTIAL
    delay_sequence: tuple[float, ...] | None = (10.0, 30.0, 60.0)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_s < 0 or self.max_delay_s < 0:
            raise ValueError("delays must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


DEFAULT_RETRY_CONFIG = RetryConfig()

# For tests and local runs where waiting is pointless.
NO_DELAY_RETRY_CONFIG = RetryConfig(base_delay_s=0.0, max_delay_s=0.0, delay_sequence=(0.0,))


@dataclass
class RetryOutcome(Generic[T]):
    """Result of running an operation under the retry policy."""

    success: bool
    attempts: int
    total_elapsed_s: float
    result: T | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class RetryEvent:
    """Emitted for every attempt, retry and terminal state."""

    type: Literal["attempt", "retry", "success", "failure", "exhausted"]
    attempt: int
    max_attempts: int
    delay_s: float | None = None
    error: BaseException | None = None


RetryEventHandler = Callable[[RetryEvent], None]


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Compute the delay before the retry following ``attempt`` (1-based).

    An explicit delay sequence takes precedence and is clamped to its last
    entry. All results are capped at ``max_delay_s``.
    """
    if attempt < 1:
        raise ValueError("attempt is 1-based")

    if config.delay_sequence:
        index = min(attempt, len(config.delay_sequence)) - 1
        delay = config.delay_sequence[index]
    elif config.strategy == DelayStrategy.FIXED:
        delay = config.base_delay_s
    elif config.strategy == DelayStrategy.LINEAR:
        delay = config.base_delay_s * attempt
    else:
        delay = config.base_delay_s * (2 ** (attempt - 1))

    return min(delay, config.max_delay_s)


class RetryPolicy:
    """Run async operations with classification-aware retries.

    Args:
        config: Default retry configuration.
        on_event: Optional handler receiving RetryEvent notifications.
        sleep: Awaitable sleep function, injectable for tests.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        on_event: RetryEventHandler | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config or DEFAULT_RETRY_CONFIG
        self._handlers: list[RetryEventHandler] = [on_event] if on_event else []
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    def add_handler(self, handler: RetryEventHandler) -> None:
        self._handlers.append(handler)

    def remove_handler(self, handler: RetryEventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfig | None = None,
        **overrides: Any,
    ) -> RetryOutcome[T]:
        """Execute ``operation`` until it succeeds, fails fatally or retries run out.

        Args:
            operation: Zero-argument coroutine function.
            config: Config for this call (defaults to the policy config).
            **overrides: Field overrides applied on top of ``config``.

        Returns:
            RetryOutcome describing the final state.
        """
        cfg = config or self._config
        if overrides:
            cfg = dataclasses.replace(cfg, **overrides)

        max_attempts = cfg.max_attempts
        start = time.monotonic()
        last_error: BaseException | None = None

        for attempt in range(1, max_attempts + 1):
            self._emit(RetryEvent("attempt", attempt, max_attempts))
            try:
                result = await operation()
            except Exception as exc:
                last_error = exc
                kind = classify_error(exc)
                is_last = attempt == max_attempts

                if kind not in RETRYABLE_KINDS:
                    logger.error(
                        "Fatal %s error on attempt %d/%d: %s",
                        kind.value, attempt, max_attempts, exc,
                    )
                    self._emit(RetryEvent("failure", attempt, max_attempts, error=exc))
                    return RetryOutcome(
                        success=False,
                        attempts=attempt,
                        total_elapsed_s=time.monotonic() - start,
                        error=exc,
                    )

                if is_last:
                    logger.error(
                        "Retries exhausted after %d attempts (%s): %s",
                        attempt, kind.value, exc,
                    )
                    self._emit(RetryEvent("exhausted", attempt, max_attempts, error=exc))
                    return RetryOutcome(
                        success=False,
                        attempts=attempt,
                        total_elapsed_s=time.monotonic() - start,
                        error=exc,
                    )

                delay = calculate_delay(attempt, cfg)
                logger.warning(
                    "%s (attempt %d/%d), retrying in %.1fs",
                    kind.value, attempt, max_attempts, delay,
                )
                self._emit(
                    RetryEvent("retry", attempt, max_attempts, delay_s=delay, error=exc)
                )
                await self._sleep(delay)
                continue

            self._emit(RetryEvent("success", attempt, max_attempts))
            return RetryOutcome(
                success=True,
                attempts=attempt,
                total_elapsed_s=time.monotonic() - start,
                result=result,
            )

        # Unreachable: the loop returns on every path of the last attempt.
        return RetryOutcome(
            success=False,
            attempts=max_attempts,
            total_elapsed_s=time.monotonic() - start,
            error=last_error,
        )

    def _emit(self, event: RetryEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as exc:
                logger.warning("Retry event handler failed on %s: %s", event.type, exc)


def format_retry_message(attempt: int, max_attempts: int, delay_s: float | None = None) -> str:
    """Human-readable retry status line."""
    parts = ["Retrying...", f"attempt {attempt}/{max_attempts}"]
    if delay_s is not None:
        parts.append(f"waiting {round(delay_s)}s")
    return " - ".join(parts)
