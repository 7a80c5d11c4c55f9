# src/logging/context.py — v1
"""Contextual logging support: attach run_id, project and step to log records.

The runner sets the run context once per workflow run and scopes the step
context around each step. ContextFilter copies the current values onto every
record passing through a handler, so formatters (ours or a user's
``%(step)s`` format string) can read them as record attributes.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from dataclasses import dataclass, fields
from typing import Any, Iterator

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_project: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "project", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass(frozen=True)
class LogContext:
    """Snapshot of the logging context at one point in time."""

    run_id: str | None = None
    project: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields only, for JSON log injection."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


def get_context() -> LogContext:
    return LogContext(run_id=_run_id.get(), project=_project.get(), step=_step.get())


def set_run_context(run_id: str, project: str | None = None) -> None:
    """Set run-level context (called once per workflow run)."""
    _run_id.set(run_id)
    _project.set(project)


def set_step_context(step: str | None) -> None:
    """Set the step currently being processed (None to clear)."""
    _step.set(step)


@contextmanager
def step_context(step: str) -> Iterator[None]:
    """Scope the step context to a block, restoring the previous value on exit."""
    token = _step.set(step)
    try:
        yield
    finally:
        _step.reset(token)


def clear_context() -> None:
    _run_id.set(None)
    _project.set(None)
    _step.set(None)


class ContextFilter(logging.Filter):
    """Copy run_id, project and step onto each record. Never drops records."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_context()
        record.run_id = ctx.run_id
        record.project = ctx.project
        record.step = ctx.step
        return True


def record_context(record: logging.LogRecord) -> LogContext:
    """Context carried by ``record``, or the live context if no filter ran."""
    if hasattr(record, "run_id") or hasattr(record, "step"):
        return LogContext(
            run_id=getattr(record, "run_id", None),
            project=getattr(record, "project", None),
            step=getattr(record, "step", None),
        )
    return get_context()
