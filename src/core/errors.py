# src/core/errors.py — v1
"""Exception hierarchy shared by all genflow components.

Generation failures live in genflow.llm.errors; everything here is either a
state/programmer error or a precondition failure raised before work starts.
"""

from __future__ import annotations


class GenflowError(Exception):
    """Base class for all genflow errors."""


class InvalidTransitionError(GenflowError):
    """A step lifecycle trigger was fired from a state that does not allow it."""

    def __init__(self, step_id: str, current: str, target: str) -> None:
        self.step_id = step_id
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid transition for step '{step_id}': {current} -> {target}"
        )


class StepNotFoundError(GenflowError):
    """The step id is not part of the workflow sequence."""

    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(f"Step not found: {step_id}")


class WorkflowAlreadyRunningError(GenflowError):
    """A second run was requested while one is still active."""

    def __init__(self) -> None:
        super().__init__("A workflow is already running")


class MissingProjectContextError(GenflowError):
    """Project path or project idea was not supplied."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Missing project context: {field_name} is required")


class StepExecutionError(GenflowError):
    """A step's generation call failed after the retry policy gave up."""

    def __init__(self, step_id: str, attempts: int, cause: BaseException | None) -> None:
        self.step_id = step_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Step '{step_id}' failed after {attempts} attempt(s): {cause}"
        )


class CheckpointError(GenflowError):
    """A checkpoint file could not be written."""
