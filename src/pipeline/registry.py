# src/pipeline/registry.py — v1
"""Step registry: the ordered sequence of steps a workflow drives.

A default 12-step content workflow ships with the package; callers may
build a registry from any other ordered list of StepDefinitions.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Iterator

from pydantic import BaseModel, Field

from genflow.core.errors import GenflowError, StepNotFoundError

logger = logging.getLogger(__name__)


class RegistryError(GenflowError):
    """Raised when a step definition is invalid or duplicated."""


class StepCategory(str, Enum):
    BUSINESS = "business"
    DESIGN = "design"
    TECHNICAL = "technical"


class StepDefinition(BaseModel):
    """Static description of one workflow step."""

    id: str
    name: str
    category: StepCategory = StepCategory.TECHNICAL
    description: str = ""
    depends_on: list[str] = Field(default_factory=list)


DEFAULT_STEPS: list[StepDefinition] = [
    StepDefinition(
        id="step-01-brainstorming",
        name="Brainstorming",
        category=StepCategory.BUSINESS,
        description="Explore the project idea and alternatives",
    ),
    StepDefinition(
        id="step-02-research",
        name="Research",
        category=StepCategory.BUSINESS,
        description="Market, technical and domain research",
        depends_on=["step-01-brainstorming"],
    ),
    StepDefinition(
        id="step-03-product-brief",
        name="Product Brief",
        category=StepCategory.BUSINESS,
        description="Product summary and vision",
        depends_on=["step-01-brainstorming", "step-02-research"],
    ),
    StepDefinition(
        id="step-04-prd",
        name="PRD",
        category=StepCategory.BUSINESS,
        description="Detailed product requirements document",
        depends_on=["step-03-product-brief"],
    ),
    StepDefinition(
        id="step-05-ux-design",
        name="UX Design",
        category=StepCategory.DESIGN,
        description="User experience design",
        depends_on=["step-04-prd"],
    ),
    StepDefinition(
        id="step-06-architecture",
        name="Architecture",
        category=StepCategory.DESIGN,
        description="System architecture",
        depends_on=["step-04-prd"],
    ),
    StepDefinition(
        id="step-07-epics-stories",
        name="Epics & Stories",
        category=StepCategory.DESIGN,
        description="Epics and user stories",
        depends_on=["step-04-prd", "step-06-architecture"],
    ),
    StepDefinition(
        id="step-08-sprint-planning",
        name="Sprint Planning",
        category=StepCategory.TECHNICAL,
        description="Sprint plan",
        depends_on=["step-07-epics-stories"],
    ),
    StepDefinition(
        id="step-09-tech-spec",
        name="Tech Spec",
        category=StepCategory.TECHNICAL,
        description="Technical specification",
        depends_on=["step-06-architecture", "step-07-epics-stories"],
    ),
    StepDefinition(
        id="step-10-development",
        name="Development",
        category=StepCategory.TECHNICAL,
        description="Code development",
        depends_on=["step-09-tech-spec"],
    ),
    StepDefinition(
        id="step-11-code-review",
        name="Code Review",
        category=StepCategory.TECHNICAL,
        description="Code review",
        depends_on=["step-10-development"],
    ),
    StepDefinition(
        id="step-12-qa-testing",
        name="QA Testing",
        category=StepCategory.TECHNICAL,
        description="Testing and quality control",
        depends_on=["step-10-development"],
    ),
]


class StepRegistry:
    """Ordered, id-indexed collection of step definitions.

    Order of registration is the execution order.
    """

    def __init__(self, steps: Iterable[StepDefinition] | None = None) -> None:
        self._steps: dict[str, StepDefinition] = {}
        for step in steps or ():
            self.register(step)

    @classmethod
    def default(cls) -> StepRegistry:
        """Registry holding the built-in 12-step workflow."""
        return cls(step.model_copy() for step in DEFAULT_STEPS)

    def register(self, step: StepDefinition) -> None:
        if not step.id:
            raise RegistryError("Step definition requires an id")
        if not step.name:
            raise RegistryError(f"Step '{step.id}' requires a name")
        if step.id in self._steps:
            raise RegistryError(f"Step '{step.id}' is already registered")
        self._steps[step.id] = step

    def get(self, step_id: str) -> StepDefinition | None:
        return self._steps.get(step_id)

    def get_or_raise(self, step_id: str) -> StepDefinition:
        step = self._steps.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        return step

    def index_of(self, step_id: str) -> int:
        """Zero-based position of the step in the sequence."""
        for index, known in enumerate(self._steps):
            if known == step_id:
                return index
        raise StepNotFoundError(step_id)

    @property
    def step_ids(self) -> list[str]:
        return list(self._steps)

    def validate_dependencies(self) -> list[str]:
        """Return error messages for dependencies that are unknown or out of order."""
        errors: list[str] = []
        order = {step_id: i for i, step_id in enumerate(self._steps)}
        for step_id, step in self._steps.items():
            for dep in step.depends_on:
                if dep not in order:
                    errors.append(f"Step '{step_id}' depends on unknown step '{dep}'")
                elif order[dep] >= order[step_id]:
                    errors.append(f"Step '{step_id}' depends on later step '{dep}'")
        return errors

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)
