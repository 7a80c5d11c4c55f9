# src/quality/models.py — v1
"""Quality gate domain models: scores, gate configs and results, review findings."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

Grade = Literal["A", "B", "C", "D", "F"]

# Categories scoring below this fraction of their maximum contribute issues.
ISSUE_THRESHOLD_RATIO = 0.7


class CategoryScore(BaseModel):
    """Score of one evaluation category."""

    name: str
    score: float
    max_score: float = 100.0
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)

    @property
    def below_threshold(self) -> bool:
        return self.score < self.max_score * ISSUE_THRESHOLD_RATIO


class QualityScore(BaseModel):
    """Overall content score, 0-100, with an A-F grade."""

    overall: float
    grade: Grade = "F"
    categories: list[CategoryScore] = Field(default_factory=list)
    summary: str = ""

    @field_validator("overall")
    @classmethod
    def clamp_overall(cls, v: float) -> float:  # noqa: N805
        return max(0.0, min(100.0, v))

    def issues_to_fix(self) -> list[str]:
        """Issues from categories scoring below 70% of their maximum."""
        return [issue for c in self.categories if c.below_threshold for issue in c.issues]


class QualityGateConfig(BaseModel):
    min_score: float = 60
    max_retries: int = 2
    auto_fix: bool = True

    @field_validator("min_score")
    @classmethod
    def validate_min_score(cls, v: float) -> float:  # noqa: N805
        if not 0 <= v <= 100:
            raise ValueError("min_score must be between 0 and 100")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v


DEFAULT_QUALITY_GATES: dict[str, QualityGateConfig] = {
    "prd": QualityGateConfig(min_score=70, max_retries=3),
    "architecture": QualityGateConfig(min_score=70, max_retries=3),
    "epics": QualityGateConfig(min_score=70, max_retries=3),
    "story": QualityGateConfig(min_score=65, max_retries=2),
    "code-review": QualityGateConfig(min_score=75, max_retries=3),
}

FALLBACK_QUALITY_GATE = QualityGateConfig(min_score=60, max_retries=2)


def gate_config_for(step_id: str) -> QualityGateConfig:
    """Pick the default gate config whose kind appears in ``step_id``."""
    for kind, config in DEFAULT_QUALITY_GATES.items():
        if kind in step_id:
            return config
    return FALLBACK_QUALITY_GATE


class QualityGateResult(BaseModel):
    passed: bool
    score: float
    grade: Grade
    minimum_required: float
    attempts: int
    issues: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    content: str


class FixResult(BaseModel):
    """Output of one auto-fix pass."""

    improved_content: str
    changes: list[str] = Field(default_factory=list)


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class ReviewFinding(BaseModel):
    severity: Severity
    category: str = "general"
    finding: str
    impact: str = ""
    recommendation: str = ""

    @property
    def blocking(self) -> bool:
        return self.severity in (Severity.CRITICAL, Severity.MAJOR)

    def as_issue(self) -> str:
        return f"[{self.severity.value}] {self.finding}: {self.recommendation}"


class ReviewLoopResult(BaseModel):
    final_content: str
    all_findings: list[ReviewFinding] = Field(default_factory=list)
    iterations: int
    resolved: bool
