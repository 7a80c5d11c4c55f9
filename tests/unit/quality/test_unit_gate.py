# tests/unit/quality/test_unit_gate.py — v1
"""Tests for quality/gate.py — QualityGate and review_and_fix_loop."""

from __future__ import annotations

import pytest

from genflow.quality.gate import (
    ContentFixer,
    QualityGate,
    QualityScorer,
    Reviewer,
    review_and_fix_loop,
)
from genflow.quality.models import (
    CategoryScore,
    FixResult,
    QualityGateConfig,
    QualityScore,
    ReviewFinding,
    Severity,
)


class SequenceScorer:
    """Returns the scripted scores in order, repeating the last one."""

    def __init__(self, *scores: float) -> None:
        self.scores = list(scores)
        self.seen: list[str] = []

    async def score(self, content: str) -> QualityScore:
        self.seen.append(content)
        value = self.scores.pop(0) if len(self.scores) > 1 else self.scores[0]
        return QualityScore(
            overall=value,
            grade="C",
            categories=[CategoryScore(name="clarity", score=value, issues=[f"issue@{value}"])],
        )


class AppendingFixer:
    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def fix(self, content: str, issues: list[str]) -> FixResult:
        self.calls.append(issues)
        n = len(self.calls)
        return FixResult(improved_content=f"{content}+fix{n}", changes=[f"change {n}"])


class ScriptedReviewer:
    def __init__(self, *rounds: list[ReviewFinding]) -> None:
        self.rounds = list(rounds)

    async def review(self, content: str) -> list[ReviewFinding]:
        return self.rounds.pop(0) if len(self.rounds) > 1 else self.rounds[0]


def _finding(severity: Severity, text: str = "gap") -> ReviewFinding:
    return ReviewFinding(severity=severity, finding=text, recommendation="fix it")


class TestProtocols:
    def test_test_doubles_satisfy_protocols(self):
        assert isinstance(SequenceScorer(1), QualityScorer)
        assert isinstance(AppendingFixer(), ContentFixer)
        assert isinstance(ScriptedReviewer([]), Reviewer)


class TestQualityGate:
    @pytest.mark.asyncio
    async def test_passes_without_fixing(self):
        fixer = AppendingFixer()
        gate = QualityGate(SequenceScorer(85), fixer)
        result = await gate.run_gate("draft", QualityGateConfig(min_score=70, max_retries=3))
        assert result.passed is True
        assert result.attempts == 0
        assert result.content == "draft"
        assert fixer.calls == []

    @pytest.mark.asyncio
    async def test_single_fix_reaches_threshold(self):
        fixer = AppendingFixer()
        gate = QualityGate(SequenceScorer(55, 72), fixer)
        result = await gate.run_gate("draft", QualityGateConfig(min_score=70, max_retries=3))
        assert result.passed is True
        assert result.attempts == 1
        assert result.score == 72
        assert result.content == "draft+fix1"
        assert result.improvements == ["change 1"]
        assert fixer.calls == [["issue@55"]]

    @pytest.mark.asyncio
    async def test_bounded_by_max_retries(self):
        fixer = AppendingFixer()
        gate = QualityGate(SequenceScorer(40, 50, 45), fixer)
        result = await gate.run_gate("draft", QualityGateConfig(min_score=70, max_retries=2))
        assert result.passed is False
        assert result.attempts == 2
        # Best content seen is returned, not the last one.
        assert result.score == 50
        assert result.content == "draft+fix1"
        assert result.minimum_required == 70

    @pytest.mark.asyncio
    async def test_auto_fix_disabled(self):
        fixer = AppendingFixer()
        gate = QualityGate(SequenceScorer(40), fixer)
        result = await gate.run_gate("draft", QualityGateConfig(min_score=70, auto_fix=False))
        assert result.passed is False
        assert result.attempts == 0
        assert fixer.calls == []

    @pytest.mark.asyncio
    async def test_without_fixer_only_scores(self):
        gate = QualityGate(SequenceScorer(40))
        result = await gate.run_gate("draft")
        assert result.passed is False
        assert result.attempts == 0
        assert result.issues == ["issue@40"]

    @pytest.mark.asyncio
    async def test_scorer_errors_propagate(self):
        class Broken:
            async def score(self, content: str) -> QualityScore:
                raise RuntimeError("scorer down")

        with pytest.raises(RuntimeError):
            await QualityGate(Broken()).run_gate("draft")


class TestReviewAndFixLoop:
    @pytest.mark.asyncio
    async def test_resolved_first_round(self):
        fixer = AppendingFixer()
        result = await review_and_fix_loop(
            "code", ScriptedReviewer([_finding(Severity.MINOR)]), fixer,
        )
        assert result.resolved is True
        assert result.iterations == 1
        assert result.final_content == "code"
        assert len(result.all_findings) == 1
        assert fixer.calls == []

    @pytest.mark.asyncio
    async def test_fixes_blocking_findings(self):
        fixer = AppendingFixer()
        reviewer = ScriptedReviewer(
            [_finding(Severity.CRITICAL, "sql injection"), _finding(Severity.MINOR)],
            [],
        )
        result = await review_and_fix_loop("code", reviewer, fixer)
        assert result.resolved is True
        assert result.iterations == 2
        assert result.final_content == "code+fix1"
        assert fixer.calls == [["[critical] sql injection: fix it"]]
        assert len(result.all_findings) == 2

    @pytest.mark.asyncio
    async def test_unresolved_after_max_iterations(self):
        fixer = AppendingFixer()
        reviewer = ScriptedReviewer([_finding(Severity.MAJOR)])
        result = await review_and_fix_loop("code", reviewer, fixer, max_iterations=3)
        assert result.resolved is False
        assert result.iterations == 3
        assert len(fixer.calls) == 2
        assert len(result.all_findings) == 3

    @pytest.mark.asyncio
    async def test_invalid_iterations(self):
        with pytest.raises(ValueError):
            await review_and_fix_loop("x", ScriptedReviewer([]), AppendingFixer(), max_iterations=0)
