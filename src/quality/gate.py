# src/quality/gate.py — v1
"""Quality gate and review/fix improvement loops.

Both loops are bounded and always terminate. A final failing state is
returned, not raised. Scorer, fixer and reviewer exceptions propagate.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from genflow.quality.models import (
    FixResult,
    QualityGateConfig,
    QualityGateResult,
    QualityScore,
    ReviewFinding,
    ReviewLoopResult,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class QualityScorer(Protocol):
    async def score(self, content: str) -> QualityScore: ...


@runtime_checkable
class ContentFixer(Protocol):
    async def fix(self, content: str, issues: list[str]) -> FixResult: ...


@runtime_checkable
class Reviewer(Protocol):
    async def review(self, content: str) -> list[ReviewFinding]: ...


class QualityGate:
    """Score content and auto-fix it until it meets the minimum score.

    Args:
        scorer: Produces a QualityScore for content.
        fixer: Applies one auto-fix pass. Without a fixer the gate only scores.
    """

    def __init__(self, scorer: QualityScorer, fixer: ContentFixer | None = None) -> None:
        self._scorer = scorer
        self._fixer = fixer

    async def run_gate(
        self, content: str, config: QualityGateConfig | None = None
    ) -> QualityGateResult:
        """Run the gate.

        ``attempts`` counts auto-fix passes; passing on the first score gives 0.
        A failing result carries the best-scoring content seen.
        """
        cfg = config or QualityGateConfig()
        current = content
        score = await self._scorer.score(current)
        best_content, best_score = current, score
        attempts = 0
        improvements: list[str] = []

        logger.info("Quality score %.0f/%s (minimum %.0f)", score.overall, score.grade, cfg.min_score)

        while (
            score.overall < cfg.min_score
            and cfg.auto_fix
            and self._fixer is not None
            and attempts < cfg.max_retries
        ):
            issues = score.issues_to_fix()
            fix = await self._fixer.fix(current, issues)
            attempts += 1
            current = fix.improved_content
            improvements.extend(fix.changes)

            score = await self._scorer.score(current)
            logger.info(
                "Auto-fix pass %d/%d: score %.0f (%d changes)",
                attempts, cfg.max_retries, score.overall, len(fix.changes),
            )
            if score.overall > best_score.overall:
                best_content, best_score = current, score

        passed = score.overall >= cfg.min_score
        if passed:
            final_content, final_score = current, score
        else:
            final_content, final_score = best_content, best_score
            logger.warning(
                "Quality gate failed: best score %.0f < %.0f after %d fix pass(es)",
                final_score.overall, cfg.min_score, attempts,
            )

        return QualityGateResult(
            passed=passed,
            score=final_score.overall,
            grade=final_score.grade,
            minimum_required=cfg.min_score,
            attempts=attempts,
            issues=final_score.issues_to_fix(),
            improvements=improvements,
            content=final_content,
        )


async def review_and_fix_loop(
    content: str,
    reviewer: Reviewer,
    fixer: ContentFixer,
    max_iterations: int = 3,
) -> ReviewLoopResult:
    """Review, then fix critical/major findings, until none remain or
    ``max_iterations`` reviews have run. Every finding is kept for audit."""
    if max_iterations < 1:
        raise ValueError("max_iterations must be >= 1")

    current = content
    all_findings: list[ReviewFinding] = []

    for iteration in range(1, max_iterations + 1):
        findings = await reviewer.review(current)
        all_findings.extend(findings)
        blocking = [f for f in findings if f.blocking]

        logger.info(
            "Review iteration %d/%d: %d blocking, %d total findings",
            iteration, max_iterations, len(blocking), len(findings),
        )

        if not blocking:
            return ReviewLoopResult(
                final_content=current,
                all_findings=all_findings,
                iterations=iteration,
                resolved=True,
            )

        if iteration < max_iterations:
            fix = await fixer.fix(current, [f.as_issue() for f in blocking])
            current = fix.improved_content

    return ReviewLoopResult(
        final_content=current,
        all_findings=all_findings,
        iterations=max_iterations,
        resolved=False,
    )
