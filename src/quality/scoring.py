# src/quality/scoring.py — v1
"""LLM-backed scorer, fixer and reviewer plus the parsers for their replies.

Replies are expected to contain a JSON object (optionally inside a code
fence). Unparseable replies fall back to neutral values instead of failing
the step: a score of 70 (grade C), or a single minor finding.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from genflow.llm.base_client import GeneratorLike, as_generator
from genflow.llm.errors import GenerationError, GenerationErrorKind
from genflow.llm.models import GenerationOptions
from genflow.llm.retry import RetryPolicy
from genflow.quality.models import (
    CategoryScore,
    FixResult,
    Grade,
    QualityScore,
    ReviewFinding,
    Severity,
)

logger = logging.getLogger(__name__)

FALLBACK_SCORE = 70.0
FALLBACK_SUMMARY = "Evaluation could not be completed"

IMPROVED_CONTENT_HEADER = "## IMPROVED CONTENT"
CHANGES_HEADER = "## CHANGES"

_SCORE_PROMPT = """Evaluate the following {content_type} for completeness, clarity,
consistency and feasibility. Score each category and the whole document.

Content:
{content}

Reply with JSON only:
{{"overall": 0-100, "grade": "A|B|C|D|F", "summary": "...",
  "categories": [{{"name": "...", "score": 0, "max_score": 100,
                   "issues": ["..."], "suggestions": ["..."]}}]}}"""

_FIX_PROMPT = """Improve the following {content_type}. Keep its structure and
fix only the listed issues.

Content:
{content}

Issues:
{issues}

Reply in this format:
{improved_header}
<the full improved content>

{changes_header}
- <one line per change>"""

_REVIEW_PROMPT = """Critically review the following {content_type}. Look for
ambiguities, missing edge cases, contradictions and risks.

Content:
{content}

Reply with JSON only:
{{"findings": [{{"severity": "critical|major|minor", "category": "...",
                 "finding": "...", "impact": "...", "recommendation": "..."}}]}}"""

_REVIEW_CONTENT_LIMIT = 5000


def grade_for(score: float) -> Grade:
    """Map a 0-100 score to a letter grade."""
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def _extract_json(text: str) -> dict[str, Any] | None:
    """Pull the outermost JSON object out of an LLM reply."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = [ln for ln in cleaned.split("\n") if not ln.strip().startswith("```")]
        cleaned = "\n".join(lines)

    match = re.search(r"\{.*\}", cleaned, re.DOTALL)
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_quality_score(text: str) -> QualityScore:
    """Parse a scorer reply, falling back to a neutral 70/C."""
    data = _extract_json(text)
    if data is None or "overall" not in data:
        logger.warning("Unparseable quality score reply, using fallback")
        return QualityScore(overall=FALLBACK_SCORE, grade="C", summary=FALLBACK_SUMMARY)

    try:
        overall = float(data["overall"])
        categories = [
            CategoryScore.model_validate(c)
            for c in data.get("categories", [])
            if isinstance(c, dict)
        ]
    except (TypeError, ValueError, ValidationError) as e:
        logger.warning("Invalid quality score reply (%s), using fallback", e)
        return QualityScore(overall=FALLBACK_SCORE, grade="C", summary=FALLBACK_SUMMARY)

    grade = data.get("grade")
    if grade not in ("A", "B", "C", "D", "F"):
        grade = grade_for(overall)

    return QualityScore(
        overall=overall,
        grade=grade,
        categories=categories,
        summary=str(data.get("summary", "")),
    )


def parse_findings(text: str) -> list[ReviewFinding]:
    """Parse a reviewer reply. Unparseable replies yield one minor finding."""
    data = _extract_json(text)
    raw = data.get("findings") if data else None
    if not isinstance(raw, list):
        logger.warning("Unparseable review reply, recording a single minor finding")
        return [
            ReviewFinding(
                severity=Severity.MINOR,
                category="general",
                finding="Review could not be completed",
                impact="unknown",
                recommendation="Review the content manually",
            )
        ]

    findings: list[ReviewFinding] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            findings.append(ReviewFinding.model_validate(item))
        except ValidationError as e:
            logger.debug("Skipping malformed finding: %s", e)
    return findings


def parse_fix_response(text: str, original: str) -> FixResult:
    """Split a fixer reply into improved content and a change list.

    Without an improved-content section the original content is kept.
    """
    content_match = re.search(
        rf"{re.escape(IMPROVED_CONTENT_HEADER)}\s*\n(.*?)(?={re.escape(CHANGES_HEADER)}|\Z)",
        text,
        re.DOTALL,
    )
    changes_match = re.search(rf"{re.escape(CHANGES_HEADER)}\s*\n(.*)\Z", text, re.DOTALL)

    improved = content_match.group(1).strip() if content_match else ""
    changes: list[str] = []
    if changes_match:
        changes = [
            line.strip()[1:].strip()
            for line in changes_match.group(1).splitlines()
            if line.strip().startswith("-")
        ]
    return FixResult(improved_content=improved or original, changes=changes)


class _BackendCall:
    """Shared plumbing: one prompt in, one reply out, optionally under retry.

    Without a retry policy backend errors propagate unchanged. With one,
    retryable failures are absorbed and a final failure is raised as
    GenerationError.
    """

    default_temperature: float | None = None

    def __init__(
        self,
        generator: GeneratorLike,
        content_type: str = "document",
        options: GenerationOptions | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._generator = as_generator(generator)
        self._content_type = content_type
        if options is None:
            options = (
                GenerationOptions()
                if self.default_temperature is None
                else GenerationOptions(temperature=self.default_temperature)
            )
        self._options = options
        self._retry = retry_policy

    async def _ask(self, prompt: str) -> str:
        if self._retry is None:
            return await self._generator.generate(prompt, self._options)

        async def generate_once() -> str:
            return await self._generator.generate(prompt, self._options)

        outcome = await self._retry.run(generate_once)
        if outcome.success:
            return outcome.result  # type: ignore[return-value]
        error = outcome.error
        if isinstance(error, GenerationError):
            raise error
        if error is None:
            raise GenerationError(GenerationErrorKind.UNKNOWN)
        raise GenerationError.from_exception(error) from error


class LLMQualityScorer(_BackendCall):
    """QualityScorer asking the generation backend for a JSON score."""

    default_temperature = 0.0

    async def score(self, content: str) -> QualityScore:
        prompt = _SCORE_PROMPT.format(content_type=self._content_type, content=content)
        reply = await self._ask(prompt)
        return parse_quality_score(reply)


class LLMContentFixer(_BackendCall):
    """ContentFixer asking the generation backend to rewrite content."""

    async def fix(self, content: str, issues: list[str]) -> FixResult:
        issue_lines = "\n".join(f"{i}. {issue}" for i, issue in enumerate(issues, 1))
        prompt = _FIX_PROMPT.format(
            content_type=self._content_type,
            content=content,
            issues=issue_lines or "(general improvements)",
            improved_header=IMPROVED_CONTENT_HEADER,
            changes_header=CHANGES_HEADER,
        )
        reply = await self._ask(prompt)
        return parse_fix_response(reply, content)


class LLMReviewer(_BackendCall):
    """Reviewer asking the generation backend for adversarial findings."""

    default_temperature = 0.2

    async def review(self, content: str) -> list[ReviewFinding]:
        prompt = _REVIEW_PROMPT.format(
            content_type=self._content_type,
            content=content[:_REVIEW_CONTENT_LIMIT],
        )
        reply = await self._ask(prompt)
        return parse_findings(reply)
