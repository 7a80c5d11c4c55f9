# tests/unit/quality/test_models.py — v1
"""Tests for quality/models.py — scores, gate configs and findings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from genflow.quality.models import (
    FALLBACK_QUALITY_GATE,
    CategoryScore,
    QualityGateConfig,
    QualityScore,
    ReviewFinding,
    Severity,
    gate_config_for,
)


class TestQualityScore:
    def test_overall_clamped(self):
        assert QualityScore(overall=130).overall == 100
        assert QualityScore(overall=-5).overall == 0

    def test_issues_from_weak_categories_only(self):
        score = QualityScore(
            overall=60,
            categories=[
                CategoryScore(name="clarity", score=69, issues=["vague goals"]),
                CategoryScore(name="feasibility", score=70, issues=["minor nit"]),
                CategoryScore(name="scope", score=5, max_score=10, issues=["too broad"]),
            ],
        )
        assert score.issues_to_fix() == ["vague goals", "too broad"]


class TestQualityGateConfig:
    def test_defaults(self):
        cfg = QualityGateConfig()
        assert cfg.min_score == 60
        assert cfg.max_retries == 2
        assert cfg.auto_fix is True

    def test_min_score_range(self):
        with pytest.raises(ValidationError):
            QualityGateConfig(min_score=101)

    def test_negative_retries(self):
        with pytest.raises(ValidationError):
            QualityGateConfig(max_retries=-1)

    @pytest.mark.parametrize("step_id,min_score,max_retries", [
        ("step-04-prd", 70, 3),
        ("step-06-architecture", 70, 3),
        ("step-07-epics-stories", 70, 3),
        ("story-3", 65, 2),
        ("step-11-code-review", 75, 3),
    ])
    def test_defaults_by_kind(self, step_id, min_score, max_retries):
        cfg = gate_config_for(step_id)
        assert cfg.min_score == min_score
        assert cfg.max_retries == max_retries

    def test_fallback(self):
        assert gate_config_for("step-01-brainstorming") == FALLBACK_QUALITY_GATE


class TestReviewFinding:
    def test_blocking(self):
        assert ReviewFinding(severity=Severity.CRITICAL, finding="x").blocking
        assert ReviewFinding(severity=Severity.MAJOR, finding="x").blocking
        assert not ReviewFinding(severity=Severity.MINOR, finding="x").blocking

    def test_as_issue(self):
        f = ReviewFinding(severity=Severity.MAJOR, finding="No auth flow", recommendation="Add login")
        assert f.as_issue() == "[major] No auth flow: Add login"
