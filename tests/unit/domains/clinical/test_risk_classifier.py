"""Tests for risk level classification and threshold markers."""

from __future__ import annotations

import pytest

from riskview.domains.clinical.domain_logic.risk_classifier import (
    RiskLevel,
    classify,
    format_risk,
    is_high_risk,
    reference_lines,
)


class TestClassify:
    @pytest.mark.parametrize(
        "score, expected",
        [
            (0.0, RiskLevel.LOW),
            (0.39, RiskLevel.LOW),
            (0.4, RiskLevel.MODERATE),
            (0.59, RiskLevel.MODERATE),
            (0.6, RiskLevel.HIGH),
            (0.79, RiskLevel.HIGH),
            (0.8, RiskLevel.CRITICAL),
            (1.0, RiskLevel.CRITICAL),
        ],
    )
    def test_boundaries(self, score, expected):
        assert classify(score) is expected

    def test_out_of_range_scores(self):
        assert classify(-0.5) is RiskLevel.LOW
        assert classify(1.7) is RiskLevel.CRITICAL

    def test_nan_is_low(self):
        assert classify(float("nan")) is RiskLevel.LOW

    def test_monotone(self):
        scores = [i / 100 for i in range(101)]
        levels = [classify(s) for s in scores]
        assert levels == sorted(levels)


class TestRiskLevel:
    def test_ordering(self):
        assert RiskLevel.LOW < RiskLevel.MODERATE < RiskLevel.HIGH < RiskLevel.CRITICAL

    def test_colors_distinct(self):
        assert len({level.color for level in RiskLevel}) == 4

    def test_label(self):
        assert RiskLevel.CRITICAL.label == "Critical"


def test_is_high_risk():
    assert is_high_risk(0.6)
    assert is_high_risk(0.95)
    assert not is_high_risk(0.59)


def test_format_risk():
    assert format_risk(0.85) == "CRITICAL (85.0%)"
    assert format_risk(0.123) == "LOW (12.3%)"


def test_reference_lines_match_thresholds():
    lines = reference_lines()
    assert [line.y for line in lines] == [0.4, 0.6, 0.8]
    assert [line.label for line in lines] == ["Moderate", "High", "Critical"]
    for line in lines:
        assert classify(line.y) is line.level
        assert line.color == line.level.color
