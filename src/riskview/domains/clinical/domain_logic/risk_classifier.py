"""Risk level classification — the single source of truth for risk thresholds.

Every view (dashboard badges, history table, trend reference lines, the
prediction result panel) classifies scores through ``classify``. Nothing
else in the codebase compares a risk score against a threshold.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class RiskLevel(str, Enum):
    """Severity derived from a risk score. Ordered LOW < ... < CRITICAL."""

    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def color(self) -> str:
        """Display colour (hex) for badges and chips."""
        return _COLORS[self]

    @property
    def label(self) -> str:
        return self.value.title()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity < other.severity


_SEVERITY = {
    RiskLevel.LOW: 0,
    RiskLevel.MODERATE: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}

_COLORS = {
    RiskLevel.LOW: "#388e3c",
    RiskLevel.MODERATE: "#fbc02d",
    RiskLevel.HIGH: "#f57c00",
    RiskLevel.CRITICAL: "#d32f2f",
}

# Lower bounds, inclusive, checked from most to least severe.
THRESHOLDS: tuple[tuple[float, RiskLevel], ...] = (
    (0.8, RiskLevel.CRITICAL),
    (0.6, RiskLevel.HIGH),
    (0.4, RiskLevel.MODERATE),
)

HIGH_RISK_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})


def classify(score: float) -> RiskLevel:
    """Map a risk score to its level.

    Total over all floats: scores above 1 are CRITICAL, scores below 0 and
    NaN are LOW.
    """
    if math.isnan(score):
        return RiskLevel.LOW
    for lower_bound, level in THRESHOLDS:
        if score >= lower_bound:
            return level
    return RiskLevel.LOW


def is_high_risk(score: float) -> bool:
    return classify(score) in HIGH_RISK_LEVELS


def format_risk(score: float) -> str:
    """Display text such as ``"CRITICAL (85.0%)"``."""
    return f"{classify(score).value} ({score * 100:.1f}%)"


@dataclass(frozen=True)
class ReferenceLine:
    """A horizontal threshold marker on a risk trend chart."""

    y: float
    level: RiskLevel

    @property
    def label(self) -> str:
        return self.level.label

    @property
    def color(self) -> str:
        return self.level.color


def reference_lines() -> list[ReferenceLine]:
    """Threshold markers for trend charts, lowest first."""
    return [ReferenceLine(y=bound, level=level) for bound, level in reversed(THRESHOLDS)]
