"""Summary statistics derived from a feed of recent predictions.

Pure functions: the dashboard aggregator passes in committed records and
gets display-ready values back. Risk levels always come from the
classifier.
"""

from __future__ import annotations

import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Iterable, Sequence

from riskview.core.api.models import PatientRecord
from riskview.domains.clinical.domain_logic.risk_classifier import (
    HIGH_RISK_LEVELS,
    RiskLevel,
    classify,
    format_risk,
)


@dataclass(frozen=True)
class DashboardStats:
    """Headline numbers for the dashboard cards."""

    total_predictions: int
    high_risk_count: int
    alerts_triggered: int
    average_risk: float | None
    level_counts: dict[RiskLevel, int] = field(default_factory=dict)
    total_patients: int | None = None

    def as_dict(self) -> dict:
        return {
            "total_predictions": self.total_predictions,
            "high_risk_count": self.high_risk_count,
            "alerts_triggered": self.alerts_triggered,
            "average_risk": self.average_risk,
            "level_counts": {level.value: n for level, n in self.level_counts.items()},
            "total_patients": self.total_patients,
        }


@dataclass(frozen=True)
class RecentPrediction:
    """One row of the dashboard's recent-predictions list."""

    patient_id: str
    risk_score: float
    level: RiskLevel
    timestamp: datetime
    alert_triggered: bool

    @property
    def display(self) -> str:
        return format_risk(self.risk_score)

    def as_dict(self) -> dict:
        return {
            "patient_id": self.patient_id,
            "risk_score": self.risk_score,
            "level": self.level.value,
            "color": self.level.color,
            "display": self.display,
            "timestamp": self.timestamp.isoformat(),
            "alert_triggered": self.alert_triggered,
        }


@dataclass(frozen=True)
class DailyRisk:
    """Average risk for one calendar day."""

    date: str
    average_risk: float
    count: int


def compute_stats(
    records: Sequence[PatientRecord],
    *,
    total_patients: int | None = None,
) -> DashboardStats:
    levels = [classify(r.risk_score) for r in records]
    counts = Counter(levels)
    return DashboardStats(
        total_predictions=len(records),
        high_risk_count=sum(1 for level in levels if level in HIGH_RISK_LEVELS),
        alerts_triggered=sum(1 for r in records if r.alert_triggered),
        average_risk=(
            round(statistics.mean(r.risk_score for r in records), 4) if records else None
        ),
        level_counts={level: counts.get(level, 0) for level in RiskLevel},
        total_patients=total_patients,
    )


def recent_predictions(
    records: Iterable[PatientRecord],
    *,
    limit: int | None = None,
) -> list[RecentPrediction]:
    """Newest first; records sharing a timestamp keep their input order."""
    ordered = sorted(records, key=lambda r: r.timestamp, reverse=True)
    if limit is not None:
        ordered = ordered[:limit]
    return [
        RecentPrediction(
            patient_id=r.id,
            risk_score=r.risk_score,
            level=classify(r.risk_score),
            timestamp=r.timestamp,
            alert_triggered=r.alert_triggered,
        )
        for r in ordered
    ]


def daily_risk_trend(
    records: Iterable[PatientRecord],
    *,
    tz: tzinfo | None = None,
) -> list[DailyRisk]:
    """Average risk per local calendar day, oldest day first."""
    by_day: dict[str, list[float]] = {}
    for record in records:
        day = record.timestamp.astimezone(tz).strftime("%Y-%m-%d")
        by_day.setdefault(day, []).append(record.risk_score)
    return [
        DailyRisk(
            date=day,
            average_risk=round(statistics.mean(scores), 4),
            count=len(scores),
        )
        for day, scores in sorted(by_day.items())
    ]

