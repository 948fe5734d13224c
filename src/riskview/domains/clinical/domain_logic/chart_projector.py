"""Projection of prediction records onto a plotted risk time series."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable

from riskview.core.api.models import PatientRecord

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


@dataclass(frozen=True)
class ChartPoint:
    """One plotted point: ``x`` is the display label, ``y`` the risk score."""

    x: str
    y: float
    date: str
    time: str


def project(
    records: Iterable[PatientRecord],
    *,
    tz: tzinfo | None = None,
) -> list[ChartPoint]:
    """Project records to chart points in ascending time order.

    The sort is stable, so records sharing a timestamp keep their input
    order. Labels are rendered in ``tz`` (the process's local zone when
    ``None``). An empty input yields an empty list; callers render a
    "no data" state for it instead of an empty chart.
    """
    ordered = sorted(records, key=lambda record: record.timestamp)

    points: list[ChartPoint] = []
    for record in ordered:
        local = record.timestamp.astimezone(tz)
        date_part = local.strftime(DATE_FORMAT)
        time_part = local.strftime(TIME_FORMAT)
        points.append(ChartPoint(
            x=f"{date_part} {time_part}",
            y=record.risk_score,
            date=date_part,
            time=time_part,
        ))
    return points
