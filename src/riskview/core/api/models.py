"""Response models for the risk-prediction API.

Every payload crossing the network boundary is parsed through a
``from_dict`` classmethod. Malformed payloads raise
``ResponseValidationError`` instead of being trusted by shape.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from riskview.core.api.errors import ResponseValidationError


class TimeFilter(str, Enum):
    """Time window applied to a patient's prediction history."""

    ALL = "all"
    WEEK = "week"
    MONTH = "month"


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------

def _require(data: dict[str, Any], key: str, model: str) -> Any:
    if key not in data or data[key] is None:
        raise ResponseValidationError(f"{model}: missing required field '{key}'")
    return data[key]


def _as_score(value: Any, model: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResponseValidationError(
            f"{model}: risk_score must be a number, got {type(value).__name__}"
        )
    score = float(value)
    if math.isnan(score) or not 0.0 <= score <= 1.0:
        raise ResponseValidationError(f"{model}: risk_score {value!r} outside [0, 1]")
    return score


def _as_bool(value: Any, key: str, model: str) -> bool:
    if not isinstance(value, bool):
        raise ResponseValidationError(f"{model}: '{key}' must be a boolean")
    return value


def _as_count(value: Any, key: str, model: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ResponseValidationError(
            f"{model}: '{key}' must be a non-negative integer, got {value!r}"
        )
    return value


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ResponseValidationError(f"Invalid timestamp {value!r}") from exc
    else:
        raise ResponseValidationError(f"Invalid timestamp {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PatientRecord:
    """A single stored risk prediction for one patient."""

    id: str
    risk_score: float
    timestamp: datetime
    alert_triggered: bool
    explanation: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatientRecord:
        if not isinstance(data, dict):
            raise ResponseValidationError(
                f"PatientRecord: expected object, got {type(data).__name__}"
            )
        explanation = data.get("explanation")
        if explanation is not None and not isinstance(explanation, str):
            raise ResponseValidationError("PatientRecord: 'explanation' must be a string")
        record_id = data.get("id", data.get("patient_id"))
        if record_id is None:
            raise ResponseValidationError("PatientRecord: missing required field 'id'")
        return cls(
            id=str(record_id),
            risk_score=_as_score(_require(data, "risk_score", "PatientRecord"), "PatientRecord"),
            timestamp=parse_timestamp(_require(data, "timestamp", "PatientRecord")),
            alert_triggered=_as_bool(
                data.get("alert_triggered", False), "alert_triggered", "PatientRecord"
            ),
            explanation=explanation or None,
        )


@dataclass(frozen=True)
class HistoryPage:
    """One page of a patient's prediction history.

    ``records`` keep the order the server sent; display code re-sorts.
    """

    records: tuple[PatientRecord, ...]
    total_records: int
    page_index: int
    page_size: int
    time_filter: TimeFilter = TimeFilter.ALL

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be positive")
        if self.page_index < 1:
            raise ValueError("page_index must be positive")
        if self.total_records < 0:
            raise ValueError("total_records must be non-negative")

    @property
    def page_count(self) -> int:
        return math.ceil(self.total_records / self.page_size)

    @classmethod
    def from_response(
        cls,
        data: dict[str, Any],
        *,
        page_index: int,
        page_size: int,
        time_filter: TimeFilter = TimeFilter.ALL,
        records_key: str = "history",
    ) -> HistoryPage:
        """Build a page from a ``{history: [...], total_records: n}`` payload."""
        if not isinstance(data, dict):
            raise ResponseValidationError(
                f"HistoryPage: expected object, got {type(data).__name__}"
            )
        raw_records = data.get(records_key)
        if not isinstance(raw_records, list):
            raise ResponseValidationError(
                f"HistoryPage: '{records_key}' must be a list"
            )
        records = tuple(PatientRecord.from_dict(item) for item in raw_records)
        total = _as_count(
            data.get("total_records", len(records)), "total_records", "HistoryPage"
        )
        return cls(
            records=records,
            total_records=total,
            page_index=page_index,
            page_size=page_size,
            time_filter=time_filter,
        )


@dataclass(frozen=True)
class PredictionResult:
    """Outcome of a single risk prediction request."""

    risk_score: float
    alert_triggered: bool
    explanation: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PredictionResult:
        if not isinstance(data, dict):
            raise ResponseValidationError(
                f"PredictionResult: expected object, got {type(data).__name__}"
            )
        explanation = data.get("explanation")
        if explanation is not None and not isinstance(explanation, str):
            raise ResponseValidationError("PredictionResult: 'explanation' must be a string")
        return cls(
            risk_score=_as_score(
                _require(data, "risk_score", "PredictionResult"), "PredictionResult"
            ),
            alert_triggered=_as_bool(
                data.get("alert_triggered", False), "alert_triggered", "PredictionResult"
            ),
            explanation=explanation or None,
        )


@dataclass(frozen=True)
class Vitals:
    """Vital-sign readings submitted for a prediction."""

    patient_id: str
    heart_rate: float
    oxygen_sat: float
    blood_pressure: float
    respiration_rate: float

    def to_payload(self) -> dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "heart_rate": self.heart_rate,
            "oxygen_sat": self.oxygen_sat,
            "blood_pressure": self.blood_pressure,
            "respiration_rate": self.respiration_rate,
        }


@dataclass(frozen=True)
class RecentPredictions:
    """Cross-patient feed of the latest predictions, used by the dashboard."""

    records: tuple[PatientRecord, ...]
    total_patients: int | None = None
    alert_system_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecentPredictions:
        if not isinstance(data, dict):
            raise ResponseValidationError(
                f"RecentPredictions: expected object, got {type(data).__name__}"
            )
        raw = data.get("predictions")
        if not isinstance(raw, list):
            raise ResponseValidationError("RecentPredictions: 'predictions' must be a list")
        total_patients = data.get("total_patients")
        if total_patients is not None:
            total_patients = _as_count(total_patients, "total_patients", "RecentPredictions")
        return cls(
            records=tuple(PatientRecord.from_dict(item) for item in raw),
            total_patients=total_patients,
            alert_system_active=bool(data.get("alert_system_active", True)),
        )
