"""Single-patient prediction form.

Holds the entered vitals, validates them against the slider bounds, and
submits them to the prediction service. At most one submission is in
flight; its outcome (or error message) is exposed for the result panel.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Protocol

from riskview.core.api.errors import TransportError
from riskview.core.api.models import PredictionResult, Vitals
from riskview.domains.clinical.domain_logic.risk_classifier import (
    RiskLevel,
    classify,
    format_risk,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An error occurred while making the prediction"
ALERT_NOTICE = "An alert has been sent to the medical staff."


@dataclass(frozen=True)
class VitalRange:
    """Normal range and slider bounds for one vital sign."""

    label: str
    unit: str
    normal_min: float
    normal_max: float
    slider_min: float
    slider_max: float
    default: float

    def is_normal(self, value: float) -> bool:
        return self.normal_min <= value <= self.normal_max


def _range(label: str, unit: str, lo: float, hi: float, default: float) -> VitalRange:
    return VitalRange(
        label=label,
        unit=unit,
        normal_min=lo,
        normal_max=hi,
        slider_min=math.floor(lo * 0.5),
        slider_max=math.ceil(hi * 1.5),
        default=default,
    )


VITAL_RANGES: dict[str, VitalRange] = {
    "heart_rate": _range("Heart Rate", "bpm", 100, 160, 120),
    "oxygen_sat": VitalRange(
        label="Oxygen Sat",
        unit="%",
        normal_min=95,
        normal_max=100,
        slider_min=70,
        slider_max=100,
        default=98,
    ),
    "blood_pressure": _range("Blood Pressure", "mmHg", 50, 70, 60),
    "respiration_rate": _range("Respiration Rate", "breaths/min", 30, 60, 40),
}


class PredictionSubmitter(Protocol):
    async def submit_prediction(self, vitals: Vitals) -> PredictionResult: ...


@dataclass(frozen=True)
class PredictionOutcome:
    """What the result panel shows after a submission."""

    result: PredictionResult | None = None
    error: str | None = None

    @property
    def level(self) -> RiskLevel | None:
        return classify(self.result.risk_score) if self.result else None

    @property
    def display(self) -> str | None:
        return format_risk(self.result.risk_score) if self.result else None

    @property
    def alert_status(self) -> str | None:
        if self.result is None:
            return None
        return "Alert Triggered" if self.result.alert_triggered else "No Alert Needed"

    def as_dict(self) -> dict[str, Any]:
        if self.result is None:
            return {"status": "error" if self.error else "idle", "error": self.error}
        level = self.level
        return {
            "status": "ok",
            "risk_score": self.result.risk_score,
            "level": level.value,
            "color": level.color,
            "display": self.display,
            "alert_status": self.alert_status,
            "alert_notice": ALERT_NOTICE if self.result.alert_triggered else None,
            "explanation": self.result.explanation,
        }


class FormValidationError(ValueError):
    """The entered values cannot be submitted."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


@dataclass
class PredictionForm:
    """Editable form state plus the outcome of the latest submission."""

    submitter: PredictionSubmitter
    patient_id: str = ""
    values: dict[str, float] = field(
        default_factory=lambda: {name: r.default for name, r in VITAL_RANGES.items()}
    )
    outcome: PredictionOutcome = field(default_factory=PredictionOutcome)
    submitting: bool = False

    def update(self, name: str, value: Any) -> None:
        """Set one field from raw input (text boxes deliver strings)."""
        if name == "patient_id":
            self.patient_id = str(value).strip()
            return
        if name not in VITAL_RANGES:
            raise KeyError(f"Unknown field: {name}")
        try:
            self.values[name] = float(value)
        except (TypeError, ValueError) as exc:
            raise FormValidationError({name: "must be a number"}) from exc

    def validate(self) -> dict[str, str]:
        """Return field -> message for every invalid field."""
        errors: dict[str, str] = {}
        if not self.patient_id:
            errors["patient_id"] = "Patient ID is required"
        for name, vital in VITAL_RANGES.items():
            value = self.values.get(name)
            if value is None or math.isnan(value):
                errors[name] = "must be a number"
            elif not vital.slider_min <= value <= vital.slider_max:
                errors[name] = (
                    f"must be between {vital.slider_min} and {vital.slider_max} {vital.unit}"
                )
        return errors

    def abnormal_fields(self) -> list[str]:
        """Vitals outside their normal range (informational only)."""
        return [
            name for name, vital in VITAL_RANGES.items()
            if name in self.values and not vital.is_normal(self.values[name])
        ]

    def to_vitals(self) -> Vitals:
        errors = self.validate()
        if errors:
            raise FormValidationError(errors)
        return Vitals(patient_id=self.patient_id, **self.values)

    async def submit(self) -> PredictionOutcome:
        """Submit the form. Returns the current outcome if one is in flight."""
        if self.submitting:
            logger.debug("Prediction already in flight for %s", self.patient_id)
            return self.outcome

        try:
            vitals = self.to_vitals()
        except FormValidationError as exc:
            self.outcome = PredictionOutcome(error=str(exc))
            return self.outcome

        self.submitting = True
        self.outcome = PredictionOutcome()
        try:
            result = await self.submitter.submit_prediction(vitals)
        except TransportError as exc:
            logger.warning("Prediction failed for %s: %s", vitals.patient_id, exc)
            self.outcome = PredictionOutcome(error=str(exc) or GENERIC_ERROR)
        except Exception:
            logger.exception("Unexpected prediction failure for %s", vitals.patient_id)
            self.outcome = PredictionOutcome(error=GENERIC_ERROR)
        else:
            logger.info(
                "Prediction for %s: %s", vitals.patient_id, format_risk(result.risk_score)
            )
            self.outcome = PredictionOutcome(result=result)
        finally:
            self.submitting = False
        return self.outcome
