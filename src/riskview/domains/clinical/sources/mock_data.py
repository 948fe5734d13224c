"""Sample prediction data for development and demos.

Five patients spanning every risk level, timestamped relative to ``now`` so
the dashboard always shows a plausible "last 12 hours" feed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

# (patient id, risk score, hours ago, alert triggered)
_SAMPLE_PREDICTIONS = [
    ("P1001", 0.85, 0.5, True),
    ("P1002", 0.45, 2, False),
    ("P1003", 0.72, 5, True),
    ("P1004", 0.35, 8, False),
    ("P1005", 0.91, 12, True),
]

MOCK_TOTAL_PATIENTS = 1247


def get_mock_recent_predictions(now: datetime | None = None) -> dict:
    """Return a ``/predictions/recent``-shaped payload."""
    now = now or datetime.now(timezone.utc)
    return {
        "predictions": [
            {
                "id": patient_id,
                "risk_score": score,
                "timestamp": (now - timedelta(hours=hours_ago)).isoformat(),
                "alert_triggered": alert,
            }
            for patient_id, score, hours_ago, alert in _SAMPLE_PREDICTIONS
        ],
        "total_patients": MOCK_TOTAL_PATIENTS,
        "alert_system_active": True,
    }


def get_mock_patient_history(patient_id: str, now: datetime | None = None) -> dict:
    """Return a ``/patients/{id}/history``-shaped payload with one page of five."""
    now = now or datetime.now(timezone.utc)
    samples = [(0.85, True), (0.78, True), (0.66, False), (0.52, False), (0.41, False)]
    history = [
        {
            "id": patient_id,
            "risk_score": score,
            "timestamp": (now - timedelta(days=index)).isoformat(),
            "alert_triggered": alert,
            "explanation": f"Sample prediction {index + 1} for {patient_id}",
        }
        for index, (score, alert) in enumerate(samples)
    ]
    return {"history": history, "total_records": len(history)}
