"""Exceptions raised by the risk-prediction API client."""

from __future__ import annotations


class RiskAPIError(Exception):
    """Base exception for risk-prediction API errors."""


class TransportError(RiskAPIError):
    """The API could not be reached or answered with an HTTP error.

    ``str(exc)`` is safe to show to an operator.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseValidationError(TransportError):
    """The API answered, but the payload did not match the expected shape."""
