"""OS / environment "prefers dark" signal sources."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

SignalHandler = Callable[[bool], None]


@runtime_checkable
class ThemeSignal(Protocol):
    """Subscribable boolean "prefers dark" signal."""

    def prefers_dark(self) -> bool | None:
        """Current value, or None when the environment offers no signal."""
        ...

    def subscribe(self, handler: SignalHandler) -> Callable[[], None]:
        """Register a change handler; returns an unsubscribe callable."""
        ...


class StaticThemeSignal:
    """A signal with a settable value.

    Used for environments configured through settings, and in tests, where
    ``emit`` stands in for an OS appearance change.
    """

    def __init__(self, prefers_dark: bool | None = None) -> None:
        self._value = prefers_dark
        self._handlers: list[SignalHandler] = []

    def prefers_dark(self) -> bool | None:
        return self._value

    def subscribe(self, handler: SignalHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def emit(self, prefers_dark: bool) -> None:
        """Change the value and notify subscribers."""
        self._value = prefers_dark
        for handler in list(self._handlers):
            try:
                handler(prefers_dark)
            except Exception:
                logger.exception("Theme signal handler failed")


def signal_from_setting(value: str) -> StaticThemeSignal:
    """Build a signal from a ``RISKVIEW_PREFERS_DARK``-style setting.

    Accepts ``true``/``false`` (and ``1``/``0``, ``yes``/``no``); anything
    else, including the empty string, means no signal is available.
    """
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return StaticThemeSignal(True)
    if normalized in {"0", "false", "no", "off"}:
        return StaticThemeSignal(False)
    if normalized:
        logger.warning("Ignoring unrecognised prefers-dark setting %r", value)
    return StaticThemeSignal(None)
