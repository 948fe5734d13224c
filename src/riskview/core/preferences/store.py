"""Persisted light/dark presentation preference.

Resolution order at start-up: a persisted value (the user chose it), then
the environment's "prefers dark" signal, then light. Explicit changes are
applied in memory first and persisted afterwards; a storage failure is
logged and never undoes the change. While the mode came from the
environment, environment signals keep it in sync. Once the user has chosen
a mode, signals are ignored until the persisted value is removed.

Usage::

    store = PreferenceStore(SQLitePreferenceStorage(db), signal)
    store.initialize()
    store.toggle()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from riskview.core.preferences.signals import ThemeSignal
from riskview.core.preferences.storage import PersistenceError, PreferenceStorage

logger = logging.getLogger(__name__)

PREFERENCE_KEY = "theme_mode"


class ThemeMode(str, Enum):
    LIGHT = "light"
    DARK = "dark"

    @property
    def opposite(self) -> ThemeMode:
        return ThemeMode.DARK if self is ThemeMode.LIGHT else ThemeMode.LIGHT


class PreferenceOrigin(str, Enum):
    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True)
class PreferenceState:
    mode: ThemeMode = ThemeMode.LIGHT
    origin: PreferenceOrigin = PreferenceOrigin.SYSTEM

    @property
    def is_dark(self) -> bool:
        return self.mode is ThemeMode.DARK


ChangeHandler = Callable[[PreferenceState], None]


class PreferenceStore:
    """Process-wide presentation preference, constructed once and injected."""

    def __init__(
        self,
        storage: PreferenceStorage,
        signal: ThemeSignal | None = None,
        *,
        key: str = PREFERENCE_KEY,
    ) -> None:
        self._storage = storage
        self._signal = signal
        self._key = key
        self._state = PreferenceState()
        self._handlers: list[ChangeHandler] = []
        self._unsubscribe_signal: Callable[[], None] | None = None
        # True while the latest user choice exists only in memory
        self._unpersisted = False

    @property
    def state(self) -> PreferenceState:
        return self._state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> PreferenceState:
        """Resolve the starting state and subscribe to the environment signal.

        Idempotent with respect to the subscription; the state is
        re-resolved from storage on every call.
        """
        persisted = self._read_persisted()
        if persisted is not None:
            self._state = PreferenceState(persisted, PreferenceOrigin.USER)
        else:
            self._state = PreferenceState(self._system_mode(), PreferenceOrigin.SYSTEM)

        if self._signal is not None and self._unsubscribe_signal is None:
            self._unsubscribe_signal = self._signal.subscribe(self._on_signal)

        logger.info(
            "Preference initialized: %s (%s)",
            self._state.mode.value,
            self._state.origin.value,
        )
        return self._state

    # ------------------------------------------------------------------
    # Explicit changes
    # ------------------------------------------------------------------

    def set_mode(self, mode: ThemeMode | str) -> PreferenceState:
        """Apply ``mode`` as the user's choice and persist it."""
        mode = ThemeMode(mode)
        self._state = PreferenceState(mode, PreferenceOrigin.USER)
        try:
            self._storage.set(self._key, mode.value)
            self._unpersisted = False
        except PersistenceError:
            self._unpersisted = True
            logger.warning(
                "Could not persist preference %r; keeping it for this session",
                mode.value,
                exc_info=True,
            )
        return self._state

    def toggle(self) -> PreferenceState:
        return self.set_mode(self._state.mode.opposite)

    # ------------------------------------------------------------------
    # Environment signal
    # ------------------------------------------------------------------

    def on_external_change(self, handler: ChangeHandler) -> Callable[[], None]:
        """Register a handler for changes driven by the environment signal."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def _on_signal(self, prefers_dark: bool) -> None:
        if self._state.origin is PreferenceOrigin.USER:
            try:
                still_persisted = (
                    self._unpersisted or self._storage.get(self._key) is not None
                )
            except PersistenceError:
                still_persisted = True
            if still_persisted:
                logger.debug("Ignoring system theme signal: user preference is set")
                return
            logger.info("Persisted preference was cleared; following system theme")

        new_state = PreferenceState(
            ThemeMode.DARK if prefers_dark else ThemeMode.LIGHT,
            PreferenceOrigin.SYSTEM,
        )
        if new_state == self._state:
            return
        self._state = new_state
        for handler in list(self._handlers):
            try:
                handler(new_state)
            except Exception:
                logger.exception("Preference change handler failed")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_persisted(self) -> ThemeMode | None:
        try:
            raw = self._storage.get(self._key)
        except PersistenceError:
            logger.warning("Could not read persisted preference", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return ThemeMode(raw)
        except ValueError:
            logger.warning("Ignoring invalid persisted preference %r", raw)
            return None

    def _system_mode(self) -> ThemeMode:
        prefers_dark = self._signal.prefers_dark() if self._signal is not None else None
        return ThemeMode.DARK if prefers_dark else ThemeMode.LIGHT
