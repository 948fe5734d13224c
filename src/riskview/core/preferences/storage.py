"""Persisted storage backends for the preference store.

A backend holds string values under string keys. The preference store uses
a single key holding the literal ``"light"`` or ``"dark"``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Protocol, runtime_checkable

from riskview.core.storage.database import DatabaseError, PreferenceDatabase

logger = logging.getLogger(__name__)


class PreferenceError(Exception):
    """Base exception for preference errors."""


class PersistenceError(PreferenceError):
    """A preference could not be read from or written to storage."""


@runtime_checkable
class PreferenceStorage(Protocol):
    """Key/value persistence used by ``PreferenceStore``."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value``. Raises PersistenceError on failure."""
        ...

    def clear(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...


class InMemoryPreferenceStorage:
    """Process-local storage. Always available; lost on exit."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def clear(self, key: str) -> None:
        self._values.pop(key, None)


class SQLitePreferenceStorage:
    """Storage backed by the ``preferences`` table of a PreferenceDatabase.

    Writes are committed immediately so a preference survives a crash.
    """

    def __init__(self, database: PreferenceDatabase) -> None:
        self._db = database

    def get(self, key: str) -> str | None:
        try:
            row = self._db.connection.execute(
                "SELECT value FROM preferences WHERE key = ?", (key,)
            ).fetchone()
        except (sqlite3.Error, DatabaseError) as exc:
            raise PersistenceError(f"Failed to read preference '{key}': {exc}") from exc
        return row["value"] if row is not None else None

    def set(self, key: str, value: str) -> None:
        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO preferences (key, value, updated_at)
                   VALUES (?, ?, datetime('now'))
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, value),
            )
            conn.commit()
        except (sqlite3.Error, DatabaseError) as exc:
            raise PersistenceError(f"Failed to write preference '{key}': {exc}") from exc

    def clear(self, key: str) -> None:
        try:
            conn = self._db.connection
            conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
            conn.commit()
        except (sqlite3.Error, DatabaseError) as exc:
            raise PersistenceError(f"Failed to clear preference '{key}': {exc}") from exc
