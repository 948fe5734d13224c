"""Tests for preference storage backends and theme signals."""

from __future__ import annotations

import pytest

from riskview.core.preferences.signals import StaticThemeSignal, signal_from_setting
from riskview.core.preferences.storage import (
    InMemoryPreferenceStorage,
    PersistenceError,
    PreferenceStorage,
    SQLitePreferenceStorage,
)
from riskview.core.storage.database import PreferenceDatabase


class TestInMemoryStorage:
    def test_get_missing_is_none(self):
        assert InMemoryPreferenceStorage().get("theme_mode") is None

    def test_set_get_clear(self):
        storage = InMemoryPreferenceStorage()
        storage.set("theme_mode", "dark")
        assert storage.get("theme_mode") == "dark"
        storage.clear("theme_mode")
        assert storage.get("theme_mode") is None

    def test_initial_values_are_copied(self):
        initial = {"theme_mode": "dark"}
        storage = InMemoryPreferenceStorage(initial)
        storage.clear("theme_mode")
        assert initial == {"theme_mode": "dark"}

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryPreferenceStorage(), PreferenceStorage)


class TestSQLiteStorage:
    def test_round_trip(self, sqlite_storage):
        sqlite_storage.set("theme_mode", "dark")
        assert sqlite_storage.get("theme_mode") == "dark"

    def test_overwrite_keeps_single_row(self, sqlite_storage, preference_db):
        sqlite_storage.set("theme_mode", "dark")
        sqlite_storage.set("theme_mode", "light")
        rows = preference_db.connection.execute(
            "SELECT value FROM preferences WHERE key = 'theme_mode'"
        ).fetchall()
        assert [row["value"] for row in rows] == ["light"]

    def test_clear(self, sqlite_storage):
        sqlite_storage.set("theme_mode", "dark")
        sqlite_storage.clear("theme_mode")
        assert sqlite_storage.get("theme_mode") is None

    def test_clear_missing_key_is_noop(self, sqlite_storage):
        sqlite_storage.clear("theme_mode")
        assert sqlite_storage.get("theme_mode") is None

    def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "prefs.db")
        with PreferenceDatabase(path) as db:
            SQLitePreferenceStorage(db).set("theme_mode", "dark")
        with PreferenceDatabase(path) as db:
            assert SQLitePreferenceStorage(db).get("theme_mode") == "dark"

    def test_closed_database_raises_persistence_error(self):
        db = PreferenceDatabase(":memory:")
        db.initialize()
        storage = SQLitePreferenceStorage(db)
        db.close()
        with pytest.raises(PersistenceError):
            storage.set("theme_mode", "dark")
        with pytest.raises(PersistenceError):
            storage.get("theme_mode")


class TestSignals:
    def test_emit_notifies_and_updates_value(self):
        signal = StaticThemeSignal(False)
        seen = []
        signal.subscribe(seen.append)
        signal.emit(True)
        assert seen == [True]
        assert signal.prefers_dark() is True

    def test_unsubscribe(self):
        signal = StaticThemeSignal()
        seen = []
        unsubscribe = signal.subscribe(seen.append)
        unsubscribe()
        signal.emit(True)
        assert seen == []

    def test_failing_handler_does_not_block_others(self):
        signal = StaticThemeSignal()
        seen = []

        def broken(value):
            raise RuntimeError("boom")

        signal.subscribe(broken)
        signal.subscribe(seen.append)
        signal.emit(False)
        assert seen == [False]

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("true", True),
            ("YES", True),
            (" 1 ", True),
            ("false", False),
            ("off", False),
            ("", None),
            ("maybe", None),
        ],
    )
    def test_signal_from_setting(self, value, expected):
        assert signal_from_setting(value).prefers_dark() is expected
