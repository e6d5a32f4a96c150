"""
Unit tests for Preferences and the file-backed PreferencesStore.
"""

import json
from datetime import date

import pytest

from core.exceptions import WorkshopTrackerError
from models.preferences import DEFAULT_TIME_WINDOW_DAYS, NonWorkingPeriod, Preferences
from services.preferences_store import PreferencesStore


# Fixtures

@pytest.fixture
def prefs_path(tmp_path):
    return tmp_path / "data" / "preferences.json"


@pytest.fixture
def store(prefs_path):
    return PreferencesStore(prefs_path)


class TestPreferencesModel:

    def test_inclusive_days(self):
        period = NonWorkingPeriod(date(2025, 8, 1), date(2025, 8, 1))
        assert period.days == 1

    def test_inverted_range_counts_zero(self):
        assert NonWorkingPeriod(date(2025, 8, 10), date(2025, 8, 1)).days == 0

    def test_from_dict_drops_bad_periods(self):
        prefs = Preferences.from_dict({
            "nonWorkingPeriods": [
                {"start": "2025-07-20", "end": "2025-08-10", "reason": "Summer break"},
                {"start": "someday", "end": "2025-08-10"},
                "not a period",
            ],
            "timeWindowDays": 90,
        })
        assert len(prefs.non_working_periods) == 1
        assert prefs.total_non_working_days == 22
        assert prefs.time_window_days == 90

    def test_unknown_window_falls_back(self):
        assert Preferences.from_dict({"timeWindowDays": 42}).time_window_days == DEFAULT_TIME_WINDOW_DAYS
        assert Preferences.from_dict({"timeWindowDays": True}).time_window_days == DEFAULT_TIME_WINDOW_DAYS


class TestPreferencesStore:

    def test_defaults_without_file(self, store):
        prefs = store.get()
        assert prefs.non_working_periods == []
        assert prefs.time_window_days == DEFAULT_TIME_WINDOW_DAYS

    def test_update_saves_and_reloads(self, store, prefs_path):
        store.update({
            "timeWindowDays": 0,
            "nonWorkingPeriods": [{"start": "2025-12-24", "end": "2025-12-26", "reason": "Holidays"}],
        })

        saved = json.loads(prefs_path.read_text(encoding="utf-8"))
        assert saved["timeWindowDays"] == 0
        assert saved["nonWorkingPeriods"][0]["reason"] == "Holidays"
        assert not prefs_path.with_suffix(".json.tmp").exists()

        reloaded = PreferencesStore(prefs_path).get()
        assert reloaded.time_window_days == 0
        assert reloaded.total_non_working_days == 3

    def test_partial_update_keeps_other_keys(self, store):
        store.update({"nonWorkingPeriods": [{"start": "2025-01-01", "end": "2025-01-02"}]})
        prefs = store.update({"timeWindowDays": 30})
        assert prefs.time_window_days == 30
        assert prefs.total_non_working_days == 2

    @pytest.mark.parametrize("payload", [
        {"timeWindowDays": 45},
        {"timeWindowDays": "90"},
        {"nonWorkingPeriods": "summer"},
        ["timeWindowDays", 90],
    ])
    def test_invalid_updates_are_rejected(self, store, prefs_path, payload):
        with pytest.raises(WorkshopTrackerError):
            store.update(payload)
        assert not prefs_path.exists()

    def test_malformed_file_uses_defaults(self, prefs_path):
        prefs_path.parent.mkdir(parents=True)
        prefs_path.write_text("{broken", encoding="utf-8")
        assert PreferencesStore(prefs_path).get().time_window_days == DEFAULT_TIME_WINDOW_DAYS
