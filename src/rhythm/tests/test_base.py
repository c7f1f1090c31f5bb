"""Tests for entry parsing and intensity normalization."""

from __future__ import annotations

import math
from datetime import date

import pytest

from src.rhythm.base import (
    DailyEntry,
    RhythmSettings,
    count_checkin_days,
    count_logged_days,
    entries_in_window,
    mood_to_ten,
    normalize_intensity,
    parse_entries,
    parse_iso_date,
    symptom_label,
)
from src.rhythm.tests.conftest import make_entry


class TestNormalizeIntensity:
    @pytest.mark.parametrize(
        "raw, expected",
        [(0, 0.0), (5, 5.0), (7.5, 7.5), (10, 10.0), (40, 4.0), (15, 2.0), (100, 10.0), (250, 10.0)],
    )
    def test_scales_and_clamps(self, raw, expected) -> None:
        assert normalize_intensity(raw) == expected

    def test_negative_values_clamp_to_zero(self) -> None:
        assert normalize_intensity(-3) == 0.0
        assert normalize_intensity(-50) == 0.0

    @pytest.mark.parametrize(
        "raw", [None, "5", True, False, math.nan, math.inf, [3], 10**400, -(10**400)]
    )
    def test_invalid_values_are_absent(self, raw) -> None:
        assert normalize_intensity(raw) is None

    @pytest.mark.parametrize("raw", [0, 3, 7.5, 10, 11, 40, 99, 100, 250, -7])
    def test_idempotent(self, raw) -> None:
        once = normalize_intensity(raw)
        assert normalize_intensity(once) == once

    def test_mood_keeps_its_own_scale(self) -> None:
        assert normalize_intensity(2, "mood") == 2
        assert normalize_intensity(5, "mood") is None
        assert normalize_intensity(0, "mood") is None
        assert normalize_intensity(10**400, "mood") is None

    def test_mood_to_ten(self) -> None:
        assert mood_to_ten(1) == 3.0
        assert mood_to_ten(2) == 6.0
        assert mood_to_ten(3) == 9.0
        assert mood_to_ten(4) is None


class TestParseIsoDate:
    def test_valid(self) -> None:
        assert parse_iso_date("2024-03-01") == date(2024, 3, 1)

    @pytest.mark.parametrize("raw", ["2024-3-1", "01/03/2024", "2024-02-30", "", None, 20240301])
    def test_malformed(self, raw) -> None:
        assert parse_iso_date(raw) is None


class TestDailyEntry:
    def test_from_record_reads_camel_case(self) -> None:
        entry = DailyEntry.from_record(
            {
                "dateISO": "2024-03-01",
                "mood": 2,
                "values": {"flow": 6, "cramps": 40},
                "cycleStartOverride": True,
                "events": {"exercise": True, "caffeine": False},
                "notes": "long day",
            }
        )
        assert entry is not None
        assert entry.date == date(2024, 3, 1)
        assert entry.mood == 2
        assert entry.cycle_start_override
        assert not entry.breakthrough_bleed
        assert entry.events == frozenset({"exercise"})
        assert entry.notes == "long day"

    def test_legacy_values_normalized_on_read_not_stored(self) -> None:
        entry = DailyEntry.from_record({"dateISO": "2024-03-01", "values": {"cramps": 40}})
        assert entry.intensity("cramps") == 4.0
        assert entry.values["cramps"] == 40

    def test_values_are_read_only(self) -> None:
        entry = DailyEntry.from_record({"dateISO": "2024-03-01", "values": {"sleep": 5}})
        with pytest.raises(TypeError):
            entry.values["sleep"] = 9  # type: ignore[index]

    def test_flags_require_true(self) -> None:
        entry = DailyEntry.from_record(
            {"dateISO": "2024-03-01", "cycleStartOverride": "yes", "breakthroughBleed": 1}
        )
        assert not entry.cycle_start_override
        assert not entry.breakthrough_bleed

    def test_malformed_date_returns_none(self) -> None:
        assert DailyEntry.from_record({"dateISO": "yesterday"}) is None
        assert DailyEntry.from_record({"values": {"flow": 5}}) is None
        assert DailyEntry.from_record("2024-03-01") is None  # type: ignore[arg-type]

    def test_malformed_values_are_absent(self) -> None:
        entry = DailyEntry.from_record(
            {"dateISO": "2024-03-01", "values": {"sleep": "lots", "energy": 6}}
        )
        assert entry.intensity("sleep") is None
        assert entry.intensity("energy") == 6.0

    def test_breakthrough_has_zero_effective_flow(self) -> None:
        entry = make_entry(date(2024, 3, 1), flow=10, breakthrough=True)
        assert entry.flow == 10.0
        assert entry.effective_flow == 0.0

    def test_mood_intensity_on_ten_scale(self) -> None:
        assert make_entry(date(2024, 3, 1), mood=3).intensity("mood") == 9.0

    def test_to_record_round_trips_shape(self) -> None:
        entry = make_entry(date(2024, 3, 1), flow=6, override=True, events=["travel"])
        record = entry.to_record()
        assert record["dateISO"] == "2024-03-01"
        assert record["cycleStartOverride"] is True
        assert record["events"] == {"travel": True}
        assert DailyEntry.from_record(record) == entry

    def test_meaningful_data(self) -> None:
        assert make_entry(date(2024, 3, 1), sleep=5).has_meaningful_data()
        assert make_entry(date(2024, 3, 1), events=["exercise"]).has_meaningful_data()
        assert not make_entry(date(2024, 3, 1)).has_meaningful_data()


class TestParseEntries:
    def test_sorts_and_skips_malformed(self) -> None:
        entries = parse_entries(
            [
                {"dateISO": "2024-03-03", "values": {"flow": 2}},
                {"dateISO": "not-a-date"},
                None,
                {"dateISO": "2024-03-01", "values": {"flow": 6}},
            ]
        )
        assert [e.date_iso for e in entries] == ["2024-03-01", "2024-03-03"]

    def test_last_record_wins_per_date(self) -> None:
        entries = parse_entries(
            [
                {"dateISO": "2024-03-01", "values": {"flow": 2}},
                {"dateISO": "2024-03-01", "values": {"flow": 7}},
            ]
        )
        assert len(entries) == 1
        assert entries[0].flow == 7.0

    def test_accepts_entries_and_none(self) -> None:
        entry = make_entry(date(2024, 3, 1), flow=5)
        assert parse_entries([entry]) == [entry]
        assert parse_entries(None) == []

    def test_window_is_inclusive(self) -> None:
        entries = [make_entry(date(2024, 3, d), sleep=5) for d in range(1, 11)]
        window = entries_in_window(entries, date(2024, 3, 10), 7)
        assert [e.date.day for e in window] == [4, 5, 6, 7, 8, 9, 10]

    def test_day_counts(self) -> None:
        entries = [
            make_entry(date(2024, 3, 1), sleep=5),
            make_entry(date(2024, 3, 2)),
            make_entry(date(2024, 3, 5), mood=2),
        ]
        assert count_logged_days(entries) == 3
        assert count_checkin_days(entries) == 2


class TestRhythmSettings:
    def test_no_cycle_mode_disables_tracking(self) -> None:
        assert not RhythmSettings.from_record({"cycleTrackingMode": "no-cycle"}).cycle_tracking
        assert RhythmSettings.from_record({"cycleTrackingMode": "cycle"}).cycle_tracking

    def test_reads_lists_and_dates(self) -> None:
        settings = RhythmSettings.from_record(
            {
                "fertilityMode": True,
                "enabledModules": ["sleep", "cramps"],
                "enabledInfluences": ["caffeine"],
                "ovulationOverrideISOs": ["2024-03-14", "bad", "2024-02-14"],
            }
        )
        assert settings.fertility_mode
        assert settings.enabled_symptoms == ("sleep", "cramps")
        assert settings.enabled_influences == ("caffeine",)
        assert settings.ovulation_override_dates == (date(2024, 2, 14), date(2024, 3, 14))

    def test_garbage_record_gives_defaults(self) -> None:
        assert RhythmSettings.from_record(None) == RhythmSettings()

    def test_insights_cutoffs(self) -> None:
        settings = RhythmSettings.from_record(
            {
                "insightsFromISO": "2024-03-01",
                "metricRetiredFromISO": {"sleep": "2024-03-10", "energy": "2024-02-01", "x": "bad"},
            }
        )
        assert settings.insights_from == date(2024, 3, 1)
        assert dict(settings.metric_retired_from) == {
            "sleep": date(2024, 3, 10),
            "energy": date(2024, 2, 1),
        }

    def test_later_cutoff_wins(self) -> None:
        settings = RhythmSettings(
            insights_from=date(2024, 3, 1),
            metric_retired_from={"sleep": date(2024, 3, 10), "energy": date(2024, 2, 1)},
        )
        assert settings.metric_cutoff("sleep") == date(2024, 3, 10)
        assert settings.metric_cutoff("energy") == date(2024, 3, 1)
        assert settings.metric_cutoff("mood") == date(2024, 3, 1)
        assert not settings.in_scope("sleep", date(2024, 3, 9))
        assert settings.in_scope("sleep", date(2024, 3, 10))

    def test_no_cutoff_keeps_everything(self) -> None:
        settings = RhythmSettings(metric_retired_from={"sleep": date(2024, 3, 10)})
        assert settings.metric_cutoff("energy") is None
        assert settings.in_scope("energy", date(2000, 1, 1))


class TestSymptomLabel:
    def test_known_and_unknown_keys(self) -> None:
        assert symptom_label("backPain") == "Back pain"
        assert symptom_label("mood") == "Mood"
        assert symptom_label("someNewThing") == "Some New Thing"
