"""Tests for fertile-window estimation."""

from __future__ import annotations

from datetime import date, timedelta

from src.rhythm.base import RhythmSettings
from src.rhythm.config_loader import EngineConfig
from src.rhythm.cycle.fertile_window import (
    estimate_fertile_window,
    predicted_ovulation_dates,
)
from src.rhythm.cycle.start_detector import compute_cycle_starts, compute_period_days
from src.rhythm.tests.conftest import REGULAR_STARTS, flow_days, make_entry, regular_log


def span(first: date, last: date) -> list[date]:
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]


class TestPredictedWindow:
    def test_regular_cycles(
        self, fertility_settings: RhythmSettings, engine_config: EngineConfig
    ) -> None:
        window = estimate_fertile_window(regular_log(), fertility_settings, engine_config)
        assert window.source == "predicted"
        assert window.ovulation_dates == [date(2024, 1, 15), date(2024, 2, 12), date(2024, 3, 11)]
        assert span(date(2024, 1, 10), date(2024, 1, 16)) == [
            d for d in window.days if d.month == 1 and d.day < 20
        ]
        assert date(2024, 1, 9) not in window
        assert date(2024, 1, 17) not in window

    def test_single_start_uses_28_days(self, fertility_settings: RhythmSettings) -> None:
        window = estimate_fertile_window(flow_days(date(2024, 1, 1), [6, 6, 6, 0]), fertility_settings)
        assert window.ovulation_dates == [date(2024, 1, 15)]
        assert window.days == span(date(2024, 1, 10), date(2024, 1, 16))

    def test_no_starts_no_window(self, fertility_settings: RhythmSettings) -> None:
        entries = [make_entry(date(2024, 1, 1) + timedelta(days=i), sleep=5) for i in range(30)]
        window = estimate_fertile_window(entries, fertility_settings)
        assert window.days == []
        assert window.source == "none"

    def test_predicted_uses_average_for_open_cycle(self, engine_config: EngineConfig) -> None:
        ovulations = predicted_ovulation_dates([date(2024, 1, 1)], 35, engine_config)
        assert ovulations == [date(2024, 1, 22)]


class TestManualMarkers:
    def test_markers_take_precedence(self, engine_config: EngineConfig) -> None:
        settings = RhythmSettings(
            fertility_mode=True, ovulation_override_dates=(date(2024, 2, 20),)
        )
        window = estimate_fertile_window(regular_log(), settings, engine_config)
        assert window.source == "manual"
        assert window.ovulation_dates == [date(2024, 2, 20)]
        assert window.days == span(date(2024, 2, 15), date(2024, 2, 21))

    def test_entry_marker(self, fertility_settings: RhythmSettings) -> None:
        entries = regular_log()
        entries.append(make_entry(date(2024, 3, 20), ovulation=True))
        window = estimate_fertile_window(entries, fertility_settings)
        assert window.source == "manual"
        assert date(2024, 3, 21) in window

    def test_period_days_removed(self, fertility_settings: RhythmSettings) -> None:
        entries = regular_log()
        entries = [e for e in entries if e.date != date(2024, 1, 3)]
        entries.append(make_entry(date(2024, 1, 3), flow=6, ovulation=True))
        window = estimate_fertile_window(entries, fertility_settings)
        assert window.days == [date(2023, 12, 29), date(2023, 12, 30), date(2023, 12, 31)]


class TestGating:
    def test_fertility_mode_off(self, tracking_settings: RhythmSettings) -> None:
        assert estimate_fertile_window(regular_log(), tracking_settings).days == []

    def test_cycle_tracking_off(self) -> None:
        settings = RhythmSettings(cycle_tracking=False, fertility_mode=True)
        assert estimate_fertile_window(regular_log(), settings).days == []

    def test_never_overlaps_period(
        self, fertility_settings: RhythmSettings, engine_config: EngineConfig
    ) -> None:
        # Short cycles push predicted windows toward the period.
        entries = regular_log(length=21, through=date(2024, 4, 30), bleed_days=6)
        window = estimate_fertile_window(entries, fertility_settings, engine_config)
        period = compute_period_days(entries, config=engine_config.cycle)
        assert window.days
        assert not set(window.days) & period


def test_regular_starts_fixture_matches_log() -> None:
    assert compute_cycle_starts(regular_log()) == REGULAR_STARTS
