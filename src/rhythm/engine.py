"""Rhythm engine facade.

Runs every derivation over one entry log and bundles the results, so
callers (the HTTP layer, the app's home screen) make a single call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from src.rhythm.base import (
    DailyEntry,
    RhythmSettings,
    count_checkin_days,
    count_logged_days,
    parse_entries,
)
from src.rhythm.config_loader import EngineConfig, get_engine_config
from src.rhythm.cycle.cycle_stats import CycleStats, compute_cycle_stats
from src.rhythm.cycle.fertile_window import FertileWindow, estimate_fertile_window
from src.rhythm.cycle.phase_classifier import PhaseEstimate, classify_phase
from src.rhythm.cycle.start_detector import compute_period_days
from src.rhythm.overrides import is_bleeding_onset
from src.rhythm.trend_analyzer import TrendAnalyzer, TrendSummary

logger = logging.getLogger("rhythm.engine")


@dataclass
class RhythmSnapshot:
    """Everything derived from the log for one day.

    Attributes:
        date:            The day the snapshot describes.
        cycle_tracking:  Whether cycle outputs were computed.
        cycle_starts:    Detected cycle starts (empty when tracking is off).
        cycle_stats:     Cycle statistics, or None when tracking is off.
        period_days:     Period dates, ascending.
        phase:           Today's phase estimate.
        fertile_window:  Fertile days (empty unless fertility mode is on).
        trends:          Trend summary for the day.
        days_logged:     Distinct days in the log up to ``date``.
        checkin_days:    Days with meaningful data up to ``date``.
        bleeding_onset:  True if the user should be asked "new period or spotting?".
    """

    date: date
    cycle_tracking: bool
    phase: PhaseEstimate
    trends: TrendSummary
    cycle_starts: list[date] = field(default_factory=list)
    cycle_stats: CycleStats | None = None
    period_days: list[date] = field(default_factory=list)
    fertile_window: FertileWindow = field(default_factory=FertileWindow)
    days_logged: int = 0
    checkin_days: int = 0
    bleeding_onset: bool = False


class RhythmEngine:
    """Runs the full derivation pipeline for one entry log.

    Usage::

        engine = RhythmEngine()
        snapshot = engine.snapshot(records, RhythmSettings(), today=date(2024, 3, 1))
        print(snapshot.phase.phase.soft_label, snapshot.cycle_stats.predicted_next_start)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()
        self._trends = TrendAnalyzer(self._config.trends)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def trends(self) -> TrendAnalyzer:
        return self._trends

    def cycle_stats(self, entries: Iterable[DailyEntry | dict]) -> CycleStats:
        return compute_cycle_stats(entries, self._config.cycle)

    def phase(
        self,
        entries: Iterable[DailyEntry | dict],
        today: date,
        settings: RhythmSettings | None = None,
    ) -> PhaseEstimate:
        return classify_phase(entries, today, settings, self._config)

    def fertile_window(
        self,
        entries: Iterable[DailyEntry | dict],
        settings: RhythmSettings | None = None,
    ) -> FertileWindow:
        return estimate_fertile_window(entries, settings, self._config)

    def snapshot(
        self,
        entries: Iterable[DailyEntry | dict],
        settings: RhythmSettings | None = None,
        today: date | None = None,
    ) -> RhythmSnapshot:
        """Derive everything for ``today``.

        Args:
            entries:  Entry log in any order (entries or raw storage records).
            settings: User settings.  Defaults to cycle tracking on.
            today:    Day to describe.  Defaults to the latest logged day.

        Returns:
            RhythmSnapshot.
        """
        settings = settings or RhythmSettings()
        sorted_entries = parse_entries(entries)
        if today is None:
            today = sorted_entries[-1].date if sorted_entries else date.today()
        history = [e for e in sorted_entries if e.date <= today]

        snapshot = RhythmSnapshot(
            date=today,
            cycle_tracking=settings.cycle_tracking,
            phase=self.phase(history, today, settings),
            trends=self._trends.summarize(history, settings, today),
            days_logged=count_logged_days(history),
            checkin_days=count_checkin_days(history),
        )

        if settings.cycle_tracking:
            stats = self.cycle_stats(history)
            snapshot.cycle_stats = stats
            snapshot.cycle_starts = list(stats.cycle_starts)
            snapshot.period_days = sorted(
                compute_period_days(history, stats.cycle_starts, self._config.cycle)
            )
            snapshot.fertile_window = self.fertile_window(history, settings)
            snapshot.bleeding_onset = is_bleeding_onset(history, today)

        logger.info(
            "Snapshot for %s: %d entries, %d start(s), phase=%s (%s)",
            today.isoformat(),
            len(history),
            len(snapshot.cycle_starts),
            snapshot.phase.phase.value,
            snapshot.phase.confidence.value,
        )
        return snapshot
