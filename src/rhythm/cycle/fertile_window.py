"""Fertile-window estimation.

Manual ovulation markers take precedence over predictions: each marked day
contributes [ovulation − 5, ovulation + 1].  Without markers, ovulation is
predicted for every detected cycle using the same clamped "length − 14" rule
as the phase classifier.  A cycle with no following start is assumed to last
the personal average, or 28 days when no average exists.

Period days are always removed, so the fertile window and the period never
overlap.  With no cycle starts and no markers the window is empty; the
estimator does not guess.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from src.rhythm.base import DailyEntry, RhythmSettings, parse_entries
from src.rhythm.config_loader import EngineConfig, get_engine_config
from src.rhythm.cycle.cycle_stats import compute_cycle_stats
from src.rhythm.cycle.phase_classifier import ovulation_center_day
from src.rhythm.cycle.start_detector import compute_period_days

logger = logging.getLogger("rhythm.cycle.fertile_window")


@dataclass
class FertileWindow:
    """Estimated fertile days.

    Attributes:
        days:            Fertile dates, ascending, never overlapping a period.
        ovulation_dates: Marked or predicted ovulation days, ascending.
        source:          'manual', 'predicted', or 'none'.
    """

    days: list[date] = field(default_factory=list)
    ovulation_dates: list[date] = field(default_factory=list)
    source: str = "none"

    def __contains__(self, day: date) -> bool:
        return day in self.days


def manual_ovulation_dates(
    entries: list[DailyEntry], settings: RhythmSettings
) -> list[date]:
    """Ovulation days marked in settings or on individual entries."""
    marked = set(settings.ovulation_override_dates)
    marked.update(e.date for e in entries if e.ovulation_override)
    return sorted(marked)


def predicted_ovulation_dates(
    starts: list[date], avg_length: int | None, config: EngineConfig | None = None
) -> list[date]:
    """One predicted ovulation day per detected cycle, ``center`` days after its start."""
    cfg = config or get_engine_config()
    fallback_length = avg_length or cfg.phase.default_cycle_length
    ovulations = []
    for i, start in enumerate(starts):
        if i + 1 < len(starts):
            cycle_length = (starts[i + 1] - start).days
        else:
            cycle_length = fallback_length
        center = ovulation_center_day(cycle_length, cfg.phase)
        ovulations.append(start + timedelta(days=center))
    return ovulations


def estimate_fertile_window(
    entries: Iterable[DailyEntry | dict],
    settings: RhythmSettings | None = None,
    config: EngineConfig | None = None,
) -> FertileWindow:
    """Estimate fertile days for the whole log.

    Args:
        entries:  Entry log in any order.
        settings: User settings.  Fertility mode and cycle tracking must
                  both be on, otherwise the window is empty.
        config:   Engine config.  Defaults to the global engine config.

    Returns:
        FertileWindow.
    """
    cfg = config or get_engine_config()
    settings = settings or RhythmSettings()
    if not (settings.fertility_mode and settings.cycle_tracking):
        return FertileWindow()

    sorted_entries = parse_entries(entries)
    stats = compute_cycle_stats(sorted_entries, cfg.cycle)
    period_days = compute_period_days(sorted_entries, stats.cycle_starts, cfg.cycle)

    ovulations = manual_ovulation_dates(sorted_entries, settings)
    source = "manual"
    if not ovulations:
        ovulations = predicted_ovulation_dates(stats.cycle_starts, stats.avg_length, cfg)
        source = "predicted"
    if not ovulations:
        return FertileWindow()

    fw = cfg.fertile_window
    days: set[date] = set()
    for ovulation in ovulations:
        for offset in range(-fw.days_before_ovulation, fw.days_after_ovulation + 1):
            day = ovulation + timedelta(days=offset)
            if day not in period_days:
                days.add(day)

    logger.debug(
        "Fertile window (%s): %d day(s) from %d ovulation estimate(s)",
        source, len(days), len(ovulations),
    )
    return FertileWindow(days=sorted(days), ovulation_dates=ovulations, source=source)
