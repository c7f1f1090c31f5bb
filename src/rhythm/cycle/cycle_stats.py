"""Cycle-length statistics and next-start prediction.

Builds on the detected cycle starts:

- Lengths are the day gaps between consecutive starts, keeping only
  plausible human cycles (10–60 days).  Anything else is data-entry noise.
- The average uses only the most recent 6 plausible lengths, so recent
  behavior dominates over old cycles.
- The next start is predicted as last start + average.  There is NO 28-day
  fallback here: without an average there is no prediction.

The prediction note can flag late-cycle-associated symptoms running high,
as a qualitative hint.  It never moves the predicted date.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from src.rhythm.base import DailyEntry, parse_entries, round_half_up
from src.rhythm.config_loader import CycleConfig, get_engine_config
from src.rhythm.cycle.start_detector import compute_cycle_starts

logger = logging.getLogger("rhythm.cycle.cycle_stats")

NOTE_LATE_CYCLE_HINT = (
    "Some symptoms that often show up before a period are running higher than "
    "usual. If bleeding is unclear, you can mark a new cycle start yourself."
)
NOTE_AVERAGE_BASED = (
    "Based on your recent average cycle length. You can override it anytime."
)


@dataclass
class CycleStats:
    """Derived cycle statistics for one entry log.

    Attributes:
        cycle_starts:          Detected starts, ascending.
        lengths:               Plausible gaps between consecutive starts.
        last_length:           Most recent plausible length.
        avg_length:            Rounded mean of the recent plausible lengths.
        predicted_next_start:  Last start + avg_length, when available.
        prediction_note:       Human-readable note about the prediction.
        cycles_used:           Number of lengths behind avg_length.
        is_irregular:          True if recent lengths vary by more than 7 days (std).
        late_cycle_signals:    Late-cycle symptoms currently running high.
    """

    cycle_starts: list[date] = field(default_factory=list)
    lengths: list[int] = field(default_factory=list)
    last_length: int | None = None
    avg_length: int | None = None
    predicted_next_start: date | None = None
    prediction_note: str | None = None
    cycles_used: int = 0
    is_irregular: bool = False
    late_cycle_signals: list[str] = field(default_factory=list)


def plausible_lengths(starts: list[date], config: CycleConfig | None = None) -> list[int]:
    """Gaps between consecutive starts that fall in the plausible range."""
    cfg = config or get_engine_config().cycle
    lengths = []
    for previous, current in zip(starts, starts[1:]):
        gap = (current - previous).days
        if cfg.min_cycle_days <= gap <= cfg.max_cycle_days:
            lengths.append(gap)
        else:
            logger.debug(
                "Ignoring implausible cycle length %d days (%s → %s)",
                gap, previous.isoformat(), current.isoformat(),
            )
    return lengths


def late_cycle_signals(
    entries: list[DailyEntry], config: CycleConfig | None = None
) -> list[str]:
    """Late-cycle symptoms whose recent average is high.

    Looks at the last few entries of the date-sorted log.
    """
    cfg = config or get_engine_config().cycle
    recent = entries[-cfg.hint_window_entries:] if cfg.hint_window_entries > 0 else []
    running_high = []
    for key in cfg.hint_symptoms:
        values = [v for v in (e.intensity(key) for e in recent) if v is not None]
        if values and statistics.mean(values) >= cfg.hint_high_average:
            running_high.append(key)
    return running_high


def compute_cycle_stats(
    entries: Iterable[DailyEntry | dict],
    config: CycleConfig | None = None,
) -> CycleStats:
    """Compute cycle-length statistics and the next-start prediction.

    Args:
        entries: Entry log in any order.
        config:  Cycle settings.  Defaults to the global engine config.

    Returns:
        CycleStats.  Fields stay None when there is not enough data.
    """
    cfg = config or get_engine_config().cycle
    sorted_entries = parse_entries(entries)
    starts = compute_cycle_starts(sorted_entries, cfg)

    stats = CycleStats(cycle_starts=starts)
    stats.lengths = plausible_lengths(starts, cfg)
    stats.last_length = stats.lengths[-1] if stats.lengths else None

    recent = stats.lengths[-cfg.rolling_average_cycles:] if cfg.rolling_average_cycles > 0 else []
    stats.cycles_used = len(recent)
    if recent:
        stats.avg_length = round_half_up(statistics.mean(recent))
        if len(recent) > 1:
            stats.is_irregular = statistics.stdev(recent) > cfg.irregular_std_days

    if starts and stats.avg_length:
        stats.predicted_next_start = starts[-1] + timedelta(days=stats.avg_length)

    stats.late_cycle_signals = late_cycle_signals(sorted_entries, cfg)
    if stats.predicted_next_start is not None:
        if len(stats.late_cycle_signals) >= cfg.hint_min_signals:
            stats.prediction_note = NOTE_LATE_CYCLE_HINT
        else:
            stats.prediction_note = NOTE_AVERAGE_BASED

    logger.debug(
        "Cycle stats: %d starts, lengths=%s, avg=%s, next=%s",
        len(starts), stats.lengths, stats.avg_length, stats.predicted_next_start,
    )
    return stats
