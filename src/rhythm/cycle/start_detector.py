"""Cycle-start detection.

A single forward scan over the date-sorted entry log decides which days are
day 1 of a new cycle:

1. ``cycle_start_override`` always starts a cycle on that day.
2. Breakthrough bleeding is treated as no flow at all.
3. A bleed (effective flow >= 3) after a non-bleeding day starts a cycle.
4. Spotting (0 < flow < 3) only starts a cycle once it lasts two calendar
   days in a row after a non-bleeding day; the start is dated to the first
   spotting day.  A single day of spotting never starts a cycle.

The scan is pure: it honors whatever overrides exist in the log.  Keeping a
single active override is the caller's job (see ``src.rhythm.overrides``).
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable

from src.rhythm.base import DailyEntry, parse_entries
from src.rhythm.config_loader import CycleConfig, get_engine_config

logger = logging.getLogger("rhythm.cycle.start_detector")


def compute_cycle_starts(
    entries: Iterable[DailyEntry | dict],
    config: CycleConfig | None = None,
) -> list[date]:
    """Detect cycle start dates from an entry log.

    Args:
        entries: Entry log in any order (entries or raw storage records).
        config:  Cycle settings.  Defaults to the global engine config.

    Returns:
        Start dates, strictly increasing and de-duplicated.
    """
    cfg = config or get_engine_config().cycle
    sorted_entries = parse_entries(entries)

    starts: list[date] = []
    was_bleeding = False
    spotting_streak = 0
    spotting_streak_start: date | None = None
    streak_after_dry_day = False
    previous_day: date | None = None

    for entry in sorted_entries:
        gap = (entry.date - previous_day).days if previous_day is not None else None
        # Unlogged days are not assumed to be bleeding.
        if gap is not None and gap > cfg.bleed_gap_reset_days:
            was_bleeding = False
        contiguous = gap == 1
        previous_day = entry.date

        if entry.cycle_start_override:
            starts.append(entry.date)
            logger.debug("%s: start from override", entry.date_iso)
            was_bleeding = True
            spotting_streak = 0
            spotting_streak_start = None
            continue

        flow = entry.effective_flow
        is_bleed = flow >= cfg.bleed_threshold
        is_spotting = 0 < flow < cfg.bleed_threshold

        if is_bleed:
            if not was_bleeding:
                starts.append(entry.date)
                logger.debug("%s: start from bleed (flow=%s)", entry.date_iso, flow)
            was_bleeding = True
            spotting_streak = 0
            spotting_streak_start = None
        elif is_spotting:
            if was_bleeding and spotting_streak == 0:
                # Tapering flow at the end of a period.
                continue
            if spotting_streak == 0 or not contiguous:
                spotting_streak = 0
                spotting_streak_start = entry.date
                streak_after_dry_day = not was_bleeding
            spotting_streak += 1

            if (
                spotting_streak == cfg.spotting_streak_days
                and streak_after_dry_day
                and spotting_streak_start is not None
            ):
                starts.append(spotting_streak_start)
                logger.debug(
                    "%s: start from %d-day spotting streak",
                    spotting_streak_start.isoformat(),
                    spotting_streak,
                )
                was_bleeding = True
        else:
            was_bleeding = False
            spotting_streak = 0
            spotting_streak_start = None

    return sorted(set(starts))


def compute_period_days(
    entries: Iterable[DailyEntry | dict],
    starts: Iterable[date] | None = None,
    config: CycleConfig | None = None,
) -> set[date]:
    """Days that belong to a period.

    Every day with logged flow counts.  Each cycle start also opens a
    provisional window (7 days by default) that is cut short at the first
    explicitly logged zero-flow day after bleeding was seen.

    Args:
        entries: Entry log in any order.
        starts:  Cycle starts, if already computed.
        config:  Cycle settings.  Defaults to the global engine config.

    Returns:
        The set of period dates.
    """
    cfg = config or get_engine_config().cycle
    sorted_entries = parse_entries(entries)
    by_date = {e.date: e for e in sorted_entries}
    if starts is None:
        starts = compute_cycle_starts(sorted_entries, cfg)

    period_days = {e.date for e in sorted_entries if (e.flow or 0) > 0}

    for start in starts:
        seen_bleeding = False
        for offset in range(cfg.provisional_period_days):
            day = start + timedelta(days=offset)
            entry = by_date.get(day)
            if entry is not None:
                if entry.effective_flow > 0:
                    seen_bleeding = True
                elif seen_bleeding:
                    break
            period_days.add(day)

    return period_days
