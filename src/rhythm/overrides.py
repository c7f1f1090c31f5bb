"""Caller-side helpers for the user's cycle assertions.

The start detector honors every override it finds.  These helpers keep the
log tidy when the user answers the "new period or just spotting?" prompt:

- "Start period" puts the single cycle-start override on that day, clearing
  any override elsewhere and any breakthrough flag on the day itself.
- "Just spotting" marks the day as breakthrough bleeding and removes an
  override from it.

All functions return a new, date-sorted list; the input is never mutated.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable

from src.rhythm.base import DailyEntry, parse_entries

logger = logging.getLogger("rhythm.overrides")


def _with_entry(entries: list[DailyEntry], day: date) -> tuple[list[DailyEntry], int]:
    """Return the log and the index of the entry for ``day``, creating it if missing."""
    for i, entry in enumerate(entries):
        if entry.date == day:
            return entries, i
    entries = sorted([*entries, DailyEntry(date=day)], key=lambda e: e.date)
    return entries, next(i for i, e in enumerate(entries) if e.date == day)


def apply_cycle_start_override(
    entries: Iterable[DailyEntry | dict], day: date
) -> list[DailyEntry]:
    """Make ``day`` the only cycle-start override in the log."""
    log = [
        replace(e, cycle_start_override=False) if e.cycle_start_override and e.date != day else e
        for e in parse_entries(entries)
    ]
    log, index = _with_entry(log, day)
    log[index] = replace(log[index], cycle_start_override=True, breakthrough_bleed=False)
    logger.info("Cycle start override set on %s", day.isoformat())
    return log


def mark_breakthrough_bleed(
    entries: Iterable[DailyEntry | dict], day: date
) -> list[DailyEntry]:
    """Record that bleeding on ``day`` should not count toward cycles."""
    log, index = _with_entry(parse_entries(entries), day)
    log[index] = replace(log[index], breakthrough_bleed=True, cycle_start_override=False)
    logger.info("Breakthrough bleed marked on %s", day.isoformat())
    return log


def clear_cycle_start_override(
    entries: Iterable[DailyEntry | dict], day: date
) -> list[DailyEntry]:
    log = parse_entries(entries)
    return [
        replace(e, cycle_start_override=False) if e.date == day and e.cycle_start_override else e
        for e in log
    ]


def is_bleeding_onset(entries: Iterable[DailyEntry | dict], day: date) -> bool:
    """True when ``day`` is the first bleeding day after a dry entry.

    This is the moment to ask the user whether a new period has started.
    Days the user already answered for (override or breakthrough flag) never
    prompt again.  With no earlier entry, any flow counts as an onset.
    """
    log = parse_entries(entries)
    current = next((e for e in log if e.date == day), None)
    if current is None or not (current.flow or 0) > 0:
        return False
    if current.cycle_start_override or current.breakthrough_bleed:
        return False

    earlier = [e for e in log if e.date < day]
    if not earlier:
        return True
    return earlier[-1].effective_flow == 0
