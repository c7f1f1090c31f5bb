"""Shared fixtures and entry-log builders for rhythm engine tests."""

from __future__ import annotations

from datetime import date, timedelta
from types import MappingProxyType
from typing import Iterable

import pytest

from src.rhythm.base import DailyEntry, RhythmSettings
from src.rhythm.config_loader import EngineConfig, load_engine_config

TEST_DATE = date(2024, 3, 1)
FIRST_START = date(2024, 1, 1)

# Starts produced by regular_log(FIRST_START, ...) with a 28-day cycle.
REGULAR_STARTS = [date(2024, 1, 1), date(2024, 1, 29), date(2024, 2, 26)]


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real engine config for tests."""
    return load_engine_config()


@pytest.fixture
def tracking_settings() -> RhythmSettings:
    return RhythmSettings(cycle_tracking=True)


@pytest.fixture
def fertility_settings() -> RhythmSettings:
    return RhythmSettings(cycle_tracking=True, fertility_mode=True)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_entry(
    day: date,
    flow: float | None = None,
    mood: int | None = None,
    override: bool = False,
    breakthrough: bool = False,
    ovulation: bool = False,
    events: Iterable[str] = (),
    **values: float,
) -> DailyEntry:
    if flow is not None:
        values["flow"] = flow
    return DailyEntry(
        date=day,
        mood=mood,
        values=MappingProxyType(dict(values)),
        cycle_start_override=override,
        breakthrough_bleed=breakthrough,
        ovulation_override=ovulation,
        events=frozenset(events),
    )


def flow_days(start: date, flows: list[float]) -> list[DailyEntry]:
    """Consecutive daily entries starting at ``start`` with the given flows."""
    return [make_entry(start + timedelta(days=i), flow=f) for i, f in enumerate(flows)]


def regular_log(
    first_start: date = FIRST_START,
    length: int = 28,
    through: date = date(2024, 3, 10),
    bleed_days: int = 4,
) -> list[DailyEntry]:
    """Daily entries from ``first_start`` through ``through``.

    Flow 6 on the first ``bleed_days`` days of every ``length``-day cycle,
    flow 0 on every other day.
    """
    entries = []
    day = first_start
    while day <= through:
        cycle_day = (day - first_start).days % length
        entries.append(make_entry(day, flow=6 if cycle_day < bleed_days else 0))
        day += timedelta(days=1)
    return entries


def log_from_lengths(first_start: date, lengths: list[int]) -> list[DailyEntry]:
    """One two-day bleed per cycle, cycles separated by the given lengths."""
    entries = []
    start = first_start
    for length in [*lengths, None]:
        entries.extend(flow_days(start, [6, 6]))
        if length is None:
            break
        start += timedelta(days=length)
    return entries
