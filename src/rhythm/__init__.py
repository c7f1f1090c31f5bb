"""Rhythm cycle-and-symptom pattern engine.

Derives cycle starts, cycle statistics, today's phase, the fertile window,
and gentle trend narration from a daily check-in log.  Every derivation is
a pure function of the log plus a small settings bag; nothing is stored.

Subpackages:
    cycle/ — Cycle-start detection, cycle statistics, phase classification, fertile window

Core modules:
    base           — DailyEntry / RhythmSettings models and intensity normalization
    config_loader  — Load/validate/reload engine_config.yaml
    overrides      — "New period or just spotting?" log helpers
    trend_analyzer — Rolling means, week-over-week shifts, relationship signals,
                     before/during window comparisons
    engine         — RhythmEngine facade producing a RhythmSnapshot
"""

from src.rhythm.base import (
    DailyEntry,
    RhythmSettings,
    normalize_intensity,
    parse_entries,
)
from src.rhythm.config_loader import EngineConfig, get_engine_config
from src.rhythm.engine import RhythmEngine, RhythmSnapshot
from src.rhythm.trend_analyzer import TrendAnalyzer, TrendSummary

__all__ = [
    "DailyEntry",
    "RhythmSettings",
    "normalize_intensity",
    "parse_entries",
    "EngineConfig",
    "get_engine_config",
    "RhythmEngine",
    "RhythmSnapshot",
    "TrendAnalyzer",
    "TrendSummary",
]
