"""Menstrual cycle derivations for the rhythm engine.

All derivations are recomputed from the full entry log on every call.

Modules:
    start_detector   — Cycle-start detection and period days
    cycle_stats      — Cycle lengths, rolling average, next-start prediction
    phase_classifier — Today's phase (boundary-based or signal-based) + confidence
    fertile_window   — Fertile window from ovulation markers or predictions
"""

from src.rhythm.cycle.cycle_stats import CycleStats, compute_cycle_stats
from src.rhythm.cycle.fertile_window import FertileWindow, estimate_fertile_window
from src.rhythm.cycle.phase_classifier import (
    ConfidenceTier,
    Phase,
    PhaseEstimate,
    classify_phase,
    confidence_tier,
    phase_for_day,
)
from src.rhythm.cycle.start_detector import compute_cycle_starts, compute_period_days

__all__ = [
    "compute_cycle_starts",
    "compute_period_days",
    "CycleStats",
    "compute_cycle_stats",
    "Phase",
    "ConfidenceTier",
    "PhaseEstimate",
    "classify_phase",
    "confidence_tier",
    "phase_for_day",
    "FertileWindow",
    "estimate_fertile_window",
]
