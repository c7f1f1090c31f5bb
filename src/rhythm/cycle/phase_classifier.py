"""Current-phase classification with a confidence tier.

Two mutually exclusive strategies:

- **Boundary-based** (preferred): when cycle tracking is on and the latest
  detected start anchors today within 60 days, today's cycle day is placed
  against boundaries stretched to the personal average cycle length (28 days
  when no average exists yet).
- **Signal-based** fallback: without an anchor, the last 10 entries' symptom
  averages are compared against four hand-authored reference profiles, and
  the most similar profile wins.  With fewer than 3 signals there is nothing
  to compare, so the classifier falls back to Protective, the lowest-claim
  default.

Bleeding logged today always means Reset, whatever the day count says.

Confidence depends only on anchoring and volume: Established needs 2+ starts
and 21+ logged days, Emerging 1+ start and 14+ days, otherwise Learning.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable

from src.rhythm.base import (
    DailyEntry,
    RhythmSettings,
    clamp,
    count_logged_days,
    parse_entries,
    round_half_up,
)
from src.rhythm.config_loader import EngineConfig, PhaseConfig, get_engine_config
from src.rhythm.cycle.cycle_stats import compute_cycle_stats

logger = logging.getLogger("rhythm.cycle.phase_classifier")

# Ovulation never centers before this cycle day, nor within this many days
# of the next start.
OVULATION_EARLIEST_DAY = 10
OVULATION_MIN_DAYS_BEFORE_NEXT = 10
# Clamps for the 3-day ovulatory window around the center.
OVULATORY_EARLIEST_START = 8
OVULATORY_START_MIN_TAIL = 8
OVULATORY_END_MIN_TAIL = 6


class Phase(str, Enum):
    reset = "reset"
    rebuilding = "rebuilding"
    expressive = "expressive"
    protective = "protective"

    @property
    def soft_label(self) -> str:
        return _PHASE_LABELS[self][0]

    @property
    def scientific_label(self) -> str:
        return _PHASE_LABELS[self][1]

    @property
    def next(self) -> Phase:
        return PHASE_ORDER[(PHASE_ORDER.index(self) + 1) % len(PHASE_ORDER)]


# Fixed order; also the tie-break order for profile scoring.
PHASE_ORDER: tuple[Phase, ...] = (
    Phase.reset,
    Phase.rebuilding,
    Phase.expressive,
    Phase.protective,
)

_PHASE_LABELS: dict[Phase, tuple[str, str]] = {
    Phase.reset: ("Reset Phase", "Menstrual phase"),
    Phase.rebuilding: ("Rebuilding Phase", "Follicular phase"),
    Phase.expressive: ("Expressive Phase", "Ovulatory phase"),
    Phase.protective: ("Protective Phase", "Luteal phase"),
}


class ConfidenceTier(str, Enum):
    learning = "Learning"
    emerging = "Emerging"
    established = "Established"


@dataclass
class PhaseBoundaries:
    """Cycle-day boundaries for one cycle length (days are 1-indexed)."""

    cycle_length: int
    menstrual_days: int
    ovulation_center: int
    ovulatory_start: int
    ovulatory_end: int


@dataclass
class PhaseEstimate:
    """Today's phase and how it was derived.

    Attributes:
        phase:              The classified phase.
        confidence:         Learning / Emerging / Established.
        strategy:           'boundary', 'signal', or 'default'.
        day_in_cycle:       Days since the latest start (1-indexed), if anchored.
        cycle_length:       Cycle length used for boundaries, if anchored.
        next_phase:         The phase that follows.
        days_to_next_phase: Rough days until next_phase, if known.
        bleeding_today:     True if flow was logged today.
        profile_scores:     Similarity per phase (signal strategy only).
    """

    phase: Phase
    confidence: ConfidenceTier
    strategy: str
    day_in_cycle: int | None = None
    cycle_length: int | None = None
    next_phase: Phase | None = None
    days_to_next_phase: int | None = None
    bleeding_today: bool = False
    profile_scores: dict[str, float] | None = None


# ---------------------------------------------------------------------------
# Boundary-based strategy
# ---------------------------------------------------------------------------


def ovulation_center_day(cycle_length: int, config: PhaseConfig | None = None) -> int:
    """Estimated ovulation cycle day: length − 14, kept at day 10 or later
    and at least 10 days before the next start."""
    cfg = config or get_engine_config().phase
    return round_half_up(
        clamp(
            cycle_length - cfg.luteal_offset_days,
            OVULATION_EARLIEST_DAY,
            cycle_length - OVULATION_MIN_DAYS_BEFORE_NEXT,
        )
    )


def phase_boundaries(cycle_length: int, config: PhaseConfig | None = None) -> PhaseBoundaries:
    cfg = config or get_engine_config().phase
    center = ovulation_center_day(cycle_length, cfg)
    ov_start = int(
        clamp(center - 1, OVULATORY_EARLIEST_START, cycle_length - OVULATORY_START_MIN_TAIL)
    )
    ov_end = int(clamp(center + 1, ov_start + 1, cycle_length - OVULATORY_END_MIN_TAIL))
    return PhaseBoundaries(
        cycle_length=cycle_length,
        menstrual_days=cfg.menstrual_days,
        ovulation_center=center,
        ovulatory_start=ov_start,
        ovulatory_end=ov_end,
    )


def phase_for_day(
    day: int,
    cycle_length: int,
    flow_today: float | None = None,
    config: PhaseConfig | None = None,
) -> Phase:
    """Place a cycle day within a cycle of ``cycle_length`` days.

    Any flow logged today overrides the day count and returns Reset.
    """
    if flow_today is not None and flow_today > 0:
        return Phase.reset

    bounds = phase_boundaries(cycle_length, config)
    if day <= bounds.menstrual_days:
        return Phase.reset
    if day < bounds.ovulatory_start:
        return Phase.rebuilding
    if day <= bounds.ovulatory_end:
        return Phase.expressive
    return Phase.protective


def days_to_next_phase(
    phase: Phase,
    day_in_cycle: int | None,
    cycle_length: int | None,
    config: PhaseConfig | None = None,
) -> int | None:
    """Rough number of days until the next phase begins.

    Anchored cycles use the next boundary; otherwise a fixed per-phase guess
    is returned.
    """
    cfg = config or get_engine_config().phase
    if day_in_cycle is None or cycle_length is None:
        return cfg.signal_days_to_next.get(phase.value)

    bounds = phase_boundaries(cycle_length, cfg)
    next_start = {
        Phase.reset: bounds.menstrual_days + 1,
        Phase.rebuilding: bounds.ovulatory_start,
        Phase.expressive: bounds.ovulatory_end + 1,
        Phase.protective: cycle_length + 1,
    }[phase]
    remaining = next_start - day_in_cycle
    return remaining if remaining > 0 else None


# ---------------------------------------------------------------------------
# Signal-based fallback
# ---------------------------------------------------------------------------


def signal_means(
    entries: list[DailyEntry], config: PhaseConfig | None = None
) -> dict[str, float]:
    """Mean of each available signal over the last entries of a sorted log."""
    cfg = config or get_engine_config().phase
    recent = entries[-cfg.signal_window_entries:] if cfg.signal_window_entries > 0 else []
    means: dict[str, float] = {}
    for key in cfg.signals:
        values = [v for v in (e.intensity(key) for e in recent) if v is not None]
        if values:
            means[key] = statistics.mean(values)
    return means


def score_profiles(
    means: dict[str, float], config: PhaseConfig | None = None
) -> dict[Phase, float]:
    """Similarity of observed means to each reference profile.

    score = Σ(10 − |observed − target|) / Σ10 over the signals both sides
    share.  A profile sharing no signals scores −1.
    """
    cfg = config or get_engine_config().phase
    scores: dict[Phase, float] = {}
    for phase in PHASE_ORDER:
        total = 0.0
        weight = 0.0
        for key, target in cfg.profile(phase.value).items():
            observed = means.get(key)
            if observed is None:
                continue
            total += 10 - abs(observed - target)
            weight += 10
        scores[phase] = total / weight if weight else -1.0
    return scores


def infer_phase_from_signals(
    entries: Iterable[DailyEntry | dict], config: PhaseConfig | None = None
) -> tuple[Phase | None, dict[Phase, float]]:
    """Pick the reference profile most similar to recent symptoms.

    Returns:
        (phase, scores).  phase is None when fewer than 3 signals have data.
    """
    cfg = config or get_engine_config().phase
    means = signal_means(parse_entries(entries), cfg)
    if len(means) < cfg.min_signals:
        return None, {}

    scores = score_profiles(means, cfg)
    best: Phase | None = None
    best_score = float("-inf")
    for phase in PHASE_ORDER:
        if scores[phase] > best_score:
            best, best_score = phase, scores[phase]
    return best, scores


# ---------------------------------------------------------------------------
# Confidence + entry point
# ---------------------------------------------------------------------------


def confidence_tier(
    start_count: int, days_logged: int, config: PhaseConfig | None = None
) -> ConfidenceTier:
    cfg = config or get_engine_config().phase
    if start_count >= cfg.established.min_starts and days_logged >= cfg.established.min_days:
        return ConfidenceTier.established
    if start_count >= cfg.emerging.min_starts and days_logged >= cfg.emerging.min_days:
        return ConfidenceTier.emerging
    return ConfidenceTier.learning


def classify_phase(
    entries: Iterable[DailyEntry | dict],
    today: date,
    settings: RhythmSettings | None = None,
    config: EngineConfig | None = None,
) -> PhaseEstimate:
    """Classify today's phase.

    Only entries dated on or before ``today`` are considered.

    Args:
        entries:  Entry log in any order.
        today:    The day to classify.
        settings: User settings (cycle tracking on/off).
        config:   Engine config.  Defaults to the global engine config.

    Returns:
        PhaseEstimate with the phase, confidence, and strategy used.
    """
    cfg = config or get_engine_config()
    settings = settings or RhythmSettings()
    history = [e for e in parse_entries(entries) if e.date <= today]

    today_entry = history[-1] if history and history[-1].date == today else None
    flow_today = today_entry.flow if today_entry is not None else None
    bleeding_today = flow_today is not None and flow_today > 0

    stats = compute_cycle_stats(history, cfg.cycle)
    starts = stats.cycle_starts
    confidence = confidence_tier(len(starts), count_logged_days(history), cfg.phase)

    day_in_cycle = None
    if settings.cycle_tracking and starts:
        day = (today - starts[-1]).days + 1
        if 1 <= day <= cfg.phase.max_anchor_days:
            day_in_cycle = day

    if day_in_cycle is not None:
        cycle_length = stats.avg_length or cfg.phase.default_cycle_length
        phase = phase_for_day(day_in_cycle, cycle_length, flow_today, cfg.phase)
        logger.debug(
            "Boundary phase for %s: day %d of %d → %s",
            today.isoformat(), day_in_cycle, cycle_length, phase.value,
        )
        return PhaseEstimate(
            phase=phase,
            confidence=confidence,
            strategy="boundary",
            day_in_cycle=day_in_cycle,
            cycle_length=cycle_length,
            next_phase=phase.next,
            days_to_next_phase=days_to_next_phase(phase, day_in_cycle, cycle_length, cfg.phase),
            bleeding_today=bleeding_today,
        )

    inferred, scores = infer_phase_from_signals(history, cfg.phase)
    if bleeding_today:
        phase, strategy = Phase.reset, "signal"
    elif inferred is not None:
        phase, strategy = inferred, "signal"
    else:
        phase, strategy = Phase.protective, "default"

    logger.debug("Unanchored phase for %s: %s (%s)", today.isoformat(), phase.value, strategy)
    return PhaseEstimate(
        phase=phase,
        confidence=confidence,
        strategy=strategy,
        next_phase=phase.next,
        days_to_next_phase=days_to_next_phase(phase, None, None, cfg.phase),
        bleeding_today=bleeding_today,
        profile_scores={p.value: round(s, 4) for p, s in scores.items()} or None,
    )
