"""Trend and relationship analysis over the entry log.

Narrates patterns back to the user without over-claiming:

- Rolling means over trailing 7/14-day windows per tracked symptom plus mood
  (mood is placed on the 0–10 scale).
- Week-over-week shifts ("Sleep has been a little lower"), weighted by how
  many values back each side.
- Relationship signals: the mean of a symptom on days a lifestyle influence
  was logged vs days it wasn't, surfaced only when both sides have enough
  examples and the difference clears a soft significance floor.
- Window comparisons: each metric's mean over a baseline window vs the
  same number of days starting on a chosen date.

Values dated before a metric's insights cutoff (see
``RhythmSettings.metric_cutoff``) are left out of every analysis that takes
settings.

When several relationships qualify, one is shown per calendar day, chosen by
a pure hash of the ISO date so the choice is reproducible.
"""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from src.rhythm.base import (
    FLOW_KEY,
    MOOD_KEY,
    DailyEntry,
    RhythmSettings,
    clamp,
    count_logged_days,
    entries_in_window,
    influence_label,
    parse_entries,
    symptom_label,
)
from src.rhythm.config_loader import TrendConfig, get_engine_config

logger = logging.getLogger("rhythm.trend_analyzer")

# Effect sizes that upgrade the relationship wording.
_OFTEN_EFFECT = 0.8
_CLEARLY_EFFECT = 1.5

# Consistency blends 60% flat weight with 40% sample-count weight.
_IMPACT_BASE = 0.6
_IMPACT_CONSISTENCY = 0.4

TIER_STARTER = "starter"
TIER_EARLY = "early"
TIER_WEEKLY = "weekly"
TIER_MATURE = "mature"

LINE_STARTER = "Start logging and I'll summarise how you've been."
LINE_KEEP_LOGGING = "Keep logging and I'll start reflecting patterns back to you."
LINE_STEADY = "Things have felt fairly steady recently."


@dataclass
class SymptomShift:
    """Last-7 vs previous-7 comparison for one signal.

    Attributes:
        key:            Symptom key, or 'mood'.
        label:          Display label.
        delta:          mean(last 7 days) − mean(previous 7 days).
        recent_count:   Values in the last 7 days.
        previous_count: Values in the previous 7 days.
        impact:         |delta| weighted by sample consistency; used for ranking.
        description:    Natural-language description of the shift.
    """

    key: str
    label: str
    delta: float
    recent_count: int
    previous_count: int
    impact: float
    description: str


@dataclass
class RelationshipSignal:
    """Mean difference of a symptom between days with and without an influence.

    Attributes:
        influence:       Influence key (e.g. 'caffeine').
        symptom:         Symptom key, or 'mood'.
        effect:          mean(with) − mean(without).
        with_count:      Values on days the influence was logged.
        without_count:   Values on days it was not.
        description:     Natural-language line for display.
    """

    influence: str
    symptom: str
    effect: float
    with_count: int
    without_count: int
    description: str = ""


@dataclass
class CorrelationResult:
    """Pearson correlation between two signals logged on the same days."""

    key_a: str
    key_b: str
    r: float | None
    label: str
    pairs: int


@dataclass
class MetricComparison:
    """Before vs during means for one metric.

    Attributes:
        key:             Symptom key, or 'mood'.
        before_mean:     Mean over the baseline window, or None with no values.
        before_count:    Values in the baseline window.
        during_mean:     Mean over the comparison window, or None.
        during_count:    Values in the comparison window.
        delta:           during_mean − before_mean, or None if either is absent.
        has_enough_data: Both windows hold at least the minimum number of values.
    """

    key: str
    before_mean: float | None
    before_count: int
    during_mean: float | None
    during_count: int
    delta: float | None
    has_enough_data: bool


@dataclass
class WindowComparison:
    """Baseline window (the days just before ``during_start``) vs the window from it.

    Attributes:
        before_start, before_end: Baseline window, inclusive.
        during_start, during_end: Comparison window, inclusive.
        duration_days:            Length of each window.
        metrics:                  One comparison per requested metric.
        enough_data:              At least one metric has enough data.
        before_days_with_any:     Baseline days with any compared metric logged.
        during_days_with_any:     Comparison days with any compared metric logged.
    """

    before_start: date
    before_end: date
    during_start: date
    during_end: date
    duration_days: int
    metrics: list[MetricComparison] = field(default_factory=list)
    enough_data: bool = False
    before_days_with_any: int = 0
    during_days_with_any: int = 0


@dataclass
class TrendSummary:
    """Everything the trend analyzer narrates for one day.

    Attributes:
        date:            The day summarized.
        tier:            'starter', 'early', 'weekly', or 'mature'.
        days_logged:     Distinct days in the log up to ``date``.
        means_7d:        Rolling 7-day mean per tracked signal.
        means_14d:       Rolling 14-day mean per tracked signal.
        shifts:          All week-over-week shifts, highest impact first.
        how_lines:       Up to 3 "how you've been" lines.
        relationship:    The relationship shown today, if any.
        relationship_candidates: Number of qualifying relationships.
    """

    date: date
    tier: str
    days_logged: int
    means_7d: dict[str, float | None] = field(default_factory=dict)
    means_14d: dict[str, float | None] = field(default_factory=dict)
    shifts: list[SymptomShift] = field(default_factory=list)
    how_lines: list[str] = field(default_factory=list)
    relationship: RelationshipSignal | None = None
    relationship_candidates: int = 0


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def daily_rotation_index(day_iso: str, count: int) -> int:
    """Deterministic per-day index in [0, count).

    Uses a 32-bit polynomial hash of the ISO date string, so the same date
    always picks the same item.
    """
    if count <= 0:
        return 0
    h = 0
    for ch in day_iso:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h % count


def pearson_r(x: list[float], y: list[float]) -> float | None:
    """Pearson correlation coefficient, or None if it cannot be computed.

    Needs at least 3 pairs and non-zero variance on both sides.
    """
    n = min(len(x), len(y))
    if n < 3:
        return None
    x, y = x[:n], y[:n]

    mean_x = sum(x) / n
    mean_y = sum(y) / n
    cov = sum((xi - mean_x) * (yi - mean_y) for xi, yi in zip(x, y))
    var_x = sum((xi - mean_x) ** 2 for xi in x)
    var_y = sum((yi - mean_y) ** 2 for yi in y)

    if var_x == 0 or var_y == 0:
        return None
    return round(cov / math.sqrt(var_x * var_y), 4)


def label_correlation(r: float | None) -> str:
    """Plain-language label for a correlation coefficient."""
    if r is None or not math.isfinite(r):
        return "Not enough data"

    strength = abs(r)
    if strength >= 0.7:
        level = "Strong"
    elif strength >= 0.4:
        level = "Moderate"
    elif strength >= 0.2:
        level = "Weak"
    else:
        level = "No clear"

    if r > 0.05:
        direction = "positive"
    elif r < -0.05:
        direction = "negative"
    else:
        direction = "relationship"
    return f"{level} {direction} correlation"


def _values(
    entries: Iterable[DailyEntry], key: str, settings: RhythmSettings | None = None
) -> list[float]:
    """Normalized values of ``key``, skipping days before its insights cutoff."""
    return [
        v
        for v in (
            e.intensity(key)
            for e in entries
            if settings is None or settings.in_scope(key, e.date)
        )
        if v is not None
    ]


def describe_relationship(signal: RelationshipSignal) -> str:
    size = abs(signal.effect)
    if size >= _CLEARLY_EFFECT:
        strength = "clearly"
    elif size >= _OFTEN_EFFECT:
        strength = "often"
    else:
        strength = "a bit"
    direction = "higher" if signal.effect > 0 else "lower"
    return (
        f"It looks like your {symptom_label(signal.symptom).lower()} is {strength} "
        f"{direction} on days you log {influence_label(signal.influence)}."
    )


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class TrendAnalyzer:
    """Rolling means, week-over-week shifts, and relationship signals.

    Stateless apart from its configuration; every method is a pure function
    of its arguments.

    Usage::

        analyzer = TrendAnalyzer()
        summary = analyzer.summarize(entries, settings, today=date(2024, 3, 1))
        for line in summary.how_lines:
            print(line)
        if summary.relationship:
            print(summary.relationship.description)
    """

    def __init__(self, config: TrendConfig | None = None) -> None:
        self._config = config or get_engine_config().trends

    @staticmethod
    def tracked_keys(settings: RhythmSettings) -> list[str]:
        """Mood plus the enabled symptoms.  Flow is never narrated."""
        keys = [MOOD_KEY]
        for key in settings.enabled_symptoms:
            if key not in (FLOW_KEY, MOOD_KEY) and key not in keys:
                keys.append(key)
        return keys

    def tier(self, days_logged: int) -> str:
        cfg = self._config
        if days_logged < cfg.early_tier_days:
            return TIER_STARTER
        if days_logged < cfg.weekly_tier_days:
            return TIER_EARLY
        if days_logged < cfg.mature_tier_days:
            return TIER_WEEKLY
        return TIER_MATURE

    def rolling_means(
        self,
        entries: Iterable[DailyEntry | dict],
        keys: Iterable[str],
        end: date,
        window_days: int | None = None,
        settings: RhythmSettings | None = None,
    ) -> dict[str, float | None]:
        """Mean of each key over the window ending on ``end``.

        Keys with no in-scope values in the window map to None.
        """
        days = window_days or self._config.short_window_days
        window = entries_in_window(parse_entries(entries), end, days)
        means: dict[str, float | None] = {}
        for key in keys:
            values = _values(window, key, settings)
            means[key] = round(statistics.mean(values), 2) if values else None
        return means

    def describe_shift(self, label: str, delta: float) -> str:
        """Gentle wording for a week-over-week change (delta = recent − previous)."""
        cfg = self._config
        size = abs(delta)
        if size < cfg.steady_threshold:
            return f"{label} has felt fairly steady"
        direction = "higher" if delta > 0 else "lower"
        if size < cfg.little_threshold:
            return f"{label} has been a little {direction}"
        if size < cfg.noticeably_threshold:
            return f"{label} has been noticeably {direction}"
        return f"{label} has been much {direction}"

    def symptom_shifts(
        self,
        entries: Iterable[DailyEntry | dict],
        settings: RhythmSettings,
        today: date,
    ) -> list[SymptomShift]:
        """Last-7 vs previous-7 shifts, highest impact first."""
        cfg = self._config
        sorted_entries = parse_entries(entries)
        span = cfg.short_window_days
        recent = entries_in_window(sorted_entries, today, span)
        previous = entries_in_window(sorted_entries, today - timedelta(days=span), span)

        shifts = []
        for key in self.tracked_keys(settings):
            a = _values(recent, key, settings)
            b = _values(previous, key, settings)
            if len(a) < cfg.min_shift_samples or len(b) < cfg.min_shift_samples:
                continue
            delta = statistics.mean(a) - statistics.mean(b)
            consistency = clamp(min(len(a), len(b)) / cfg.consistency_full_samples, 0.0, 1.0)
            impact = abs(delta) * (_IMPACT_BASE + _IMPACT_CONSISTENCY * consistency)
            label = symptom_label(key)
            shifts.append(
                SymptomShift(
                    key=key,
                    label=label,
                    delta=round(delta, 3),
                    recent_count=len(a),
                    previous_count=len(b),
                    impact=round(impact, 3),
                    description=self.describe_shift(label, delta),
                )
            )

        shifts.sort(key=lambda s: s.impact, reverse=True)
        return shifts

    def relationships(
        self,
        entries: Iterable[DailyEntry | dict],
        settings: RhythmSettings,
        today: date,
    ) -> list[RelationshipSignal]:
        """Qualifying (influence, symptom) mean differences, strongest first.

        Only the strongest few (the rotation pool) are returned.
        """
        cfg = self._config.relationship
        window = entries_in_window(parse_entries(entries), today, cfg.window_days)
        keys = self.tracked_keys(settings)

        candidates: list[RelationshipSignal] = []
        seen: set[tuple[str, str]] = set()
        for influence in settings.enabled_influences:
            if influence in cfg.excluded_influences:
                continue
            scope_key = f"influence:{influence}"
            with_days = [
                e for e in window
                if e.has_event(influence) and settings.in_scope(scope_key, e.date)
            ]
            with_dates = {e.date for e in with_days}
            without_days = [e for e in window if e.date not in with_dates]
            if len(with_days) < cfg.min_days_per_side or len(without_days) < cfg.min_days_per_side:
                continue

            for key in keys:
                if (influence, key) in seen:
                    continue
                with_values = _values(with_days, key, settings)
                without_values = _values(without_days, key, settings)
                if (
                    len(with_values) < cfg.min_values_per_side
                    or len(without_values) < cfg.min_values_per_side
                ):
                    continue
                effect = statistics.mean(with_values) - statistics.mean(without_values)
                if abs(effect) < cfg.min_effect:
                    continue
                seen.add((influence, key))
                signal = RelationshipSignal(
                    influence=influence,
                    symptom=key,
                    effect=round(effect, 3),
                    with_count=len(with_values),
                    without_count=len(without_values),
                )
                signal.description = describe_relationship(signal)
                candidates.append(signal)

        candidates.sort(key=lambda c: abs(c.effect), reverse=True)
        return candidates[: cfg.rotation_pool]

    @staticmethod
    def pick_daily_relationship(
        candidates: list[RelationshipSignal], day: date | str
    ) -> RelationshipSignal | None:
        """Choose one candidate for ``day``; the same day always gets the same one."""
        if not candidates:
            return None
        day_iso = day.isoformat() if isinstance(day, date) else str(day)
        return candidates[daily_rotation_index(day_iso, len(candidates))]

    def correlate(
        self,
        entries: Iterable[DailyEntry | dict],
        key_a: str,
        key_b: str,
        end: date,
        window_days: int | None = None,
    ) -> CorrelationResult:
        """Correlate two signals over days where both were logged."""
        days = window_days or self._config.long_window_days
        window = entries_in_window(parse_entries(entries), end, days)
        xs, ys = [], []
        for entry in window:
            a, b = entry.intensity(key_a), entry.intensity(key_b)
            if a is not None and b is not None:
                xs.append(a)
                ys.append(b)
        r = pearson_r(xs, ys)
        return CorrelationResult(
            key_a=key_a, key_b=key_b, r=r, label=label_correlation(r), pairs=len(xs)
        )

    def compare_windows(
        self,
        entries: Iterable[DailyEntry | dict],
        start: date,
        metrics: Iterable[str],
        duration_days: int | None = None,
        settings: RhythmSettings | None = None,
        min_points_per_window: int | None = None,
    ) -> WindowComparison:
        """Compare each metric's mean before ``start`` with its mean from ``start``.

        Both windows are ``duration_days`` long: the baseline ends the day
        before ``start`` and the comparison window begins on it.  Only the
        first few metrics (``comparison.max_metrics``) are compared.

        Args:
            entries:               Entry log in any order.
            start:                 First day of the comparison window.
            metrics:               Symptom keys (or 'mood') to compare.
            duration_days:         Window length.  Defaults to config.
            settings:              Applies insights cutoffs when given.
            min_points_per_window: Values each window needs for a metric to
                                   count.  Defaults to config.

        Returns:
            WindowComparison.
        """
        cfg = self._config.comparison
        days = max(1, duration_days or cfg.default_days)
        min_points = (
            cfg.min_points_per_window if min_points_per_window is None else min_points_per_window
        )
        keys = list(dict.fromkeys(metrics))[: cfg.max_metrics]

        sorted_entries = parse_entries(entries)
        during = entries_in_window(sorted_entries, start + timedelta(days=days - 1), days)
        before = entries_in_window(sorted_entries, start - timedelta(days=1), days)

        def days_with_any(window: list[DailyEntry]) -> int:
            return sum(1 for e in window if any(_values([e], key, settings) for key in keys))

        comparisons = []
        for key in keys:
            before_values = _values(before, key, settings)
            during_values = _values(during, key, settings)
            before_mean = round(statistics.mean(before_values), 3) if before_values else None
            during_mean = round(statistics.mean(during_values), 3) if during_values else None
            delta = None
            if before_mean is not None and during_mean is not None:
                delta = round(during_mean - before_mean, 3)
            comparisons.append(
                MetricComparison(
                    key=key,
                    before_mean=before_mean,
                    before_count=len(before_values),
                    during_mean=during_mean,
                    during_count=len(during_values),
                    delta=delta,
                    has_enough_data=(
                        len(before_values) >= min_points and len(during_values) >= min_points
                    ),
                )
            )

        result = WindowComparison(
            before_start=start - timedelta(days=days),
            before_end=start - timedelta(days=1),
            during_start=start,
            during_end=start + timedelta(days=days - 1),
            duration_days=days,
            metrics=comparisons,
            enough_data=any(c.has_enough_data for c in comparisons),
            before_days_with_any=days_with_any(before),
            during_days_with_any=days_with_any(during),
        )
        logger.debug(
            "Window comparison from %s (%d day(s)): %d metric(s), enough_data=%s",
            start.isoformat(), days, len(comparisons), result.enough_data,
        )
        return result

    def _early_lines(self, entries: list[DailyEntry], settings: RhythmSettings, today: date) -> list[str]:
        recent = entries_in_window(entries, today, self._config.short_window_days)
        ranges = []
        for key in self.tracked_keys(settings):
            values = _values(recent, key, settings)
            if len(values) >= 2:
                ranges.append((max(values) - min(values), symptom_label(key)))
        ranges.sort(key=lambda r: r[0], reverse=True)
        lines = [f"{label} has varied a bit" for _, label in ranges[:2]]
        return lines or [LINE_KEEP_LOGGING]

    def summarize(
        self,
        entries: Iterable[DailyEntry | dict],
        settings: RhythmSettings | None = None,
        today: date | None = None,
    ) -> TrendSummary:
        """Build the daily narrative: tier, rolling means, how-lines, one relationship.

        Args:
            entries:  Entry log in any order.
            settings: User settings (enabled symptoms and influences).
            today:    Day to summarize.  Defaults to the latest logged day.

        Returns:
            TrendSummary.
        """
        cfg = self._config
        settings = settings or RhythmSettings()
        sorted_entries = parse_entries(entries)
        if today is None:
            today = sorted_entries[-1].date if sorted_entries else date.today()
        history = [e for e in sorted_entries if e.date <= today]

        days_logged = count_logged_days(history)
        tier = self.tier(days_logged)
        keys = self.tracked_keys(settings)

        summary = TrendSummary(date=today, tier=tier, days_logged=days_logged)
        summary.means_7d = self.rolling_means(
            history, keys, today, cfg.short_window_days, settings
        )
        summary.means_14d = self.rolling_means(
            history, keys, today, cfg.long_window_days, settings
        )
        summary.shifts = self.symptom_shifts(history, settings, today)

        if tier == TIER_STARTER:
            summary.how_lines = [LINE_STARTER]
        elif tier == TIER_EARLY:
            summary.how_lines = self._early_lines(history, settings, today)
        else:
            shown = [s for s in summary.shifts if abs(s.delta) >= cfg.shift_display_floor]
            summary.how_lines = [
                s.description for s in shown[: cfg.max_shift_lines]
            ] or [LINE_STEADY]

        if days_logged >= cfg.relationship.min_days_logged:
            candidates = self.relationships(history, settings, today)
            summary.relationship_candidates = len(candidates)
            summary.relationship = self.pick_daily_relationship(candidates, today)

        logger.debug(
            "Trend summary for %s: tier=%s, %d shift(s), %d relationship candidate(s)",
            today.isoformat(), tier, len(summary.shifts), summary.relationship_candidates,
        )
        return summary
