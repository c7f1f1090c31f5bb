"""Load, validate, and hot-reload the rhythm engine configuration.

The config lives in ``engine_config.yaml`` alongside this module.  It is
loaded once on first use and cached.  Call ``reload_engine_config()`` to
re-read it from disk; no restart required.

Usage::

    from src.rhythm.config_loader import get_engine_config

    config = get_engine_config()
    config.cycle.bleed_threshold          # 3
    config.phase.profile("protective")    # {'fatigue': 7.0, ...}
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger("rhythm.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "engine_config.yaml"

PHASE_KEYS = ("reset", "rebuilding", "expressive", "protective")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class CycleConfig:
    """Cycle-start detection and cycle-length statistics.

    Attributes:
        bleed_threshold:         Effective flow at or above this is a bleed.
        spotting_streak_days:    Consecutive spotting days promoted to a start.
        bleed_gap_reset_days:    Entry gap (days) that ends a bleed.
        min_cycle_days:          Shortest plausible cycle length.
        max_cycle_days:          Longest plausible cycle length.
        rolling_average_cycles:  Number of recent lengths averaged.
        irregular_std_days:      Std-dev above which cycles are irregular.
        provisional_period_days: Period shading after each start.
        hint_window_entries:     Entries scanned for the prediction hint.
        hint_high_average:       Average at which a hint symptom counts.
        hint_min_signals:        Hint symptoms needed to flag the note.
        hint_symptoms:           Late-cycle-associated symptom keys.
    """

    bleed_threshold: float = 3
    spotting_streak_days: int = 2
    bleed_gap_reset_days: int = 3
    min_cycle_days: int = 10
    max_cycle_days: int = 60
    rolling_average_cycles: int = 6
    irregular_std_days: float = 7.0
    provisional_period_days: int = 7
    hint_window_entries: int = 5
    hint_high_average: float = 7.0
    hint_min_signals: int = 2
    hint_symptoms: list[str] = field(
        default_factory=lambda: [
            "fatigue", "brainFog", "nightSweats", "hairShedding", "facialSpots", "cysts",
        ]
    )


@dataclass
class ConfidenceRule:
    """Minimum anchoring needed for one confidence tier."""

    min_starts: int
    min_days: int


@dataclass
class PhaseConfig:
    """Phase classifier settings, including the reference symptom profiles."""

    default_cycle_length: int
    max_anchor_days: int
    menstrual_days: int
    luteal_offset_days: int
    signal_window_entries: int
    min_signals: int
    signals: list[str]
    profiles: dict[str, dict[str, float]]
    signal_days_to_next: dict[str, int]
    established: ConfidenceRule
    emerging: ConfidenceRule

    def profile(self, phase: str) -> dict[str, float]:
        """Return the target intensities for a phase key (empty if unknown)."""
        return self.profiles.get(phase, {})


@dataclass
class FertileWindowConfig:
    """Days around ovulation counted as fertile."""

    days_before_ovulation: int = 5
    days_after_ovulation: int = 1


@dataclass
class RelationshipConfig:
    """Two-sample mean-difference ("relationship") settings."""

    window_days: int = 14
    min_days_per_side: int = 4
    min_values_per_side: int = 3
    min_effect: float = 0.7
    rotation_pool: int = 6
    min_days_logged: int = 7
    excluded_influences: list[str] = field(default_factory=lambda: ["sex"])


@dataclass
class ComparisonConfig:
    """Before/during window comparison defaults."""

    default_days: int = 3
    max_metrics: int = 5
    min_points_per_window: int = 2


@dataclass
class TrendConfig:
    """Rolling means, week-over-week shifts and summary tiers."""

    short_window_days: int
    long_window_days: int
    min_shift_samples: int
    steady_threshold: float
    little_threshold: float
    noticeably_threshold: float
    shift_display_floor: float
    consistency_full_samples: int
    max_shift_lines: int
    early_tier_days: int
    weekly_tier_days: int
    mature_tier_days: int
    relationship: RelationshipConfig
    comparison: ComparisonConfig


@dataclass
class EngineConfig:
    """Complete, validated engine configuration.

    This is the single in-memory representation of engine_config.yaml.
    Every component reads its constants from this object.
    """

    version: str
    cycle: CycleConfig
    phase: PhaseConfig
    fertile_window: FertileWindowConfig
    trends: TrendConfig
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when engine_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    import yaml

    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Applies defaults for optional fields and collects every problem before
    raising, so a broken file reports all of its errors at once.

    Raises:
        ConfigValidationError: If any field is missing or invalid.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, default: Any, path: str, cast=float) -> Any:
        value = section.get(key, default)
        try:
            number = cast(value)
        except (TypeError, ValueError, OverflowError):
            errors.append(f"{path}.{key} must be a number, got {value!r}")
            return default
        if number < 0:
            errors.append(f"{path}.{key} = {number} must not be negative")
        return number

    def _section(parent: dict, key: str, path: str) -> dict:
        value = parent.get(key) or {}
        if not isinstance(value, dict):
            errors.append(f"{path}{key} must be a mapping")
            return {}
        return value

    version = str(raw.get("version", "1.0"))

    # ── Cycle ──
    cy_raw = _section(raw, "cycle", "")
    cl_raw = _section(cy_raw, "cycle_length", "cycle.")
    hint_raw = _section(cy_raw, "prediction_hint", "cycle.")
    cycle = CycleConfig(
        bleed_threshold=_number(cy_raw, "bleed_threshold", 3, "cycle"),
        spotting_streak_days=_number(cy_raw, "spotting_streak_days", 2, "cycle", int),
        bleed_gap_reset_days=_number(cy_raw, "bleed_gap_reset_days", 3, "cycle", int),
        min_cycle_days=_number(cl_raw, "min_cycle_days", 10, "cycle.cycle_length", int),
        max_cycle_days=_number(cl_raw, "max_cycle_days", 60, "cycle.cycle_length", int),
        rolling_average_cycles=_number(
            cl_raw, "rolling_average_cycles", 6, "cycle.cycle_length", int
        ),
        irregular_std_days=_number(cl_raw, "irregular_std_days", 7.0, "cycle.cycle_length"),
        provisional_period_days=_number(cy_raw, "provisional_period_days", 7, "cycle", int),
        hint_window_entries=_number(hint_raw, "window_entries", 5, "cycle.prediction_hint", int),
        hint_high_average=_number(hint_raw, "high_average", 7.0, "cycle.prediction_hint"),
        hint_min_signals=_number(hint_raw, "min_signals", 2, "cycle.prediction_hint", int),
    )
    if "symptoms" in hint_raw:
        cycle.hint_symptoms = [str(s) for s in hint_raw.get("symptoms") or []]
    if cycle.min_cycle_days > cycle.max_cycle_days:
        errors.append(
            f"cycle.cycle_length.min_cycle_days ({cycle.min_cycle_days}) exceeds "
            f"max_cycle_days ({cycle.max_cycle_days})"
        )
    if cycle.spotting_streak_days < 1:
        errors.append("cycle.spotting_streak_days must be at least 1")

    # ── Phase ──
    ph_raw = _section(raw, "phase", "")
    profiles: dict[str, dict[str, float]] = {}
    profiles_raw = _section(ph_raw, "profiles", "phase.")
    for phase_key in PHASE_KEYS:
        targets = profiles_raw.get(phase_key)
        if not isinstance(targets, dict) or not targets:
            errors.append(f"phase.profiles.{phase_key} is missing or empty")
            continue
        profiles[phase_key] = {}
        for symptom, target in targets.items():
            try:
                t = float(target)
            except (TypeError, ValueError, OverflowError):
                errors.append(
                    f"phase.profiles.{phase_key}.{symptom} must be a number, got {target!r}"
                )
                continue
            if not (0.0 <= t <= 10.0):
                errors.append(
                    f"phase.profiles.{phase_key}.{symptom} = {t} is out of range [0, 10]"
                )
            profiles[phase_key][symptom] = t

    signals = ph_raw.get("signals") or []
    if not isinstance(signals, list) or not signals:
        errors.append("phase.signals must be a non-empty list")
        signals = []

    days_next_raw = _section(ph_raw, "signal_days_to_next", "phase.")
    signal_days_to_next = {
        key: _number(days_next_raw, key, 5, "phase.signal_days_to_next", int)
        for key in PHASE_KEYS
    }

    conf_raw = _section(ph_raw, "confidence", "phase.")
    est_raw = _section(conf_raw, "established", "phase.confidence.")
    emg_raw = _section(conf_raw, "emerging", "phase.confidence.")
    phase = PhaseConfig(
        default_cycle_length=_number(ph_raw, "default_cycle_length", 28, "phase", int),
        max_anchor_days=_number(ph_raw, "max_anchor_days", 60, "phase", int),
        menstrual_days=_number(ph_raw, "menstrual_days", 5, "phase", int),
        luteal_offset_days=_number(ph_raw, "luteal_offset_days", 14, "phase", int),
        signal_window_entries=_number(ph_raw, "signal_window_entries", 10, "phase", int),
        min_signals=_number(ph_raw, "min_signals", 3, "phase", int),
        signals=[str(s) for s in signals],
        profiles=profiles,
        signal_days_to_next=signal_days_to_next,
        established=ConfidenceRule(
            min_starts=_number(est_raw, "min_starts", 2, "phase.confidence.established", int),
            min_days=_number(est_raw, "min_days", 21, "phase.confidence.established", int),
        ),
        emerging=ConfidenceRule(
            min_starts=_number(emg_raw, "min_starts", 1, "phase.confidence.emerging", int),
            min_days=_number(emg_raw, "min_days", 14, "phase.confidence.emerging", int),
        ),
    )

    # ── Fertile window ──
    fw_raw = _section(raw, "fertile_window", "")
    fertile_window = FertileWindowConfig(
        days_before_ovulation=_number(fw_raw, "days_before_ovulation", 5, "fertile_window", int),
        days_after_ovulation=_number(fw_raw, "days_after_ovulation", 1, "fertile_window", int),
    )

    # ── Trends ──
    tr_raw = _section(raw, "trends", "")
    thr_raw = _section(tr_raw, "shift_thresholds", "trends.")
    tiers_raw = _section(tr_raw, "tiers", "trends.")
    rel_raw = _section(tr_raw, "relationship", "trends.")
    relationship = RelationshipConfig(
        window_days=_number(rel_raw, "window_days", 14, "trends.relationship", int),
        min_days_per_side=_number(rel_raw, "min_days_per_side", 4, "trends.relationship", int),
        min_values_per_side=_number(
            rel_raw, "min_values_per_side", 3, "trends.relationship", int
        ),
        min_effect=_number(rel_raw, "min_effect", 0.7, "trends.relationship"),
        rotation_pool=_number(rel_raw, "rotation_pool", 6, "trends.relationship", int),
        min_days_logged=_number(rel_raw, "min_days_logged", 7, "trends.relationship", int),
    )
    if "excluded_influences" in rel_raw:
        relationship.excluded_influences = [
            str(k) for k in rel_raw.get("excluded_influences") or []
        ]
    if relationship.rotation_pool < 1:
        errors.append("trends.relationship.rotation_pool must be at least 1")

    cmp_raw = _section(tr_raw, "comparison", "trends.")
    comparison = ComparisonConfig(
        default_days=_number(cmp_raw, "default_days", 3, "trends.comparison", int),
        max_metrics=_number(cmp_raw, "max_metrics", 5, "trends.comparison", int),
        min_points_per_window=_number(
            cmp_raw, "min_points_per_window", 2, "trends.comparison", int
        ),
    )
    if comparison.default_days < 1:
        errors.append("trends.comparison.default_days must be at least 1")

    trends = TrendConfig(
        short_window_days=_number(tr_raw, "short_window_days", 7, "trends", int),
        long_window_days=_number(tr_raw, "long_window_days", 14, "trends", int),
        min_shift_samples=_number(tr_raw, "min_shift_samples", 2, "trends", int),
        steady_threshold=_number(thr_raw, "steady", 0.4, "trends.shift_thresholds"),
        little_threshold=_number(thr_raw, "little", 1.0, "trends.shift_thresholds"),
        noticeably_threshold=_number(thr_raw, "noticeably", 2.0, "trends.shift_thresholds"),
        shift_display_floor=_number(tr_raw, "shift_display_floor", 0.35, "trends"),
        consistency_full_samples=_number(tr_raw, "consistency_full_samples", 5, "trends", int),
        max_shift_lines=_number(tr_raw, "max_shift_lines", 3, "trends", int),
        early_tier_days=_number(tiers_raw, "early", 4, "trends.tiers", int),
        weekly_tier_days=_number(tiers_raw, "weekly", 7, "trends.tiers", int),
        mature_tier_days=_number(tiers_raw, "mature", 30, "trends.tiers", int),
        relationship=relationship,
        comparison=comparison,
    )
    if not (
        trends.steady_threshold <= trends.little_threshold <= trends.noticeably_threshold
    ):
        errors.append("trends.shift_thresholds must be ordered steady <= little <= noticeably")
    if trends.consistency_full_samples < 1:
        errors.append("trends.consistency_full_samples must be at least 1")

    if errors:
        raise ConfigValidationError(
            f"engine_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        cycle=cycle,
        phase=phase,
        fertile_window=fertile_window,
        trends=trends,
        _raw=raw,
    )


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the bundled engine_config.yaml by default.

    Returns:
        Validated EngineConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"{target} must contain a mapping at the top level")
    config = _validate_and_build(raw)
    logger.info("Loaded engine config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_lock = threading.Lock()


def get_engine_config() -> EngineConfig:
    """Return the global EngineConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_engine_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_engine_config()
    return _config


def reload_engine_config(path: Path | None = None) -> EngineConfig:
    """Reload the engine config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_engine_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded engine config: %s → %s", old_version, new_config.version)
    return new_config
