"""Pydantic request/response models for the rhythm endpoints.

Entries and settings arrive in the app's storage shape (camelCase keys).
Entries stay plain dicts on the way in: the engine skips malformed records
itself, so one bad day never rejects the whole request.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import Field

from src.models.base import RhythmBase
from src.rhythm.base import RhythmSettings
from src.rhythm.cycle.phase_classifier import ConfidenceTier, Phase, PhaseEstimate


# ---------- Requests ----------

class RhythmSettingsIn(RhythmBase):
    """User settings in the app's camelCase shape.

    Date-bearing fields stay loosely typed: ``RhythmSettings.from_record``
    drops malformed dates instead of rejecting the request.
    """

    cycle_tracking: bool | None = Field(default=None, alias="cycleTracking")
    cycle_tracking_mode: str | None = Field(default=None, alias="cycleTrackingMode")
    fertility_mode: bool = Field(default=False, alias="fertilityMode")
    enabled_symptoms: list[str] = Field(default_factory=list, alias="enabledModules")
    enabled_influences: list[str] = Field(default_factory=list, alias="enabledInfluences")
    ovulation_override_dates: list[Any] = Field(
        default_factory=list, alias="ovulationOverrideISOs"
    )
    insights_from: Any = Field(default=None, alias="insightsFromISO")
    metric_retired_from: Any = Field(default=None, alias="metricRetiredFromISO")

    def to_settings(self) -> RhythmSettings:
        return RhythmSettings.from_record(self.model_dump(by_alias=True))


class RhythmRequest(RhythmBase):
    entries: list[dict[str, Any]] = Field(default_factory=list)
    settings: RhythmSettingsIn = Field(default_factory=RhythmSettingsIn)
    today: date | None = None


class CycleStartOverrideRequest(RhythmBase):
    entries: list[dict[str, Any]] = Field(default_factory=list)
    date: date


class WindowComparisonRequest(RhythmBase):
    entries: list[dict[str, Any]] = Field(default_factory=list)
    settings: RhythmSettingsIn = Field(default_factory=RhythmSettingsIn)
    start: date = Field(alias="startDateISO")
    metrics: list[str] = Field(default_factory=list)
    duration_days: int | None = Field(default=None, alias="durationDays", ge=1)


# ---------- Responses ----------

class CycleStatsRead(RhythmBase):
    cycle_starts: list[date]
    lengths: list[int]
    last_length: int | None = None
    avg_length: int | None = None
    predicted_next_start: date | None = None
    prediction_note: str | None = None
    cycles_used: int = 0
    is_irregular: bool = False
    late_cycle_signals: list[str] = Field(default_factory=list)


class PhaseRead(RhythmBase):
    phase: Phase
    soft_label: str
    scientific_label: str
    confidence: ConfidenceTier
    strategy: str
    day_in_cycle: int | None = None
    cycle_length: int | None = None
    next_phase: Phase | None = None
    days_to_next_phase: int | None = None
    bleeding_today: bool = False
    profile_scores: dict[str, float] | None = None

    @classmethod
    def from_estimate(cls, estimate: PhaseEstimate) -> PhaseRead:
        return cls(
            phase=estimate.phase,
            soft_label=estimate.phase.soft_label,
            scientific_label=estimate.phase.scientific_label,
            confidence=estimate.confidence,
            strategy=estimate.strategy,
            day_in_cycle=estimate.day_in_cycle,
            cycle_length=estimate.cycle_length,
            next_phase=estimate.next_phase,
            days_to_next_phase=estimate.days_to_next_phase,
            bleeding_today=estimate.bleeding_today,
            profile_scores=estimate.profile_scores,
        )


class FertileWindowRead(RhythmBase):
    days: list[date]
    ovulation_dates: list[date]
    source: str


class SymptomShiftRead(RhythmBase):
    key: str
    label: str
    delta: float
    recent_count: int
    previous_count: int
    impact: float
    description: str


class RelationshipRead(RhythmBase):
    influence: str
    symptom: str
    effect: float
    with_count: int
    without_count: int
    description: str


class TrendSummaryRead(RhythmBase):
    date: date
    tier: str
    days_logged: int
    means_7d: dict[str, float | None]
    means_14d: dict[str, float | None]
    shifts: list[SymptomShiftRead]
    how_lines: list[str]
    relationship: RelationshipRead | None = None
    relationship_candidates: int = 0


class SnapshotRead(RhythmBase):
    date: date
    cycle_tracking: bool
    cycle_starts: list[date]
    cycle_stats: CycleStatsRead | None = None
    period_days: list[date]
    phase: PhaseRead
    fertile_window: FertileWindowRead
    trends: TrendSummaryRead
    days_logged: int
    checkin_days: int
    bleeding_onset: bool = False


class EntryLogRead(RhythmBase):
    entries: list[dict[str, Any]]
    cycle_starts: list[date]


class MetricComparisonRead(RhythmBase):
    key: str
    before_mean: float | None = None
    before_count: int
    during_mean: float | None = None
    during_count: int
    delta: float | None = None
    has_enough_data: bool


class WindowComparisonRead(RhythmBase):
    before_start: date
    before_end: date
    during_start: date
    during_end: date
    duration_days: int
    metrics: list[MetricComparisonRead]
    enough_data: bool
    before_days_with_any: int
    during_days_with_any: int
