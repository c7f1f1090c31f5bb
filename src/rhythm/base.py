"""Canonical data models and the intensity normalization boundary.

Every component of the rhythm engine consumes ``DailyEntry`` objects and
reads symptom intensities through ``DailyEntry.intensity()``, which applies
``normalize_intensity()``.  Historical check-ins may carry values on a
0–100 scale; they are rescaled at read time and the stored mapping is never
modified.

Raw records arrive from the storage layer as camelCase dicts::

    {
        "dateISO": "2024-03-01",
        "mood": 2,
        "values": {"flow": 6, "cramps": 40},
        "cycleStartOverride": true,
        "breakthroughBleed": false,
        "events": {"exercise": true, "caffeine": false},
    }

``parse_entries()`` turns such records into sorted, de-duplicated entries.
Malformed records are skipped and malformed values are treated as absent;
parsing never raises.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Any, Iterable, Mapping

logger = logging.getLogger("rhythm.base")

# Current check-in scale is 0–10; anything larger is a legacy 0–100 record.
SCALE_MAX = 10
LEGACY_DIVISOR = 10

MOOD_KEY = "mood"
FLOW_KEY = "flow"

# Mood is a 1–3 picker; this places it on the 0–10 symptom scale.
_MOOD_TO_TEN: dict[int, float] = {1: 3.0, 2: 6.0, 3: 9.0}

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

SYMPTOM_LABELS: dict[str, str] = {
    "energy": "Energy",
    "motivation": "Motivation",
    "sleep": "Sleep",
    "insomnia": "Trouble falling asleep",
    "pain": "Pain",
    "headache": "Headaches",
    "migraine": "Migraines",
    "backPain": "Back pain",
    "cramps": "Period pain",
    "jointPain": "Joint pain",
    "flow": "Bleeding",
    "stress": "Stress",
    "anxiety": "Anxiety",
    "irritability": "Irritability",
    "focus": "Focus",
    "bloating": "Bloating",
    "digestion": "Digestion",
    "nausea": "Nausea",
    "constipation": "Constipation",
    "diarrhoea": "Diarrhoea",
    "acidReflux": "Acid reflux",
    "hairShedding": "Hair shedding",
    "facialSpots": "Facial spots",
    "cysts": "Cysts",
    "skinDryness": "Skin dryness",
    "brainFog": "Brain fog",
    "fatigue": "Fatigue",
    "dizziness": "Dizziness",
    "appetite": "Appetite",
    "libido": "Libido",
    "breastTenderness": "Breast tenderness",
    "hotFlushes": "Hot flushes",
    "nightSweats": "Night sweats",
    "restlessLegs": "Restless legs",
}

INFLUENCE_LABELS: dict[str, str] = {
    "sex": "sex",
    "exercise": "exercise",
    "travel": "travel",
    "illness": "illness",
    "alcohol": "alcohol",
    "lateNight": "a late night",
    "stressfulDay": "a stressful day",
    "medication": "medication",
    "caffeine": "caffeine",
    "socialising": "socialising",
    "lowHydration": "low hydration",
}


# ---------------------------------------------------------------------------
# Normalization boundary
# ---------------------------------------------------------------------------


def _as_float(value: Any) -> float | None:
    """Finite float for an int/float value; None otherwise (bools, huge ints)."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return None
    return number if math.isfinite(number) else None


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp ``value`` into [low, high]; ``low`` wins if the bounds cross."""
    return max(low, min(high, value))


def normalize_intensity(raw: Any, key: str | None = None) -> float | int | None:
    """Map a stored intensity onto the canonical 0–10 scale.

    Values whose magnitude exceeds 10 are legacy 0–100 records: they are
    divided by 10 and rounded half-up before clamping to [0, 10].  Mood
    keeps its own 1–3 ordinal scale and is never rescaled.

    The function is idempotent, so applying it to an already-normalized
    value returns that value unchanged.

    Args:
        raw: Stored value (any type).
        key: Symptom key the value belongs to.

    Returns:
        The normalized number, or None if the value is absent or invalid.
    """
    value = _as_float(raw)
    if value is None:
        return None

    if key == MOOD_KEY:
        return int(value) if value in _MOOD_TO_TEN else None

    if abs(value) > SCALE_MAX:
        value = float(round_half_up(value / LEGACY_DIVISOR))
    return clamp(value, 0.0, float(SCALE_MAX))


def mood_to_ten(mood: Any) -> float | None:
    """Place a 1–3 mood on the 0–10 scale used by symptoms (1→3, 2→6, 3→9)."""
    normalized = normalize_intensity(mood, MOOD_KEY)
    return _MOOD_TO_TEN.get(normalized) if normalized is not None else None


def parse_iso_date(value: Any) -> date | None:
    """Parse a strict ``YYYY-MM-DD`` string (or date) into a date.

    Returns None for anything malformed rather than raising.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value.strip()):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def symptom_label(key: str) -> str:
    """Human label for a symptom key; camelCase keys are humanized."""
    if key == MOOD_KEY:
        return "Mood"
    if key in SYMPTOM_LABELS:
        return SYMPTOM_LABELS[key]
    spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", key)
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split())


def influence_label(key: str) -> str:
    return INFLUENCE_LABELS.get(key, key)


# ---------------------------------------------------------------------------
# Canonical models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyEntry:
    """One day's check-in.  At most one entry exists per calendar date.

    Attributes:
        date:                 Calendar date of the check-in (user's local date).
        mood:                 Mood on the 1–3 picker, or None.
        values:               Symptom key → stored intensity.  Read-only; may
                              hold legacy 0–100 values.  Use ``intensity()``.
        cycle_start_override: User asserted "today is day 1".
        breakthrough_bleed:   User asserted "ignore this bleeding for cycles".
        ovulation_override:   User marked this day as ovulation.
        events:               Lifestyle influences logged (exercise, travel, ...).
        notes:                Free-text note.
    """

    date: date
    mood: int | None = None
    values: Mapping[str, Any] = field(default_factory=dict)
    cycle_start_override: bool = False
    breakthrough_bleed: bool = False
    ovulation_override: bool = False
    events: frozenset[str] = frozenset()
    notes: str = ""

    @property
    def date_iso(self) -> str:
        return self.date.isoformat()

    def intensity(self, key: str) -> float | None:
        """Normalized 0–10 value for ``key`` (mood is mapped to 0–10)."""
        if key == MOOD_KEY:
            return mood_to_ten(self.mood)
        return normalize_intensity(self.values.get(key), key)

    @property
    def flow(self) -> float | None:
        return self.intensity(FLOW_KEY)

    @property
    def effective_flow(self) -> float:
        """Flow as seen by cycle detection: breakthrough bleeding counts as 0."""
        if self.breakthrough_bleed:
            return 0.0
        return self.flow or 0.0

    def has_event(self, key: str) -> bool:
        return key in self.events

    def has_meaningful_data(self) -> bool:
        """True if the user actually logged something on this day."""
        if self.mood is not None or self.cycle_start_override:
            return True
        if any(normalize_intensity(v, k) is not None for k, v in self.values.items()):
            return True
        return bool(self.events) or bool(self.notes.strip())

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> DailyEntry | None:
        """Build an entry from a storage record; None if the date is unusable."""
        if not isinstance(record, Mapping):
            return None

        day = parse_iso_date(_first(record, "dateISO", "date_iso", "date"))
        if day is None:
            return None

        raw_values = record.get("values")
        values = dict(raw_values) if isinstance(raw_values, Mapping) else {}

        raw_events = record.get("events")
        if isinstance(raw_events, Mapping):
            events = frozenset(str(k) for k, v in raw_events.items() if v is True)
        elif isinstance(raw_events, (list, tuple, set, frozenset)):
            events = frozenset(str(k) for k in raw_events)
        else:
            events = frozenset()

        notes = record.get("notes")
        return cls(
            date=day,
            mood=normalize_intensity(record.get("mood"), MOOD_KEY),
            values=MappingProxyType(values),
            cycle_start_override=_first(
                record, "cycleStartOverride", "cycle_start_override"
            ) is True,
            breakthrough_bleed=_first(
                record, "breakthroughBleed", "breakthrough_bleed"
            ) is True,
            ovulation_override=_first(
                record, "ovulationOverride", "ovulation_override"
            ) is True,
            events=events,
            notes=notes if isinstance(notes, str) else "",
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize back to the storage layer's camelCase shape."""
        record: dict[str, Any] = {
            "dateISO": self.date_iso,
            "values": dict(self.values),
            "events": {key: True for key in sorted(self.events)},
        }
        if self.mood is not None:
            record["mood"] = self.mood
        if self.cycle_start_override:
            record["cycleStartOverride"] = True
        if self.breakthrough_bleed:
            record["breakthroughBleed"] = True
        if self.ovulation_override:
            record["ovulationOverride"] = True
        if self.notes:
            record["notes"] = self.notes
        return record


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in record:
            return record[key]
    return None


@dataclass(frozen=True)
class RhythmSettings:
    """The small settings bag that accompanies the entry log.

    Attributes:
        cycle_tracking:           Cycle features on (``cycle`` mode) or off.
        fertility_mode:           Trying-to-conceive features (fertile window).
        enabled_symptoms:         Symptom modules the user tracks.
        enabled_influences:       Lifestyle influences the user logs.
        ovulation_override_dates: User-confirmed ovulation dates.
        insights_from:            Global insights cutoff; earlier values are
                                  left out of trend analysis.
        metric_retired_from:      Per-metric cutoffs keyed by symptom key, or
                                  ``influence:<key>`` for influences.
    """

    cycle_tracking: bool = True
    fertility_mode: bool = False
    enabled_symptoms: tuple[str, ...] = ()
    enabled_influences: tuple[str, ...] = ()
    ovulation_override_dates: tuple[date, ...] = ()
    insights_from: date | None = None
    metric_retired_from: Mapping[str, date] = field(default_factory=dict)

    def metric_cutoff(self, key: str) -> date | None:
        """Effective cutoff for ``key``: the later of the global and per-metric dates."""
        cutoffs = [d for d in (self.insights_from, self.metric_retired_from.get(key)) if d]
        return max(cutoffs) if cutoffs else None

    def in_scope(self, key: str, day: date) -> bool:
        cutoff = self.metric_cutoff(key)
        return cutoff is None or day >= cutoff

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> RhythmSettings:
        """Build settings from the app's user-data record, ignoring bad fields."""
        if not isinstance(record, Mapping):
            return cls()

        mode = _first(record, "cycleTrackingMode", "cycle_tracking_mode")
        tracking = _first(record, "cycleTracking", "cycle_tracking")
        if isinstance(tracking, bool):
            cycle_tracking = tracking
        else:
            cycle_tracking = mode != "no-cycle"

        overrides = _first(record, "ovulationOverrideISOs", "ovulation_override_dates") or []
        ovulation_dates = sorted(
            {d for d in (parse_iso_date(v) for v in _as_list(overrides)) if d is not None}
        )

        retired_raw = _first(record, "metricRetiredFromISO", "metric_retired_from")
        retired: dict[str, date] = {}
        if isinstance(retired_raw, Mapping):
            for key, value in retired_raw.items():
                cutoff = parse_iso_date(value)
                if cutoff is not None:
                    retired[str(key)] = cutoff

        return cls(
            cycle_tracking=cycle_tracking,
            fertility_mode=_first(record, "fertilityMode", "fertility_mode") is True,
            enabled_symptoms=tuple(
                str(k) for k in _as_list(_first(record, "enabledModules", "enabled_symptoms"))
            ),
            enabled_influences=tuple(
                str(k)
                for k in _as_list(_first(record, "enabledInfluences", "enabled_influences"))
            ),
            ovulation_override_dates=tuple(ovulation_dates),
            insights_from=parse_iso_date(_first(record, "insightsFromISO", "insights_from")),
            metric_retired_from=MappingProxyType(retired),
        )


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple, set, frozenset)) else []


# ---------------------------------------------------------------------------
# Entry log helpers
# ---------------------------------------------------------------------------


def parse_entries(records: Iterable[Any] | None) -> list[DailyEntry]:
    """Parse a raw entry log into entries sorted ascending by date.

    Accepts storage dicts or ready-made ``DailyEntry`` objects.  Records with
    a missing or malformed date are skipped.  If two records share a date,
    the one read last wins, keeping the one-entry-per-date invariant.

    Args:
        records: The raw log, in any order.  None is treated as empty.

    Returns:
        Entries sorted ascending by date, unique per date.
    """
    if records is None:
        return []
    try:
        items = list(records)
    except TypeError:
        logger.debug("Entry log is not iterable: %r", type(records))
        return []

    by_date: dict[date, DailyEntry] = {}
    skipped = 0
    for record in items:
        entry = record if isinstance(record, DailyEntry) else DailyEntry.from_record(record)
        if entry is None:
            skipped += 1
            logger.debug("Skipping malformed entry record: %r", record)
            continue
        by_date[entry.date] = entry

    if skipped:
        logger.info("Skipped %d malformed entry record(s) of %d", skipped, len(items))

    return [by_date[d] for d in sorted(by_date)]


def entries_in_window(
    entries: Iterable[DailyEntry], end: date, days: int
) -> list[DailyEntry]:
    """Entries dated within the ``days``-day window ending on ``end`` (inclusive)."""
    start = end - timedelta(days=max(1, days) - 1)
    return [e for e in entries if start <= e.date <= end]


def count_logged_days(entries: Iterable[DailyEntry]) -> int:
    """Number of distinct calendar dates in the log."""
    return len({e.date for e in entries})


def count_checkin_days(entries: Iterable[DailyEntry]) -> int:
    """Number of days with meaningful data.

    This is a gentle habit count, not a consecutive-days streak, so a missed
    day never resets it.
    """
    return len({e.date for e in entries if e.has_meaningful_data()})
