"""Cycle and symptom pattern endpoints.

Stateless: every request carries the full entry log and settings, and the
response is derived from them alone.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import Engine
from src.models.base import ErrorDetail
from src.models.rhythm import (
    CycleStartOverrideRequest,
    CycleStatsRead,
    EntryLogRead,
    FertileWindowRead,
    PhaseRead,
    RhythmRequest,
    SnapshotRead,
    TrendSummaryRead,
    WindowComparisonRead,
    WindowComparisonRequest,
)
from src.rhythm.base import DailyEntry, parse_entries
from src.rhythm.cycle.start_detector import compute_cycle_starts
from src.rhythm.overrides import apply_cycle_start_override

router = APIRouter(prefix="/rhythm", tags=["rhythm"])
logger = logging.getLogger("rhythm.router")


def _today(body: RhythmRequest, entries: list[DailyEntry]) -> date:
    if body.today is not None:
        return body.today
    return entries[-1].date if entries else date.today()


@router.post("/snapshot", response_model=SnapshotRead)
async def snapshot(body: RhythmRequest, engine: Engine) -> Any:
    entries = parse_entries(body.entries)
    result = engine.snapshot(entries, body.settings.to_settings(), _today(body, entries))
    return SnapshotRead(
        date=result.date,
        cycle_tracking=result.cycle_tracking,
        cycle_starts=result.cycle_starts,
        cycle_stats=(
            CycleStatsRead.model_validate(result.cycle_stats) if result.cycle_stats else None
        ),
        period_days=result.period_days,
        phase=PhaseRead.from_estimate(result.phase),
        fertile_window=FertileWindowRead.model_validate(result.fertile_window),
        trends=TrendSummaryRead.model_validate(result.trends),
        days_logged=result.days_logged,
        checkin_days=result.checkin_days,
        bleeding_onset=result.bleeding_onset,
    )


@router.post("/cycle-stats", response_model=CycleStatsRead)
async def cycle_stats(body: RhythmRequest, engine: Engine) -> Any:
    entries = [e for e in parse_entries(body.entries) if body.today is None or e.date <= body.today]
    return CycleStatsRead.model_validate(engine.cycle_stats(entries))


@router.post("/phase", response_model=PhaseRead)
async def phase(body: RhythmRequest, engine: Engine) -> Any:
    entries = parse_entries(body.entries)
    estimate = engine.phase(entries, _today(body, entries), body.settings.to_settings())
    return PhaseRead.from_estimate(estimate)


@router.post("/fertile-window", response_model=FertileWindowRead)
async def fertile_window(body: RhythmRequest, engine: Engine) -> Any:
    entries = [e for e in parse_entries(body.entries) if body.today is None or e.date <= body.today]
    return FertileWindowRead.model_validate(
        engine.fertile_window(entries, body.settings.to_settings())
    )


@router.post("/trends", response_model=TrendSummaryRead)
async def trends(body: RhythmRequest, engine: Engine) -> Any:
    entries = parse_entries(body.entries)
    summary = engine.trends.summarize(entries, body.settings.to_settings(), _today(body, entries))
    return TrendSummaryRead.model_validate(summary)


@router.post(
    "/compare",
    response_model=WindowComparisonRead,
    responses={400: {"model": ErrorDetail}},
)
async def compare_windows(body: WindowComparisonRequest, engine: Engine) -> Any:
    """Before/during comparison of the requested metrics around ``start``."""
    if not body.metrics:
        raise HTTPException(status_code=400, detail="No metrics to compare")
    comparison = engine.trends.compare_windows(
        parse_entries(body.entries),
        body.start,
        body.metrics,
        duration_days=body.duration_days,
        settings=body.settings.to_settings(),
    )
    return WindowComparisonRead.model_validate(comparison)


@router.post("/overrides/cycle-start", response_model=EntryLogRead)
async def set_cycle_start(body: CycleStartOverrideRequest, engine: Engine) -> Any:
    """Make ``date`` the single cycle-start override and return the updated log."""
    updated = apply_cycle_start_override(body.entries, body.date)
    logger.info("Cycle start override applied on %s (%d entries)", body.date, len(updated))
    return EntryLogRead(
        entries=[e.to_record() for e in updated],
        cycle_starts=compute_cycle_starts(updated, engine.config.cycle),
    )
