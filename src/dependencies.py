"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from src.config import Settings, get_settings
from src.rhythm.config_loader import EngineConfig, get_engine_config
from src.rhythm.engine import RhythmEngine


def get_config() -> EngineConfig:
    """The engine config loaded at startup (or on first use)."""
    return get_engine_config()


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_settings)]
EngineConfigDep = Annotated[EngineConfig, Depends(get_config)]


def get_engine(config: EngineConfigDep) -> RhythmEngine:
    return RhythmEngine(config)


Engine = Annotated[RhythmEngine, Depends(get_engine)]
