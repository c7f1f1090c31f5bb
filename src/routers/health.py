"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings
from src.rhythm.config_loader import get_engine_config

router = APIRouter(tags=["system"])
logger = logging.getLogger("rhythm.health")


@router.get("/health")
async def health_check(settings: AppSettings) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also reports whether the engine config loaded.
    """
    config_version = None
    try:
        config_version = get_engine_config().version
    except (FileNotFoundError, ValueError) as exc:
        logger.warning("Health check engine config probe failed: %s", exc)

    return {
        "status": "healthy" if config_version else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "engine_config": config_version or "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
