"""Rhythm API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import get_settings
from src.rhythm.config_loader import get_engine_config, reload_engine_config
from src.routers import health, rhythm

logger = logging.getLogger("rhythm")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Rhythm API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    # Fail fast on a broken engine config rather than on the first request.
    if settings.engine_config_path:
        reload_engine_config(Path(settings.engine_config_path))
    else:
        get_engine_config()
    yield
    logger.info("Rhythm API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    app = FastAPI(
        title="Rhythm API",
        description=(
            "Cycle and symptom pattern engine: cycle starts, phase, "
            "fertile window, and gentle trend narration from daily check-ins."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix — always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(rhythm.router, prefix=v1_prefix)

    return app


app = create_app()
