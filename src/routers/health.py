"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.config import get_settings
from src.cycles.config_loader import ConfigValidationError, get_cycle_config
from src.services.database import get_pool

router = APIRouter(tags=["system"])
logger = logging.getLogger("fertility.health")


@router.get("/health")
async def health_check() -> dict:
    """Liveness check. Returns 200 if the API process is up.

    Reports the loaded engine config version and whether the database is
    reachable with the period log tables in place.
    """
    settings = get_settings()

    engine_config: str | None = None
    try:
        engine_config = get_cycle_config().version
    except (ConfigValidationError, FileNotFoundError) as exc:
        logger.error("Cycle config failed to load: %s", exc)

    database = "unreachable"
    try:
        pool = get_pool()
        async with pool.acquire() as conn:
            tables_ok = await conn.fetchval(
                "SELECT to_regclass('cycles') IS NOT NULL "
                "AND to_regclass('user_preferences') IS NOT NULL"
            )
        database = "connected" if tables_ok else "schema_missing"
    except Exception as exc:
        logger.warning("Health check DB query failed: %s", exc)

    healthy = database == "connected" and engine_config is not None
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": database,
        "engine_config": engine_config,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
