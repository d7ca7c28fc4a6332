from __future__ import annotations

import logging
import platform
from datetime import datetime, timezone
from time import monotonic

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import settings
from taskboard.deps import get_db
from taskboard.metrics import runtime_metrics
from taskboard.responses import envelope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_check(db: AsyncSession) -> dict:
  start = monotonic()
  try:
    await db.execute(text("SELECT 1"))
  except SQLAlchemyError as exc:
    logger.warning("database health check failed: %s", exc)
    return {"status": "unhealthy", "connection": "disconnected", "responseTimeMs": round((monotonic() - start) * 1000.0, 2)}
  return {"status": "healthy", "connection": "connected", "responseTimeMs": round((monotonic() - start) * 1000.0, 2)}


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)) -> dict:
  database = await _database_check(db)
  data = {
    "status": "healthy" if database["status"] == "healthy" else "degraded",
    "timestamp": datetime.now(timezone.utc),
    "uptime": runtime_metrics.uptime_seconds(),
    "version": settings.app_version,
    "database": database["connection"],
  }
  return envelope(data, "API is running")


@router.get("/health/status")
async def health_detailed(db: AsyncSession = Depends(get_db)) -> dict:
  database = await _database_check(db)
  data = {
    "status": "healthy" if database["status"] == "healthy" else "degraded",
    "timestamp": datetime.now(timezone.utc),
    "version": settings.app_version,
    "buildSha": settings.build_sha,
    "python": platform.python_version(),
    "database": database,
    "requests": runtime_metrics.snapshot(),
  }
  return envelope(data, "Health check passed")


@router.get("/version")
async def version() -> dict:
  return envelope({"version": settings.app_version, "buildSha": settings.build_sha})
