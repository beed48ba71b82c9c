"""Liveness and readiness endpoints."""

from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from matchcast import __version__
from matchcast.api.dependencies import get_redis, get_registry
from matchcast.models.base import get_db
from matchcast.models.domain import ModelWeightRecord
from matchcast.services.prediction.algorithms import AlgorithmRegistry

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    algorithms: list[str]
    timestamp: datetime


class ReadyCheck(BaseModel):
    status: str
    message: str | None = None


class ReadyResponse(BaseModel):
    ready: bool
    checks: dict[str, ReadyCheck]


@router.get("/health", response_model=HealthResponse)
async def health(registry: AlgorithmRegistry = Depends(get_registry)):
    """Process is up and the algorithm registry loaded."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        algorithms=registry.ids,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/ready", response_model=ReadyResponse)
async def ready(
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """
    Database and broker reachability, plus calibration freshness.

    A missing calibration does not fail readiness: forecasts fall back to
    uncalibrated confidences until the first recalibration run.
    """
    checks = {}
    all_ready = True

    try:
        await db.execute(text("SELECT 1"))
        checks["db"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["db"] = ReadyCheck(status="error", message=str(e))
        all_ready = False

    try:
        await redis_client.ping()
        checks["broker"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["broker"] = ReadyCheck(status="error", message=str(e))
        all_ready = False

    if checks["db"].status == "ok":
        last = await db.scalar(select(func.max(ModelWeightRecord.calibrated_at)))
        if last is None:
            checks["calibration"] = ReadyCheck(status="pending", message="No recalibration yet")
        else:
            checks["calibration"] = ReadyCheck(status="ok", message=f"Last run {last.isoformat()}")

    return ReadyResponse(ready=all_ready, checks=checks)
