"""Model recalibration task.

Builds a rolling performance window per algorithm from recent saved
predictions, recalibrates weights, multipliers and thresholds, and appends
the result to the model weights table. Prediction requests read the newest
rows; there is no coordination with them.

Runs every 15 minutes.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from matchcast.config import CalibrationConfig, get_engine_config
from matchcast.models.base import get_task_session
from matchcast.models.domain import JobRun
from matchcast.services.calibration.adjuster import CalibrationController
from matchcast.services.calibration.analyzer import analyze_all, calculate_overall_health
from matchcast.services.calibration.types import RecalibrationResult, Severity
from matchcast.services.repositories import (
    ModelWeightStore,
    SettledPredictionReader,
    SqlModelWeightRepository,
    SqlPredictionRepository,
)
from matchcast.tasks import celery_app

logger = structlog.get_logger(__name__)


async def recalibrate(
    reader: SettledPredictionReader,
    store: ModelWeightStore,
    config: CalibrationConfig,
    now: datetime | None = None,
) -> RecalibrationResult:
    """One recalibration pass over the configured window."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=config.window_days)

    records = await reader.get_settled_since(since)
    windows = analyze_all(records, config.window_days, config)
    if not windows:
        logger.info("recalibration_no_history", window_days=config.window_days)
        return RecalibrationResult()

    result = CalibrationController(config).calculate_model_weights(windows)
    await store.write(result.weights)

    for rec in result.recommendations:
        if rec.severity in (Severity.CRITICAL, Severity.HIGH):
            logger.warning(
                "algorithm_recalibration_alert",
                algorithm=rec.algorithm_name,
                recommendation=rec.type.value,
                severity=rec.severity.value,
                impact=rec.impact,
            )

    logger.info(
        "recalibration_complete",
        algorithms=len(result.weights),
        actions=len(result.actions),
        overall_health=round(calculate_overall_health(windows), 1),
    )
    return result


@celery_app.task(bind=True, soft_time_limit=150, time_limit=180)
def recalibrate_models(self, window_days: int | None = None):
    """
    Scheduled: Every 15 minutes
    Timeout: 3 minutes

    Args:
        window_days: Override the configured rolling window
    """
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_recalibrate_models_async(self, window_days))
    finally:
        loop.close()


async def _recalibrate_models_async(task, window_days: int | None = None) -> dict[str, Any]:
    started_at = datetime.now(timezone.utc)
    config = get_engine_config().calibration
    if window_days:
        config = replace(config, window_days=window_days)
    summary: dict[str, Any] = {"window_days": config.window_days}

    async with get_task_session() as session:
        job_run = JobRun(
            job_name="recalibrate_models",
            started_at=started_at,
            status="running",
            job_metadata=summary,
        )
        session.add(job_run)
        await session.commit()

        job_status = "success"
        error_message = None

        try:
            result = await recalibrate(
                SqlPredictionRepository(session),
                SqlModelWeightRepository(session),
                config,
                now=started_at,
            )
            await session.commit()
            summary.update(
                weights_written=len(result.weights),
                actions=len(result.actions),
            )

        except Exception as e:
            await session.rollback()
            job_status = "failed"
            error_message = str(e)
            logger.exception("recalibrate_models_failed", error=str(e))
            raise

        finally:
            job_run.completed_at = datetime.now(timezone.utc)
            job_run.status = job_status
            job_run.error_message = error_message
            job_run.records_processed = summary.get("weights_written", 0)
            job_run.job_metadata = summary
            session.add(job_run)
            await session.commit()

    return summary
