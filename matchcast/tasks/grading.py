"""Prediction grading task.

Settles pending predictions whose match has a stored final score, then
folds the new wins/losses into each algorithm's running stats so the next
weight fetch sees them.

Runs every 30 minutes.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

import structlog

from matchcast.config import get_settings
from matchcast.models.base import get_task_session
from matchcast.models.domain import JobRun
from matchcast.services.calibration.grading import (
    StatsTally,
    grade_prediction,
    merge_algorithm_stats,
)
from matchcast.services.calibration.types import PredictionStatus
from matchcast.services.prediction.types import Recommendation
from matchcast.services.repositories import (
    SqlAlgorithmStatsRepository,
    SqlHistoricalRepository,
    SqlPredictionRepository,
)
from matchcast.tasks import celery_app

logger = structlog.get_logger(__name__)


def _optional_float(value) -> float | None:
    return float(value) if value is not None else None


async def grade_pending_predictions(
    predictions: SqlPredictionRepository,
    results: SqlHistoricalRepository,
    stats: SqlAlgorithmStatsRepository,
    batch_size: int = 200,
) -> dict[str, Any]:
    """
    Grade every pending prediction that has a final score.

    Pushes are settled but do not count toward algorithm stats.
    """
    summary = {"checked": 0, "graded": 0, "pushes": 0, "awaiting_result": 0}
    tallies: dict[str, StatsTally] = defaultdict(StatsTally)
    names: dict[str, str] = {}

    pending = await predictions.get_pending(limit=batch_size)
    summary["checked"] = len(pending)

    for prediction in pending:
        result = await results.get_result(prediction.match_id)
        if result is None:
            summary["awaiting_result"] += 1
            continue

        grade = grade_prediction(
            Recommendation(prediction.recommended),
            result.home_score,
            result.away_score,
            _optional_float(prediction.projected_score_home),
            _optional_float(prediction.projected_score_away),
        )
        if grade is None:
            continue

        await predictions.mark_graded(prediction, grade, result.home_score, result.away_score)
        summary["graded"] += 1

        if grade.status == PredictionStatus.PUSH:
            summary["pushes"] += 1
            continue

        tallies[prediction.algorithm_id].add(grade.is_correct, float(prediction.confidence))
        names[prediction.algorithm_id] = prediction.algorithm_name

        logger.debug(
            "prediction_graded",
            match_id=prediction.match_id,
            algorithm=prediction.algorithm_name,
            status=grade.status.value,
            accuracy=grade.accuracy_rating,
        )

    for algorithm_id, tally in tallies.items():
        current = await stats.get(algorithm_id)
        merged = merge_algorithm_stats(algorithm_id, current, tally)
        await stats.upsert(merged, names[algorithm_id])
        logger.info(
            "algorithm_stats_updated",
            algorithm=names[algorithm_id],
            correct=merged.correct_predictions,
            total=merged.total_predictions,
            win_rate=merged.win_rate,
        )

    summary["algorithms_updated"] = len(tallies)
    return summary


@celery_app.task(bind=True, soft_time_limit=300, time_limit=360)
def grade_predictions(self):
    """
    Scheduled: Every 30 minutes
    Timeout: 6 minutes
    """
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_grade_predictions_async(self))
    finally:
        loop.close()


async def _grade_predictions_async(task):
    started_at = datetime.now(timezone.utc)
    summary: dict[str, Any] = {}

    async with get_task_session() as session:
        job_run = JobRun(
            job_name="grade_predictions",
            started_at=started_at,
            status="running",
        )
        session.add(job_run)
        await session.commit()

        job_status = "success"
        error_message = None

        try:
            summary = await grade_pending_predictions(
                SqlPredictionRepository(session),
                SqlHistoricalRepository(session),
                SqlAlgorithmStatsRepository(session),
                batch_size=get_settings().grading_batch_size,
            )
            await session.commit()
            logger.info("grade_predictions_complete", **summary)

        except Exception as e:
            await session.rollback()
            job_status = "failed"
            error_message = str(e)
            logger.exception("grade_predictions_failed", error=str(e))
            raise

        finally:
            job_run.completed_at = datetime.now(timezone.utc)
            job_run.status = job_status
            job_run.error_message = error_message
            job_run.records_processed = summary.get("graded", 0)
            job_run.job_metadata = summary
            session.add(job_run)
            await session.commit()

    return summary
