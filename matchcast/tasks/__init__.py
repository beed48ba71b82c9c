"""Celery app for the MatchCast feedback loop.

Two periodic jobs close the loop between predictions and weights:

    grade_predictions   settle pending picks, refresh algorithm stats
    recalibrate_models  rolling-window recalibration -> model_weights
"""

from celery import Celery
from celery.signals import setup_logging

from matchcast.config import get_engine_config, get_settings
from matchcast.config.log import configure_logging

settings = get_settings()

celery_app = Celery(
    "matchcast",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=[
        "matchcast.tasks.grading",
        "matchcast.tasks.calibration",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=420,
    task_soft_time_limit=360,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
)


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging(settings.log_level)


celery_app.conf.beat_schedule = {
    "grade-predictions": {
        "task": "matchcast.tasks.grading.grade_predictions",
        "schedule": 1800.0,
        "options": {"expires": 1740},
    },
    "recalibrate-models": {
        "task": "matchcast.tasks.calibration.recalibrate_models",
        "schedule": 900.0,
        "options": {"expires": 840},
        "kwargs": {"window_days": get_engine_config().calibration.window_days},
    },
}
