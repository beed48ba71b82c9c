"""Database models for MatchCast."""

from matchcast.models.base import Base, get_db, get_task_session
from matchcast.models.domain import (
    AlgorithmStats,
    JobRun,
    MatchResult,
    ModelWeightRecord,
    StoredPrediction,
)

__all__ = [
    # Base
    "Base",
    "get_db",
    "get_task_session",
    # Domain models
    "AlgorithmStats",
    "JobRun",
    "MatchResult",
    "ModelWeightRecord",
    "StoredPrediction",
]
