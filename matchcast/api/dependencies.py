"""FastAPI dependencies for MatchCast."""

from collections.abc import AsyncGenerator
from functools import lru_cache

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.config import EngineConfig, get_engine_config, get_settings
from matchcast.models.base import get_db
from matchcast.services.consensus.weights import WeightEngine
from matchcast.services.prediction.algorithms import AlgorithmRegistry
from matchcast.services.repositories import (
    SqlAlgorithmStatsRepository,
    SqlHistoricalRepository,
    SqlModelWeightRepository,
    SqlPredictionRepository,
)


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis client dependency."""
    settings = get_settings()
    client = redis.from_url(settings.redis_url)
    try:
        yield client
    finally:
        await client.close()


def get_config() -> EngineConfig:
    return get_engine_config()


@lru_cache
def get_registry() -> AlgorithmRegistry:
    """Algorithm registry built once from the engine config."""
    config = get_engine_config()
    return AlgorithmRegistry(config.algorithms, config.prediction)


def get_weight_engine(
    db: AsyncSession = Depends(get_db),
    registry: AlgorithmRegistry = Depends(get_registry),
    config: EngineConfig = Depends(get_config),
) -> WeightEngine:
    names = {algorithm_id: registry.name_for(algorithm_id) for algorithm_id in registry.ids}
    return WeightEngine(SqlAlgorithmStatsRepository(db), registry.ids, names, config.weights)


def get_prediction_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlPredictionRepository:
    return SqlPredictionRepository(db)


def get_historical_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlHistoricalRepository:
    return SqlHistoricalRepository(db)


def get_model_weight_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlModelWeightRepository:
    return SqlModelWeightRepository(db)
