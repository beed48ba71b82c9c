"""Configuration for MatchCast."""

from matchcast.config.engines import (
    AlgorithmConfig,
    CalibrationConfig,
    EngineConfig,
    EnsembleConfig,
    MonteCarloConfig,
    PredictionConfig,
    WeightConfig,
    get_engine_config,
)
from matchcast.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "AlgorithmConfig",
    "CalibrationConfig",
    "EngineConfig",
    "EnsembleConfig",
    "MonteCarloConfig",
    "PredictionConfig",
    "WeightConfig",
    "get_engine_config",
]
