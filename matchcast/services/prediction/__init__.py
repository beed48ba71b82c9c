"""Prediction module for MatchCast."""

from matchcast.services.prediction.algorithms import AlgorithmRegistry
from matchcast.services.prediction.engine import PredictionEngine
from matchcast.services.prediction.strength import (
    TeamStrengthCalculator,
    calculate_team_strength,
)

__all__ = [
    "AlgorithmRegistry",
    "PredictionEngine",
    "TeamStrengthCalculator",
    "calculate_team_strength",
]
