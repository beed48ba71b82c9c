"""Ensemble module for MatchCast."""

from matchcast.services.ensemble.patterns import SequentialPattern, detect_sequential_pattern
from matchcast.services.ensemble.stacker import (
    EnsembleResult,
    EnsembleStacker,
    run_advanced_ensemble,
)

__all__ = [
    "EnsembleResult",
    "EnsembleStacker",
    "SequentialPattern",
    "detect_sequential_pattern",
    "run_advanced_ensemble",
]
