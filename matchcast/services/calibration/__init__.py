"""Calibration feedback loop for MatchCast."""

from matchcast.services.calibration.adjuster import (
    CalibrationController,
    apply_weight_adjustment,
    calculate_model_weights,
)
from matchcast.services.calibration.analyzer import (
    analyze_algorithm_performance,
    calculate_algorithm_health_score,
    should_pause_algorithm,
)
from matchcast.services.calibration.bins import analyze_bin_calibration, apply_bin_calibration
from matchcast.services.calibration.grading import grade_prediction
from matchcast.services.calibration.integration import apply_confidence_calibration
from matchcast.services.calibration.types import (
    AlgorithmPerformanceWindow,
    ModelWeight,
    PredictionRecord,
    PredictionStatus,
    RecalibrationResult,
    WeightAdjustment,
)

__all__ = [
    "AlgorithmPerformanceWindow",
    "CalibrationController",
    "ModelWeight",
    "PredictionRecord",
    "PredictionStatus",
    "RecalibrationResult",
    "WeightAdjustment",
    "analyze_algorithm_performance",
    "analyze_bin_calibration",
    "apply_bin_calibration",
    "apply_confidence_calibration",
    "apply_weight_adjustment",
    "calculate_algorithm_health_score",
    "calculate_model_weights",
    "grade_prediction",
    "should_pause_algorithm",
]
