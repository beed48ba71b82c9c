"""Apply the latest calibration state to a freshly generated confidence."""

from collections.abc import Sequence
from dataclasses import dataclass

from matchcast.config.engines import CalibrationConfig
from matchcast.services.calibration.bins import (
    BinAdjustment,
    BinCalibrationResult,
    apply_bin_calibration,
)
from matchcast.services.calibration.types import ModelWeight
from matchcast.services.prediction.strength import clamp, round_half_up

PAUSE_WEIGHT_BELOW = 0.1
DEFAULT_WEIGHT = 0.33


@dataclass(frozen=True)
class AlgorithmCalibration:
    confidence_multiplier: float
    min_confidence_threshold: float
    weight: float
    is_paused: bool


@dataclass(frozen=True)
class CalibratedConfidence:
    adjusted_confidence: float
    raw_confidence: float
    meets_threshold: bool
    multiplier: float
    is_paused: bool
    bin_adjustment: BinAdjustment


def get_algorithm_calibration(
    algorithm_id: str,
    weights: Sequence[ModelWeight] | None,
    config: CalibrationConfig | None = None,
) -> AlgorithmCalibration:
    config = config or CalibrationConfig()
    weight = next((w for w in weights or () if w.algorithm_id == algorithm_id), None)
    if weight is None:
        return AlgorithmCalibration(
            confidence_multiplier=1.0,
            min_confidence_threshold=config.min_confidence_floor,
            weight=DEFAULT_WEIGHT,
            is_paused=False,
        )
    return AlgorithmCalibration(
        confidence_multiplier=weight.confidence_multiplier,
        min_confidence_threshold=weight.min_confidence_threshold,
        weight=weight.adjusted_weight,
        is_paused=weight.adjusted_weight < PAUSE_WEIGHT_BELOW,
    )


def apply_confidence_calibration(
    raw_confidence: float,
    algorithm_id: str,
    weights: Sequence[ModelWeight] | None = None,
    bins: BinCalibrationResult | None = None,
    config: CalibrationConfig | None = None,
) -> CalibratedConfidence:
    """Algorithm multiplier first, then the confidence-bin factor."""
    calibration = get_algorithm_calibration(algorithm_id, weights, config)

    scaled = raw_confidence * calibration.confidence_multiplier
    bin_result = apply_bin_calibration(scaled, bins)
    adjusted = bin_result.calibrated_confidence

    return CalibratedConfidence(
        adjusted_confidence=clamp(round_half_up(adjusted), 35, 95),
        raw_confidence=raw_confidence,
        meets_threshold=adjusted >= calibration.min_confidence_threshold,
        multiplier=calibration.confidence_multiplier,
        is_paused=calibration.is_paused,
        bin_adjustment=bin_result,
    )
