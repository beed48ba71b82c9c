"""Confidence-bin calibration.

Buckets settled predictions by stated confidence (50-54, 55-59 ... 95-99)
and compares each bucket's actual win rate with its midpoint. Buckets that
are consistently over- or underconfident get a damped multiplier that is
applied to new confidences falling in the same range.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from matchcast.services.calibration.types import PredictionRecord, PredictionStatus
from matchcast.services.prediction.strength import clamp

BIN_START = 50
BIN_END = 95
BIN_WIDTH = 5
MISCALIBRATION_GAP = 5
MIN_FLAG_SAMPLES = 3
MIN_ADJUST_SAMPLES = 5
CALIBRATED_CONFIDENCE_RANGE = (45, 95)


@dataclass(frozen=True)
class CalibrationBin:
    min_confidence: int
    max_confidence: int
    label: str
    actual_win_rate: float
    expected_win_rate: float
    calibration_error: float
    sample_size: int
    adjustment_factor: float
    is_overconfident: bool
    is_underconfident: bool


@dataclass(frozen=True)
class BinRecommendation:
    bin: str
    issue: str  # overconfident, underconfident, low_sample, well_calibrated
    adjustment_applied: float
    description: str


@dataclass(frozen=True)
class BinCalibrationResult:
    bins: list[CalibrationBin] = field(default_factory=list)
    overall_adjustment_factor: float = 1.0
    is_calibrated: bool = True
    recommendations: list[BinRecommendation] = field(default_factory=list)


@dataclass(frozen=True)
class BinAdjustment:
    calibrated_confidence: float
    adjustment_factor: float
    bin_label: str
    was_adjusted: bool


def _adjustment_factor(
    actual: float, expected: float, overconfident: bool, underconfident: bool, total: int
) -> float:
    if total < MIN_ADJUST_SAMPLES:
        return 1.0
    if overconfident:
        ratio = max(0.7, actual / expected)
        return 0.7 + (ratio - 0.7) * 0.8
    if underconfident:
        ratio = min(1.15, actual / expected)
        return 1.0 + (ratio - 1.0) * 0.5
    return 1.0


def analyze_bin_calibration(records: Sequence[PredictionRecord]) -> BinCalibrationResult:
    bins: list[CalibrationBin] = []
    recommendations: list[BinRecommendation] = []

    for low in range(BIN_START, BIN_END + 1, BIN_WIDTH):
        high = low + BIN_WIDTH - 1
        label = f"{low}-{high}%"
        expected = (low + high) / 2

        in_bin = [
            r
            for r in records
            if low <= r.confidence <= high
            and r.status in (PredictionStatus.WON, PredictionStatus.LOST)
        ]
        total = len(in_bin)
        won = sum(1 for r in in_bin if r.status == PredictionStatus.WON)
        actual = won / total * 100 if total else expected
        error = actual - expected

        overconfident = error < -MISCALIBRATION_GAP and total >= MIN_FLAG_SAMPLES
        underconfident = error > MISCALIBRATION_GAP and total >= MIN_FLAG_SAMPLES
        factor = _adjustment_factor(actual, expected, overconfident, underconfident, total)

        bins.append(
            CalibrationBin(
                min_confidence=low,
                max_confidence=high,
                label=label,
                actual_win_rate=round(actual, 1),
                expected_win_rate=expected,
                calibration_error=round(error, 1),
                sample_size=total,
                adjustment_factor=round(factor, 2),
                is_overconfident=overconfident,
                is_underconfident=underconfident,
            )
        )

        if 0 < total < MIN_ADJUST_SAMPLES:
            recommendations.append(
                BinRecommendation(
                    label,
                    "low_sample",
                    1.0,
                    f"Only {total} predictions - need more data for reliable calibration",
                )
            )
        elif overconfident:
            recommendations.append(
                BinRecommendation(
                    label,
                    "overconfident",
                    factor,
                    f"Reducing confidence by {(1 - factor) * 100:.0f}% "
                    f"(actual: {actual:.1f}% vs expected: {expected:g}%)",
                )
            )
        elif underconfident:
            recommendations.append(
                BinRecommendation(
                    label,
                    "underconfident",
                    factor,
                    f"Boosting confidence by {(factor - 1) * 100:.0f}% "
                    f"(actual: {actual:.1f}% vs expected: {expected:g}%)",
                )
            )
        elif total >= MIN_ADJUST_SAMPLES:
            recommendations.append(
                BinRecommendation(
                    label,
                    "well_calibrated",
                    1.0,
                    f"Well calibrated ({actual:.1f}% actual, {total} picks)",
                )
            )

    with_data = [b for b in bins if b.sample_size >= MIN_FLAG_SAMPLES]
    if with_data:
        overall = sum(b.adjustment_factor * b.sample_size for b in with_data) / sum(
            b.sample_size for b in with_data
        )
    else:
        overall = 1.0

    problematic = sum(
        1
        for b in bins
        if (b.is_overconfident or b.is_underconfident) and b.sample_size >= MIN_ADJUST_SAMPLES
    )

    return BinCalibrationResult(
        bins=bins,
        overall_adjustment_factor=round(overall, 2),
        is_calibrated=problematic <= math.ceil(len(bins) * 0.3),
        recommendations=recommendations,
    )


def apply_bin_calibration(
    raw_confidence: float,
    calibration: BinCalibrationResult | None,
) -> BinAdjustment:
    """Scale a confidence by the factor of the bin it falls in."""
    if calibration is None or not calibration.bins:
        return BinAdjustment(raw_confidence, 1.0, "N/A", False)

    index = int((raw_confidence - BIN_START) // BIN_WIDTH)
    index = max(0, min(index, len(calibration.bins) - 1))
    selected = calibration.bins[index]

    calibrated = clamp(raw_confidence * selected.adjustment_factor, *CALIBRATED_CONFIDENCE_RANGE)
    return BinAdjustment(
        calibrated_confidence=round(calibrated, 1),
        adjustment_factor=selected.adjustment_factor,
        bin_label=selected.label,
        was_adjusted=selected.adjustment_factor != 1.0,
    )
