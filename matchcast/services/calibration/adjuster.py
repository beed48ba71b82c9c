"""Model weight and confidence recalibration.

Turns performance windows into adjusted consensus weights, confidence
multipliers and minimum-confidence thresholds, with a recommendation and
severity per algorithm. Every adjustment stays inside fixed bounds:

    weight       [0.05, 0.6] before renormalisation
    multiplier   [0.7, 1.15]
    threshold    [floor, 75]
"""

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone

import structlog

from matchcast.config.engines import CalibrationConfig
from matchcast.services.calibration.analyzer import should_pause_algorithm
from matchcast.services.calibration.types import (
    AlgorithmPerformanceWindow,
    ModelWeight,
    RecalibrationAction,
    RecalibrationRecommendation,
    RecalibrationResult,
    RecommendationType,
    Severity,
    WeightAdjustment,
)
from matchcast.services.prediction.strength import clamp

logger = structlog.get_logger(__name__)

PAUSED_WEIGHT = 0.05
MIN_WEIGHT = 0.05
MAX_WEIGHT = 0.6
COLD_STREAK_PENALTY = 0.05
HOT_STREAK_BONUS = 0.03

MIN_MULTIPLIER = 0.7
MAX_MULTIPLIER = 1.15
STREAK_MULTIPLIER_RUN = 3

BASE_THRESHOLD = 55
MAX_THRESHOLD = 75
MAX_THRESHOLD_INCREASE = 15
MAX_THRESHOLD_DECREASE = 10

SIGNIFICANT_WEIGHT_CHANGE = 0.05
HIGH_SEVERITY_GAP = -15
DEFAULT_WEIGHT = 0.33


def calculate_adjusted_weight(
    performance: AlgorithmPerformanceWindow,
    base_weight: float,
    config: CalibrationConfig,
) -> tuple[float, str]:
    """Adjusted (un-normalised) weight and a human-readable reason."""
    if performance.total_bets < config.min_bets_for_calibration:
        return base_weight, "Insufficient data for adjustment"

    if should_pause_algorithm(performance):
        return PAUSED_WEIGHT, "Paused due to severe underperformance"

    gap = performance.performance_vs_expected
    adjustment = 0.0
    if performance.is_underperforming:
        adjustment = -min(abs(gap) / 100 * 0.3, config.max_weight_change)
        reason = f"Reduced: {gap:.1f}% below expected"
    elif performance.is_overperforming:
        adjustment = min(gap / 100 * 0.2, config.max_weight_change)
        reason = f"Boosted: {gap:.1f}% above expected"
    else:
        reason = "Performing as expected"

    if performance.streak <= -config.cold_streak_threshold:
        adjustment -= COLD_STREAK_PENALTY
        reason += f" (cold streak: {abs(performance.streak)} losses)"
    elif performance.streak >= config.hot_streak_threshold:
        adjustment += HOT_STREAK_BONUS
        reason += f" (hot streak: {performance.streak} wins)"

    return clamp(base_weight + adjustment, MIN_WEIGHT, MAX_WEIGHT), reason


def calculate_confidence_multiplier(
    performance: AlgorithmPerformanceWindow,
    config: CalibrationConfig,
) -> float:
    if performance.total_bets < config.min_bets_for_calibration:
        return 1.0

    error = performance.performance_vs_expected / 100
    multiplier = 1.0
    if performance.is_underperforming:
        # overconfident: scale stated confidence down
        multiplier = 1 - min(abs(error) * 0.5, config.max_confidence_reduction / 100)
    elif performance.is_overperforming:
        multiplier = 1 + min(error * 0.3, config.max_confidence_boost / 100)

    if performance.streak <= -STREAK_MULTIPLIER_RUN:
        multiplier *= 0.95
    elif performance.streak >= STREAK_MULTIPLIER_RUN:
        multiplier *= 1.02

    return clamp(multiplier, MIN_MULTIPLIER, MAX_MULTIPLIER)


def calculate_min_confidence_threshold(
    performance: AlgorithmPerformanceWindow,
    config: CalibrationConfig,
) -> float:
    if performance.total_bets < config.min_bets_for_calibration:
        return BASE_THRESHOLD

    gap = performance.performance_vs_expected
    if performance.is_underperforming:
        increase = min(abs(gap) * 0.3, MAX_THRESHOLD_INCREASE)
        return min(BASE_THRESHOLD + increase, MAX_THRESHOLD)
    if performance.is_overperforming:
        decrease = min(gap * 0.2, MAX_THRESHOLD_DECREASE)
        return max(BASE_THRESHOLD - decrease, config.min_confidence_floor)
    return BASE_THRESHOLD


def generate_recommendation(
    performance: AlgorithmPerformanceWindow,
    config: CalibrationConfig,
) -> RecalibrationRecommendation:
    name = performance.algorithm_name
    gap = performance.performance_vs_expected

    if should_pause_algorithm(performance):
        return RecalibrationRecommendation(
            type=RecommendationType.PAUSE_ALGORITHM,
            algorithm_id=performance.algorithm_id,
            algorithm_name=name,
            severity=Severity.CRITICAL,
            message=f"{name} is severely underperforming and should be paused",
            suggested_action="Temporarily pause this algorithm until performance improves",
            impact=(
                f"Currently {performance.win_rate:.1f}% win rate vs "
                f"{performance.expected_win_rate:.1f}% expected"
            ),
        )

    if performance.is_underperforming:
        return RecalibrationRecommendation(
            type=RecommendationType.DECREASE_CONFIDENCE,
            algorithm_id=performance.algorithm_id,
            algorithm_name=name,
            severity=Severity.HIGH if gap < HIGH_SEVERITY_GAP else Severity.MEDIUM,
            message=f"{name} is underperforming expectations",
            suggested_action="Reduce confidence weight and increase minimum threshold",
            impact=f"{gap:.1f}% below expected win rate",
        )

    if performance.is_overperforming:
        return RecalibrationRecommendation(
            type=RecommendationType.BOOST_ALGORITHM,
            algorithm_id=performance.algorithm_id,
            algorithm_name=name,
            severity=Severity.LOW,
            message=f"{name} is exceeding expectations",
            suggested_action="Consider increasing weight for this algorithm",
            impact=f"+{gap:.1f}% above expected win rate",
        )

    return RecalibrationRecommendation(
        type=RecommendationType.NO_CHANGE,
        algorithm_id=performance.algorithm_id,
        algorithm_name=name,
        severity=Severity.LOW,
        message=f"{name} is performing as expected",
        suggested_action="No adjustment needed",
        impact=f"Within {config.underperformance_threshold:g}% of expected performance",
    )


class CalibrationController:
    """
    Recalibrate every algorithm from its performance window.

    Usage:
        controller = CalibrationController(config)
        result = controller.calculate_model_weights(windows)
    """

    def __init__(self, config: CalibrationConfig | None = None):
        self.config = config or CalibrationConfig()

    def calculate_model_weights(
        self,
        performances: Sequence[AlgorithmPerformanceWindow],
    ) -> RecalibrationResult:
        config = self.config
        weights: list[ModelWeight] = []
        actions: list[RecalibrationAction] = []
        recommendations: list[RecalibrationRecommendation] = []
        now = datetime.now(timezone.utc)

        for performance in performances:
            base_weight = config.base_weight_for(performance.algorithm_id)
            adjusted, reason = calculate_adjusted_weight(performance, base_weight, config)
            multiplier = calculate_confidence_multiplier(performance, config)
            threshold = calculate_min_confidence_threshold(performance, config)

            weights.append(
                ModelWeight(
                    algorithm_id=performance.algorithm_id,
                    algorithm_name=performance.algorithm_name,
                    base_weight=base_weight,
                    adjusted_weight=adjusted,
                    adjustment_reason=reason,
                    confidence_multiplier=multiplier,
                    min_confidence_threshold=threshold,
                    last_updated=now,
                )
            )

            if abs(adjusted - base_weight) > SIGNIFICANT_WEIGHT_CHANGE:
                actions.append(
                    RecalibrationAction(
                        algorithm_id=performance.algorithm_id,
                        action="Weight increased" if adjusted > base_weight else "Weight decreased",
                        previous_value=base_weight,
                        new_value=adjusted,
                        reason=reason,
                    )
                )

            if multiplier != 1.0:
                actions.append(
                    RecalibrationAction(
                        algorithm_id=performance.algorithm_id,
                        action="Confidence multiplier adjusted",
                        previous_value=1.0,
                        new_value=multiplier,
                        reason=(
                            f"Based on {performance.performance_vs_expected:.1f}% "
                            "calibration error"
                        ),
                    )
                )

            recommendations.append(generate_recommendation(performance, config))

        total = sum(w.adjusted_weight for w in weights)
        if total > 0:
            weights = [replace(w, adjusted_weight=w.adjusted_weight / total) for w in weights]
        result = RecalibrationResult(weights, actions, recommendations)

        logger.debug(
            "model_weights_calculated",
            algorithms=len(result.weights),
            actions=len(result.actions),
        )
        return result


def calculate_model_weights(
    performances: Sequence[AlgorithmPerformanceWindow],
    config: CalibrationConfig | None = None,
) -> RecalibrationResult:
    """Convenience wrapper around CalibrationController."""
    return CalibrationController(config).calculate_model_weights(performances)


def apply_weight_adjustment(
    confidence: float,
    algorithm_id: str,
    weights: Sequence[ModelWeight],
) -> WeightAdjustment:
    """
    Scale a confidence by the algorithm's multiplier.

    Algorithms without a calibration record pass through against the 55
    baseline.
    """
    weight = next((w for w in weights if w.algorithm_id == algorithm_id), None)
    if weight is None:
        return WeightAdjustment(confidence, confidence >= BASE_THRESHOLD, DEFAULT_WEIGHT)

    adjusted = confidence * weight.confidence_multiplier
    return WeightAdjustment(
        adjusted_confidence=round(adjusted, 1),
        meets_threshold=adjusted >= weight.min_confidence_threshold,
        weight=weight.adjusted_weight,
    )
