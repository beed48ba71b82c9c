"""
Unit tests for performance analysis and model recalibration.
"""

from dataclasses import FrozenInstanceError, replace
from datetime import datetime, timezone

import pytest

from matchcast.config.engines import (
    ML_POWER_INDEX,
    STATISTICAL_EDGE,
    VALUE_PICK_FINDER,
    CalibrationConfig,
)
from matchcast.services.calibration.adjuster import (
    CalibrationController,
    apply_weight_adjustment,
    calculate_adjusted_weight,
    calculate_confidence_multiplier,
    calculate_min_confidence_threshold,
    calculate_model_weights,
)
from matchcast.services.calibration.analyzer import (
    analyze_algorithm_performance,
    analyze_all,
    calculate_algorithm_health_score,
    calculate_expected_win_rate,
    calculate_overall_health,
    calculate_streak,
    should_pause_algorithm,
)
from matchcast.services.calibration.types import (
    AlgorithmPerformanceWindow,
    ModelWeight,
    PredictionStatus,
    RecommendationType,
    Severity,
    WeightAdjustment,
)

WON = PredictionStatus.WON
LOST = PredictionStatus.LOST


def window(algorithm_id: str = ML_POWER_INDEX, **overrides) -> AlgorithmPerformanceWindow:
    """Performance window performing exactly as expected unless overridden."""
    values = dict(
        algorithm_id=algorithm_id,
        algorithm_name="Algorithm",
        window_days=14,
        total_bets=30,
        wins=18,
        losses=12,
        win_rate=60.0,
        expected_win_rate=60.0,
        performance_vs_expected=0.0,
        is_underperforming=False,
        is_overperforming=False,
        streak=0,
        avg_confidence=60.0,
    )
    values.update(overrides)
    return AlgorithmPerformanceWindow(**values)


UNDERPERFORMING = dict(
    total_bets=50,
    wins=20,
    losses=30,
    win_rate=40.0,
    performance_vs_expected=-20.0,
    is_underperforming=True,
    streak=-3,
)

OVERPERFORMING = dict(
    total_bets=30,
    wins=22,
    losses=8,
    win_rate=75.0,
    performance_vs_expected=15.0,
    is_overperforming=True,
)


class TestAnalyzer:
    """Tests for rolling performance analysis."""

    def test_underperforming_window(self, make_records):
        """20 wins in 50 at a stated 60% -> 20 points below expected."""
        statuses = [WON if i % 5 in (0, 1) else LOST for i in range(50)]
        records = make_records("alg-a", statuses, confidence=60)

        perf = analyze_algorithm_performance("alg-a", "Alpha", records, 14)

        assert perf.total_bets == 50
        assert perf.wins == 20
        assert perf.win_rate == pytest.approx(40.0)
        assert perf.expected_win_rate == pytest.approx(60.0)
        assert perf.performance_vs_expected == pytest.approx(-20.0)
        assert perf.is_underperforming is True
        assert perf.is_overperforming is False
        assert perf.streak == -3
        assert perf.recent_results[:4] == ("L", "L", "L", "W")
        assert len(perf.recent_results) == 10

    def test_unsettled_records_ignored(self, make_records):
        records = make_records("alg-a", [WON, PredictionStatus.PUSH, PredictionStatus.PENDING, LOST])

        perf = analyze_algorithm_performance("alg-a", "Alpha", records, 14)

        assert perf.total_bets == 2
        assert perf.win_rate == 50.0

    def test_small_sample_is_never_flagged(self, make_records):
        records = make_records("alg-a", [LOST] * 5, confidence=80)

        perf = analyze_algorithm_performance("alg-a", "Alpha", records, 14)

        assert perf.performance_vs_expected == pytest.approx(-80.0)
        assert perf.is_underperforming is False

    def test_empty_records(self):
        perf = analyze_algorithm_performance("alg-a", "Alpha", [], 14)

        assert perf.total_bets == 0
        assert perf.win_rate == 0.0
        assert perf.expected_win_rate == 50.0
        assert perf.streak == 0

    def test_streak_follows_most_recent(self, make_records):
        assert calculate_streak(make_records("a", [LOST, WON, WON, WON])) == 3
        assert calculate_streak(make_records("a", [WON, LOST, LOST])) == -2
        assert calculate_streak([]) == 0

    def test_expected_win_rate(self, make_records):
        records = make_records("a", [WON], confidence=70) + make_records("a", [LOST], confidence=60)

        assert calculate_expected_win_rate(records) == pytest.approx(65.0)

    def test_analyze_all_groups_by_algorithm(self, make_records):
        records = make_records("alg-a", [WON] * 3) + make_records("alg-b", [LOST] * 2)

        windows = analyze_all(records, 14)

        assert {w.algorithm_id: w.total_bets for w in windows} == {"alg-a": 3, "alg-b": 2}


class TestPauseAndHealth:
    """Tests for pause rules and health scores."""

    def test_gap_of_exactly_twenty_does_not_pause(self):
        assert should_pause_algorithm(window(**UNDERPERFORMING)) is False

    def test_severe_gap_pauses(self):
        perf = window(total_bets=20, win_rate=30.0, performance_vs_expected=-30.0)

        assert should_pause_algorithm(perf) is True

    def test_long_cold_streak_pauses(self):
        assert should_pause_algorithm(window(total_bets=8, streak=-8)) is True

    def test_low_win_rate_pauses(self):
        perf = window(total_bets=20, win_rate=34.0, performance_vs_expected=-10.0)

        assert should_pause_algorithm(perf) is True

    def test_health_score(self):
        """50 + 5 (win rate) + 3.75 (vs expected) + 4 (streak) = 62.75."""
        perf = window(total_bets=10, win_rate=60.0, performance_vs_expected=5.0, streak=2)

        assert calculate_algorithm_health_score(perf) == 63

    def test_health_score_bounded(self):
        awful = window(total_bets=30, win_rate=0.0, performance_vs_expected=-60.0, streak=-10)
        great = window(total_bets=30, win_rate=100.0, performance_vs_expected=60.0, streak=10)

        assert calculate_algorithm_health_score(awful) == 0
        assert calculate_algorithm_health_score(great) == 100

    def test_overall_health(self):
        assert calculate_overall_health([]) == 0.0
        assert calculate_overall_health([window(), window()]) == pytest.approx(55.0)


class TestAdjuster:
    """Tests for weight, multiplier and threshold adjustment."""

    def setup_method(self):
        self.config = CalibrationConfig()

    def test_underperformer_loses_weight(self):
        weight, reason = calculate_adjusted_weight(window(**UNDERPERFORMING), 0.34, self.config)

        assert weight == pytest.approx(0.28)
        assert reason.startswith("Reduced")

    def test_underperformer_multiplier_and_threshold(self):
        perf = window(**UNDERPERFORMING)

        assert calculate_confidence_multiplier(perf, self.config) == pytest.approx(0.9 * 0.95)
        assert calculate_min_confidence_threshold(perf, self.config) == pytest.approx(61.0)

    def test_overperformer_gains_weight(self):
        perf = window(**OVERPERFORMING)

        weight, reason = calculate_adjusted_weight(perf, 0.33, self.config)

        assert weight == pytest.approx(0.36)
        assert reason.startswith("Boosted")
        assert calculate_confidence_multiplier(perf, self.config) == pytest.approx(1.045)
        assert calculate_min_confidence_threshold(perf, self.config) == pytest.approx(52.0)

    def test_cold_streak_penalty(self):
        perf = window(streak=-5)

        weight, reason = calculate_adjusted_weight(perf, 0.33, self.config)

        assert weight == pytest.approx(0.28)
        assert "cold streak" in reason

    def test_paused_weight(self):
        perf = window(total_bets=20, win_rate=30.0, performance_vs_expected=-30.0, is_underperforming=True)

        weight, reason = calculate_adjusted_weight(perf, 0.34, self.config)

        assert weight == 0.05
        assert reason == "Paused due to severe underperformance"

    def test_insufficient_data_keeps_base(self):
        perf = window(total_bets=5, win_rate=0.0, performance_vs_expected=-60.0)

        weight, reason = calculate_adjusted_weight(perf, 0.34, self.config)

        assert weight == 0.34
        assert reason == "Insufficient data for adjustment"
        assert calculate_confidence_multiplier(perf, self.config) == 1.0
        assert calculate_min_confidence_threshold(perf, self.config) == 55


class TestCalibrationController:
    """Tests for CalibrationController.calculate_model_weights."""

    def setup_method(self):
        self.controller = CalibrationController(CalibrationConfig())

    def test_weights_normalised(self):
        performances = [
            window(ML_POWER_INDEX, **UNDERPERFORMING),
            window(VALUE_PICK_FINDER, **OVERPERFORMING),
            window(STATISTICAL_EDGE),
        ]

        result = self.controller.calculate_model_weights(performances)

        assert sum(w.adjusted_weight for w in result.weights) == pytest.approx(1.0)
        by_id = {w.algorithm_id: w for w in result.weights}
        assert by_id[VALUE_PICK_FINDER].adjusted_weight > by_id[ML_POWER_INDEX].adjusted_weight
        assert by_id[ML_POWER_INDEX].base_weight == 0.34

    def test_normalised_weights_are_immutable(self):
        """Normalisation builds new weights; results cannot be edited afterwards."""
        result = self.controller.calculate_model_weights([window()])
        weight = result.weights[0]

        assert weight.adjusted_weight == pytest.approx(1.0)
        assert weight.base_weight == 0.34
        with pytest.raises(FrozenInstanceError):
            weight.adjusted_weight = 0.5
        with pytest.raises(FrozenInstanceError):
            result.weights = []

    def test_actions_for_significant_changes(self):
        result = self.controller.calculate_model_weights([window(**UNDERPERFORMING)])

        actions = [a.action for a in result.actions]
        assert "Weight decreased" in actions
        assert "Confidence multiplier adjusted" in actions

    def test_no_actions_when_on_target(self):
        result = self.controller.calculate_model_weights([window()])

        assert result.actions == []
        assert result.recommendations[0].type == RecommendationType.NO_CHANGE

    def test_recommendations(self):
        paused = window(
            STATISTICAL_EDGE,
            total_bets=20,
            win_rate=30.0,
            performance_vs_expected=-30.0,
            is_underperforming=True,
        )
        performances = [
            window(ML_POWER_INDEX, **UNDERPERFORMING),
            window(VALUE_PICK_FINDER, **OVERPERFORMING),
            paused,
        ]

        result = calculate_model_weights(performances)

        recs = {r.algorithm_id: r for r in result.recommendations}
        assert recs[ML_POWER_INDEX].type == RecommendationType.DECREASE_CONFIDENCE
        assert recs[ML_POWER_INDEX].severity == Severity.HIGH
        assert recs[VALUE_PICK_FINDER].type == RecommendationType.BOOST_ALGORITHM
        assert recs[VALUE_PICK_FINDER].severity == Severity.LOW
        assert recs[STATISTICAL_EDGE].type == RecommendationType.PAUSE_ALGORITHM
        assert recs[STATISTICAL_EDGE].severity == Severity.CRITICAL

    def test_mild_underperformance_is_medium(self):
        perf = window(**{**UNDERPERFORMING, "performance_vs_expected": -12.0, "win_rate": 48.0})

        result = calculate_model_weights([perf])

        assert result.recommendations[0].severity == Severity.MEDIUM

    def test_to_dict(self):
        data = calculate_model_weights([window()]).to_dict()

        assert data["recommendations"][0]["type"] == "no_change"
        assert isinstance(data["weights"][0]["last_updated"], str)


class TestApplyWeightAdjustment:
    """Tests for apply_weight_adjustment."""

    def setup_method(self):
        self.weights = [
            ModelWeight(
                algorithm_id="alg-a",
                algorithm_name="Alpha",
                base_weight=0.33,
                adjusted_weight=0.3,
                adjustment_reason="Reduced",
                confidence_multiplier=0.9,
                min_confidence_threshold=61,
                last_updated=datetime(2026, 3, 1, tzinfo=timezone.utc),
            )
        ]

    def test_scaled_by_multiplier(self):
        assert apply_weight_adjustment(70, "alg-a", self.weights) == WeightAdjustment(
            adjusted_confidence=63.0, meets_threshold=True, weight=0.3
        )

    def test_below_raised_threshold(self):
        result = apply_weight_adjustment(65, "alg-a", self.weights)

        assert result.adjusted_confidence == pytest.approx(58.5)
        assert result.meets_threshold is False

    def test_unknown_algorithm_passes_through(self):
        passed = apply_weight_adjustment(70, "alg-z", self.weights)

        assert passed == WeightAdjustment(70, True, 0.33)
        assert apply_weight_adjustment(50, "alg-z", []) == WeightAdjustment(50, False, 0.33)

    def test_boosting_multiplier(self):
        weight = replace(self.weights[0], confidence_multiplier=1.1)

        result = apply_weight_adjustment(60, "alg-a", [weight])

        assert result.adjusted_confidence == pytest.approx(66.0)
        assert result.meets_threshold is True
        assert result.weight == 0.3
