"""
Unit tests for the end-to-end forecast pipeline.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import numpy as np
import pytest

from matchcast.config.engines import (
    ML_POWER_INDEX,
    STATISTICAL_EDGE,
    VALUE_PICK_FINDER,
    EngineConfig,
)
from matchcast.services.calibration.types import ModelWeight
from matchcast.services.consensus.weights import WeightEngine, equal_weights
from matchcast.services.pipeline import ForecastPipeline, blend_weights
from matchcast.services.prediction.algorithms import AlgorithmRegistry
from matchcast.services.prediction.types import Recommendation


def model_weight(
    algorithm_id: str,
    adjusted_weight: float = 0.33,
    multiplier: float = 1.0,
    threshold: float = 45,
) -> ModelWeight:
    return ModelWeight(
        algorithm_id=algorithm_id,
        algorithm_name=algorithm_id,
        base_weight=0.33,
        adjusted_weight=adjusted_weight,
        adjustment_reason="Maintained",
        confidence_multiplier=multiplier,
        min_confidence_threshold=threshold,
        last_updated=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )


def paused_weight(algorithm_id: str) -> ModelWeight:
    return replace(
        model_weight(algorithm_id, adjusted_weight=0.05, multiplier=0.8, threshold=70),
        algorithm_name="Paused",
        base_weight=0.34,
        adjustment_reason="Paused due to severe underperformance",
    )


class TestForecastPipeline:
    """Tests for ForecastPipeline.forecast."""

    def setup_method(self):
        self.registry = AlgorithmRegistry()

    def pipeline(self, stats_reader, seed=7):
        weight_engine = WeightEngine(stats_reader([]), self.registry.ids)
        rng = np.random.default_rng(seed)
        return ForecastPipeline(self.registry, weight_engine, EngineConfig(), rng)

    def test_full_forecast(self, stats_reader, strong_home_match):
        forecast = asyncio.run(
            self.pipeline(stats_reader).forecast(strong_home_match, simulate=True)
        )

        assert len(forecast.predictions) == 3
        assert len(forecast.weights) == 3
        assert forecast.consensus.algorithm_id == "consensus"
        assert forecast.ensemble.algorithm_id == "ensemble"
        assert 40 <= forecast.ensemble.confidence <= 95
        assert forecast.monte_carlo.num_samples == 200
        assert forecast.calibrated == {}
        assert forecast.paused_algorithms == ()

    def test_simulation_is_optional(self, stats_reader, strong_home_match):
        forecast = asyncio.run(self.pipeline(stats_reader).forecast(strong_home_match))

        assert forecast.monte_carlo is None

    def test_seeded_simulation_is_reproducible(self, stats_reader, strong_home_match):
        first = asyncio.run(
            self.pipeline(stats_reader, seed=3).forecast(strong_home_match, simulate=True)
        )
        second = asyncio.run(
            self.pipeline(stats_reader, seed=3).forecast(strong_home_match, simulate=True)
        )

        assert first.monte_carlo == second.monte_carlo

    def test_paused_algorithm_excluded_from_consensus(self, stats_reader, strong_home_match):
        forecast = asyncio.run(
            self.pipeline(stats_reader).forecast(
                strong_home_match, model_weights=[paused_weight(ML_POWER_INDEX)]
            )
        )

        assert forecast.paused_algorithms == (ML_POWER_INDEX,)
        assert len(forecast.predictions) == 3
        assert len(forecast.consensus.component_predictions) == 2
        assert forecast.calibrated[ML_POWER_INDEX].is_paused is True
        assert forecast.calibrated[ML_POWER_INDEX].adjusted_confidence < 62

    def test_all_paused_falls_back_to_everything(self, stats_reader, strong_home_match):
        weights = [paused_weight(algorithm_id) for algorithm_id in self.registry.ids]

        forecast = asyncio.run(
            self.pipeline(stats_reader).forecast(strong_home_match, model_weights=weights)
        )

        assert forecast.paused_algorithms == ()
        assert len(forecast.consensus.component_predictions) == 3

    def test_down_weighted_model_moves_consensus(self, stats_reader, strong_home_match):
        """Statistical Edge (58) loses weight, so the 62s pull the mean up."""
        baseline = asyncio.run(self.pipeline(stats_reader).forecast(strong_home_match))
        model_weights = [
            model_weight(ML_POWER_INDEX, adjusted_weight=0.45),
            model_weight(VALUE_PICK_FINDER, adjusted_weight=0.45),
            model_weight(STATISTICAL_EDGE, adjusted_weight=0.1),
        ]

        forecast = asyncio.run(
            self.pipeline(stats_reader).forecast(strong_home_match, model_weights=model_weights)
        )

        by_id = {w.algorithm_id: w.weight for w in forecast.weights}
        assert by_id[STATISTICAL_EDGE] < by_id[ML_POWER_INDEX]
        assert sum(by_id.values()) == pytest.approx(1.0)
        assert baseline.consensus.weighted_confidence == 61
        assert forecast.consensus.weighted_confidence == 62

    def test_threshold_turns_prediction_into_skip(self, stats_reader, strong_home_match):
        model_weights = [model_weight(VALUE_PICK_FINDER, threshold=65)]

        forecast = asyncio.run(
            self.pipeline(stats_reader).forecast(strong_home_match, model_weights=model_weights)
        )

        components = {p.algorithm_id: p for p in forecast.consensus.component_predictions}
        raw = {p.algorithm_id: p for p in forecast.predictions}
        assert forecast.calibrated[VALUE_PICK_FINDER].meets_threshold is False
        assert components[VALUE_PICK_FINDER].recommended == Recommendation.SKIP
        assert components[VALUE_PICK_FINDER].ev_percentage == 0.0
        assert raw[VALUE_PICK_FINDER].recommended == Recommendation.HOME
        assert components[ML_POWER_INDEX].recommended == Recommendation.HOME
        assert forecast.consensus.unanimous is False

    def test_multiplier_scales_component_confidence(self, stats_reader, strong_home_match):
        model_weights = [model_weight(ML_POWER_INDEX, multiplier=0.9)]

        forecast = asyncio.run(
            self.pipeline(stats_reader).forecast(strong_home_match, model_weights=model_weights)
        )

        components = {p.algorithm_id: p for p in forecast.consensus.component_predictions}
        assert components[ML_POWER_INDEX].confidence == 56
        assert components[STATISTICAL_EDGE].confidence == 58

    def test_to_dict(self, stats_reader, strong_home_match):
        forecast = asyncio.run(
            self.pipeline(stats_reader).forecast(strong_home_match, simulate=True)
        )

        data = forecast.to_dict()

        assert data["ensemble"]["recommended"] == forecast.ensemble.recommended.value
        assert data["monte_carlo"]["num_samples"] == 200
        assert len(data["predictions"]) == 3


class TestBlendWeights:
    """Tests for blend_weights."""

    def test_scaled_and_renormalised(self):
        weights = equal_weights(["a", "b"])

        blended = blend_weights(weights, [model_weight("a", 0.6), model_weight("b", 0.2)])

        assert [w.weight for w in blended] == pytest.approx([0.75, 0.25])

    def test_missing_model_weight_uses_default_share(self):
        weights = equal_weights(["a", "b"])

        blended = blend_weights(weights, [model_weight("a", 0.33)])

        assert [w.weight for w in blended] == pytest.approx([0.5, 0.5])

    def test_zero_total_keeps_original(self):
        weights = equal_weights(["a"])

        blended = blend_weights(weights, [model_weight("a", 0.0)])

        assert blended == weights
