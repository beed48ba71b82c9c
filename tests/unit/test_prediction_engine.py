"""
Unit tests for the base prediction engine and the algorithm registry.
"""

from dataclasses import replace

import pytest

from matchcast.config.engines import (
    ML_POWER_INDEX,
    STATISTICAL_EDGE,
    VALUE_PICK_FINDER,
    AlgorithmConfig,
    AlgorithmThresholds,
    FactorWeights,
    PredictionConfig,
)
from matchcast.services.prediction.algorithms import AlgorithmRegistry
from matchcast.services.prediction.engine import (
    PredictionEngine,
    calculate_factors,
    odds_for_pick,
)
from matchcast.services.prediction.staking import calculate_expected_value
from matchcast.services.prediction.types import (
    HistoricalMatchup,
    InjuryReport,
    OddsSnapshot,
    PredictionContext,
    Recommendation,
    TeamSnapshot,
    WeatherReport,
)


class TestCalculateFactors:
    """Tests for factor computation."""

    def test_differentials(self, strong_home_match):
        """Differentials are home minus away."""
        factors = calculate_factors(strong_home_match, None, PredictionConfig())

        ts = factors.team_strength
        assert ts.differential == pytest.approx(ts.home.overall - ts.away.overall)
        assert ts.differential == pytest.approx(70 / 3)
        assert factors.momentum.differential == pytest.approx(30)
        assert factors.home_advantage == 2.5

    def test_historical_impact(self, neutral_match):
        """8 home wins in 10 -> (0.8 - 0.5) * 20."""
        context = PredictionContext(
            historical=HistoricalMatchup(home_wins=8, away_wins=2, total_games=10)
        )

        factors = calculate_factors(neutral_match, context, PredictionConfig())

        assert factors.historical.impact == pytest.approx(6.0)

    def test_empty_history_is_ignored(self, neutral_match):
        context = PredictionContext(historical=HistoricalMatchup())

        factors = calculate_factors(neutral_match, context, PredictionConfig())

        assert factors.historical is None

    def test_injuries_and_weather_recorded(self, neutral_match):
        context = PredictionContext(
            injuries=InjuryReport(home_impact=3.0, away_impact=1.0),
            weather=WeatherReport(condition="rain", impact=-2.0),
        )

        factors = calculate_factors(neutral_match, context, PredictionConfig())

        assert factors.injuries.differential == pytest.approx(2.0)
        assert factors.weather.condition == "rain"


class TestPredictionEngine:
    """Tests for the default algorithm variants."""

    def setup_method(self):
        self.registry = AlgorithmRegistry()

    def test_ml_power_index_momentum_bonus(self, strong_home_match):
        """
        50 + 23.33*0.35 + 2.5*0.12 + 30*0.25*0.1 = 59.22, +3 momentum bonus -> 62.22.
        """
        result = self.registry.get(ML_POWER_INDEX).predict(strong_home_match)

        assert result.recommended == Recommendation.HOME
        assert result.confidence == 62, f"Expected 62, got {result.confidence}"
        assert result.true_probability == pytest.approx(0.6222, abs=1e-4)
        assert result.implied_odds == pytest.approx(1.61)

    def test_default_odds_used_without_market(self, strong_home_match):
        """No odds -> priced at 2.0; EV = 2p - 1 on the unrounded p = 0.6222."""
        result = self.registry.get(ML_POWER_INDEX).predict(strong_home_match)

        assert result.expected_value == pytest.approx(0.2443)
        assert result.ev_percentage == pytest.approx(24.43)
        assert result.kelly_fraction == pytest.approx(0.0611)
        assert result.kelly_stake_units == pytest.approx(6.11)

    def test_value_pick_finder_boost(self, strong_home_match):
        """Raw 56.53 (reported 57) with EV 13.07% -> boosted to 62, EV kept."""
        result = self.registry.get(VALUE_PICK_FINDER).predict(strong_home_match)

        assert result.confidence == 62
        assert result.true_probability == pytest.approx(0.62)
        assert result.ev_percentage == pytest.approx(13.07)

    def test_statistical_edge_history_boost(self, strong_home_match):
        """Historical impact 6 is scaled to 9 with 10 games on record."""
        context = PredictionContext(
            historical=HistoricalMatchup(home_wins=8, away_wins=2, total_games=10)
        )

        result = self.registry.get(STATISTICAL_EDGE).predict(strong_home_match, context)

        assert result.factors.historical.impact == pytest.approx(9.0)
        assert result.confidence == 60

    def test_small_history_not_boosted(self, strong_home_match):
        context = PredictionContext(
            historical=HistoricalMatchup(home_wins=3, away_wins=1, total_games=4)
        )

        result = self.registry.get(STATISTICAL_EDGE).predict(strong_home_match, context)

        assert result.factors.historical.impact == pytest.approx(5.0)

    def test_skip_has_zero_ev(self, strong_home_match):
        """A heavy underdog at home is skipped and not priced."""
        reversed_match = replace(
            strong_home_match,
            home_team=strong_home_match.away_team,
            away_team=strong_home_match.home_team,
        )

        for engine in self.registry.engines():
            result = engine.predict(reversed_match)
            assert result.recommended == Recommendation.SKIP, engine.algorithm_name
            assert result.expected_value == 0.0
            assert result.ev_percentage == 0.0
            assert result.kelly_fraction == 0.0
            assert result.kelly_stake_units == 0.0

    def test_away_pick_uses_away_odds(self, strong_home_match):
        match = replace(
            strong_home_match,
            home_team=TeamSnapshot(id="h", name="Home", record="10-10"),
            away_team=TeamSnapshot(id="a", name="Away", record="14-6"),
            odds=OddsSnapshot(home_win=1.5, away_win=2.6),
        )

        result = self.registry.get(ML_POWER_INDEX).predict(match)

        assert result.recommended == Recommendation.AWAY
        assert result.confidence == 48
        assert result.true_probability == pytest.approx(0.4843, abs=1e-4)
        expected = calculate_expected_value(result.true_probability, 2.6)
        assert result.expected_value == pytest.approx(expected.expected_value)

    def test_context_odds_override_match_odds(self, strong_home_match):
        match = replace(strong_home_match, odds=OddsSnapshot(home_win=1.2, away_win=5.0))
        context = PredictionContext(odds=OddsSnapshot(home_win=3.0, away_win=1.4))

        result = self.registry.get(ML_POWER_INDEX).predict(match, context)

        expected = calculate_expected_value(result.true_probability, 3.0)
        assert result.ev_percentage == pytest.approx(expected.ev_percentage)

    def test_skip_decided_on_unrounded_confidence(self, strong_home_match):
        """Raw 47.97 reports as 48 but stays under the 48 skip threshold."""
        match = replace(
            strong_home_match,
            home_team=TeamSnapshot(id="h", name="Home", record="10-10"),
            away_team=TeamSnapshot(id="a", name="Away", record="15-5"),
        )

        result = self.registry.get(ML_POWER_INDEX).predict(match)

        assert result.confidence == 48
        assert result.recommended == Recommendation.SKIP
        assert result.expected_value == 0.0
        assert result.true_probability == pytest.approx(0.4797, abs=1e-4)

    def test_custom_variant_skips_just_under_threshold(self, neutral_match):
        """50 + 2.0 * -0.2 = 49.6: reported 50, skipped at threshold 50."""
        config = AlgorithmConfig(
            id="edge",
            name="Edge",
            weights=FactorWeights(0.3, -0.2, 0, 0, 0, 0),
            thresholds=AlgorithmThresholds(40, 50, 65),
        )

        result = PredictionEngine(config).predict(neutral_match)

        assert result.confidence == 50
        assert result.recommended == Recommendation.SKIP
        assert result.true_probability == pytest.approx(0.496)

    def test_confidence_bounds(self, strong_home_match, neutral_match):
        """Confidence always within [min_confidence, 85]."""
        for engine in self.registry.engines():
            for match in (strong_home_match, neutral_match):
                result = engine.predict(match)
                assert engine.config.thresholds.min_confidence <= result.confidence <= 85

    def test_prediction_is_deterministic(self, strong_home_match):
        """Same input, same output (apart from the timestamp)."""
        engine = self.registry.get(ML_POWER_INDEX)

        first = engine.predict(strong_home_match).to_dict()
        second = engine.predict(strong_home_match).to_dict()
        first.pop("generated_at")
        second.pop("generated_at")

        assert first == second

    def test_predict_batch(self, strong_home_match, neutral_match):
        engine = self.registry.get(STATISTICAL_EDGE)

        results = engine.predict_batch([strong_home_match, neutral_match])

        assert [r.match_id for r in results] == [strong_home_match.id, neutral_match.id]

    def test_to_dict_serializes_enums(self, strong_home_match):
        data = self.registry.get(ML_POWER_INDEX).predict(strong_home_match).to_dict()

        assert data["recommended"] == "home"
        assert isinstance(data["generated_at"], str)
        assert data["factors"]["team_strength"]["home"]["offense"] == pytest.approx(60)


class TestOddsForPick:
    def test_skip_has_no_price(self):
        assert odds_for_pick(Recommendation.SKIP, None, 2.0) is None

    def test_draw_price(self):
        odds = OddsSnapshot(home_win=2.1, away_win=3.4, draw=3.2)

        assert odds_for_pick(Recommendation.DRAW, odds, 2.0) == 3.2
        assert odds_for_pick(Recommendation.HOME, odds, 2.0) == 2.1
        assert odds_for_pick(Recommendation.AWAY, None, 2.0) == 2.0


class TestAlgorithmRegistry:
    """Tests for AlgorithmRegistry."""

    def test_default_variants(self):
        registry = AlgorithmRegistry()

        assert len(registry) == 3
        assert registry.ids == [ML_POWER_INDEX, VALUE_PICK_FINDER, STATISTICAL_EDGE]
        assert registry.name_for(VALUE_PICK_FINDER) == "Value Pick Finder"
        assert ML_POWER_INDEX in registry

    def test_unknown_id_falls_back_to_base_engine(self, strong_home_match):
        registry = AlgorithmRegistry()

        engine = registry.get("no-such-algorithm")
        result = engine.predict(strong_home_match)

        assert isinstance(engine, PredictionEngine)
        assert engine.algorithm_name == "Default Algorithm"
        assert result.algorithm_id == "no-such-algorithm"
        assert registry.name_for("no-such-algorithm") == "Unknown"

    def test_duplicate_ids_rejected(self):
        config = AlgorithmConfig(id="dup", name="One")

        with pytest.raises(ValueError, match="Duplicate"):
            AlgorithmRegistry([config, replace(config, name="Two")])

    def test_unknown_hook_rejected(self):
        config = AlgorithmConfig(id="x", name="Broken", confidence_hook="does_not_exist")

        with pytest.raises(ValueError, match="Unknown confidence hook"):
            AlgorithmRegistry([config])
