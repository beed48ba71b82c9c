"""
Unit tests for API request conversion and database-free endpoints.

Route functions are awaited directly with explicit dependencies.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

from matchcast import __version__
from matchcast.api.routes.calibration import (
    PerformanceWindowModel,
    confidence_bins,
    performance,
    preview_recalibration,
)
from matchcast.api.routes.health import health
from matchcast.api.routes.predictions import (
    ContextModel,
    MatchModel,
    get_algorithm,
    list_algorithms,
    to_context,
    to_match_input,
)
from matchcast.config.engines import ML_POWER_INDEX, VALUE_PICK_FINDER, EngineConfig
from matchcast.services.calibration.types import PredictionStatus
from matchcast.services.prediction.algorithms import AlgorithmRegistry
from matchcast.services.prediction.types import HistoricalMatchup, ScoreLine, SpreadLine, TotalLine

MATCH_PAYLOAD = {
    "id": "nba-1",
    "league": "NBA",
    "start_time": "2026-03-14T19:30:00Z",
    "home_team": {"id": "bos", "name": "Boston", "record": "15-5", "recent_form": ["W", "L"]},
    "away_team": {"id": "det", "name": "Detroit"},
    "odds": {"home_win": 1.6, "away_win": 2.4},
}


class TestRequestConversion:
    """Tests for request model conversion."""

    def test_to_match_input(self):
        match = to_match_input(MatchModel(**MATCH_PAYLOAD))

        assert match.home_team.recent_form == ("W", "L")
        assert match.odds.home_win == 1.6
        assert match.start_time == datetime(2026, 3, 14, 19, 30, tzinfo=timezone.utc)
        assert match.score is None
        assert match.odds.spread is None

    def test_spread_total_and_score(self):
        payload = {
            **MATCH_PAYLOAD,
            "status": "live",
            "score": {"home": 54, "away": 50, "period": "Q3"},
            "odds": {
                "home_win": 1.6,
                "away_win": 2.4,
                "spread": {"home": -4.5, "away": 4.5, "home_odds": 1.91, "away_odds": 1.91},
                "total": {"line": 221.5, "over_odds": 1.87, "under_odds": 1.95},
            },
        }

        match = to_match_input(MatchModel(**payload))

        assert match.score == ScoreLine(home=54, away=50, period="Q3")
        assert match.odds.spread == SpreadLine(home=-4.5, away=4.5, home_odds=1.91, away_odds=1.91)
        assert match.odds.total == TotalLine(line=221.5, over_odds=1.87, under_odds=1.95)

    def test_context_odds_carry_lines(self):
        model = ContextModel(
            odds={
                "home_win": 1.9,
                "away_win": 1.9,
                "total": {"line": 2.5, "over_odds": 2.0, "under_odds": 1.8},
            }
        )

        context = to_context(model)

        assert context.odds.total.line == 2.5
        assert context.odds.spread is None

    def test_context_prefers_request_history(self):
        looked_up = HistoricalMatchup(home_wins=1, total_games=1)
        model = ContextModel(historical={"home_wins": 4, "away_wins": 1, "total_games": 5})

        context = to_context(model, looked_up)

        assert context.historical.total_games == 5

    def test_context_falls_back_to_lookup(self):
        looked_up = HistoricalMatchup(home_wins=1, total_games=1)

        assert to_context(None, looked_up).historical is looked_up
        assert to_context(ContextModel(), looked_up).historical is looked_up

    def test_weather_and_injuries(self):
        model = ContextModel(
            injuries={"home_impact": 2.0},
            weather={"condition": "snow", "impact": -1.5},
        )

        context = to_context(model)

        assert context.injuries.home_impact == 2.0
        assert context.weather.condition == "snow"


class TestAlgorithmEndpoints:
    """Tests for the algorithm listing endpoints."""

    def setup_method(self):
        self.registry = AlgorithmRegistry()

    def test_list(self):
        algorithms = asyncio.run(list_algorithms(registry=self.registry))

        assert [a.id for a in algorithms] == self.registry.ids
        value = next(a for a in algorithms if a.id == VALUE_PICK_FINDER)
        assert value.hooks["result"] == "value_ev_boost"
        assert value.weights["weather"] == 0.25

    def test_get(self):
        info = asyncio.run(get_algorithm(ML_POWER_INDEX, registry=self.registry))

        assert info.name == "ML Power Index"
        assert info.thresholds["skip_threshold"] == 48

    def test_get_unknown(self):
        with pytest.raises(HTTPException) as exc:
            asyncio.run(get_algorithm("nope", registry=self.registry))

        assert exc.value.status_code == 404


class TestPreviewRecalibration:
    """Tests for the dry-run recalibration endpoint."""

    def test_preview(self):
        windows = [
            PerformanceWindowModel(
                algorithm_id=ML_POWER_INDEX,
                algorithm_name="ML Power Index",
                total_bets=50,
                wins=20,
                losses=30,
                win_rate=40.0,
                expected_win_rate=60.0,
                performance_vs_expected=-20.0,
                is_underperforming=True,
                streak=-3,
                recent_results=["L", "L", "L"],
            ),
            PerformanceWindowModel(
                algorithm_id=VALUE_PICK_FINDER,
                algorithm_name="Value Pick Finder",
                total_bets=30,
                wins=18,
                losses=12,
                win_rate=60.0,
                expected_win_rate=60.0,
                performance_vs_expected=0.0,
            ),
        ]

        response = asyncio.run(preview_recalibration(windows, config=EngineConfig()))

        assert len(response.weights) == 2
        assert sum(w["adjusted_weight"] for w in response.weights) == pytest.approx(1.0)
        assert response.recommendations[0]["type"] == "decrease_confidence"
        assert set(response.health_scores) == {ML_POWER_INDEX, VALUE_PICK_FINDER}
        assert 0 <= response.overall_health <= 100


class TestHealth:
    """Tests for the liveness endpoint."""

    def test_reports_version_and_algorithms(self):
        registry = AlgorithmRegistry()

        response = asyncio.run(health(registry=registry))

        assert response.status == "healthy"
        assert response.version == __version__
        assert response.algorithms == registry.ids


class FakeSettledReader:
    def __init__(self, records):
        self.records = records
        self.since = None

    async def get_settled_since(self, since):
        self.since = since
        return list(self.records)


class TestCalibrationReports:
    """Tests for the performance and confidence-bin reports."""

    def setup_method(self):
        self.config = EngineConfig()

    def test_performance(self, make_records):
        statuses = [PredictionStatus.WON] * 4 + [PredictionStatus.LOST] * 8
        reader = FakeSettledReader(make_records("alg-a", statuses, confidence=72))

        response = asyncio.run(performance(config=self.config, prediction_repo=reader))

        assert response.window_days == self.config.calibration.window_days
        assert len(response.windows) == 1
        window = response.windows[0]
        assert window.total_bets == 12
        assert window.expected_win_rate == pytest.approx(72.0)
        assert window.is_underperforming is True
        assert window.recent_results[:3] == ["L", "L", "L"]
        assert reader.since < datetime.now(timezone.utc)

    def test_performance_without_history(self):
        response = asyncio.run(
            performance(config=self.config, prediction_repo=FakeSettledReader([]))
        )

        assert response.windows == []
        assert response.overall_health == 0.0

    def test_bins(self, make_records):
        statuses = [PredictionStatus.WON] * 2 + [PredictionStatus.LOST] * 4
        reader = FakeSettledReader(make_records("alg-a", statuses, confidence=72))

        response = asyncio.run(confidence_bins(config=self.config, prediction_repo=reader))

        assert len(response.bins) == 10
        flagged = response.bins[4]
        assert flagged["label"] == "70-74%"
        assert flagged["is_overconfident"] is True
        assert flagged["adjustment_factor"] == pytest.approx(0.7)
        assert response.recommendations[0]["issue"] == "overconfident"
