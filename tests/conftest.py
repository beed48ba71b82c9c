"""Pytest configuration and fixtures for MatchCast tests."""

from datetime import datetime, timedelta, timezone

import pytest

from matchcast.services.calibration.types import PredictionRecord, PredictionStatus
from matchcast.services.consensus.weights import AlgorithmStatsRow
from matchcast.services.prediction.types import (
    NEUTRAL_FACTORS,
    MatchInput,
    PredictionResult,
    ProjectedScore,
    Recommendation,
    TeamSnapshot,
)

KICKOFF = datetime(2026, 3, 14, 19, 30, tzinfo=timezone.utc)


def build_prediction(
    algorithm_id: str,
    recommended: Recommendation = Recommendation.HOME,
    confidence: float = 60,
    ev_percentage: float = 0.0,
    home: float = 110.0,
    away: float = 105.0,
) -> PredictionResult:
    """PredictionResult with only the fields the fusion engines read filled in."""
    return PredictionResult(
        match_id="match-1",
        recommended=recommended,
        confidence=confidence,
        true_probability=confidence / 100,
        projected_score=ProjectedScore(home=home, away=away),
        implied_odds=round(100 / confidence, 2),
        expected_value=ev_percentage / 100,
        ev_percentage=ev_percentage,
        kelly_fraction=0.0,
        kelly_stake_units=0.0,
        factors=NEUTRAL_FACTORS,
        algorithm_id=algorithm_id,
        algorithm_name=algorithm_id.upper(),
        generated_at=KICKOFF,
    )


def build_records(
    algorithm_id: str,
    statuses: list[PredictionStatus],
    confidence: float = 60,
) -> list[PredictionRecord]:
    """Records in chronological order (last element is the most recent)."""
    return [
        PredictionRecord(
            algorithm_id=algorithm_id,
            algorithm_name=algorithm_id.upper(),
            confidence=confidence,
            status=status,
            predicted_at=KICKOFF + timedelta(hours=i),
        )
        for i, status in enumerate(statuses)
    ]


class FakeStatsReader:
    """In-memory AlgorithmStatsReader."""

    def __init__(self, rows: list[AlgorithmStatsRow] | None = None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error
        self.calls = 0

    async def get_algorithm_stats(self) -> list[AlgorithmStatsRow]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.rows)


@pytest.fixture
def strong_home_match():
    """NBA fixture where the home side is clearly stronger."""
    return MatchInput(
        id="nba-2026-0314-bos-det",
        home_team=TeamSnapshot(
            id="bos",
            name="Boston",
            record="15-5",
            recent_form=("W", "W", "W", "L", "L"),
        ),
        away_team=TeamSnapshot(
            id="det",
            name="Detroit",
            record="5-15",
            recent_form=("L", "L", "L", "W", "W"),
        ),
        league="NBA",
        start_time=KICKOFF,
    )


@pytest.fixture
def neutral_match():
    """Two teams with no record or form."""
    return MatchInput(
        id="epl-2026-0314-ars-che",
        home_team=TeamSnapshot(id="ars", name="Arsenal"),
        away_team=TeamSnapshot(id="che", name="Chelsea"),
        league="EPL",
        start_time=KICKOFF,
    )


@pytest.fixture
def algorithm_ids():
    return ["alg-a", "alg-b", "alg-c"]


@pytest.fixture
def make_prediction():
    return build_prediction


@pytest.fixture
def make_records():
    return build_records


@pytest.fixture
def stats_reader():
    return FakeStatsReader
