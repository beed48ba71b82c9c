"""Persistence contracts and their SQLAlchemy implementations.

The engines depend only on the Protocols below; the ``Sql*`` classes back
them with an ``AsyncSession``. Callers own the session and its commit.
"""

from collections.abc import Iterable, Sequence
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.models.domain import (
    AlgorithmStats,
    MatchResult,
    ModelWeightRecord,
    StoredPrediction,
)
from matchcast.services.calibration.grading import GradeResult
from matchcast.services.calibration.types import (
    ModelWeight,
    PredictionRecord,
    PredictionStatus,
)
from matchcast.services.consensus.weights import AlgorithmStatsReader, AlgorithmStatsRow
from matchcast.services.prediction.types import HistoricalMatchup, PredictionResult, to_jsonable

logger = structlog.get_logger(__name__)

HEAD_TO_HEAD_LIMIT = 20


class PredictionWriter(Protocol):
    async def save(self, prediction: PredictionResult, league: str | None = None) -> None: ...

    async def save_batch(
        self, predictions: Sequence[PredictionResult], league: str | None = None
    ) -> int: ...


class HistoricalReader(Protocol):
    async def get_matchup(
        self, home_team_id: str, away_team_id: str
    ) -> HistoricalMatchup | None: ...


class SettledPredictionReader(Protocol):
    async def get_settled_since(self, since: datetime) -> list[PredictionRecord]: ...


class ModelWeightStore(Protocol):
    async def get_latest(self) -> list[ModelWeight]: ...

    async def write(self, weights: Sequence[ModelWeight]) -> int: ...


def _to_float(value: Decimal | float | None, default: float = 0.0) -> float:
    return float(value) if value is not None else default


def aggregate_matchup(
    results: Iterable[MatchResult],
    home_team_id: str,
) -> HistoricalMatchup | None:
    """
    Head-to-head summary from the current home side's point of view.

    home_wins/avg_home_score belong to ``home_team_id`` whichever venue the
    past game was played at.
    """
    home_wins = away_wins = draws = 0
    home_points: list[int] = []
    away_points: list[int] = []

    for result in results:
        if result.home_team_id == home_team_id:
            ours, theirs = result.home_score, result.away_score
        else:
            ours, theirs = result.away_score, result.home_score
        home_points.append(ours)
        away_points.append(theirs)
        if ours > theirs:
            home_wins += 1
        elif theirs > ours:
            away_wins += 1
        else:
            draws += 1

    total = len(home_points)
    if total == 0:
        return None

    return HistoricalMatchup(
        home_wins=home_wins,
        away_wins=away_wins,
        draws=draws,
        total_games=total,
        avg_home_score=round(sum(home_points) / total, 1),
        avg_away_score=round(sum(away_points) / total, 1),
    )


class SqlAlgorithmStatsRepository:
    """Reads and refreshes the per-algorithm stats table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_algorithm_stats(self) -> list[AlgorithmStatsRow]:
        # savepoint: a failed read rolls back alone, the request transaction stays usable
        async with self.session.begin_nested():
            result = await self.session.execute(select(AlgorithmStats))
            rows = result.scalars().all()
        return [
            AlgorithmStatsRow(
                algorithm_id=row.algorithm_id,
                win_rate=_to_float(row.win_rate),
                total_predictions=row.total_predictions or 0,
                correct_predictions=row.correct_predictions or 0,
                avg_confidence=_to_float(row.avg_confidence),
            )
            for row in rows
        ]

    async def get(self, algorithm_id: str) -> AlgorithmStatsRow | None:
        result = await self.session.execute(
            select(AlgorithmStats).where(AlgorithmStats.algorithm_id == algorithm_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return AlgorithmStatsRow(
            algorithm_id=row.algorithm_id,
            win_rate=_to_float(row.win_rate),
            total_predictions=row.total_predictions or 0,
            correct_predictions=row.correct_predictions or 0,
            avg_confidence=_to_float(row.avg_confidence),
        )

    async def upsert(self, stats: AlgorithmStatsRow, algorithm_name: str) -> None:
        result = await self.session.execute(
            select(AlgorithmStats).where(AlgorithmStats.algorithm_id == stats.algorithm_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = AlgorithmStats(algorithm_id=stats.algorithm_id, algorithm_name=algorithm_name)
            self.session.add(row)

        row.win_rate = Decimal(str(stats.win_rate))
        row.total_predictions = stats.total_predictions
        row.correct_predictions = stats.correct_predictions
        row.avg_confidence = Decimal(str(stats.avg_confidence))


class SqlPredictionRepository:
    """Saved predictions: writes, grading reads and settled windows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_row(prediction: PredictionResult, league: str | None) -> StoredPrediction:
        return StoredPrediction(
            match_id=prediction.match_id,
            league=league,
            algorithm_id=prediction.algorithm_id,
            algorithm_name=prediction.algorithm_name,
            recommended=prediction.recommended.value,
            confidence=Decimal(str(prediction.confidence)),
            true_probability=Decimal(str(round(prediction.true_probability, 4))),
            projected_score_home=Decimal(str(prediction.projected_score.home)),
            projected_score_away=Decimal(str(prediction.projected_score.away)),
            expected_value=Decimal(str(prediction.expected_value)),
            kelly_stake_units=Decimal(str(prediction.kelly_stake_units)),
            factors=to_jsonable(asdict(prediction.factors)),
            predicted_at=prediction.generated_at,
            status=PredictionStatus.PENDING.value,
        )

    async def save(self, prediction: PredictionResult, league: str | None = None) -> None:
        self.session.add(self._to_row(prediction, league))

    async def save_batch(
        self, predictions: Sequence[PredictionResult], league: str | None = None
    ) -> int:
        self.session.add_all([self._to_row(p, league) for p in predictions])
        return len(predictions)

    async def get_pending(self, limit: int = 200) -> list[StoredPrediction]:
        result = await self.session.execute(
            select(StoredPrediction)
            .where(
                and_(
                    StoredPrediction.status == PredictionStatus.PENDING.value,
                    StoredPrediction.recommended != "skip",
                )
            )
            .order_by(StoredPrediction.predicted_at)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_graded(
        self,
        prediction: StoredPrediction,
        grade: GradeResult,
        actual_home: int,
        actual_away: int,
    ) -> None:
        prediction.status = grade.status.value
        prediction.actual_score_home = actual_home
        prediction.actual_score_away = actual_away
        prediction.accuracy_rating = grade.accuracy_rating
        prediction.result_updated_at = datetime.now(timezone.utc)

    async def get_settled_since(self, since: datetime) -> list[PredictionRecord]:
        """Won/lost/pending records in the window; pushes carry no signal."""
        result = await self.session.execute(
            select(StoredPrediction).where(
                and_(
                    StoredPrediction.predicted_at >= since,
                    StoredPrediction.status.in_(
                        [
                            PredictionStatus.WON.value,
                            PredictionStatus.LOST.value,
                            PredictionStatus.PENDING.value,
                        ]
                    ),
                )
            )
        )
        return [
            PredictionRecord(
                algorithm_id=row.algorithm_id,
                algorithm_name=row.algorithm_name,
                confidence=_to_float(row.confidence),
                status=PredictionStatus(row.status),
                predicted_at=row.predicted_at,
            )
            for row in result.scalars().all()
        ]


class SqlHistoricalRepository:
    """Head-to-head history from stored match results."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_matchup(
        self, home_team_id: str, away_team_id: str
    ) -> HistoricalMatchup | None:
        result = await self.session.execute(
            select(MatchResult)
            .where(
                or_(
                    and_(
                        MatchResult.home_team_id == home_team_id,
                        MatchResult.away_team_id == away_team_id,
                    ),
                    and_(
                        MatchResult.home_team_id == away_team_id,
                        MatchResult.away_team_id == home_team_id,
                    ),
                )
            )
            .order_by(MatchResult.completed_at.desc())
            .limit(HEAD_TO_HEAD_LIMIT)
        )
        return aggregate_matchup(result.scalars().all(), home_team_id)

    async def get_result(self, match_id: str) -> MatchResult | None:
        result = await self.session.execute(
            select(MatchResult).where(MatchResult.match_id == match_id)
        )
        return result.scalar_one_or_none()


class SqlModelWeightRepository:
    """Append-only calibrated weights; readers take the newest per algorithm."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_latest(self) -> list[ModelWeight]:
        latest = (
            select(
                ModelWeightRecord.algorithm_id,
                func.max(ModelWeightRecord.calibrated_at).label("calibrated_at"),
            )
            .group_by(ModelWeightRecord.algorithm_id)
            .subquery()
        )
        result = await self.session.execute(
            select(ModelWeightRecord).join(
                latest,
                and_(
                    ModelWeightRecord.algorithm_id == latest.c.algorithm_id,
                    ModelWeightRecord.calibrated_at == latest.c.calibrated_at,
                ),
            )
        )
        return [
            ModelWeight(
                algorithm_id=row.algorithm_id,
                algorithm_name=row.algorithm_name,
                base_weight=_to_float(row.base_weight),
                adjusted_weight=_to_float(row.adjusted_weight),
                adjustment_reason=row.adjustment_reason or "",
                confidence_multiplier=_to_float(row.confidence_multiplier, 1.0),
                min_confidence_threshold=_to_float(row.min_confidence_threshold),
                last_updated=row.calibrated_at,
            )
            for row in result.scalars().all()
        ]

    async def write(self, weights: Sequence[ModelWeight]) -> int:
        for weight in weights:
            self.session.add(
                ModelWeightRecord(
                    algorithm_id=weight.algorithm_id,
                    algorithm_name=weight.algorithm_name,
                    base_weight=Decimal(str(round(weight.base_weight, 4))),
                    adjusted_weight=Decimal(str(round(weight.adjusted_weight, 4))),
                    adjustment_reason=weight.adjustment_reason,
                    confidence_multiplier=Decimal(str(round(weight.confidence_multiplier, 4))),
                    min_confidence_threshold=Decimal(
                        str(round(weight.min_confidence_threshold, 2))
                    ),
                    calibrated_at=weight.last_updated,
                )
            )
        logger.debug("model_weights_written", count=len(weights))
        return len(weights)


__all__ = [
    "AlgorithmStatsReader",
    "HistoricalReader",
    "ModelWeightStore",
    "PredictionWriter",
    "SettledPredictionReader",
    "SqlAlgorithmStatsRepository",
    "SqlHistoricalRepository",
    "SqlModelWeightRepository",
    "SqlPredictionRepository",
    "aggregate_matchup",
]
