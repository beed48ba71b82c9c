"""Domain models for MatchCast.

Only what the forecasting core reads or writes is stored: per-algorithm
stats for consensus weighting, saved predictions and their grades, final
match results for head-to-head history, calibrated model weights, and a
job audit log.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from matchcast.models.base import Base, TimestampMixin


class AlgorithmStats(Base, TimestampMixin):
    """
    Running performance aggregate per algorithm.

    Refreshed after every grading run; read by the weight engine.
    """

    __tablename__ = "algorithm_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    algorithm_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    algorithm_name: Mapped[str] = mapped_column(String(100), nullable=False)
    win_rate: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=0)
    total_predictions: Mapped[int] = mapped_column(Integer, default=0)
    correct_predictions: Mapped[int] = mapped_column(Integer, default=0)
    avg_confidence: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=0)

    def __repr__(self) -> str:
        return f"<AlgorithmStats {self.algorithm_name} {self.correct_predictions}/{self.total_predictions}>"


class StoredPrediction(Base):
    """
    One algorithm's prediction for a match.

    Status moves pending -> won/lost/push when the grading job settles it.
    """

    __tablename__ = "predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    match_id: Mapped[str] = mapped_column(String(64), nullable=False)
    league: Mapped[str | None] = mapped_column(String(20), nullable=True)
    algorithm_id: Mapped[str] = mapped_column(String(64), nullable=False)
    algorithm_name: Mapped[str] = mapped_column(String(100), nullable=False)

    recommended: Mapped[str] = mapped_column(
        String(10), nullable=False, doc="home, away, draw, skip"
    )
    confidence: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    true_probability: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    projected_score_home: Mapped[Decimal | None] = mapped_column(Numeric(6, 1), nullable=True)
    projected_score_away: Mapped[Decimal | None] = mapped_column(Numeric(6, 1), nullable=True)
    expected_value: Mapped[Decimal | None] = mapped_column(Numeric(8, 4), nullable=True)
    kelly_stake_units: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    factors: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    predicted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Grading
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="pending", doc="pending, won, lost, push"
    )
    actual_score_home: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actual_score_away: Mapped[int | None] = mapped_column(Integer, nullable=True)
    accuracy_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    result_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("match_id", "algorithm_id", name="uq_prediction_match_algorithm"),
        Index("idx_predictions_status", "status"),
        Index("idx_predictions_algorithm_time", "algorithm_id", predicted_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<StoredPrediction {self.match_id} {self.algorithm_name}: {self.recommended} {self.status}>"


class MatchResult(Base):
    """Final score of a completed match."""

    __tablename__ = "match_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    match_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    league: Mapped[str | None] = mapped_column(String(20), nullable=True)
    home_team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    away_team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    home_score: Mapped[int] = mapped_column(Integer, nullable=False)
    away_score: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("idx_match_results_teams", "home_team_id", "away_team_id"),
    )

    def __repr__(self) -> str:
        return f"<MatchResult {self.match_id}: {self.home_score}-{self.away_score}>"


class ModelWeightRecord(Base):
    """
    Calibrated weight for one algorithm at one recalibration run.

    Append-only; readers take the latest row per algorithm.
    """

    __tablename__ = "model_weights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    algorithm_id: Mapped[str] = mapped_column(String(64), nullable=False)
    algorithm_name: Mapped[str] = mapped_column(String(100), nullable=False)
    base_weight: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    adjusted_weight: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    adjustment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    min_confidence_threshold: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    calibrated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_model_weights_algorithm_time", "algorithm_id", calibrated_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<ModelWeightRecord {self.algorithm_name} w={self.adjusted_weight}>"


class JobRun(Base):
    """
    Task execution audit log.

    Every scheduled task run is logged here for monitoring and debugging.
    """

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'running', 'success', 'failed'"
    )
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )

    def __repr__(self) -> str:
        return f"<JobRun {self.job_name} status={self.status}>"
