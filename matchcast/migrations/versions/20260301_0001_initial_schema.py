"""Initial schema for MatchCast.

Revision ID: 0001
Revises:
Create Date: 2026-03-01

Tables for the forecasting feedback loop:
- algorithm_stats: running win rate per algorithm (consensus weighting)
- predictions: saved algorithm picks and their grades
- match_results: final scores (grading and head-to-head history)
- model_weights: append-only recalibration output
- job_runs: task audit log
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Algorithm stats table
    op.create_table(
        "algorithm_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("algorithm_id", sa.String(length=64), nullable=False),
        sa.Column("algorithm_name", sa.String(length=100), nullable=False),
        sa.Column("win_rate", sa.Numeric(precision=6, scale=2), nullable=True),
        sa.Column("total_predictions", sa.Integer(), nullable=True),
        sa.Column("correct_predictions", sa.Integer(), nullable=True),
        sa.Column("avg_confidence", sa.Numeric(precision=6, scale=2), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("algorithm_id"),
    )

    # Predictions table
    op.create_table(
        "predictions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.String(length=64), nullable=False),
        sa.Column("league", sa.String(length=20), nullable=True),
        sa.Column("algorithm_id", sa.String(length=64), nullable=False),
        sa.Column("algorithm_name", sa.String(length=100), nullable=False),
        sa.Column("recommended", sa.String(length=10), nullable=False),
        sa.Column("confidence", sa.Numeric(precision=6, scale=2), nullable=False),
        sa.Column("true_probability", sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column("projected_score_home", sa.Numeric(precision=6, scale=1), nullable=True),
        sa.Column("projected_score_away", sa.Numeric(precision=6, scale=1), nullable=True),
        sa.Column("expected_value", sa.Numeric(precision=8, scale=4), nullable=True),
        sa.Column("kelly_stake_units", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("factors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("predicted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=10), nullable=False, server_default="pending"),
        sa.Column("actual_score_home", sa.Integer(), nullable=True),
        sa.Column("actual_score_away", sa.Integer(), nullable=True),
        sa.Column("accuracy_rating", sa.Integer(), nullable=True),
        sa.Column("result_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("match_id", "algorithm_id", name="uq_prediction_match_algorithm"),
    )
    op.create_index("idx_predictions_status", "predictions", ["status"])
    op.create_index(
        "idx_predictions_algorithm_time",
        "predictions",
        ["algorithm_id", sa.text("predicted_at DESC")],
    )

    # Match results table
    op.create_table(
        "match_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.String(length=64), nullable=False),
        sa.Column("league", sa.String(length=20), nullable=True),
        sa.Column("home_team_id", sa.String(length=64), nullable=False),
        sa.Column("away_team_id", sa.String(length=64), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=False),
        sa.Column("away_score", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("match_id"),
    )
    op.create_index(
        "idx_match_results_teams",
        "match_results",
        ["home_team_id", "away_team_id"],
    )

    # Model weights table
    op.create_table(
        "model_weights",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("algorithm_id", sa.String(length=64), nullable=False),
        sa.Column("algorithm_name", sa.String(length=100), nullable=False),
        sa.Column("base_weight", sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column("adjusted_weight", sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column("adjustment_reason", sa.Text(), nullable=True),
        sa.Column("confidence_multiplier", sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column("min_confidence_threshold", sa.Numeric(precision=6, scale=2), nullable=False),
        sa.Column("calibrated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_model_weights_algorithm_time",
        "model_weights",
        ["algorithm_id", sa.text("calibrated_at DESC")],
    )

    # Job Runs table
    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("records_processed", sa.Integer(), nullable=True, default=0),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("job_runs")
    op.drop_index("idx_model_weights_algorithm_time", table_name="model_weights")
    op.drop_table("model_weights")
    op.drop_index("idx_match_results_teams", table_name="match_results")
    op.drop_table("match_results")
    op.drop_index("idx_predictions_algorithm_time", table_name="predictions")
    op.drop_index("idx_predictions_status", table_name="predictions")
    op.drop_table("predictions")
    op.drop_table("algorithm_stats")
