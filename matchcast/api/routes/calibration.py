"""Calibration API endpoints."""

from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from matchcast.api.dependencies import (
    get_config,
    get_model_weight_repository,
    get_prediction_repository,
)
from matchcast.config import EngineConfig
from matchcast.services.calibration.adjuster import CalibrationController
from matchcast.services.calibration.analyzer import (
    analyze_all,
    calculate_algorithm_health_score,
    calculate_overall_health,
)
from matchcast.services.calibration.bins import analyze_bin_calibration
from matchcast.services.calibration.types import AlgorithmPerformanceWindow
from matchcast.services.prediction.types import to_jsonable
from matchcast.services.repositories import SqlModelWeightRepository, SqlPredictionRepository

router = APIRouter(prefix="/api/calibration", tags=["calibration"])


class ModelWeightResponse(BaseModel):
    algorithm_id: str
    algorithm_name: str
    base_weight: float
    adjusted_weight: float
    adjustment_reason: str
    confidence_multiplier: float
    min_confidence_threshold: float
    last_updated: datetime


class PerformanceWindowModel(BaseModel):
    """Rolling performance for one algorithm, as produced by the analyzer."""

    algorithm_id: str
    algorithm_name: str
    window_days: int = 14
    total_bets: int = Field(ge=0)
    wins: int = Field(ge=0)
    losses: int = Field(ge=0)
    win_rate: float
    expected_win_rate: float
    performance_vs_expected: float
    is_underperforming: bool = False
    is_overperforming: bool = False
    streak: int = 0
    avg_confidence: float = 0.0
    recent_results: list[str] = Field(default_factory=list)


class PreviewResponse(BaseModel):
    weights: list[dict[str, Any]]
    actions: list[dict[str, Any]]
    recommendations: list[dict[str, Any]]
    health_scores: dict[str, int]
    overall_health: float


@router.get("/weights", response_model=list[ModelWeightResponse])
async def latest_weights(
    weight_repo: SqlModelWeightRepository = Depends(get_model_weight_repository),
):
    """Most recent calibrated weight per algorithm."""
    weights = await weight_repo.get_latest()
    return [ModelWeightResponse(**asdict(w)) for w in weights]


@router.post("/preview", response_model=PreviewResponse)
async def preview_recalibration(
    windows: list[PerformanceWindowModel],
    config: EngineConfig = Depends(get_config),
):
    """
    Dry-run recalibration.

    Computes weights, actions and recommendations for the supplied windows
    without writing anything.
    """
    performances = [
        AlgorithmPerformanceWindow(
            **{**w.model_dump(), "recent_results": tuple(w.recent_results)}
        )
        for w in windows
    ]
    result = CalibrationController(config.calibration).calculate_model_weights(performances)
    data = result.to_dict()

    return PreviewResponse(
        weights=data["weights"],
        actions=data["actions"],
        recommendations=data["recommendations"],
        health_scores={
            p.algorithm_id: calculate_algorithm_health_score(p) for p in performances
        },
        overall_health=round(calculate_overall_health(performances), 1),
    )



class PerformanceResponse(BaseModel):
    window_days: int
    windows: list[PerformanceWindowModel]
    health_scores: dict[str, int]
    overall_health: float


class BinCalibrationResponse(BaseModel):
    bins: list[dict[str, Any]]
    overall_adjustment_factor: float
    is_calibrated: bool
    recommendations: list[dict[str, Any]]


def _window_start(config: EngineConfig) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=config.calibration.window_days)


@router.get("/performance", response_model=PerformanceResponse)
async def performance(
    config: EngineConfig = Depends(get_config),
    prediction_repo: SqlPredictionRepository = Depends(get_prediction_repository),
):
    """Rolling performance window and health score per algorithm."""
    window_days = config.calibration.window_days
    records = await prediction_repo.get_settled_since(_window_start(config))
    windows = analyze_all(records, window_days, config.calibration)

    return PerformanceResponse(
        window_days=window_days,
        windows=[PerformanceWindowModel(**to_jsonable(asdict(w))) for w in windows],
        health_scores={w.algorithm_id: calculate_algorithm_health_score(w) for w in windows},
        overall_health=round(calculate_overall_health(windows), 1),
    )


@router.get("/bins", response_model=BinCalibrationResponse)
async def confidence_bins(
    config: EngineConfig = Depends(get_config),
    prediction_repo: SqlPredictionRepository = Depends(get_prediction_repository),
):
    """Stated confidence vs actual win rate per 5-point confidence bin."""
    records = await prediction_repo.get_settled_since(_window_start(config))
    return BinCalibrationResponse(**asdict(analyze_bin_calibration(records)))
