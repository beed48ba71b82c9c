"""Prediction API endpoints."""

from datetime import datetime, timedelta, timezone
from typing import Any

import numpy as np
import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from matchcast.api.dependencies import (
    get_config,
    get_historical_repository,
    get_model_weight_repository,
    get_prediction_repository,
    get_registry,
    get_weight_engine,
)
from matchcast.config import EngineConfig, get_settings
from matchcast.services.calibration.bins import analyze_bin_calibration
from matchcast.services.consensus.weights import WeightEngine
from matchcast.services.pipeline import ForecastPipeline
from matchcast.services.prediction.algorithms import AlgorithmRegistry
from matchcast.services.prediction.types import (
    HistoricalMatchup,
    InjuryReport,
    MatchInput,
    MatchStatus,
    OddsSnapshot,
    PredictionContext,
    ScoreLine,
    SpreadLine,
    TeamSnapshot,
    TotalLine,
    WeatherReport,
)
from matchcast.services.repositories import (
    SqlHistoricalRepository,
    SqlModelWeightRepository,
    SqlPredictionRepository,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


class TeamModel(BaseModel):
    id: str
    name: str
    record: str | None = None
    recent_form: list[str] = Field(default_factory=list, description="Most recent first, W/L/D")
    logo: str | None = None
    short_name: str | None = None


class SpreadModel(BaseModel):
    home: float
    away: float
    home_odds: float
    away_odds: float


class TotalModel(BaseModel):
    line: float
    over_odds: float
    under_odds: float


class OddsModel(BaseModel):
    home_win: float
    away_win: float
    draw: float | None = None
    spread: SpreadModel | None = None
    total: TotalModel | None = None


class ScoreModel(BaseModel):
    home: int
    away: int
    period: str | None = None


class MatchModel(BaseModel):
    id: str
    league: str
    start_time: datetime
    status: MatchStatus = MatchStatus.SCHEDULED
    home_team: TeamModel
    away_team: TeamModel
    score: ScoreModel | None = None
    odds: OddsModel | None = None
    venue: str | None = None


class HistoricalModel(BaseModel):
    home_wins: int = 0
    away_wins: int = 0
    draws: int = 0
    total_games: int = 0
    avg_home_score: float | None = None
    avg_away_score: float | None = None


class InjuryModel(BaseModel):
    home_impact: float = 0.0
    away_impact: float = 0.0


class WeatherModel(BaseModel):
    condition: str
    impact: float = 0.0
    temperature: float | None = None
    wind: float | None = None


class ContextModel(BaseModel):
    historical: HistoricalModel | None = None
    injuries: InjuryModel | None = None
    weather: WeatherModel | None = None
    odds: OddsModel | None = None


class PredictionRequest(BaseModel):
    """Match to forecast plus optional context."""

    match: MatchModel
    context: ContextModel | None = None
    simulate: bool = Field(False, description="Run the Monte Carlo simulation")
    seed: int | None = Field(None, description="Seed for reproducible simulation")
    save: bool = Field(False, description="Persist predictions for grading")


class ForecastResponse(BaseModel):
    predictions: list[dict[str, Any]]
    weights: list[dict[str, Any]]
    consensus: dict[str, Any]
    ensemble: dict[str, Any]
    monte_carlo: dict[str, Any] | None = None
    calibrated: dict[str, dict[str, Any]] = Field(default_factory=dict)
    paused_algorithms: list[str] = Field(default_factory=list)


class AlgorithmInfo(BaseModel):
    id: str
    name: str
    description: str
    version: str
    weights: dict[str, float]
    thresholds: dict[str, float]
    hooks: dict[str, str | None]


def _team(model: TeamModel) -> TeamSnapshot:
    return TeamSnapshot(
        id=model.id,
        name=model.name,
        record=model.record,
        recent_form=tuple(model.recent_form),
        logo=model.logo,
        short_name=model.short_name,
    )


def _odds(model: OddsModel | None) -> OddsSnapshot | None:
    if model is None:
        return None
    return OddsSnapshot(
        home_win=model.home_win,
        away_win=model.away_win,
        draw=model.draw,
        spread=SpreadLine(**model.spread.model_dump()) if model.spread else None,
        total=TotalLine(**model.total.model_dump()) if model.total else None,
    )


def to_match_input(model: MatchModel) -> MatchInput:
    return MatchInput(
        id=model.id,
        home_team=_team(model.home_team),
        away_team=_team(model.away_team),
        league=model.league,
        start_time=model.start_time,
        status=model.status,
        score=ScoreLine(**model.score.model_dump()) if model.score else None,
        odds=_odds(model.odds),
        venue=model.venue,
    )


def to_context(
    model: ContextModel | None,
    historical: HistoricalMatchup | None = None,
) -> PredictionContext:
    if model is None:
        return PredictionContext(historical=historical)
    return PredictionContext(
        historical=HistoricalMatchup(**model.historical.model_dump())
        if model.historical
        else historical,
        injuries=InjuryReport(**model.injuries.model_dump()) if model.injuries else None,
        weather=WeatherReport(**model.weather.model_dump()) if model.weather else None,
        odds=_odds(model.odds),
    )


def to_algorithm_info(registry: AlgorithmRegistry, algorithm_id: str) -> AlgorithmInfo:
    config = next(c for c in registry.configs if c.id == algorithm_id)
    return AlgorithmInfo(
        id=config.id,
        name=config.name,
        description=config.description,
        version=config.version,
        weights=vars(config.weights).copy(),
        thresholds=vars(config.thresholds).copy(),
        hooks={
            "confidence": config.confidence_hook,
            "factors": config.factors_hook,
            "result": config.result_hook,
        },
    )


@router.post("", response_model=ForecastResponse)
async def create_prediction(
    request: PredictionRequest,
    registry: AlgorithmRegistry = Depends(get_registry),
    weight_engine: WeightEngine = Depends(get_weight_engine),
    config: EngineConfig = Depends(get_config),
    historical_repo: SqlHistoricalRepository = Depends(get_historical_repository),
    weight_repo: SqlModelWeightRepository = Depends(get_model_weight_repository),
    prediction_repo: SqlPredictionRepository = Depends(get_prediction_repository),
):
    """
    Forecast a match.

    Runs every registered algorithm, the weighted consensus and the ensemble.
    Head-to-head history is looked up when the request does not supply it;
    the latest calibrated model weights and confidence-bin factors are
    applied per algorithm and reported next to the raw confidences.
    """
    match = to_match_input(request.match)

    historical = None
    if request.context is None or request.context.historical is None:
        historical = await historical_repo.get_matchup(match.home_team.id, match.away_team.id)
    context = to_context(request.context, historical)

    model_weights = await weight_repo.get_latest()
    bins = None
    if model_weights:
        since = datetime.now(timezone.utc) - timedelta(days=config.calibration.window_days)
        bins = analyze_bin_calibration(await prediction_repo.get_settled_since(since))

    seed = request.seed if request.seed is not None else get_settings().monte_carlo_seed
    rng = np.random.default_rng(seed) if seed is not None else None
    pipeline = ForecastPipeline(registry, weight_engine, config, rng)
    forecast = await pipeline.forecast(
        match,
        context,
        simulate=request.simulate,
        model_weights=model_weights,
        bins=bins,
    )

    if request.save:
        saved = await prediction_repo.save_batch(forecast.predictions, match.league)
        logger.info("predictions_saved", match_id=match.id, count=saved)

    return ForecastResponse(**forecast.to_dict())


@router.get("/algorithms", response_model=list[AlgorithmInfo])
async def list_algorithms(registry: AlgorithmRegistry = Depends(get_registry)):
    """Registered algorithms with their weights, thresholds and hooks."""
    return [to_algorithm_info(registry, algorithm_id) for algorithm_id in registry.ids]


@router.get("/algorithms/{algorithm_id}", response_model=AlgorithmInfo)
async def get_algorithm(
    algorithm_id: str,
    registry: AlgorithmRegistry = Depends(get_registry),
):
    if algorithm_id not in registry:
        raise HTTPException(status_code=404, detail="Algorithm not found")
    return to_algorithm_info(registry, algorithm_id)
