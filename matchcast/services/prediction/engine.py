"""Base prediction engine.

One predictor function parameterised by an immutable AlgorithmConfig.
Variants do not subclass; they plug in up to three hook functions:

    factors  -> factors_hook(factors, config)          -> factors
    confidence -> confidence_hook(confidence, factors, config, prediction_config) -> confidence
    result   -> result_hook(result, config, prediction_config) -> result

Pipeline per match:
1. Compute factors (strength, home advantage, momentum, history)
2. Confidence = 50 + weighted factor sum, clamped to [minConfidence, 85]
3. Recommendation: skip below skipThreshold, else home/away by differential
4. Project scores
5. EV / Kelly against the odds for the pick (zero for skip or bad odds)
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timezone

import structlog

from matchcast.config.engines import AlgorithmConfig, PredictionConfig
from matchcast.services.prediction.staking import (
    calculate_expected_value,
    calculate_kelly_criterion,
)
from matchcast.services.prediction.strength import (
    calculate_home_advantage,
    calculate_team_strength,
    clamp,
    project_score,
    round_half_up,
)
from matchcast.services.prediction.types import (
    HistoricalFactor,
    InjuryFactor,
    MatchInput,
    MomentumFactor,
    OddsSnapshot,
    PredictionContext,
    PredictionFactors,
    PredictionResult,
    ProjectedScore,
    Recommendation,
    TeamStrengthFactor,
    WeatherFactor,
)

logger = structlog.get_logger(__name__)

FactorsHook = Callable[[PredictionFactors, AlgorithmConfig], PredictionFactors]
ConfidenceHook = Callable[
    [float, PredictionFactors, AlgorithmConfig, PredictionConfig], float
]
ResultHook = Callable[[PredictionResult, AlgorithmConfig, PredictionConfig], PredictionResult]


def calculate_factors(
    match: MatchInput,
    context: PredictionContext | None,
    prediction_config: PredictionConfig,
) -> PredictionFactors:
    """Build the factor set for a match."""
    home = calculate_team_strength(match.home_team)
    away = calculate_team_strength(match.away_team)

    historical = None
    if context and context.historical and context.historical.total_games > 0:
        data = context.historical
        home_win_pct = data.home_wins / data.total_games
        historical = HistoricalFactor(data=data, impact=(home_win_pct - 0.5) * 20)

    injuries = None
    if context and context.injuries:
        injuries = InjuryFactor(
            home_impact=context.injuries.home_impact,
            away_impact=context.injuries.away_impact,
            differential=context.injuries.home_impact - context.injuries.away_impact,
        )

    weather = None
    if context and context.weather:
        weather = WeatherFactor(
            condition=context.weather.condition,
            impact=context.weather.impact,
        )

    return PredictionFactors(
        team_strength=TeamStrengthFactor(
            home=home,
            away=away,
            differential=home.overall - away.overall,
        ),
        home_advantage=calculate_home_advantage(
            match.league, prediction_config.home_advantage
        ),
        momentum=MomentumFactor(
            home=home.momentum,
            away=away.momentum,
            differential=home.momentum - away.momentum,
        ),
        historical=historical,
        injuries=injuries,
        weather=weather,
    )


def calculate_confidence(
    factors: PredictionFactors,
    config: AlgorithmConfig,
    max_confidence: float = 85,
) -> float:
    """
    Confidence score from factors.

    50 + differential*w_strength + homeAdvantage*w_home
       + momentumDiff*w_momentum*0.1 + historicalImpact*w_historical
    """
    weights = config.weights

    confidence = 50.0
    confidence += factors.team_strength.differential * weights.team_strength
    confidence += factors.home_advantage * weights.home_advantage
    confidence += factors.momentum.differential * weights.momentum * 0.1
    if factors.historical:
        confidence += factors.historical.impact * weights.historical

    return clamp(confidence, config.thresholds.min_confidence, max_confidence)


def determine_recommendation(
    confidence: float,
    factors: PredictionFactors,
    config: AlgorithmConfig,
) -> Recommendation:
    """Skip below the skip threshold, otherwise side with the stronger team."""
    if confidence < config.thresholds.skip_threshold:
        return Recommendation.SKIP
    if factors.team_strength.differential >= 0:
        return Recommendation.HOME
    return Recommendation.AWAY


def odds_for_pick(
    recommended: Recommendation,
    odds: OddsSnapshot | None,
    default_odds: float,
) -> float | None:
    """Decimal odds for the picked side; None when there is nothing to price."""
    if recommended == Recommendation.SKIP:
        return None
    if odds is None:
        return default_odds
    if recommended == Recommendation.HOME:
        return odds.home_win
    if recommended == Recommendation.AWAY:
        return odds.away_win
    return odds.draw


class PredictionEngine:
    """
    Predictor for one algorithm variant.

    Stateless: ``predict`` is a pure function of (match, context) apart from
    the generated_at timestamp.
    """

    def __init__(
        self,
        config: AlgorithmConfig,
        prediction_config: PredictionConfig | None = None,
        factors_hook: FactorsHook | None = None,
        confidence_hook: ConfidenceHook | None = None,
        result_hook: ResultHook | None = None,
    ):
        self.config = config
        self.prediction_config = prediction_config or PredictionConfig()
        self.factors_hook = factors_hook
        self.confidence_hook = confidence_hook
        self.result_hook = result_hook

    @property
    def algorithm_id(self) -> str:
        return self.config.id

    @property
    def algorithm_name(self) -> str:
        return self.config.name

    def predict(
        self,
        match: MatchInput,
        context: PredictionContext | None = None,
    ) -> PredictionResult:
        """Generate a prediction for a single match."""
        pconf = self.prediction_config

        factors = calculate_factors(match, context, pconf)
        if self.factors_hook:
            factors = self.factors_hook(factors, self.config)

        confidence = calculate_confidence(factors, self.config, pconf.max_confidence)
        if self.confidence_hook:
            confidence = self.confidence_hook(confidence, factors, self.config, pconf)

        # decisions use the unrounded value, only the reported field is rounded

        recommended = determine_recommendation(confidence, factors, self.config)
        true_probability = confidence / 100

        odds = (context.odds if context and context.odds else None) or match.odds
        decimal_odds = odds_for_pick(recommended, odds, pconf.default_odds)
        ev = calculate_expected_value(true_probability, decimal_odds)
        kelly = calculate_kelly_criterion(
            true_probability,
            decimal_odds,
            fraction=pconf.kelly_fraction,
            bankroll_units=pconf.bankroll_units,
        )

        home = factors.team_strength.home
        away = factors.team_strength.away
        result = PredictionResult(
            match_id=match.id,
            recommended=recommended,
            confidence=round_half_up(confidence),
            true_probability=true_probability,
            projected_score=ProjectedScore(
                home=project_score(
                    home, away, True, match.league,
                    pconf.base_scores, pconf.score_home_bump,
                ),
                away=project_score(
                    away, home, False, match.league,
                    pconf.base_scores, pconf.score_home_bump,
                ),
            ),
            implied_odds=round(1 / true_probability, 2) if true_probability > 0 else 0.0,
            expected_value=ev.expected_value,
            ev_percentage=ev.ev_percentage,
            kelly_fraction=kelly.kelly_fraction,
            kelly_stake_units=kelly.kelly_stake_units,
            factors=factors,
            algorithm_id=self.config.id,
            algorithm_name=self.config.name,
            generated_at=datetime.now(timezone.utc),
        )

        if self.result_hook:
            result = self.result_hook(result, self.config, pconf)

        logger.debug(
            "prediction_generated",
            algorithm=self.config.name,
            match_id=match.id,
            recommended=result.recommended.value,
            confidence=result.confidence,
            ev_percentage=result.ev_percentage,
        )
        return result

    def predict_batch(
        self,
        matches: Iterable[MatchInput],
        context: PredictionContext | None = None,
    ) -> list[PredictionResult]:
        """Generate predictions for multiple matches."""
        return [self.predict(match, context) for match in matches]
