"""Ensemble meta-model.

Four correction layers stacked on a ConsensusResult:

1. Gradient boosting   residual correction toward the weighted mean
2. Sequential pattern  streak/alternating/regression/breakout on recent form
3. Diversity           disagreement between independent algorithms raises trust
4. Calibration         shrink toward a centre of 55

Every layer's contribution is kept on the result for transparency.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from statistics import pvariance

import structlog

from matchcast.config.engines import EnsembleConfig
from matchcast.services.consensus.synthesizer import ConsensusResult, weight_for
from matchcast.services.consensus.weights import AlgorithmWeight
from matchcast.services.ensemble.patterns import (
    SequentialPattern,
    detect_sequential_pattern,
)
from matchcast.services.prediction.strength import clamp, round_half_up
from matchcast.services.prediction.types import MatchInput, PredictionResult

logger = structlog.get_logger(__name__)

ENSEMBLE_ID = "ensemble"
ENSEMBLE_NAME = "Advanced Ensemble"
CALIBRATION_CENTER = 55
BOOST_DAMPING = 0.5
PATTERN_SCALE = 0.4


@dataclass(frozen=True)
class BoostingState:
    residuals: dict[str, float]
    adjustments: dict[str, float]
    rounds: int


@dataclass(frozen=True)
class LayerContributions:
    base_learners: float
    gradient_boosting: float
    sequential_pattern: float
    diversity_bonus: float
    calibration: float


@dataclass(frozen=True)
class EnsembleMetadata:
    boosting_adjustments: dict[str, float]
    sequential_pattern: SequentialPattern
    home_pattern: SequentialPattern
    away_pattern: SequentialPattern
    diversity_score: float
    calibration_delta: float
    layer_contributions: LayerContributions
    stacked_confidence: float


@dataclass(frozen=True)
class EnsembleResult(ConsensusResult):
    ensemble: EnsembleMetadata | None = None


def _population_variance(values: Sequence[float]) -> float:
    return pvariance(values) if values else 0.0


def apply_gradient_boosting(
    predictions: Sequence[PredictionResult],
    weights: Sequence[AlgorithmWeight],
    config: EnsembleConfig | None = None,
) -> BoostingState:
    """
    Approximate boosting over base learners.

    Residual = weighted-mean confidence - own confidence. Each round adds
    residual * learningRate to the algorithm's adjustment and shrinks the
    residual by (1 - learningRate).
    """
    config = config or EnsembleConfig()
    weight_map = {w.algorithm_id: w for w in weights}
    count = len(predictions)

    target = 0.0
    total_weight = 0.0
    for pred in predictions:
        w = weight_for(pred, weight_map, count)
        target += pred.confidence * w
        total_weight += w
    if total_weight > 0:
        target /= total_weight

    residuals = {p.algorithm_id: target - p.confidence for p in predictions}
    adjustments = {p.algorithm_id: 0.0 for p in predictions}
    rate = config.boosting_learning_rate

    for _ in range(config.boosting_rounds):
        for algorithm_id, residual in residuals.items():
            adjustments[algorithm_id] += residual * rate
            residuals[algorithm_id] = residual * (1 - rate)

    return BoostingState(residuals=residuals, adjustments=adjustments, rounds=config.boosting_rounds)


def calculate_diversity_score(predictions: Sequence[PredictionResult]) -> float:
    """
    Diversity of base learners in [0, 1]; 0 for fewer than two.

    0.4 * confidence spread + 0.35 * pick disagreement + 0.25 * EV spread
    """
    if len(predictions) < 2:
        return 0.0

    confidence_spread = min(
        1.0, math.sqrt(_population_variance([p.confidence for p in predictions])) / 15
    )
    unique_picks = len({p.recommended for p in predictions})
    pick_disagreement = (unique_picks - 1) / (len(predictions) - 1)
    ev_spread = min(
        1.0, math.sqrt(_population_variance([p.ev_percentage for p in predictions])) / 10
    )

    return confidence_spread * 0.4 + pick_disagreement * 0.35 + ev_spread * 0.25


class EnsembleStacker:
    """Stack boosting, pattern, diversity and calibration layers."""

    def __init__(self, config: EnsembleConfig | None = None):
        self.config = config or EnsembleConfig()

    def stack(
        self,
        consensus: ConsensusResult,
        boosting: BoostingState,
        home_pattern: SequentialPattern,
        away_pattern: SequentialPattern,
        diversity_score: float,
    ) -> EnsembleResult:
        config = self.config
        stacked = float(consensus.weighted_confidence)

        adjustments = boosting.adjustments
        avg_boost = sum(adjustments.values()) / len(adjustments) if adjustments else 0.0
        boost_contribution = avg_boost * BOOST_DAMPING
        stacked += boost_contribution

        pattern_impact = (home_pattern.adjustment - away_pattern.adjustment) * PATTERN_SCALE
        stacked += pattern_impact

        diversity_bonus = diversity_score * config.diversity_weight * 10
        stacked += diversity_bonus

        calibration_delta = (
            (CALIBRATION_CENTER - stacked) * config.calibration_strength * 0.1
        )
        stacked += calibration_delta

        final_confidence = clamp(round_half_up(stacked), 40, 95)

        primary = (
            home_pattern
            if abs(home_pattern.strength) >= abs(away_pattern.strength)
            else away_pattern
        )

        metadata = EnsembleMetadata(
            boosting_adjustments={k: round(v, 2) for k, v in adjustments.items()},
            sequential_pattern=primary,
            home_pattern=home_pattern,
            away_pattern=away_pattern,
            diversity_score=round(diversity_score, 2),
            calibration_delta=round(calibration_delta, 2),
            layer_contributions=LayerContributions(
                base_learners=round(float(consensus.weighted_confidence), 2),
                gradient_boosting=round(boost_contribution, 2),
                sequential_pattern=round(pattern_impact, 2),
                diversity_bonus=round(diversity_bonus, 2),
                calibration=round(calibration_delta, 2),
            ),
            stacked_confidence=final_confidence,
        )

        values = {f: getattr(consensus, f) for f in _consensus_fields()}
        values.update(
            confidence=final_confidence,
            algorithm_id=ENSEMBLE_ID,
            algorithm_name=ENSEMBLE_NAME,
            generated_at=datetime.now(timezone.utc),
        )
        return EnsembleResult(**values, ensemble=metadata)

    def run(self, consensus: ConsensusResult, match: MatchInput) -> EnsembleResult:
        """Run every layer on a consensus for a match."""
        predictions = consensus.component_predictions
        boosting = apply_gradient_boosting(predictions, consensus.weights, self.config)
        home_pattern = detect_sequential_pattern(
            match.home_team.recent_form, self.config.sequential_decay_rate
        )
        away_pattern = detect_sequential_pattern(
            match.away_team.recent_form, self.config.sequential_decay_rate
        )
        diversity = calculate_diversity_score(predictions)

        result = self.stack(consensus, boosting, home_pattern, away_pattern, diversity)
        logger.debug(
            "ensemble_stacked",
            match_id=consensus.match_id,
            consensus_confidence=consensus.confidence,
            stacked_confidence=result.confidence,
            pattern=result.ensemble.sequential_pattern.type.value,
            diversity=result.ensemble.diversity_score,
        )
        return result


def _consensus_fields() -> list[str]:
    return list(ConsensusResult.__dataclass_fields__)


def run_advanced_ensemble(
    consensus: ConsensusResult,
    match: MatchInput,
    config: EnsembleConfig | None = None,
) -> EnsembleResult:
    """Convenience wrapper around EnsembleStacker."""
    return EnsembleStacker(config).run(consensus, match)
