"""Weighted consensus synthesis.

Fuses N algorithm predictions into one:
1. Weighted vote per recommendation (better algorithms get more say)
2. Weighted means of confidence, probability, scores, EV and Kelly
3. Agreement-adjusted confidence: penalised when algorithms disagree

    final = round(weightedConfidence * (0.85 + 0.15 * agreement)), ties up, clamped [40, 95]
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from matchcast.services.consensus.weights import AlgorithmWeight
from matchcast.services.prediction.strength import clamp, round_half_up
from matchcast.services.prediction.types import (
    NEUTRAL_FACTORS,
    PredictionResult,
    ProjectedScore,
    Recommendation,
)

logger = structlog.get_logger(__name__)

CONSENSUS_ID = "consensus"
CONSENSUS_NAME = "AI Consensus"
MIN_CONFIDENCE = 40
MAX_CONFIDENCE = 95

# Tie-break order when two picks carry the same vote mass.
VOTE_ORDER = (Recommendation.HOME, Recommendation.AWAY, Recommendation.DRAW)


@dataclass(frozen=True)
class ConsensusResult(PredictionResult):
    """
    Consensus of several algorithms.

    weighted_confidence is the rounded weighted mean before the agreement
    multiplier.
    """

    component_predictions: tuple[PredictionResult, ...] = field(default_factory=tuple)
    weights: tuple[AlgorithmWeight, ...] = field(default_factory=tuple)
    agreement: float = 0.0
    unanimous: bool = False
    weighted_confidence: float = 0.0


def weight_for(
    prediction: PredictionResult,
    weight_map: dict[str, AlgorithmWeight],
    count: int,
) -> float:
    """Weight of a prediction's algorithm, 1/N when it has none."""
    weight = weight_map.get(prediction.algorithm_id)
    return weight.weight if weight is not None else 1 / count


class ConsensusSynthesizer:
    """Fuse algorithm predictions into a ConsensusResult."""

    def synthesize(
        self,
        predictions: Sequence[PredictionResult],
        weights: Sequence[AlgorithmWeight],
        match_id: str,
    ) -> ConsensusResult:
        predictions = list(predictions)
        weight_map = {w.algorithm_id: w for w in weights}
        count = len(predictions)

        votes = {rec: 0.0 for rec in VOTE_ORDER}
        total_weight = 0.0
        sums = {
            "confidence": 0.0,
            "probability": 0.0,
            "home": 0.0,
            "away": 0.0,
            "ev": 0.0,
            "ev_pct": 0.0,
            "kelly": 0.0,
            "kelly_stake": 0.0,
        }

        for pred in predictions:
            w = weight_for(pred, weight_map, count)
            total_weight += w
            if pred.recommended in votes:
                votes[pred.recommended] += w

            sums["confidence"] += pred.confidence * w
            sums["probability"] += pred.true_probability * w
            sums["home"] += pred.projected_score.home * w
            sums["away"] += pred.projected_score.away * w
            sums["ev"] += pred.expected_value * w
            sums["ev_pct"] += pred.ev_percentage * w
            sums["kelly"] += pred.kelly_fraction * w
            sums["kelly_stake"] += pred.kelly_stake_units * w

        if total_weight > 0:
            means = {k: v / total_weight for k, v in sums.items()}
        else:
            means = dict(sums)

        recommended = self.winning_recommendation(votes)

        agreeing = sum(1 for p in predictions if p.recommended == recommended)
        agreement = agreeing / count if count else 0.0
        unanimous = count > 0 and agreeing == count

        multiplier = 0.85 + agreement * 0.15
        final_confidence = clamp(
            round_half_up(means["confidence"] * multiplier), MIN_CONFIDENCE, MAX_CONFIDENCE
        )
        probability = means["probability"]

        result = ConsensusResult(
            match_id=match_id,
            recommended=recommended,
            confidence=final_confidence,
            true_probability=clamp(probability, 0.01, 0.99),
            projected_score=ProjectedScore(
                home=round(means["home"], 1),
                away=round(means["away"], 1),
            ),
            implied_odds=round(1 / probability, 2) if probability > 0 else 2.0,
            expected_value=round(means["ev"], 4),
            ev_percentage=round(means["ev_pct"], 2),
            kelly_fraction=round(means["kelly"], 4),
            kelly_stake_units=round(means["kelly_stake"], 2),
            factors=predictions[0].factors if predictions else NEUTRAL_FACTORS,
            algorithm_id=CONSENSUS_ID,
            algorithm_name=CONSENSUS_NAME,
            generated_at=datetime.now(timezone.utc),
            component_predictions=tuple(predictions),
            weights=tuple(weights),
            agreement=agreement,
            unanimous=unanimous,
            weighted_confidence=round_half_up(means["confidence"]),
        )

        logger.debug(
            "consensus_synthesized",
            match_id=match_id,
            recommended=recommended.value,
            confidence=final_confidence,
            agreement=round(agreement, 3),
        )
        return result

    @staticmethod
    def winning_recommendation(votes: dict[Recommendation, float]) -> Recommendation:
        """Pick with the largest vote mass; skip when no side got any."""
        best = max(votes.values(), default=0.0)
        if best <= 0:
            return Recommendation.SKIP
        for rec in VOTE_ORDER:
            if votes[rec] == best:
                return rec
        return Recommendation.SKIP


def synthesize_consensus(
    predictions: Sequence[PredictionResult],
    weights: Sequence[AlgorithmWeight],
    match_id: str,
) -> ConsensusResult:
    """Convenience wrapper around ConsensusSynthesizer."""
    return ConsensusSynthesizer().synthesize(predictions, weights, match_id)
