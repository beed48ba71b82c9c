"""Monte Carlo uncertainty for consensus predictions.

Dropout-style simulation: every algorithm's confidence, probability,
projected scores and EV are perturbed with Gaussian noise, the weighted
consensus is rebuilt per sample, and the sample distribution is summarised
as uncertainty bands instead of a single point.

Noise comes from an injected ``numpy.random.Generator`` so runs can be
seeded; each algorithm's draws for all samples are taken in one vector.
"""

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import structlog

from matchcast.config.engines import MonteCarloConfig
from matchcast.services.consensus.synthesizer import ConsensusResult, weight_for
from matchcast.services.consensus.weights import AlgorithmWeight
from matchcast.services.prediction.strength import round_half_up
from matchcast.services.prediction.types import PredictionResult, Recommendation, to_jsonable

logger = structlog.get_logger(__name__)

SKIP_BELOW = 45
UNCERTAIN_WIDTH = 20
EDGE_MARGIN = 3


class CalibrationSignal(str, Enum):
    WELL_CALIBRATED = "well-calibrated"
    OVERCONFIDENT = "overconfident"
    UNDERCONFIDENT = "underconfident"
    UNCERTAIN = "uncertain"


@dataclass(frozen=True)
class UncertaintyBand:
    point: float = 0.0
    lower: float = 0.0
    upper: float = 0.0
    std_dev: float = 0.0
    width_pct: float = 0.0


@dataclass(frozen=True)
class MonteCarloResult:
    confidence: UncertaintyBand
    true_probability: UncertaintyBand
    projected_score_home: UncertaintyBand
    projected_score_away: UncertaintyBand
    ev_percentage: UncertaintyBand
    pick_stability: float
    pick_distribution: dict[str, float] = field(default_factory=dict)
    calibration_signal: CalibrationSignal = CalibrationSignal.UNCERTAIN
    num_samples: int = 0

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(asdict(self))


def build_band(
    samples: Sequence[float] | np.ndarray,
    percentiles: tuple[float, float],
) -> UncertaintyBand:
    """Mean, percentile bounds, population std-dev and width % of point."""
    ordered = np.sort(np.asarray(samples, dtype=float))
    n = ordered.size
    if n == 0:
        return UncertaintyBand()

    lower = float(ordered[min(n - 1, int(percentiles[0] / 100 * n))])
    upper = float(ordered[min(n - 1, int(percentiles[1] / 100 * n))])

    point = round(float(np.mean(ordered)), 2)
    width_pct = round_half_up((upper - lower) / abs(point) * 100) if point != 0 else 0

    return UncertaintyBand(
        point=point,
        lower=round(lower, 2),
        upper=round(upper, 2),
        std_dev=round(float(np.std(ordered)), 2),
        width_pct=width_pct,
    )


def classify_calibration(band: UncertaintyBand) -> CalibrationSignal:
    if band.upper - band.lower > UNCERTAIN_WIDTH:
        return CalibrationSignal.UNCERTAIN
    if band.point > band.upper - EDGE_MARGIN:
        return CalibrationSignal.OVERCONFIDENT
    if band.point < band.lower + EDGE_MARGIN:
        return CalibrationSignal.UNDERCONFIDENT
    return CalibrationSignal.WELL_CALIBRATED


def empty_result(config: MonteCarloConfig) -> MonteCarloResult:
    return MonteCarloResult(
        confidence=UncertaintyBand(),
        true_probability=UncertaintyBand(),
        projected_score_home=UncertaintyBand(),
        projected_score_away=UncertaintyBand(),
        ev_percentage=UncertaintyBand(),
        pick_stability=0.0,
        pick_distribution={},
        calibration_signal=CalibrationSignal.UNCERTAIN,
        num_samples=config.num_samples,
    )


class MonteCarloSimulator:
    """
    Resample algorithm outputs to quantify consensus uncertainty.

    Args:
        config: Sampling configuration
        rng: Noise source; pass ``np.random.default_rng(seed)`` for reproducible runs
    """

    def __init__(
        self,
        config: MonteCarloConfig | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.config = config or MonteCarloConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

    def run(
        self,
        predictions: Sequence[PredictionResult],
        weights: Sequence[AlgorithmWeight],
    ) -> MonteCarloResult:
        config = self.config
        if not predictions or config.num_samples <= 0:
            return empty_result(config)

        n = config.num_samples
        count = len(predictions)
        shape = (count, n)
        weight_map = {w.algorithm_id: w for w in weights}
        w = np.array([weight_for(p, weight_map, count) for p in predictions])[:, None]

        def means(values) -> np.ndarray:
            return np.array(values, dtype=float)[:, None]

        rng = self.rng
        conf_mean = means([p.confidence for p in predictions])
        prob_mean = means([p.true_probability for p in predictions])
        home_mean = means([p.projected_score.home for p in predictions])
        away_mean = means([p.projected_score.away for p in predictions])
        ev_mean = means([p.ev_percentage for p in predictions])

        conf = np.clip(rng.normal(conf_mean, config.confidence_noise, shape), 30, 98)
        prob = np.clip(rng.normal(prob_mean, config.probability_noise, shape), 0.05, 0.98)
        home = np.maximum(0.0, rng.normal(home_mean, config.score_noise, shape))
        away = np.maximum(0.0, rng.normal(away_mean, config.score_noise, shape))
        ev = rng.normal(ev_mean, config.confidence_noise * 0.5, shape)

        # Per-sample votes, weighted by algorithm
        skips = conf < SKIP_BELOW
        home_votes = np.sum(w * (~skips & (home > away)), axis=0)
        away_votes = np.sum(w * (~skips & (home <= away)), axis=0)
        skip_votes = np.sum(w * skips, axis=0)
        picks = np.where(
            (skip_votes > home_votes) & (skip_votes > away_votes),
            Recommendation.SKIP.value,
            np.where(
                home_votes >= away_votes, Recommendation.HOME.value, Recommendation.AWAY.value
            ),
        )
        labels, counts = np.unique(picks, return_counts=True)
        pick_distribution = {str(label): int(c) / n for label, c in zip(labels, counts)}

        w_total = float(np.sum(w))
        if w_total > 0:
            bands = [
                np.sum(w * values, axis=0) / w_total for values in (conf, prob, home, away, ev)
            ]
        else:
            bands = [np.empty(0)] * 5

        confidence_band = build_band(bands[0], config.percentiles)
        result = MonteCarloResult(
            confidence=confidence_band,
            true_probability=build_band(bands[1], config.percentiles),
            projected_score_home=build_band(bands[2], config.percentiles),
            projected_score_away=build_band(bands[3], config.percentiles),
            ev_percentage=build_band(bands[4], config.percentiles),
            pick_stability=int(counts.max()) / n,
            pick_distribution=pick_distribution,
            calibration_signal=classify_calibration(confidence_band),
            num_samples=n,
        )

        logger.debug(
            "monte_carlo_complete",
            samples=n,
            algorithms=count,
            pick_stability=result.pick_stability,
            signal=result.calibration_signal.value,
        )
        return result


def run_monte_carlo_simulation(
    predictions: Sequence[PredictionResult],
    weights: Sequence[AlgorithmWeight],
    config: MonteCarloConfig | None = None,
    rng: np.random.Generator | None = None,
) -> MonteCarloResult:
    return MonteCarloSimulator(config, rng).run(predictions, weights)


def run_monte_carlo_from_consensus(
    consensus: ConsensusResult,
    config: MonteCarloConfig | None = None,
    rng: np.random.Generator | None = None,
) -> MonteCarloResult:
    """Simulate from a consensus (or ensemble) result's components and weights."""
    return MonteCarloSimulator(config, rng).run(
        consensus.component_predictions, consensus.weights
    )


# EnsembleResult extends ConsensusResult, so the same entry point serves both.
run_monte_carlo_from_ensemble = run_monte_carlo_from_consensus
