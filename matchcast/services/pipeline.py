"""End-to-end forecast for one match.

    registry (x3 algorithms) -> weights -> consensus -> ensemble -> Monte Carlo

Weights are fetched once per call and may come from a stale recalibration
run; nothing here writes back. When calibrated model weights are supplied,
each algorithm's adjusted weight scales its consensus weight, and its
multiplier and minimum-confidence threshold are applied to its prediction
before the consensus is built.
"""

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field, replace
from typing import Any

import numpy as np
import structlog

from matchcast.config.engines import EngineConfig
from matchcast.services.calibration.bins import BinCalibrationResult
from matchcast.services.calibration.integration import (
    DEFAULT_WEIGHT,
    CalibratedConfidence,
    apply_confidence_calibration,
)
from matchcast.services.calibration.types import ModelWeight
from matchcast.services.consensus.synthesizer import ConsensusResult, ConsensusSynthesizer
from matchcast.services.consensus.weights import AlgorithmWeight, WeightEngine
from matchcast.services.ensemble.stacker import EnsembleResult, EnsembleStacker
from matchcast.services.prediction.algorithms import AlgorithmRegistry
from matchcast.services.prediction.types import (
    MatchInput,
    PredictionContext,
    PredictionResult,
    Recommendation,
    to_jsonable,
)
from matchcast.services.simulation.monte_carlo import MonteCarloResult, MonteCarloSimulator

logger = structlog.get_logger(__name__)


def blend_weights(
    weights: Sequence[AlgorithmWeight],
    model_weights: Sequence[ModelWeight],
) -> list[AlgorithmWeight]:
    """Scale consensus weights by calibrated model weights and renormalise to 1."""
    adjusted = {w.algorithm_id: w.adjusted_weight for w in model_weights}
    scaled = [
        replace(w, weight=w.weight * adjusted.get(w.algorithm_id, DEFAULT_WEIGHT))
        for w in weights
    ]
    total = sum(w.weight for w in scaled)
    if total <= 0:
        return list(weights)
    return [replace(w, weight=w.weight / total) for w in scaled]


def apply_calibration(
    prediction: PredictionResult,
    calibrated: CalibratedConfidence,
) -> PredictionResult:
    """Prediction with its calibrated confidence; a skip when under its threshold."""
    confidence = calibrated.adjusted_confidence
    if not calibrated.meets_threshold:
        return replace(
            prediction,
            recommended=Recommendation.SKIP,
            confidence=confidence,
            expected_value=0.0,
            ev_percentage=0.0,
            kelly_fraction=0.0,
            kelly_stake_units=0.0,
        )
    return replace(prediction, confidence=confidence)


@dataclass(frozen=True)
class Forecast:
    predictions: tuple[PredictionResult, ...]
    weights: tuple[AlgorithmWeight, ...]
    consensus: ConsensusResult
    ensemble: EnsembleResult
    monte_carlo: MonteCarloResult | None = None
    calibrated: dict[str, CalibratedConfidence] = field(default_factory=dict)
    paused_algorithms: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(asdict(self))


class ForecastPipeline:
    """
    Run every forecasting stage for a match.

    Args:
        registry: Algorithms to run
        weight_engine: Source of consensus weights
        config: Engine tunables (ensemble and Monte Carlo sections are used)
        rng: Noise source for Monte Carlo, seed it for reproducible bands
    """

    def __init__(
        self,
        registry: AlgorithmRegistry,
        weight_engine: WeightEngine,
        config: EngineConfig | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.config = config or EngineConfig()
        self.registry = registry
        self.weight_engine = weight_engine
        self.synthesizer = ConsensusSynthesizer()
        self.stacker = EnsembleStacker(self.config.ensemble)
        self.simulator = MonteCarloSimulator(self.config.monte_carlo, rng)

    async def forecast(
        self,
        match: MatchInput,
        context: PredictionContext | None = None,
        simulate: bool = False,
        model_weights: Sequence[ModelWeight] | None = None,
        bins: BinCalibrationResult | None = None,
    ) -> Forecast:
        predictions = [engine.predict(match, context) for engine in self.registry.engines()]
        weights = await self.weight_engine.fetch_weights()

        calibrated: dict[str, CalibratedConfidence] = {}
        if model_weights:
            for prediction in predictions:
                calibrated[prediction.algorithm_id] = apply_confidence_calibration(
                    prediction.confidence,
                    prediction.algorithm_id,
                    model_weights,
                    bins,
                    self.config.calibration,
                )

        paused = tuple(aid for aid, c in calibrated.items() if c.is_paused)
        active = [p for p in predictions if p.algorithm_id not in paused]
        if not active:
            # every algorithm paused: fall back to the full set
            active = predictions
            paused = ()

        if model_weights:
            weights = blend_weights(weights, model_weights)
            active = [apply_calibration(p, calibrated[p.algorithm_id]) for p in active]

        consensus = self.synthesizer.synthesize(active, weights, match.id)
        ensemble = self.stacker.run(consensus, match)
        monte_carlo = self.simulator.run(active, weights) if simulate else None

        logger.info(
            "forecast_complete",
            match_id=match.id,
            recommended=ensemble.recommended.value,
            confidence=ensemble.confidence,
            paused=len(paused),
            simulated=simulate,
        )

        return Forecast(
            predictions=tuple(predictions),
            weights=tuple(weights),
            consensus=consensus,
            ensemble=ensemble,
            monte_carlo=monte_carlo,
            calibrated=calibrated,
            paused_algorithms=paused,
        )
