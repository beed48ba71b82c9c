"""Algorithm registry.

Maps algorithm id -> AlgorithmConfig plus named hook functions. Variants are
configuration records, not subclasses: the registry resolves each record's
hook names against the tables below and builds a PredictionEngine.
"""

from dataclasses import replace

import structlog

from matchcast.config.engines import (
    DEFAULT_ALGORITHMS,
    AlgorithmConfig,
    PredictionConfig,
)
from matchcast.services.prediction.engine import (
    ConfidenceHook,
    FactorsHook,
    PredictionEngine,
    ResultHook,
)
from matchcast.services.prediction.strength import clamp
from matchcast.services.prediction.types import PredictionFactors, PredictionResult

logger = structlog.get_logger(__name__)

MOMENTUM_EXTREMITY = 20
MOMENTUM_BONUS = 3
VALUE_EV_THRESHOLD = 5
VALUE_BOOST = 5
HISTORICAL_MIN_GAMES = 5
HISTORICAL_MULTIPLIER = 1.5


def momentum_extremity_bonus(
    confidence: float,
    factors: PredictionFactors,
    config: AlgorithmConfig,
    prediction_config: PredictionConfig,
) -> float:
    """ML Power Index: +3 when the momentum gap exceeds 20."""
    if abs(factors.momentum.differential) > MOMENTUM_EXTREMITY:
        confidence += MOMENTUM_BONUS
    return clamp(
        confidence,
        config.thresholds.min_confidence,
        prediction_config.max_confidence,
    )


def historical_sample_boost(
    factors: PredictionFactors,
    config: AlgorithmConfig,
) -> PredictionFactors:
    """Statistical Edge: 1.5x historical impact with 5+ head-to-head games."""
    historical = factors.historical
    if historical is None or historical.data.total_games < HISTORICAL_MIN_GAMES:
        return factors
    return replace(
        factors,
        historical=replace(historical, impact=historical.impact * HISTORICAL_MULTIPLIER),
    )


def value_ev_boost(
    result: PredictionResult,
    config: AlgorithmConfig,
    prediction_config: PredictionConfig,
) -> PredictionResult:
    """Value Pick Finder: +5 confidence (capped) for picks with EV% above 5."""
    if result.ev_percentage <= VALUE_EV_THRESHOLD:
        return result
    confidence = min(prediction_config.max_confidence, result.confidence + VALUE_BOOST)
    probability = confidence / 100
    return replace(
        result,
        confidence=confidence,
        true_probability=probability,
        implied_odds=round(1 / probability, 2),
    )


FACTOR_HOOKS: dict[str, FactorsHook] = {
    "historical_sample_boost": historical_sample_boost,
}

CONFIDENCE_HOOKS: dict[str, ConfidenceHook] = {
    "momentum_extremity_bonus": momentum_extremity_bonus,
}

RESULT_HOOKS: dict[str, ResultHook] = {
    "value_ev_boost": value_ev_boost,
}


def _resolve(table: dict, name: str | None, kind: str, algorithm: AlgorithmConfig):
    if name is None:
        return None
    if name not in table:
        raise ValueError(
            f"Unknown {kind} hook '{name}' for algorithm {algorithm.name}"
        )
    return table[name]


class AlgorithmRegistry:
    """
    Explicit algorithm registry.

    Unknown ids fall back to a plain base engine so a stale id never aborts
    a batch.
    """

    def __init__(
        self,
        algorithms: tuple[AlgorithmConfig, ...] | list[AlgorithmConfig] = DEFAULT_ALGORITHMS,
        prediction_config: PredictionConfig | None = None,
    ):
        self.prediction_config = prediction_config or PredictionConfig()
        self._configs: dict[str, AlgorithmConfig] = {}
        self._engines: dict[str, PredictionEngine] = {}

        for algorithm in algorithms:
            if algorithm.id in self._configs:
                raise ValueError(f"Duplicate algorithm id: {algorithm.id}")
            self._configs[algorithm.id] = algorithm
            self._engines[algorithm.id] = self._build(algorithm)

    def _build(self, algorithm: AlgorithmConfig) -> PredictionEngine:
        return PredictionEngine(
            algorithm,
            self.prediction_config,
            factors_hook=_resolve(FACTOR_HOOKS, algorithm.factors_hook, "factors", algorithm),
            confidence_hook=_resolve(
                CONFIDENCE_HOOKS, algorithm.confidence_hook, "confidence", algorithm
            ),
            result_hook=_resolve(RESULT_HOOKS, algorithm.result_hook, "result", algorithm),
        )

    def __contains__(self, algorithm_id: str) -> bool:
        return algorithm_id in self._configs

    def __len__(self) -> int:
        return len(self._configs)

    @property
    def ids(self) -> list[str]:
        return list(self._configs)

    @property
    def configs(self) -> list[AlgorithmConfig]:
        return list(self._configs.values())

    def engines(self) -> list[PredictionEngine]:
        return list(self._engines.values())

    def name_for(self, algorithm_id: str) -> str:
        config = self._configs.get(algorithm_id)
        return config.name if config else "Unknown"

    def get(self, algorithm_id: str) -> PredictionEngine:
        """Engine for an algorithm id (base engine for unknown ids)."""
        engine = self._engines.get(algorithm_id)
        if engine is not None:
            return engine
        logger.warning("unknown_algorithm_id", algorithm_id=algorithm_id)
        return PredictionEngine(
            AlgorithmConfig(id=algorithm_id, name="Default Algorithm"),
            self.prediction_config,
        )
