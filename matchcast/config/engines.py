"""Engine configuration records.

Every tunable used by the prediction, consensus, ensemble, simulation and
calibration engines lives in an immutable record here. Records are built
from the ``defaults.yaml`` sections via ``from_dict`` and handed to the
engines explicitly; nothing reads a process-wide table.

Built-in defaults mirror defaults.yaml so the engines still work when the
file is absent (e.g. in a stripped-down worker image).
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import structlog

from matchcast.config.settings import get_settings

logger = structlog.get_logger(__name__)

ML_POWER_INDEX = "f4ce9fdc-c41a-4a5c-9f18-5d732674c5b8"
VALUE_PICK_FINDER = "3a7e2d9b-8c5f-4b1f-9e17-7b31a4dce6c2"
STATISTICAL_EDGE = "85c48bbe-5b1a-4c1e-a0d5-e284e9e952f1"

DEFAULT_HOME_ADVANTAGE = {
    "NBA": 2.5,
    "NFL": 2.8,
    "MLB": 1.5,
    "NHL": 2.2,
    "NCAAB": 3.5,
    "NCAAF": 3.0,
    "SOCCER": 2.0,
    "MLS": 2.2,
    "EPL": 2.0,
    "DEFAULT": 2.0,
}

DEFAULT_BASE_SCORES = {
    "NBA": 110.0,
    "NFL": 22.0,
    "MLB": 4.5,
    "NHL": 2.8,
    "NCAAB": 72.0,
    "NCAAF": 24.0,
    "SOCCER": 1.3,
    "DEFAULT": 2.0,
}


@dataclass(frozen=True)
class FactorWeights:
    """Per-factor weights used by the confidence formula."""

    team_strength: float = 0.30
    home_advantage: float = 0.15
    momentum: float = 0.20
    historical: float = 0.15
    injuries: float = 0.10
    weather: float = 0.10

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FactorWeights":
        return cls(**{k: float(v) for k, v in (data or {}).items() if k in _fields(cls)})


@dataclass(frozen=True)
class AlgorithmThresholds:
    """Confidence floor, skip cut-off and high-value marker."""

    min_confidence: float = 40
    skip_threshold: float = 45
    high_value_threshold: float = 65

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AlgorithmThresholds":
        return cls(**{k: float(v) for k, v in (data or {}).items() if k in _fields(cls)})


@dataclass(frozen=True)
class AlgorithmConfig:
    """
    Tagged configuration for one predictor variant.

    The three hook fields name optional override functions registered in
    ``matchcast.services.prediction.algorithms``:

    - confidence_hook: post-processes the clamped confidence
    - factors_hook: post-processes the computed factors
    - result_hook: post-processes the finished PredictionResult
    """

    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    weights: FactorWeights = field(default_factory=FactorWeights)
    thresholds: AlgorithmThresholds = field(default_factory=AlgorithmThresholds)
    confidence_hook: str | None = None
    factors_hook: str | None = None
    result_hook: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlgorithmConfig":
        if not data.get("id") or not data.get("name"):
            raise ValueError(f"Algorithm config requires id and name: {data!r}")
        hooks = data.get("hooks") or {}
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            description=data.get("description", ""),
            version=str(data.get("version", "1.0.0")),
            weights=FactorWeights.from_dict(data.get("weights")),
            thresholds=AlgorithmThresholds.from_dict(data.get("thresholds")),
            confidence_hook=hooks.get("confidence"),
            factors_hook=hooks.get("factors"),
            result_hook=hooks.get("result"),
        )


DEFAULT_ALGORITHMS = (
    AlgorithmConfig(
        id=ML_POWER_INDEX,
        name="ML Power Index",
        description="Momentum-weighted power rating over record and recent form",
        version="2.0.0",
        weights=FactorWeights(0.35, 0.12, 0.25, 0.18, 0.05, 0.05),
        thresholds=AlgorithmThresholds(42, 48, 68),
        confidence_hook="momentum_extremity_bonus",
    ),
    AlgorithmConfig(
        id=VALUE_PICK_FINDER,
        name="Value Pick Finder",
        description="Odds-driven value finder favouring positive expected value",
        version="2.0.0",
        weights=FactorWeights(0.25, 0.10, 0.15, 0.10, 0.15, 0.25),
        thresholds=AlgorithmThresholds(45, 50, 62),
        result_hook="value_ev_boost",
    ),
    AlgorithmConfig(
        id=STATISTICAL_EDGE,
        name="Statistical Edge",
        description="Situational statistics with emphasis on head-to-head history",
        version="2.0.0",
        weights=FactorWeights(0.30, 0.20, 0.15, 0.25, 0.05, 0.05),
        thresholds=AlgorithmThresholds(40, 46, 70),
        factors_hook="historical_sample_boost",
    ),
)


@dataclass(frozen=True)
class PredictionConfig:
    """League tables and staking parameters shared by every predictor."""

    home_advantage: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_HOME_ADVANTAGE)
    )
    base_scores: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_BASE_SCORES)
    )
    default_odds: float = 2.0
    score_home_bump: float = 1.02
    max_confidence: float = 85
    kelly_fraction: float = 0.25
    bankroll_units: float = 100

    @classmethod
    def from_dict(
        cls,
        prediction: dict[str, Any] | None,
        staking: dict[str, Any] | None = None,
    ) -> "PredictionConfig":
        prediction = prediction or {}
        staking = staking or {}
        return cls(
            home_advantage={
                k.upper(): float(v)
                for k, v in (prediction.get("home_advantage") or DEFAULT_HOME_ADVANTAGE).items()
            },
            base_scores={
                k.upper(): float(v)
                for k, v in (prediction.get("base_scores") or DEFAULT_BASE_SCORES).items()
            },
            default_odds=float(prediction.get("default_odds", 2.0)),
            score_home_bump=float(prediction.get("score_home_bump", 1.02)),
            max_confidence=float(prediction.get("max_confidence", 85)),
            kelly_fraction=float(staking.get("kelly_fraction", 0.25)),
            bankroll_units=float(staking.get("bankroll_units", 100)),
        )


@dataclass(frozen=True)
class WeightConfig:
    """Sample size at which an algorithm's track record is fully trusted."""

    min_samples_for_full_weight: int = 30

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "WeightConfig":
        data = data or {}
        value = int(data.get("min_samples_for_full_weight", 30))
        if value <= 0:
            raise ValueError("min_samples_for_full_weight must be positive")
        return cls(min_samples_for_full_weight=value)


@dataclass(frozen=True)
class EnsembleConfig:
    """Meta-model tunables."""

    boosting_learning_rate: float = 0.15
    boosting_rounds: int = 5
    sequential_decay_rate: float = 0.9
    diversity_weight: float = 0.12
    calibration_strength: float = 0.3

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "EnsembleConfig":
        data = {k: v for k, v in (data or {}).items() if k in _fields(cls)}
        config = cls(**data)
        if not 0 <= config.boosting_learning_rate <= 1:
            raise ValueError("boosting_learning_rate must be in [0, 1]")
        if config.boosting_rounds < 0:
            raise ValueError("boosting_rounds must be non-negative")
        return config


@dataclass(frozen=True)
class MonteCarloConfig:
    """Sampling tunables. Percentiles are (lower, upper) in 0-100."""

    num_samples: int = 200
    confidence_noise: float = 6
    score_noise: float = 4
    probability_noise: float = 0.08
    percentiles: tuple[float, float] = (10, 90)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "MonteCarloConfig":
        data = {k: v for k, v in (data or {}).items() if k in _fields(cls)}
        if "percentiles" in data:
            lower, upper = data["percentiles"]
            data["percentiles"] = (float(lower), float(upper))
        config = cls(**data)
        lower, upper = config.percentiles
        if not 0 <= lower <= upper <= 100:
            raise ValueError(f"Invalid percentiles: {config.percentiles}")
        return config


@dataclass(frozen=True)
class CalibrationConfig:
    """
    Feedback-loop tunables.

    base_weights maps algorithm id to its starting weight. It is owned by
    whoever builds the config; algorithms missing from it start at
    ``default_base_weight``.
    """

    window_days: int = 14
    min_bets_for_calibration: int = 10
    underperformance_threshold: float = 10
    overperformance_threshold: float = 10
    max_weight_change: float = 0.15
    max_confidence_reduction: float = 15
    max_confidence_boost: float = 10
    cold_streak_threshold: int = 5
    hot_streak_threshold: int = 5
    min_confidence_floor: float = 45
    default_base_weight: float = 0.33
    base_weights: dict[str, float] = field(
        default_factory=lambda: {
            ML_POWER_INDEX: 0.34,
            VALUE_PICK_FINDER: 0.33,
            STATISTICAL_EDGE: 0.33,
        }
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CalibrationConfig":
        data = {k: v for k, v in (data or {}).items() if k in _fields(cls)}
        if "base_weights" in data:
            data["base_weights"] = {str(k): float(v) for k, v in data["base_weights"].items()}
        return cls(**data)

    def base_weight_for(self, algorithm_id: str) -> float:
        return self.base_weights.get(algorithm_id, self.default_base_weight)


@dataclass(frozen=True)
class EngineConfig:
    """Bundle of every engine record, as loaded from one YAML file."""

    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    algorithms: tuple[AlgorithmConfig, ...] = DEFAULT_ALGORITHMS
    weights: WeightConfig = field(default_factory=WeightConfig)
    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)
    monte_carlo: MonteCarloConfig = field(default_factory=MonteCarloConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "EngineConfig":
        data = data or {}
        algorithms = tuple(
            AlgorithmConfig.from_dict(a) for a in data.get("algorithms") or []
        ) or DEFAULT_ALGORITHMS
        return cls(
            prediction=PredictionConfig.from_dict(data.get("prediction"), data.get("staking")),
            algorithms=algorithms,
            weights=WeightConfig.from_dict(data.get("weights")),
            ensemble=EnsembleConfig.from_dict(data.get("ensemble")),
            monte_carlo=MonteCarloConfig.from_dict(data.get("monte_carlo")),
            calibration=CalibrationConfig.from_dict(data.get("calibration")),
        )


def _fields(cls) -> set[str]:
    return set(cls.__dataclass_fields__)


@lru_cache
def get_engine_config() -> EngineConfig:
    """Load engine configuration from defaults.yaml (cached)."""
    raw = get_settings().load_defaults_config()
    if not raw:
        logger.warning("engine_config_fallback", reason="defaults.yaml not found or empty")
    return EngineConfig.from_dict(raw)
