"""Algorithm trust weights from historical performance.

Bayesian-style weighting:
- Reliability from sample size: min(1, n / 30)
- Win rate shrunk toward the 50% break-even baseline by (1 - reliability)
- Calibration bonus when stated confidence tracks realised win rate

Weights are normalised so the cohort sums to 1. Any read failure or empty
result falls back to equal weights.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import structlog

from matchcast.config.engines import WeightConfig

logger = structlog.get_logger(__name__)

BASELINE_WIN_RATE = 50.0


@dataclass(frozen=True)
class AlgorithmStatsRow:
    """Per-algorithm aggregate as stored by the persistence layer."""

    algorithm_id: str
    win_rate: float = BASELINE_WIN_RATE
    total_predictions: int = 0
    correct_predictions: int = 0
    avg_confidence: float = BASELINE_WIN_RATE


@dataclass(frozen=True)
class AlgorithmWeight:
    algorithm_id: str
    algorithm_name: str
    weight: float
    win_rate: float
    total_predictions: int
    avg_confidence: float
    reliability: float


class AlgorithmStatsReader(Protocol):
    """Read contract for per-algorithm performance stats."""

    async def get_algorithm_stats(self) -> list[AlgorithmStatsRow]: ...


def equal_weights(
    algorithm_ids: Sequence[str],
    names: dict[str, str] | None = None,
) -> list[AlgorithmWeight]:
    """Equal 1/N weights with zero reliability."""
    names = names or {}
    if not algorithm_ids:
        return []
    share = 1 / len(algorithm_ids)
    return [
        AlgorithmWeight(
            algorithm_id=algorithm_id,
            algorithm_name=names.get(algorithm_id, "Unknown"),
            weight=share,
            win_rate=BASELINE_WIN_RATE,
            total_predictions=0,
            avg_confidence=BASELINE_WIN_RATE,
            reliability=0.0,
        )
        for algorithm_id in algorithm_ids
    ]


def compute_weights(
    stats: Sequence[AlgorithmStatsRow],
    names: dict[str, str] | None = None,
    config: WeightConfig | None = None,
) -> list[AlgorithmWeight]:
    """
    Turn raw stats into normalised weights.

    rawWeight = (shrunkWinRate / 100) * (0.7 + 0.3 * calibrationBonus)
    """
    names = names or {}
    config = config or WeightConfig()
    if not stats:
        return []

    raw: list[tuple[AlgorithmStatsRow, float, float]] = []
    for row in stats:
        reliability = min(1.0, max(0, row.total_predictions) / config.min_samples_for_full_weight)
        shrunk_win_rate = reliability * row.win_rate + (1 - reliability) * BASELINE_WIN_RATE
        calibration_error = abs(row.win_rate - row.avg_confidence)
        calibration_bonus = max(0.0, 1 - calibration_error / 50)
        raw_weight = max(0.0, (shrunk_win_rate / 100) * (0.7 + 0.3 * calibration_bonus))
        raw.append((row, raw_weight, reliability))

    total = sum(weight for _, weight, _ in raw)

    return [
        AlgorithmWeight(
            algorithm_id=row.algorithm_id,
            algorithm_name=names.get(row.algorithm_id, "Unknown"),
            weight=raw_weight / total if total > 0 else 1 / len(raw),
            win_rate=row.win_rate,
            total_predictions=row.total_predictions,
            avg_confidence=row.avg_confidence,
            reliability=reliability,
        )
        for row, raw_weight, reliability in raw
    ]


class WeightEngine:
    """
    Fetch per-algorithm stats and convert them to trust weights.

    Never raises: a failing or empty read yields equal weights over the
    configured cohort.
    """

    def __init__(
        self,
        reader: AlgorithmStatsReader,
        algorithm_ids: Sequence[str],
        names: dict[str, str] | None = None,
        config: WeightConfig | None = None,
    ):
        self.reader = reader
        self.algorithm_ids = list(algorithm_ids)
        self.names = names or {}
        self.config = config or WeightConfig()

    def default_weights(self) -> list[AlgorithmWeight]:
        return equal_weights(self.algorithm_ids, self.names)

    async def fetch_weights(self) -> list[AlgorithmWeight]:
        try:
            stats = await self.reader.get_algorithm_stats()
        except Exception as e:
            logger.warning("weights_fetch_failed", error=str(e))
            return self.default_weights()

        if not stats:
            logger.info("weights_no_history", algorithms=len(self.algorithm_ids))
            return self.default_weights()

        weights = compute_weights(stats, self.names, self.config)
        logger.debug(
            "weights_computed",
            weights={w.algorithm_name: round(w.weight, 4) for w in weights},
        )
        return weights
