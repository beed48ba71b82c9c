"""Records exchanged by the calibration feedback loop."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from matchcast.services.prediction.types import to_jsonable


class PredictionStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    PUSH = "push"


class RecommendationType(str, Enum):
    PAUSE_ALGORITHM = "pause_algorithm"
    DECREASE_CONFIDENCE = "decrease_confidence"
    BOOST_ALGORITHM = "boost_algorithm"
    NO_CHANGE = "no_change"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class PredictionRecord:
    """A saved prediction as seen by the performance analyzer."""

    algorithm_id: str
    algorithm_name: str
    confidence: float
    status: PredictionStatus
    predicted_at: datetime


@dataclass(frozen=True)
class AlgorithmPerformanceWindow:
    algorithm_id: str
    algorithm_name: str
    window_days: int
    total_bets: int
    wins: int
    losses: int
    win_rate: float
    expected_win_rate: float
    performance_vs_expected: float
    is_underperforming: bool
    is_overperforming: bool
    streak: int
    avg_confidence: float
    recent_results: tuple[str, ...] = ()


@dataclass(frozen=True)
class ModelWeight:
    algorithm_id: str
    algorithm_name: str
    base_weight: float
    adjusted_weight: float
    adjustment_reason: str
    confidence_multiplier: float
    min_confidence_threshold: float
    last_updated: datetime


@dataclass(frozen=True)
class WeightAdjustment:
    adjusted_confidence: float
    meets_threshold: bool
    weight: float


@dataclass(frozen=True)
class RecalibrationAction:
    algorithm_id: str
    action: str
    previous_value: float
    new_value: float
    reason: str


@dataclass(frozen=True)
class RecalibrationRecommendation:
    type: RecommendationType
    algorithm_id: str
    algorithm_name: str
    severity: Severity
    message: str
    suggested_action: str
    impact: str


@dataclass(frozen=True)
class RecalibrationResult:
    weights: list[ModelWeight] = field(default_factory=list)
    actions: list[RecalibrationAction] = field(default_factory=list)
    recommendations: list[RecalibrationRecommendation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(asdict(self))
