"""Value objects for the prediction pipeline.

All records are frozen dataclasses. Engines never mutate a record after
construction; adjustments go through ``dataclasses.replace``.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Recommendation(str, Enum):
    """Pick emitted by a predictor."""

    HOME = "home"
    AWAY = "away"
    DRAW = "draw"
    SKIP = "skip"


class MatchStatus(str, Enum):
    """Match lifecycle."""

    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"


@dataclass(frozen=True)
class TeamSnapshot:
    """
    Team state at prediction time.

    recent_form is most-recent-first, using W/L/D symbols.
    record is a "W-L" (or "W-L-D") string.
    """

    id: str
    name: str
    record: str | None = None
    recent_form: tuple[str, ...] = ()
    logo: str | None = None
    short_name: str | None = None


@dataclass(frozen=True)
class SpreadLine:
    home: float
    away: float
    home_odds: float
    away_odds: float


@dataclass(frozen=True)
class TotalLine:
    line: float
    over_odds: float
    under_odds: float


@dataclass(frozen=True)
class OddsSnapshot:
    """Decimal odds for a match."""

    home_win: float
    away_win: float
    draw: float | None = None
    spread: SpreadLine | None = None
    total: TotalLine | None = None


@dataclass(frozen=True)
class ScoreLine:
    home: int
    away: int
    period: str | None = None


@dataclass(frozen=True)
class MatchInput:
    """A fixture to be predicted."""

    id: str
    home_team: TeamSnapshot
    away_team: TeamSnapshot
    league: str
    start_time: datetime
    status: MatchStatus = MatchStatus.SCHEDULED
    score: ScoreLine | None = None
    odds: OddsSnapshot | None = None
    venue: str | None = None


@dataclass(frozen=True)
class HistoricalMatchup:
    """Head-to-head aggregate between the two sides."""

    home_wins: int = 0
    away_wins: int = 0
    draws: int = 0
    total_games: int = 0
    avg_home_score: float | None = None
    avg_away_score: float | None = None


@dataclass(frozen=True)
class InjuryReport:
    """Caller-assessed injury impact per side (points of confidence)."""

    home_impact: float = 0.0
    away_impact: float = 0.0


@dataclass(frozen=True)
class WeatherReport:
    condition: str
    impact: float = 0.0
    temperature: float | None = None
    wind: float | None = None


@dataclass(frozen=True)
class PredictionContext:
    """Optional extra information supplied alongside a match."""

    historical: HistoricalMatchup | None = None
    injuries: InjuryReport | None = None
    weather: WeatherReport | None = None
    odds: OddsSnapshot | None = None


@dataclass(frozen=True)
class StrengthMetrics:
    offense: float = 50.0
    defense: float = 50.0
    momentum: float = 50.0
    overall: float = 50.0


@dataclass(frozen=True)
class TeamStrengthFactor:
    home: StrengthMetrics
    away: StrengthMetrics
    differential: float


@dataclass(frozen=True)
class MomentumFactor:
    home: float
    away: float
    differential: float


@dataclass(frozen=True)
class HistoricalFactor:
    data: HistoricalMatchup
    impact: float


@dataclass(frozen=True)
class InjuryFactor:
    home_impact: float
    away_impact: float
    differential: float


@dataclass(frozen=True)
class WeatherFactor:
    condition: str
    impact: float


@dataclass(frozen=True)
class PredictionFactors:
    """
    Inputs to the confidence formula.

    team_strength.differential is always home.overall - away.overall.
    """

    team_strength: TeamStrengthFactor
    home_advantage: float
    momentum: MomentumFactor
    historical: HistoricalFactor | None = None
    injuries: InjuryFactor | None = None
    weather: WeatherFactor | None = None


NEUTRAL_FACTORS = PredictionFactors(
    team_strength=TeamStrengthFactor(StrengthMetrics(), StrengthMetrics(), 0.0),
    home_advantage=2.0,
    momentum=MomentumFactor(50.0, 50.0, 0.0),
)


@dataclass(frozen=True)
class ProjectedScore:
    home: float
    away: float


@dataclass(frozen=True)
class PredictionResult:
    """One algorithm's view of one match."""

    match_id: str
    recommended: Recommendation
    confidence: float
    true_probability: float
    projected_score: ProjectedScore
    implied_odds: float
    expected_value: float
    ev_percentage: float
    kelly_fraction: float
    kelly_stake_units: float
    factors: PredictionFactors
    algorithm_id: str
    algorithm_name: str
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return to_jsonable(asdict(self))


def to_jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value

