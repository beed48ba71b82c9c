"""Team strength, home advantage and score projection.

Pure functions over TeamSnapshot. Missing or malformed inputs leave the
metrics at a neutral 50.
"""

import math

from matchcast.config.engines import DEFAULT_BASE_SCORES, DEFAULT_HOME_ADVANTAGE
from matchcast.services.prediction.types import StrengthMetrics, TeamSnapshot

NEUTRAL = 50.0
RECORD_SCALE = 40
FORM_SCALE = 50


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp value between min and max."""
    return max(min_val, min(value, max_val))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (62.5 -> 63, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def parse_record(record: str | None) -> tuple[int, int] | None:
    """Parse a "W-L" (or "W-L-D") record into (wins, losses)."""
    if not record:
        return None
    parts = record.split("-")
    if len(parts) < 2:
        return None
    try:
        wins = int(parts[0])
        losses = int(parts[1])
    except ValueError:
        return None
    if wins < 0 or losses < 0 or wins + losses == 0:
        return None
    return wins, losses


def weighted_form_win_pct(recent_form: tuple[str, ...] | list[str]) -> float | None:
    """
    Recency-weighted win share of a most-recent-first form sequence.

    The i-th most recent result carries weight (len - i).
    """
    if not recent_form:
        return None
    length = len(recent_form)
    weighted_wins = 0
    total_weight = 0
    for index, result in enumerate(recent_form):
        weight = length - index
        if result == "W":
            weighted_wins += weight
        total_weight += weight
    return weighted_wins / total_weight


class TeamStrengthCalculator:
    """
    Score a team's offense, defense and momentum.

    - Record shifts offense and defense by (winPct - 0.5) * 40
    - Recent form shifts momentum by (weightedWinPct - 0.5) * 50
    - Offense/defense clamp to [25, 95], momentum to [20, 95]
    """

    def calculate(self, team: TeamSnapshot) -> StrengthMetrics:
        offense = NEUTRAL
        defense = NEUTRAL
        momentum = NEUTRAL

        record = parse_record(team.record)
        if record is not None:
            wins, losses = record
            adjustment = (wins / (wins + losses) - 0.5) * RECORD_SCALE
            offense += adjustment
            defense += adjustment

        form_pct = weighted_form_win_pct(team.recent_form)
        if form_pct is not None:
            momentum += (form_pct - 0.5) * FORM_SCALE

        offense = clamp(offense, 25, 95)
        defense = clamp(defense, 25, 95)
        momentum = clamp(momentum, 20, 95)

        return StrengthMetrics(
            offense=offense,
            defense=defense,
            momentum=momentum,
            overall=(offense + defense + momentum) / 3,
        )


_calculator = TeamStrengthCalculator()


def calculate_team_strength(team: TeamSnapshot) -> StrengthMetrics:
    """Convenience wrapper around TeamStrengthCalculator."""
    return _calculator.calculate(team)


def calculate_home_advantage(
    league: str,
    table: dict[str, float] | None = None,
) -> float:
    """Home advantage constant for a league (DEFAULT when unknown)."""
    table = table or DEFAULT_HOME_ADVANTAGE
    return table.get(league.upper(), table.get("DEFAULT", 2.0))


def project_score(
    team: StrengthMetrics,
    opponent: StrengthMetrics,
    is_home: bool,
    league: str,
    base_scores: dict[str, float] | None = None,
    home_bump: float = 1.02,
) -> float:
    """
    Project one side's score from the league base score.

    base * (1 + offenseImpact + defenseImpact + momentumImpact), with a
    home multiplier, floored at 0 and rounded to one decimal.
    """
    base_scores = base_scores or DEFAULT_BASE_SCORES
    base = base_scores.get(league.upper(), base_scores.get("DEFAULT", 2.0))

    offense_impact = (team.offense - 50) / 100
    defense_impact = (50 - opponent.defense) / 100
    momentum_impact = (team.momentum - 50) / 200

    projected = base * (1 + offense_impact + defense_impact + momentum_impact)
    if is_home:
        projected *= home_bump

    return max(0.0, round(projected, 1))
