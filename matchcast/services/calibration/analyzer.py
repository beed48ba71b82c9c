"""Rolling performance analysis per algorithm.

Compares realised win rate against the win rate the algorithm implied
through its stated confidence. A model that says 70% should win about 70%
of those picks; the gap (performance vs expected) drives recalibration.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence

from matchcast.config.engines import CalibrationConfig
from matchcast.services.calibration.types import (
    AlgorithmPerformanceWindow,
    PredictionRecord,
    PredictionStatus,
)
from matchcast.services.prediction.strength import clamp, round_half_up

NEUTRAL_WIN_RATE = 50.0
RECENT_RESULTS = 10

# Pause rules
PAUSE_MIN_BETS = 15
PAUSE_PERFORMANCE_GAP = -20
PAUSE_COLD_STREAK = -8
PAUSE_LOW_WIN_RATE_BETS = 20
PAUSE_LOW_WIN_RATE = 35

_SETTLED = (PredictionStatus.WON, PredictionStatus.LOST)


def _settled_newest_first(records: Iterable[PredictionRecord]) -> list[PredictionRecord]:
    settled = [r for r in records if r.status in _SETTLED]
    return sorted(settled, key=lambda r: r.predicted_at, reverse=True)


def calculate_expected_win_rate(records: Sequence[PredictionRecord]) -> float:
    """Mean stated confidence over settled records, 50 when none."""
    settled = [r for r in records if r.status in _SETTLED]
    if not settled:
        return NEUTRAL_WIN_RATE
    return sum(r.confidence for r in settled) / len(settled)


def calculate_streak(records: Sequence[PredictionRecord]) -> int:
    """Signed run length from the most recent result: +wins, -losses."""
    settled = _settled_newest_first(records)
    if not settled:
        return 0

    first = settled[0].status
    streak = 0
    for record in settled:
        if record.status != first:
            break
        streak += 1
    return streak if first == PredictionStatus.WON else -streak


def analyze_algorithm_performance(
    algorithm_id: str,
    algorithm_name: str,
    records: Sequence[PredictionRecord],
    window_days: int,
    config: CalibrationConfig | None = None,
) -> AlgorithmPerformanceWindow:
    """Summarise one algorithm's records into a performance window."""
    config = config or CalibrationConfig()

    settled = _settled_newest_first(records)
    wins = sum(1 for r in settled if r.status == PredictionStatus.WON)
    losses = len(settled) - wins
    total = wins + losses

    win_rate = wins / total * 100 if total else 0.0
    expected = calculate_expected_win_rate(records)
    performance_vs_expected = win_rate - expected
    avg_confidence = sum(r.confidence for r in records) / len(records) if records else 0.0
    enough = total >= config.min_bets_for_calibration

    return AlgorithmPerformanceWindow(
        algorithm_id=algorithm_id,
        algorithm_name=algorithm_name,
        window_days=window_days,
        total_bets=total,
        wins=wins,
        losses=losses,
        win_rate=win_rate,
        expected_win_rate=expected,
        performance_vs_expected=performance_vs_expected,
        is_underperforming=enough
        and performance_vs_expected < -config.underperformance_threshold,
        is_overperforming=enough
        and performance_vs_expected > config.overperformance_threshold,
        streak=calculate_streak(records),
        avg_confidence=avg_confidence,
        recent_results=tuple(
            "W" if r.status == PredictionStatus.WON else "L" for r in settled[:RECENT_RESULTS]
        ),
    )


def analyze_all(
    records: Iterable[PredictionRecord],
    window_days: int,
    config: CalibrationConfig | None = None,
) -> list[AlgorithmPerformanceWindow]:
    """Group records by algorithm and analyze each group."""
    grouped: dict[str, list[PredictionRecord]] = defaultdict(list)
    names: dict[str, str] = {}
    for record in records:
        grouped[record.algorithm_id].append(record)
        names.setdefault(record.algorithm_id, record.algorithm_name)

    return [
        analyze_algorithm_performance(algorithm_id, names[algorithm_id], group, window_days, config)
        for algorithm_id, group in grouped.items()
    ]


def should_pause_algorithm(performance: AlgorithmPerformanceWindow) -> bool:
    """Severe sustained underperformance, a long cold streak or a very low win rate."""
    if (
        performance.total_bets >= PAUSE_MIN_BETS
        and performance.performance_vs_expected < PAUSE_PERFORMANCE_GAP
    ):
        return True
    if performance.streak <= PAUSE_COLD_STREAK:
        return True
    if (
        performance.total_bets >= PAUSE_LOW_WIN_RATE_BETS
        and performance.win_rate < PAUSE_LOW_WIN_RATE
    ):
        return True
    return False


def calculate_algorithm_health_score(performance: AlgorithmPerformanceWindow) -> int:
    """
    Health 0-100, starting from a neutral 50.

    - Win rate: +/-25 around 50%, only with 5+ bets
    - Performance vs expected: 15 points per 20% gap
    - Streak: 2 points per result, capped at +/-10
    """
    score = 50.0
    if performance.total_bets >= 5:
        score += (performance.win_rate - 50) / 50 * 25
    score += performance.performance_vs_expected / 20 * 15
    score += clamp(performance.streak * 2, -10, 10)
    return int(clamp(round_half_up(score), 0, 100))


def calculate_overall_health(performances: Sequence[AlgorithmPerformanceWindow]) -> float:
    if not performances:
        return 0.0
    scores = [calculate_algorithm_health_score(p) for p in performances]
    return sum(scores) / len(scores)
