"""Settle saved predictions against final scores."""

from dataclasses import dataclass

from matchcast.services.calibration.types import PredictionStatus
from matchcast.services.consensus.weights import AlgorithmStatsRow
from matchcast.services.prediction.strength import round_half_up
from matchcast.services.prediction.types import Recommendation


@dataclass(frozen=True)
class GradeResult:
    status: PredictionStatus
    is_correct: bool
    accuracy_rating: int


@dataclass
class StatsTally:
    """Per-algorithm counts gathered during one grading run."""

    wins: int = 0
    total: int = 0
    confidence_sum: float = 0.0

    def add(self, is_correct: bool, confidence: float) -> None:
        self.total += 1
        if is_correct:
            self.wins += 1
        self.confidence_sum += confidence


def calculate_accuracy_rating(
    projected_home: float | None,
    projected_away: float | None,
    actual_home: int,
    actual_away: int,
    correct_winner: bool,
) -> int:
    """
    0-100 rating of how close a prediction came.

    50 for the correct winner, up to 25 for the margin and up to 25 for the
    individual scores. Without a projected score only the winner counts.
    """
    score = 50.0 if correct_winner else 0.0

    if projected_home is not None and projected_away is not None:
        margin_error = abs(abs(projected_home - projected_away) - abs(actual_home - actual_away))
        score += max(0.0, 25 - margin_error * 3)

        mean_error = (abs(projected_home - actual_home) + abs(projected_away - actual_away)) / 2
        score += max(0.0, 25 - mean_error * 2)

    return round_half_up(score)


def grade_prediction(
    recommended: Recommendation,
    actual_home: int,
    actual_away: int,
    projected_home: float | None = None,
    projected_away: float | None = None,
) -> GradeResult | None:
    """
    Grade a pick against a final score.

    Skip picks are not graded (None). A tie on a home/away pick is a push.
    """
    if recommended == Recommendation.SKIP:
        return None

    tied = actual_home == actual_away
    if recommended == Recommendation.DRAW:
        is_correct = tied
    elif tied:
        return GradeResult(
            status=PredictionStatus.PUSH,
            is_correct=False,
            accuracy_rating=calculate_accuracy_rating(
                projected_home, projected_away, actual_home, actual_away, False
            ),
        )
    elif recommended == Recommendation.HOME:
        is_correct = actual_home > actual_away
    else:
        is_correct = actual_away > actual_home

    return GradeResult(
        status=PredictionStatus.WON if is_correct else PredictionStatus.LOST,
        is_correct=is_correct,
        accuracy_rating=calculate_accuracy_rating(
            projected_home, projected_away, actual_home, actual_away, is_correct
        ),
    )


def merge_algorithm_stats(
    algorithm_id: str,
    current: AlgorithmStatsRow | None,
    tally: StatsTally,
) -> AlgorithmStatsRow:
    """Fold newly graded picks into an algorithm's running stats."""
    previous_total = current.total_predictions if current else 0
    previous_correct = current.correct_predictions if current else 0
    previous_confidence = current.avg_confidence if current else 0.0

    total = previous_total + tally.total
    correct = previous_correct + tally.wins
    win_rate = correct / total * 100 if total else 0.0
    avg_confidence = (
        (previous_total * previous_confidence + tally.confidence_sum) / total if total else 0.0
    )

    return AlgorithmStatsRow(
        algorithm_id=algorithm_id,
        win_rate=round(win_rate, 2),
        total_predictions=total,
        correct_predictions=correct,
        avg_confidence=round(avg_confidence, 2),
    )
