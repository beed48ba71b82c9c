"""Sequential pattern detection over recent form.

Form is encoded W=+1, L=-1, D=0, most recent first. Rules are tried in
priority order and the first match wins:

1. streak       4+ identical leading results
2. alternating  more than 70% of adjacent pairs flip sign
3. regression   first/second half means differ by > 0.6 with opposite sign
4. breakout     last-3 mean diverges from the rest by > 0.5

Fewer than 3 results never produce a pattern.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from statistics import fmean

from matchcast.services.prediction.strength import clamp, round_half_up

MIN_FORM_LENGTH = 3
MIN_STREAK = 4
STREAK_FULL_LENGTH = 6
MAX_STREAK_ADJUSTMENT = 8
ALTERNATING_RATIO = 0.7
REGRESSION_GAP = 0.6
BREAKOUT_GAP = 0.5

_ENCODING = {"W": 1, "L": -1, "D": 0}


class PatternType(str, Enum):
    STREAK = "streak"
    ALTERNATING = "alternating"
    REGRESSION = "regression"
    BREAKOUT = "breakout"
    NONE = "none"


@dataclass(frozen=True)
class SequentialPattern:
    type: PatternType
    strength: float
    adjustment: float
    description: str


def no_pattern(description: str = "No strong sequential pattern") -> SequentialPattern:
    return SequentialPattern(PatternType.NONE, 0.0, 0.0, description)


def encode_form(recent_form: Sequence[str]) -> list[int]:
    return [_ENCODING.get(result.upper(), 0) for result in recent_form]


def _mean(values: Sequence[int]) -> float:
    return fmean(values) if values else 0.0


def _streak_length(encoded: list[int]) -> int:
    length = 1
    for value in encoded[1:]:
        if value != encoded[0]:
            break
        length += 1
    return length


def detect_sequential_pattern(
    recent_form: Sequence[str] | None,
    decay_rate: float = 0.9,
) -> SequentialPattern:
    """Classify a form sequence and return its confidence adjustment."""
    if not recent_form or len(recent_form) < MIN_FORM_LENGTH:
        return no_pattern("Insufficient data")

    encoded = encode_form(recent_form)

    streak_len = _streak_length(encoded)
    if streak_len >= MIN_STREAK:
        strength = min(1.0, streak_len / STREAK_FULL_LENGTH)
        # draw streaks count against the team
        direction = 1 if encoded[0] == 1 else -1
        adjustment = clamp(
            direction * strength * 3 * decay_rate,
            -MAX_STREAK_ADJUSTMENT,
            MAX_STREAK_ADJUSTMENT,
        )
        label = {1: "win", -1: "loss", 0: "draw"}[encoded[0]]
        return SequentialPattern(
            PatternType.STREAK,
            strength,
            adjustment,
            f"{streak_len}-game {label} streak (dampened for regression)",
        )

    flips = sum(
        1
        for prev, cur in zip(encoded, encoded[1:])
        if cur != prev and cur != 0 and prev != 0
    )
    alternating_ratio = flips / (len(encoded) - 1)
    if alternating_ratio > ALTERNATING_RATIO:
        return SequentialPattern(
            PatternType.ALTERNATING,
            alternating_ratio,
            -encoded[0] * 2,
            f"Alternating pattern detected "
            f"({round_half_up(alternating_ratio * 100)}% alternation rate)",
        )

    half = len(encoded) // 2
    first_avg = _mean(encoded[:half])
    second_avg = _mean(encoded[half:])
    regression_signal = abs(first_avg - second_avg)
    if regression_signal > REGRESSION_GAP and first_avg * second_avg < 0:
        return SequentialPattern(
            PatternType.REGRESSION,
            regression_signal,
            -second_avg * 3,
            f"Regression to mean: reversing from {'hot' if second_avg > 0 else 'cold'} streak",
        )

    recent = encoded[:3]
    older = encoded[3:]
    breakout_signal = _mean(recent) - _mean(older)
    if abs(breakout_signal) > BREAKOUT_GAP and len(older) >= 2:
        return SequentialPattern(
            PatternType.BREAKOUT,
            abs(breakout_signal),
            breakout_signal * 4,
            f"Breakout {'upward' if breakout_signal > 0 else 'downward'}: "
            "recent form diverging from baseline",
        )

    return no_pattern()
