"""Expected value and Kelly stake sizing.

Decimal odds d, probability p, b = d - 1, q = 1 - p:

    EV         = p * b - q
    full Kelly = (b * p - q) / b

Both return zero when p is outside (0, 1) or d <= 1.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ExpectedValue:
    expected_value: float
    ev_percentage: float


@dataclass(frozen=True)
class KellyStake:
    kelly_fraction: float
    kelly_stake_units: float


def is_valid_wager(probability: float, decimal_odds: float | None) -> bool:
    """True when EV and Kelly are defined for this probability/odds pair."""
    if decimal_odds is None:
        return False
    return 0 < probability < 1 and decimal_odds > 1


def calculate_expected_value(probability: float, decimal_odds: float | None) -> ExpectedValue:
    """Probability-weighted net return per unit staked."""
    if not is_valid_wager(probability, decimal_odds):
        return ExpectedValue(0.0, 0.0)

    b = decimal_odds - 1
    q = 1 - probability
    ev = probability * b - q

    return ExpectedValue(
        expected_value=round(ev, 4),
        ev_percentage=round(ev * 100, 2),
    )


def calculate_kelly_criterion(
    probability: float,
    decimal_odds: float | None,
    fraction: float = 0.25,
    bankroll_units: float = 100,
) -> KellyStake:
    """
    Fractional Kelly stake (quarter Kelly by default), floored at 0.

    kelly_stake_units is the stake on a bankroll of ``bankroll_units``.
    """
    if not is_valid_wager(probability, decimal_odds):
        return KellyStake(0.0, 0.0)

    b = decimal_odds - 1
    q = 1 - probability
    full_kelly = (b * probability - q) / b
    adjusted = max(0.0, full_kelly * fraction)

    return KellyStake(
        kelly_fraction=round(adjusted, 4),
        kelly_stake_units=round(adjusted * bankroll_units, 2),
    )
