"""Simulation module for MatchCast."""

from matchcast.services.simulation.monte_carlo import (
    MonteCarloResult,
    MonteCarloSimulator,
    UncertaintyBand,
    run_monte_carlo_simulation,
)

__all__ = [
    "MonteCarloResult",
    "MonteCarloSimulator",
    "UncertaintyBand",
    "run_monte_carlo_simulation",
]
