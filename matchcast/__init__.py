"""MatchCast: multi-algorithm match forecasting with self-calibration."""

__version__ = "0.1.0"
