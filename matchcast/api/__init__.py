"""HTTP API for MatchCast."""
