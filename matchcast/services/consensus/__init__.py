"""Consensus module for MatchCast."""

from matchcast.services.consensus.synthesizer import (
    ConsensusResult,
    ConsensusSynthesizer,
    synthesize_consensus,
)
from matchcast.services.consensus.weights import AlgorithmWeight, WeightEngine

__all__ = [
    "AlgorithmWeight",
    "ConsensusResult",
    "ConsensusSynthesizer",
    "WeightEngine",
    "synthesize_consensus",
]
