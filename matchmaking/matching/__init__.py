"""Weighted pairwise match scoring and batch computation."""

from .match_engine import MatchConfig, MatchEngine, calculate_confidence

__all__ = [
    "MatchConfig",
    "MatchEngine",
    "calculate_confidence",
]
