"""
Conference Matchmaking Engine

This package matches heterogeneous conference actors (companies, sponsors
and attendees) by computing explainable, weighted pairwise compatibility
scores over many independent similarity signals.

Key Design Decisions:
- Each signal is normalized to [0, 1]; a missing signal means "no evidence"
  and is dropped rather than scored as a mismatch
- Scores are weighted means, so they stay in the natural range of the signals
- Matches are derived data, regenerable from actors and a weight profile
- Persistence goes through a minimal document-store contract with a
  per-batch size ceiling
"""

__version__ = "1.0.0"
