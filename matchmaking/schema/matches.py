"""
Match, request and batch-result data model.

Matches are derived data: they can be regenerated at any time from the
actor corpus and a weight profile.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


def edge_id_for(actor_a: str, actor_b: str) -> str:
    """Order-independent identifier of an actor pair."""
    return "__".join(sorted([actor_a, actor_b]))


@dataclass
class Contribution:
    """One metric's part in a match score."""
    key: str
    display_name: str
    value: float
    weight: float
    contribution: float


@dataclass
class Match:
    """
    A scored, explained pairwise relationship between two actors.

    Attributes:
        edge_id: Sorted actor ids joined with '__'
        a, b: Actor ids in the order they were compared
        score: Weighted mean of present metrics, in [0, 1]
        confidence: Data-completeness measure in [0, 1]
        metrics: Raw metric values (None when stripped from a response)
        reasons: Human-readable reasons (None when stripped from a response)
    """
    edge_id: str
    a: str
    b: str
    score: float
    confidence: float
    contributions: List[Contribution] = field(default_factory=list)
    metrics: Optional[Dict[str, float]] = None
    reasons: Optional[List[str]] = None
    profile_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class MatchFilters:
    """Corpus filters for candidate resolution."""
    platforms: List[str] = field(default_factory=list)
    markets: List[str] = field(default_factory=list)
    stages: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)


@dataclass
class MatchRequest:
    """
    Query contract for find_matches.

    Attributes:
        actor_id: Source actor; without it all pairs of candidates are scored
        actor_ids: Explicit candidate ids
        profile_id: Weight profile (default profile when None)
        limit: Maximum number of matches returned
        threshold: Minimum score in [0, 1]
        min_confidence: Optional minimum confidence in [0, 1]
    """
    actor_id: Optional[str] = None
    actor_ids: List[str] = field(default_factory=list)
    profile_id: Optional[str] = None
    limit: int = 10
    threshold: float = 0.3
    min_confidence: Optional[float] = None
    include_metrics: bool = True
    include_reasons: bool = True
    filters: MatchFilters = field(default_factory=MatchFilters)

    def __post_init__(self):
        if isinstance(self.filters, dict):
            self.filters = MatchFilters(**self.filters)


@dataclass
class MatchResponse:
    """Result of find_matches, with an explicit status."""
    status: str
    matches: List[Match] = field(default_factory=list)
    profile_id: Optional[str] = None
    candidates_considered: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class BatchResult:
    """Outcome counters of an all-pairs batch computation."""
    profile_id: str
    status: str = "processing"
    pairs_evaluated: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ScanEvent:
    """Directed, append-only badge scan record."""
    scan_id: str
    from_actor_id: str
    to_actor_id: str
    timestamp: str
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def pair_key(self) -> str:
        return edge_id_for(self.from_actor_id, self.to_actor_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScanEvent":
        """Create from dictionary."""
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in d.items() if k in known})
