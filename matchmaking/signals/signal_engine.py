"""
Signal engine: normalized per-signal similarity between two actors.

Metric keys follow a '<family>:<field>.<method>' convention:
- date:created.prox, date:released.prox   (exponential day-delta decay)
- list:<field>.jaccard                     (set overlap)
- num:<field>.zexp                         (corpus z-score decay)
- str:name.lev                             (normalized Levenshtein)
- text:content.tfidf                       (TF-IDF cosine)
- bipartite:capabilities.match             (capability -> need fit)
- ctx:platform.overlap, ctx:market.overlap, ctx:stage.complement

Key Design Decisions:
- A metric that evaluates to zero or NaN is dropped, never reported as 0.
  Absence means "no evidence", so it takes no part in the weighted mean.
- Corpus statistics (TF-IDF vocabulary, numeric mean/std) are rebuilt by
  initialize(); callers must reinitialize after the corpus changes.
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from ..schema.actors import Actor, DateField, NumericField
from .text_index import TextIndex

logger = logging.getLogger(__name__)

METRIC_DISPLAY_NAMES = {
    "date:created.prox": "Founded Timeline",
    "date:released.prox": "Release Timeline",
    "list:platforms.jaccard": "Platform Alignment",
    "list:markets.jaccard": "Market Overlap",
    "list:categories.jaccard": "Category Match",
    "list:tags.jaccard": "Tag Similarity",
    "num:rating.zexp": "Rating Alignment",
    "num:team.zexp": "Team Size Match",
    "num:price.zexp": "Price Range Match",
    "str:name.lev": "Name Similarity",
    "text:content.tfidf": "Content Similarity",
    "bipartite:capabilities.match": "Capability-Need Fit",
    "ctx:platform.overlap": "Platform Context",
    "ctx:market.overlap": "Market Context",
    "ctx:stage.complement": "Stage Synergy",
}

# Stage -> stage complementarity when the profile has no entry
DEFAULT_STAGE_COMPLEMENT = {
    "startup": {"startup": 0.5, "scale": 0.8, "enterprise": 1.0},
    "scale": {"startup": 0.8, "scale": 0.7, "enterprise": 0.9},
    "enterprise": {"startup": 1.0, "scale": 0.9, "enterprise": 0.6},
}
UNKNOWN_STAGE_PAIR_SCORE = 0.5

# Numeric fields compared pairwise (others only feed corpus statistics)
COMPARED_NUMERIC_FIELDS = [NumericField.RATING, NumericField.TEAM, NumericField.PRICE]

COMPARED_LIST_FIELDS = ["platforms", "markets", "categories", "tags"]

# (substring of metric key, reason template), first match wins
REASON_TEMPLATES = [
    ("platforms", "Strong platform alignment ({pct}% match)"),
    ("markets", "Overlapping target markets ({pct}% similarity)"),
    ("capabilities", "Complementary capabilities and needs ({pct}% fit)"),
    ("stage", "Compatible company stages ({pct}% synergy)"),
    ("rating", "Similar quality ratings ({pct}% alignment)"),
    ("text", "Strong content similarity ({pct}% match)"),
    ("categories", "Shared business categories ({pct}% overlap)"),
    ("tags", "Common interest tags ({pct}% match)"),
    ("created", "Similar founding timeline ({pct}% proximity)"),
]


@dataclass
class SignalConfig:
    """
    Configuration for the signal engine.

    Attributes:
        created_horizon_days: Decay horizon of the created-date proximity
        released_horizon_days: Decay horizon of the released-date proximity
        zexp_temperature: Default z-exp temperature
        reasons_top_n: Number of reasons generated per match
    """
    created_horizon_days: float = 365.0
    released_horizon_days: float = 180.0
    zexp_temperature: float = 1.0
    reasons_top_n: int = 3

    def validate(self) -> None:
        """Validate configuration values."""
        if self.created_horizon_days <= 0 or self.released_horizon_days <= 0:
            raise ValueError("Date horizons must be > 0")
        if self.zexp_temperature <= 0:
            raise ValueError(f"zexp_temperature must be > 0, got {self.zexp_temperature}")
        if self.reasons_top_n < 0:
            raise ValueError(f"reasons_top_n must be >= 0, got {self.reasons_top_n}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SignalConfig":
        """Create from main config dictionary."""
        signals = config.get("signals", {})
        return cls(
            created_horizon_days=signals.get("created_horizon_days", 365.0),
            released_horizon_days=signals.get("released_horizon_days", 180.0),
            zexp_temperature=signals.get("zexp_temperature", 1.0),
            reasons_top_n=signals.get("reasons_top_n", 3),
        )


@dataclass
class FieldStats:
    """Population mean and std of a numeric field over the corpus."""
    mean: float
    std: float
    count: int


# =============================================================================
# Metric primitives
# =============================================================================

def date_proximity(
    date_a: Optional[datetime],
    date_b: Optional[datetime],
    horizon_days: float
) -> float:
    """exp(-|delta days| / horizon); 0 when either date is missing."""
    if date_a is None or date_b is None:
        return 0.0
    delta_days = abs((date_a - date_b).total_seconds()) / 86400.0
    return math.exp(-delta_days / horizon_days)


def jaccard(list_a: Optional[Iterable[Any]], list_b: Optional[Iterable[Any]]) -> float:
    """
    Jaccard similarity of two lists treated as sets.

    Returns 1 when both are empty and 0 when exactly one is empty.
    """
    set_a = set(list_a or [])
    set_b = set(list_b or [])
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def zexp_similarity(z_a: float, z_b: float, temperature: float = 1.0) -> float:
    """exp(-|z_a - z_b| / temperature)."""
    return math.exp(-abs(z_a - z_b) / temperature)


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance using the two-row dynamic programme."""
    if s1 == s2:
        return 0
    if len(s1) > len(s2):
        s1, s2 = s2, s1
    if not s1:
        return len(s2)

    prev_row = list(range(len(s1) + 1))
    for j, c2 in enumerate(s2, start=1):
        curr_row = [j] + [0] * len(s1)
        for i, c1 in enumerate(s1, start=1):
            cost = 0 if c1 == c2 else 1
            curr_row[i] = min(
                prev_row[i] + 1,
                curr_row[i - 1] + 1,
                prev_row[i - 1] + cost,
            )
        prev_row = curr_row
    return prev_row[-1]


def levenshtein_similarity(s1: str, s2: str) -> float:
    """1 - distance / max length; 0 when exactly one string is empty."""
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return 1.0 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


def substring_match(a: str, b: str) -> bool:
    """Case-insensitive substring containment in either direction."""
    a, b = a.lower(), b.lower()
    return a in b or b in a


def capability_need_fraction(capabilities: List[str], needs: List[str]) -> float:
    """Fraction of needs satisfied by at least one capability."""
    if not capabilities or not needs:
        return 0.0
    satisfied = [n for n in needs if any(substring_match(c, n) for c in capabilities)]
    return len(satisfied) / len(needs)


def stage_complement(
    stage_a: Optional[str],
    stage_b: Optional[str],
    stage_table: Optional[Dict[str, Dict[str, float]]] = None
) -> Optional[float]:
    """
    Stage complementarity from a lookup table.

    The profile's table is consulted first, then DEFAULT_STAGE_COMPLEMENT.
    Lookups are case-insensitive.

    Returns:
        Score in [0, 1], UNKNOWN_STAGE_PAIR_SCORE for an unknown pair,
        or None when either stage is missing
    """
    if not stage_a or not stage_b:
        return None
    a, b = stage_a.lower(), stage_b.lower()

    for table in (stage_table or {}, DEFAULT_STAGE_COMPLEMENT):
        lowered = {
            row.lower(): {col.lower(): value for col, value in cols.items()}
            for row, cols in table.items()
        }
        if b in lowered.get(a, {}):
            return float(lowered[a][b])
    return UNKNOWN_STAGE_PAIR_SCORE


def drop_empty_metrics(metrics: Dict[str, float]) -> Dict[str, float]:
    """Remove zero and NaN entries."""
    return {
        key: value for key, value in metrics.items()
        if value is not None and not math.isnan(value) and value != 0
    }


def metric_display_name(key: str) -> str:
    """Human-readable name of a metric key."""
    if key in METRIC_DISPLAY_NAMES:
        return METRIC_DISPLAY_NAMES[key]
    return key.split(":")[-1].replace(".", " ").replace("_", " ").title()


def format_reason(key: str, value: float) -> str:
    """Templated reason string for one metric."""
    pct = round(value * 100)
    for fragment, template in REASON_TEMPLATES:
        if fragment in key:
            return template.format(pct=pct)
    field_name = key.split(":")[1].split(".")[0] if ":" in key else key
    return f"{field_name} compatibility: {pct}%"


def rank_metrics(metrics: Dict[str, float], top_n: int) -> List[tuple]:
    """Top-n (key, value) pairs by value; ties keep insertion order."""
    return sorted(metrics.items(), key=lambda item: item[1], reverse=True)[:top_n]


# =============================================================================
# Engine
# =============================================================================

class SignalEngine:
    """
    Computes pairwise metrics between actors against corpus statistics.

    Usage:
        engine = SignalEngine()
        engine.initialize(actors)
        metrics = engine.calculate_metrics(a, b)
        reasons = engine.generate_reasons(metrics)
    """

    def __init__(self, config: Optional[SignalConfig] = None):
        self.config = config or SignalConfig()
        self.config.validate()
        self.text_index = TextIndex()
        self.stats: Dict[NumericField, FieldStats] = {}
        self.corpus_size = 0
        self.initialized = False

    def initialize(self, corpus: Iterable[Actor]) -> None:
        """
        Rebuild the text index and numeric statistics from scratch.

        Args:
            corpus: All actors participating in matching
        """
        actors = list(corpus)
        self.text_index.build(actors)

        self.stats = {}
        for numeric_field in NumericField:
            values = np.array(
                [a.get_numeric(numeric_field) for a in actors if a.get_numeric(numeric_field) is not None],
                dtype=float
            )
            if len(values) == 0:
                continue
            std = float(np.std(values))
            self.stats[numeric_field] = FieldStats(
                mean=float(np.mean(values)),
                std=std if std > 0 else 1.0,
                count=len(values),
            )

        self.corpus_size = len(actors)
        self.initialized = True
        logger.info(
            f"Signal engine initialized: {self.corpus_size} actors, "
            f"{self.text_index.size} indexed documents, "
            f"{len(self.stats)} numeric fields with statistics"
        )

    def numeric_similarity(
        self,
        a: Actor,
        b: Actor,
        numeric_field: NumericField,
        temperature: Optional[float] = None
    ) -> float:
        """z-exp similarity of a numeric field; 0 without values or statistics."""
        value_a = a.get_numeric(numeric_field)
        value_b = b.get_numeric(numeric_field)
        stats = self.stats.get(numeric_field)
        if value_a is None or value_b is None or stats is None:
            return 0.0
        z_a = (value_a - stats.mean) / stats.std
        z_b = (value_b - stats.mean) / stats.std
        return zexp_similarity(z_a, z_b, temperature or self.config.zexp_temperature)

    def text_similarity(self, a: Actor, b: Actor) -> float:
        return self.text_index.similarity(a.id, b.id)

    @staticmethod
    def bipartite_match(a: Actor, b: Actor) -> float:
        """Bidirectional capability-need fit: the better of A->B and B->A."""
        return max(
            capability_need_fraction(a.capabilities, b.needs),
            capability_need_fraction(b.capabilities, a.needs),
        )

    def calculate_metrics(
        self,
        a: Actor,
        b: Actor,
        temperature: Optional[float] = None,
        stage_table: Optional[Dict[str, Dict[str, float]]] = None
    ) -> Dict[str, float]:
        """
        Compute every metric for an actor pair.

        Args:
            a: First actor
            b: Second actor
            temperature: z-exp temperature (config default when None)
            stage_table: Profile stage-compatibility matrix

        Returns:
            Metric key -> value in [0, 1], zero and NaN entries removed
        """
        metrics: Dict[str, float] = {}

        created_a, created_b = a.get_date(DateField.CREATED), b.get_date(DateField.CREATED)
        if created_a and created_b:
            metrics["date:created.prox"] = date_proximity(
                created_a, created_b, self.config.created_horizon_days
            )
        released_a, released_b = a.get_date(DateField.RELEASED), b.get_date(DateField.RELEASED)
        if released_a and released_b:
            metrics["date:released.prox"] = date_proximity(
                released_a, released_b, self.config.released_horizon_days
            )

        for list_field in COMPARED_LIST_FIELDS:
            metrics[f"list:{list_field}.jaccard"] = jaccard(
                getattr(a, list_field), getattr(b, list_field)
            )

        for numeric_field in COMPARED_NUMERIC_FIELDS:
            if a.get_numeric(numeric_field) is not None and b.get_numeric(numeric_field) is not None:
                metrics[f"num:{numeric_field.value}.zexp"] = self.numeric_similarity(
                    a, b, numeric_field, temperature
                )

        if a.name and b.name:
            metrics["str:name.lev"] = levenshtein_similarity(a.name, b.name)

        metrics["text:content.tfidf"] = self.text_similarity(a, b)
        metrics["bipartite:capabilities.match"] = self.bipartite_match(a, b)
        metrics["ctx:platform.overlap"] = jaccard(a.platforms, b.platforms)
        metrics["ctx:market.overlap"] = jaccard(a.markets, b.markets)

        stage = stage_complement(a.stage, b.stage, stage_table)
        if stage is not None:
            metrics["ctx:stage.complement"] = stage

        return drop_empty_metrics(metrics)

    def generate_reasons(self, metrics: Dict[str, float], top_n: Optional[int] = None) -> List[str]:
        """
        Human-readable reasons for the strongest metrics.

        Args:
            metrics: Metric key -> value
            top_n: Number of reasons (config default when None)

        Returns:
            Reason strings, strongest first
        """
        if top_n is None:
            top_n = self.config.reasons_top_n
        return [format_reason(key, value) for key, value in rank_metrics(metrics, top_n)]
