"""
Weight profile data model.

A weight profile is a named scoring configuration: per-metric weights,
normalization settings, result thresholds and contextual adjustment rules.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

# Weight of a metric that a profile does not list
DEFAULT_METRIC_WEIGHT = 1.0

WEIGHT_RANGE = (0.0, 100.0)
SCORE_THRESHOLD_RANGE = (0.0, 100.0)
CONFIDENCE_THRESHOLD_RANGE = (0.0, 100.0)
MAX_RESULTS_RANGE = (1, 1000)

NORMALIZATION_METHODS = ["zexp"]


@dataclass
class Thresholds:
    """
    Result thresholds, on a 0-100 scale.

    Attributes:
        minimum_overall_score: Minimum match score (percent) to keep a match
        minimum_confidence: Minimum confidence (percent) to keep a match
        maximum_results: Maximum number of matches returned
    """
    minimum_overall_score: float = 40
    minimum_confidence: float = 30
    maximum_results: int = 100


@dataclass
class NormalizeConfig:
    """Numeric normalization settings passed to the signal engine."""
    method: str = "zexp"
    temperature: float = 1.0


@dataclass
class ContextRules:
    """
    Contextual adjustment tables.

    Attributes:
        platform_boosts: Platform name -> multiplicative boost
        market_synergies: Market -> market -> synergy in [0, 1]
        stage_compatibility: Stage -> stage -> compatibility in [0, 1]
    """
    platform_boosts: Dict[str, float] = field(default_factory=dict)
    market_synergies: Dict[str, Dict[str, float]] = field(default_factory=dict)
    stage_compatibility: Dict[str, Dict[str, float]] = field(default_factory=dict)


@dataclass
class WeightProfile:
    """Named configuration of metric weights, thresholds and context rules."""
    id: str
    name: str
    persona: str
    description: str = ""
    weights: Dict[str, float] = field(default_factory=dict)
    normalize: NormalizeConfig = field(default_factory=NormalizeConfig)
    thresholds: Thresholds = field(default_factory=Thresholds)
    context_rules: ContextRules = field(default_factory=ContextRules)
    is_default: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[str] = None

    def __post_init__(self):
        """Convert nested dictionaries to their dataclasses."""
        if isinstance(self.normalize, dict):
            self.normalize = NormalizeConfig(**self.normalize)
        if isinstance(self.thresholds, dict):
            self.thresholds = Thresholds(**self.thresholds)
        if isinstance(self.context_rules, dict):
            self.context_rules = ContextRules(**self.context_rules)

    def weight_for(self, metric_key: str) -> float:
        """Weight of a metric; unlisted metrics still count with weight 1."""
        return self.weights.get(metric_key, DEFAULT_METRIC_WEIGHT)

    @property
    def score_threshold(self) -> float:
        """Minimum overall score as a fraction in [0, 1]."""
        return self.thresholds.minimum_overall_score / 100.0

    @property
    def confidence_threshold(self) -> float:
        """Minimum confidence as a fraction in [0, 1]."""
        return self.thresholds.minimum_confidence / 100.0

    def validation_errors(self) -> List[str]:
        """
        Collect every validation problem of this profile.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.name:
            errors.append("Name is required")
        if not self.persona:
            errors.append("Persona is required")

        low, high = WEIGHT_RANGE
        if not isinstance(self.weights, dict):
            errors.append("Weights must be a mapping of metric key to weight")
        for key, value in _mapping(self.weights).items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not low <= value <= high:
                errors.append(f"Weight '{key}' must be a number between 0 and 100")

        t = self.thresholds
        if not _in_range(t.minimum_overall_score, SCORE_THRESHOLD_RANGE):
            errors.append("Minimum overall score must be between 0 and 100")
        if not _in_range(t.minimum_confidence, CONFIDENCE_THRESHOLD_RANGE):
            errors.append("Minimum confidence must be between 0 and 100")
        if not _in_range(t.maximum_results, MAX_RESULTS_RANGE):
            errors.append("Maximum results must be between 1 and 1000")

        if self.normalize.method not in NORMALIZATION_METHODS:
            errors.append(f"Unknown normalization method: {self.normalize.method}")
        if not isinstance(self.normalize.temperature, (int, float)) or self.normalize.temperature <= 0:
            errors.append("Normalization temperature must be > 0")

        rules = self.context_rules
        if not isinstance(rules.platform_boosts, dict):
            errors.append("Platform boosts must be a mapping of platform to boost")
        for platform, boost in _mapping(rules.platform_boosts).items():
            if not isinstance(boost, (int, float)) or boost <= 0:
                errors.append(f"Platform boost '{platform}' must be > 0")
        for table_name, table in [
            ("market synergy", rules.market_synergies),
            ("stage compatibility", rules.stage_compatibility),
        ]:
            if not isinstance(table, dict):
                errors.append(f"{table_name.capitalize()} table must be a mapping")
                continue
            for row_key, row in table.items():
                if not isinstance(row, dict):
                    errors.append(f"{table_name.capitalize()} row '{row_key}' must be a mapping")
                    continue
                for col_key, value in row.items():
                    if not _in_range(value, (0.0, 1.0)):
                        errors.append(
                            f"{table_name.capitalize()} '{row_key}' -> '{col_key}' must be in [0, 1]"
                        )

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WeightProfile":
        """Create from dictionary."""
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in d.items() if k in known})


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _in_range(value: Any, bounds) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    low, high = bounds
    return low <= value <= high
