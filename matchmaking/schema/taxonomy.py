"""
Taxonomy request/response data model.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

VISUALIZATIONS = ["heatmap", "network", "distribution", "correlation"]


@dataclass
class TaxonomyFilters:
    """Corpus filters; an empty list means no filter."""
    company_types: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)
    funding_stages: List[str] = field(default_factory=list)
    kinds: List[str] = field(default_factory=list)


@dataclass
class TaxonomyRequest:
    """
    Attributes:
        dimension: Multi-valued dimension ('industry', 'platform', ...) or
            a single-valued actor attribute ('country', 'stage', ...)
        visualization: heatmap, network, distribution or correlation
        filters: Corpus filters
    """
    dimension: str
    visualization: str
    filters: TaxonomyFilters = field(default_factory=TaxonomyFilters)

    def __post_init__(self):
        if isinstance(self.filters, dict):
            self.filters = TaxonomyFilters(**self.filters)


@dataclass
class CoverageMetadata:
    """Data-quality summary attached to every taxonomy response."""
    total_actors: int = 0
    unique_values: int = 0
    coverage: float = 0.0
    generated_at: Optional[str] = None


@dataclass
class TaxonomyResponse:
    status: str
    dimension: str
    visualization: str
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: CoverageMetadata = field(default_factory=CoverageMetadata)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
