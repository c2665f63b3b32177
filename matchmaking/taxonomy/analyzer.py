"""
Taxonomy analyzer: aggregate views of a categorical dimension.

Each actor's values for the requested dimension are one-hot encoded with
MultiLabelBinarizer; every visualization is then derived from the
resulting actor x value indicator matrix with numpy.

Key Design Decisions:
- Read-only over a filtered, size-capped corpus sample
- Every response carries coverage metadata (share of sampled actors with
  any value for the dimension)
- generate_visualization never raises: failures become a status
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from sklearn.preprocessing import MultiLabelBinarizer

from ..schema.actors import Actor, actor_from_dict, utc_now
from ..schema.taxonomy import (
    VISUALIZATIONS,
    CoverageMetadata,
    TaxonomyFilters,
    TaxonomyRequest,
    TaxonomyResponse,
)
from ..storage import ACTORS, DocumentStore, Filter

logger = logging.getLogger(__name__)

# Dimension name -> actor list field
DIMENSION_FIELDS = {
    "industry": "industry",
    "platform": "platforms",
    "technology": "technologies",
    "market": "markets",
    "capability": "capabilities",
    "need": "needs",
    "category": "categories",
    "tag": "tags",
}

CORRELATION_DIMENSIONS = ["industry", "platform", "technology", "market", "capability", "need"]

INDUSTRY_GROUPS = [
    ("gaming", ["game", "gaming"]),
    ("technology", ["tech", "software"]),
    ("media", ["media", "entertainment"]),
]
PLATFORM_GROUPS = [
    ("mobile", ["mobile", "ios", "android"]),
    ("pc", ["pc", "steam", "epic"]),
    ("console", ["console", "playstation", "xbox", "nintendo"]),
    ("web", ["web", "browser"]),
]
ALPHABET_BUCKETS = [("a", "f"), ("g", "l"), ("m", "r"), ("s", "z")]

EXAMPLE_ACTORS = 5
CORRELATION_EXAMPLES = 3
CORRELATION_TOP_PAIRS = 10


@dataclass
class TaxonomyConfig:
    """
    Configuration for the taxonomy analyzer.

    Attributes:
        sample_limit: Maximum number of actors loaded
        edge_threshold_fraction: Network edges need a co-occurrence of at
            least this fraction of the sample (and at least 1)
        min_overlap: Correlation pairs need a Jaccard above this
        significant_strength: Correlations above this are significant
        head_size: Distribution head length
    """
    sample_limit: int = 5000
    edge_threshold_fraction: float = 0.02
    min_overlap: float = 0.1
    significant_strength: float = 0.3
    head_size: int = 20

    def validate(self) -> None:
        """Validate configuration values."""
        if self.sample_limit < 1:
            raise ValueError(f"sample_limit must be >= 1, got {self.sample_limit}")
        for name in ("edge_threshold_fraction", "min_overlap", "significant_strength"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "TaxonomyConfig":
        """Create from main config dictionary."""
        section = config.get("taxonomy", {})
        return cls(**{k: v for k, v in section.items() if k in cls.__dataclass_fields__})


def dimension_values(actor: Actor, dimension: str) -> List[str]:
    """
    Values of one actor for a dimension.

    Multi-valued dimensions map to list fields; anything else is read as a
    single string attribute.
    """
    list_field = DIMENSION_FIELDS.get(dimension, dimension)
    value = getattr(actor, list_field, None)
    if isinstance(value, list):
        return list(dict.fromkeys(str(v) for v in value if v))
    if isinstance(value, str) and value:
        return [value]
    return []


def indicator_matrix(actors: List[Actor], dimension: str) -> Tuple[List[str], np.ndarray]:
    """
    Actor x value indicator matrix.

    Returns:
        Tuple of (sorted value labels, int matrix of shape (n_actors, n_values))
    """
    binarizer = MultiLabelBinarizer()
    matrix = binarizer.fit_transform([dimension_values(a, dimension) for a in actors])
    labels = [str(label) for label in binarizer.classes_]
    return labels, np.asarray(matrix, dtype=np.int64).reshape(len(actors), len(labels))


def coverage_percent(matrix: np.ndarray) -> float:
    """Percentage of actors carrying any value."""
    if matrix.shape[0] == 0:
        return 0.0
    return float((matrix.sum(axis=1) > 0).mean() * 100)


def value_group(value: str, dimension: str) -> str:
    """Coarse group of a value, used to color network nodes."""
    lowered = value.lower()
    if dimension in ("industry", "platform"):
        groups = INDUSTRY_GROUPS if dimension == "industry" else PLATFORM_GROUPS
        for group, keywords in groups:
            if any(k in lowered for k in keywords):
                return group
        return "other"

    first = lowered[:1]
    for start, end in ALPHABET_BUCKETS:
        if start <= first <= end:
            return f"{start}-{end}"
    return "other"


class TaxonomyAnalyzer:
    """
    Heatmap, network, distribution and correlation views of the corpus.

    Usage:
        analyzer = TaxonomyAnalyzer(store)
        response = analyzer.generate_visualization(
            TaxonomyRequest(dimension="platform", visualization="network")
        )
    """

    def __init__(self, store: DocumentStore, config: Optional[TaxonomyConfig] = None):
        self.store = store
        self.config = config or TaxonomyConfig()
        self.config.validate()

    def generate_visualization(self, request: TaxonomyRequest) -> TaxonomyResponse:
        """
        Build the requested visualization.

        Returns:
            TaxonomyResponse with status 'ok', 'not_found' (no actors match
            the filters) or 'failed'
        """
        response = TaxonomyResponse(
            status="ok",
            dimension=request.dimension,
            visualization=request.visualization,
            metadata=CoverageMetadata(generated_at=utc_now().isoformat()),
        )

        if request.visualization not in VISUALIZATIONS:
            response.status = "failed"
            response.error = f"Unsupported visualization type: {request.visualization}"
            logger.warning(response.error)
            return response

        try:
            actors = self.load_actors(request.filters)
            if not actors:
                response.status = "not_found"
                response.error = "No actors found matching the specified filters"
                return response

            labels, matrix = indicator_matrix(actors, request.dimension)
            response.metadata.total_actors = len(actors)
            response.metadata.unique_values = len(labels)
            response.metadata.coverage = coverage_percent(matrix)

            if request.visualization == "heatmap":
                response.data = self.heatmap(labels, matrix)
            elif request.visualization == "network":
                response.data = self.network(labels, matrix, request.dimension)
            elif request.visualization == "distribution":
                response.data = self.distribution(labels, matrix, actors)
            else:
                response.data = self.correlation(actors, request.dimension)
        except Exception as e:
            logger.exception(f"Taxonomy {request.visualization} over {request.dimension} failed")
            response.status = "failed"
            response.error = str(e)
            return response

        logger.info(
            f"Taxonomy {request.visualization} over {request.dimension}: "
            f"{response.metadata.total_actors} actors, "
            f"{response.metadata.coverage:.1f}% coverage"
        )
        return response

    def load_actors(self, filters: TaxonomyFilters) -> List[Actor]:
        """Filtered corpus sample, capped at sample_limit."""
        conditions = [
            Filter(field_name, "in", list(values))
            for field_name, values in [
                ("company_type", filters.company_types),
                ("country", filters.countries),
                ("funding_stage", filters.funding_stages),
                ("kind", filters.kinds),
            ]
            if values
        ]
        docs = self.store.query(ACTORS, conditions, limit=self.config.sample_limit)
        return [actor_from_dict(doc) for doc in docs]

    # =========================================================================
    # Visualizations
    # =========================================================================

    def heatmap(self, labels: List[str], matrix: np.ndarray) -> Dict[str, Any]:
        """Symmetric co-occurrence matrix, with cells as percent of the maximum."""
        cooccurrence = matrix.T @ matrix
        max_value = int(cooccurrence.max()) if cooccurrence.size else 0
        percentages = cooccurrence * 100.0 / max_value if max_value else np.zeros_like(cooccurrence, dtype=float)

        cells = [
            {
                "x": j,
                "y": i,
                "value": int(cooccurrence[i, j]),
                "percentage": float(percentages[i, j]),
                "x_label": labels[j],
                "y_label": labels[i],
            }
            for i in range(len(labels))
            for j in range(len(labels))
        ]
        return {
            "type": "heatmap",
            "labels": labels,
            "matrix": cooccurrence.tolist(),
            "data": cells,
            "max_value": max_value,
            "total_combinations": len(labels) ** 2,
        }

    def network(self, labels: List[str], matrix: np.ndarray, dimension: str) -> Dict[str, Any]:
        """Value nodes sized by count; edges for frequent co-occurrences."""
        cooccurrence = matrix.T @ matrix
        min_weight = max(1, int(np.floor(matrix.shape[0] * self.config.edge_threshold_fraction)))

        nodes = [
            {
                "id": i,
                "name": label,
                "size": int(cooccurrence[i, i]),
                "group": value_group(label, dimension),
            }
            for i, label in enumerate(labels)
        ]

        rows, cols = np.triu_indices(len(labels), k=1)
        edges = [
            {
                "source": int(i),
                "target": int(j),
                "weight": int(cooccurrence[i, j]),
                "label": f"{int(cooccurrence[i, j])} actors",
            }
            for i, j in zip(rows, cols)
            if cooccurrence[i, j] >= min_weight
        ]

        return {
            "type": "network",
            "nodes": nodes,
            "edges": edges,
            "total_nodes": len(nodes),
            "total_edges": len(edges),
            "min_weight": min_weight,
            "layout": "force-directed",
        }

    def distribution(self, labels: List[str], matrix: np.ndarray, actors: List[Actor]) -> Dict[str, Any]:
        """Values ranked by frequency, with summary statistics."""
        counts = matrix.sum(axis=0)
        order = sorted(range(len(labels)), key=lambda i: -counts[i])

        data = []
        for rank, i in enumerate(order, start=1):
            holders = np.flatnonzero(matrix[:, i])[:EXAMPLE_ACTORS]
            data.append({
                "rank": rank,
                "value": labels[i],
                "count": int(counts[i]),
                "percentage": float(counts[i] * 100.0 / len(actors)),
                "actors": [
                    {"id": actors[k].id, "name": actors[k].display_name(), "kind": actors[k].kind.value}
                    for k in holders
                ],
            })

        if len(counts):
            statistics = {
                "total_values": len(labels),
                "total_occurrences": int(counts.sum()),
                "mean": round(float(counts.mean()), 2),
                "median": float(np.median(counts)),
                "max": int(counts.max()),
                "min": int(counts.min()),
                "range": int(counts.max() - counts.min()),
            }
        else:
            statistics = {
                "total_values": 0, "total_occurrences": 0, "mean": 0.0,
                "median": 0.0, "max": 0, "min": 0, "range": 0,
            }

        head = self.config.head_size
        return {
            "type": "distribution",
            "data": data,
            "statistics": statistics,
            "top_values": data[:head],
            "long_tail": data[head:],
        }

    def correlation(self, actors: List[Actor], primary: str) -> Dict[str, Any]:
        """Jaccard overlap between the primary dimension and each other dimension."""
        primary_labels, primary_matrix = indicator_matrix(actors, primary)

        correlations = []
        for secondary in CORRELATION_DIMENSIONS:
            if secondary == primary:
                continue
            secondary_labels, secondary_matrix = indicator_matrix(actors, secondary)
            result = self._dimension_correlation(
                actors, primary_labels, primary_matrix, secondary, secondary_labels, secondary_matrix
            )
            if result is not None:
                correlations.append(result)

        correlations.sort(key=lambda c: c["strength"], reverse=True)
        return {
            "type": "correlation",
            "primary_dimension": primary,
            "correlations": correlations,
            "total_actors": len(actors),
            "significant_correlations": [
                c for c in correlations if c["strength"] > self.config.significant_strength
            ],
        }

    def _dimension_correlation(
        self,
        actors: List[Actor],
        labels1: List[str],
        matrix1: np.ndarray,
        dimension2: str,
        labels2: List[str],
        matrix2: np.ndarray
    ) -> Optional[Dict[str, Any]]:
        if len(labels1) < 2 or len(labels2) < 2:
            return None

        intersection = matrix1.T @ matrix2
        union = matrix1.sum(axis=0)[:, None] + matrix2.sum(axis=0)[None, :] - intersection
        jaccard = np.divide(
            intersection, union,
            out=np.zeros(intersection.shape, dtype=float),
            where=union > 0,
        )

        pairs = []
        for i, j in zip(*np.nonzero(jaccard > self.config.min_overlap)):
            shared = np.flatnonzero(matrix1[:, i] & matrix2[:, j])
            pairs.append({
                "value1": labels1[i],
                "value2": labels2[j],
                "jaccard": float(jaccard[i, j]),
                "shared_actors": int(intersection[i, j]),
                "actors1_count": int(matrix1[:, i].sum()),
                "actors2_count": int(matrix2[:, j].sum()),
                "examples": [
                    {"id": actors[k].id, "name": actors[k].display_name()}
                    for k in shared[:CORRELATION_EXAMPLES]
                ],
            })

        strength = float(np.mean([p["jaccard"] for p in pairs])) if pairs else 0.0
        pairs.sort(key=lambda p: p["jaccard"], reverse=True)
        return {
            "dimension": dimension2,
            "strength": strength,
            "significant_pairs": pairs[:CORRELATION_TOP_PAIRS],
            "total_pairs": len(pairs),
        }
