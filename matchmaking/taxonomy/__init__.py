"""Aggregate views of categorical dimensions over the corpus."""

from .analyzer import TaxonomyAnalyzer, TaxonomyConfig, dimension_values, indicator_matrix

__all__ = [
    "TaxonomyAnalyzer",
    "TaxonomyConfig",
    "dimension_values",
    "indicator_matrix",
]
