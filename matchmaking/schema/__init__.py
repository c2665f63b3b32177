"""Data model for actors, weight profiles, matches and ingest jobs."""

from .actors import (
    Actor,
    ActorKind,
    Attendee,
    AvailabilitySlot,
    Company,
    Consent,
    DateField,
    NumericField,
    ScanStats,
    Sponsor,
    actor_from_dict,
)
from .profiles import WeightProfile, Thresholds, NormalizeConfig, ContextRules
from .matches import (
    BatchResult,
    Contribution,
    Match,
    MatchFilters,
    MatchRequest,
    MatchResponse,
    ScanEvent,
    edge_id_for,
)
from .ingest import (
    ColumnDetection,
    DuplicatePolicy,
    IngestLog,
    IngestStatus,
    Severity,
    UploadRequest,
    UploadResponse,
    ValidationIssue,
)
from .taxonomy import TaxonomyFilters, TaxonomyRequest, TaxonomyResponse

__all__ = [
    "Actor",
    "ActorKind",
    "Attendee",
    "AvailabilitySlot",
    "Company",
    "Consent",
    "DateField",
    "NumericField",
    "ScanStats",
    "Sponsor",
    "actor_from_dict",
    "WeightProfile",
    "Thresholds",
    "NormalizeConfig",
    "ContextRules",
    "BatchResult",
    "Contribution",
    "Match",
    "MatchFilters",
    "MatchRequest",
    "MatchResponse",
    "ScanEvent",
    "edge_id_for",
    "ColumnDetection",
    "DuplicatePolicy",
    "IngestLog",
    "IngestStatus",
    "Severity",
    "UploadRequest",
    "UploadResponse",
    "ValidationIssue",
    "TaxonomyFilters",
    "TaxonomyRequest",
    "TaxonomyResponse",
]
