"""
Ingestion data model: upload requests, detected columns, validation
issues and the ingest log written for every upload.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(Enum):
    """Severity of a row validation issue."""
    ERROR = "error"
    WARNING = "warning"


class DuplicatePolicy(Enum):
    """What to do when an uploaded actor already exists."""
    SKIP = "skip"
    UPDATE = "update"
    CREATE_NEW = "create_new"


class IngestStatus(Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ValidationIssue:
    """
    A per-row validation problem.

    Error-severity issues exclude the row from persistence;
    warnings are reported but the row is kept.
    """
    row: int
    field: str
    value: Any
    message: str
    severity: Severity

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["severity"] = self.severity.value
        return d


@dataclass
class ColumnDetection:
    """Inferred type and suggested target field of an uploaded column."""
    header: str
    suggested_field: str
    confidence: int
    data_type: str
    sample_values: List[str] = field(default_factory=list)
    unique_count: int = 0
    null_count: int = 0


@dataclass
class MappedRow:
    """
    One upload row after header mapping.

    Attributes:
        row_number: 1-based row index in the upload
        fields: Known target fields with typed values
        extras: Target fields with no known type, stored verbatim
    """
    row_number: int
    fields: Dict[str, Any] = field(default_factory=dict)
    extras: Dict[str, str] = field(default_factory=dict)


@dataclass
class UploadRequest:
    """
    A tabular upload.

    Attributes:
        filename: Original file name (drives the file-type check)
        rows: Rows as free-form string-keyed maps
        field_mappings: Explicit header -> field mapping; always wins
        duplicate_handling: skip, update or create_new
        validate_only: Preview mode, never persists actors
    """
    filename: str
    rows: List[Dict[str, Any]]
    field_mappings: Dict[str, str] = field(default_factory=dict)
    duplicate_handling: DuplicatePolicy = DuplicatePolicy.SKIP
    validate_only: bool = False

    def __post_init__(self):
        if isinstance(self.duplicate_handling, str):
            self.duplicate_handling = DuplicatePolicy(self.duplicate_handling)


@dataclass
class IngestLog:
    """Record of one ingest job."""
    id: str
    filename: str
    file_type: str
    row_count: int
    duplicate_handling: str
    status: IngestStatus = IngestStatus.PROCESSING
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    processing_time_ms: int = 0
    processed_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    duplicates_found: int = 0
    profile_completeness_avg: int = 0
    field_mappings: Dict[str, str] = field(default_factory=dict)
    detected_columns: List[ColumnDetection] = field(default_factory=list)
    validation_errors: List[ValidationIssue] = field(default_factory=list)
    sample_rows: List[Dict[str, Any]] = field(default_factory=list)
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        d = asdict(self)
        d["status"] = self.status.value
        d["validation_errors"] = [issue.to_dict() for issue in self.validation_errors]
        return d


@dataclass
class ValidationSummary:
    total_rows: int
    valid_rows: int
    error_rows: int
    warning_rows: int


@dataclass
class UploadPreview:
    """Preview returned in validate-only mode."""
    sample_actors: List[Dict[str, Any]]
    field_mappings: Dict[str, str]
    validation_summary: ValidationSummary


@dataclass
class UploadResponse:
    ingest_log: IngestLog
    preview: Optional[UploadPreview] = None


@dataclass
class AttendeeUploadConfig:
    """
    Settings of an attendee upload.

    Attributes:
        mapping: Header -> attendee field ('consent.matchmaking' style
            dotted targets set nested fields)
        dry_run: Validate only
        skip_duplicates: Skip rows matching an existing attendee
        merge_strategy: replace, merge or skip for existing attendees
    """
    mapping: Dict[str, str]
    dry_run: bool = False
    skip_duplicates: bool = False
    merge_strategy: str = "merge"


@dataclass
class AttendeeUploadResult:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    materialized: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    dry_run: bool = False
