"""
Ingestion processor: tabular uploads into validated company actors.

Pipeline:
1. File checks (type allow-list, row ceiling, non-empty)
2. Column detection and automatic header mapping
3. Row transformation by target field type; unknown targets go to extras
4. Row validation (errors exclude the row, warnings are only reported)
5. Duplicate handling by exact name: skip, update or create_new
6. Chunked persistence and an ingest log for every upload

The ingest log moves processing -> completed | failed. Row-level problems
never fail the job; only file-level rejections and unexpected errors do.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from ..errors import UploadRejectedError
from ..schema.actors import Company, NumericField, parse_datetime, utc_now
from ..schema.ingest import (
    DuplicatePolicy,
    IngestLog,
    IngestStatus,
    MappedRow,
    Severity,
    UploadPreview,
    UploadRequest,
    UploadResponse,
    ValidationIssue,
    ValidationSummary,
)
from ..storage import ACTORS, INGEST_LOGS, ChunkedWriter, DocumentStore, Filter
from .column_detection import DetectionThresholds, detect_columns, generate_field_mappings

logger = logging.getLogger(__name__)

STRING_FIELDS = {
    "name", "description", "website", "country", "city", "timezone", "type",
    "size", "stage", "funding_stage", "contact_email", "linkedin_url",
    "twitter_handle", "pitch", "looking_for",
}
ARRAY_FIELDS = {"industry", "platforms", "technologies", "markets", "capabilities", "needs", "tags"}
NUMBER_FIELDS = {
    "employees": NumericField.EMPLOYEES,
    "last_funding_amount": NumericField.LAST_FUNDING_AMOUNT,
    "valuation": NumericField.VALUATION,
    "revenue": NumericField.REVENUE,
    "founded_year": NumericField.FOUNDED_YEAR,
}
DATE_FIELDS = {"last_funding_date"}

# Upload field -> Company attribute where the names differ
COMPANY_ATTRIBUTES = {"type": "company_type"}

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_FOUNDED_YEAR = 1800

# Checklist driving profile completeness
COMPLETENESS_CHECKLIST: List[Tuple[str, Callable[[Company], Any]]] = [
    ("name", lambda c: c.name),
    ("description", lambda c: c.get_text("description")),
    ("website", lambda c: c.website),
    ("country", lambda c: c.country),
    ("city", lambda c: c.city),
    ("type", lambda c: c.company_type),
    ("size", lambda c: c.size),
    ("stage", lambda c: c.stage),
    ("industry", lambda c: c.industry),
    ("platforms", lambda c: c.platforms),
    ("technologies", lambda c: c.technologies),
    ("markets", lambda c: c.markets),
    ("capabilities", lambda c: c.capabilities),
    ("needs", lambda c: c.needs),
    ("funding_stage", lambda c: c.funding_stage),
    ("employees", lambda c: c.get_numeric(NumericField.EMPLOYEES)),
    ("founded_year", lambda c: c.get_numeric(NumericField.FOUNDED_YEAR)),
    ("contact_email", lambda c: c.contact_email),
    ("pitch", lambda c: c.pitch),
    ("looking_for", lambda c: c.looking_for),
]


@dataclass
class IngestConfig:
    """
    Configuration for the ingestion processor.

    Attributes:
        max_rows: Hard row ceiling per upload
        supported_file_types: Allowed file extensions
        auto_map_confidence: Minimum confidence of an automatic mapping
        sample_rows: Rows copied into the ingest log and preview
        detection: Column-type detection thresholds
    """
    max_rows: int = 1000
    supported_file_types: List[str] = field(default_factory=lambda: ["csv", "xlsx", "xls"])
    auto_map_confidence: int = 60
    sample_rows: int = 5
    detection: DetectionThresholds = field(default_factory=DetectionThresholds)

    def validate(self) -> None:
        """Validate configuration values."""
        if self.max_rows < 1:
            raise ValueError(f"max_rows must be >= 1, got {self.max_rows}")
        if not self.supported_file_types:
            raise ValueError("supported_file_types must not be empty")
        if not 0 <= self.auto_map_confidence <= 100:
            raise ValueError(f"auto_map_confidence must be in [0, 100], got {self.auto_map_confidence}")
        self.detection.validate()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "IngestConfig":
        """Create from main config dictionary."""
        ingestion = config.get("ingestion", {})
        return cls(
            max_rows=ingestion.get("max_rows", 1000),
            supported_file_types=ingestion.get("supported_file_types", ["csv", "xlsx", "xls"]),
            auto_map_confidence=ingestion.get("auto_map_confidence", 60),
            sample_rows=ingestion.get("sample_rows", 5),
            detection=DetectionThresholds.from_config(config),
        )


# =============================================================================
# Field parsing and row transformation
# =============================================================================

def detect_file_type(filename: str) -> str:
    """Lowercased file extension, or 'unknown'."""
    suffix = Path(filename).suffix.lower().lstrip(".")
    return suffix or "unknown"


def parse_array(value: str) -> List[str]:
    """Split on , ; or | and drop empty items."""
    return [item.strip() for item in re.split(r"[,;|]", value) if item.strip()]


def parse_number(value: str) -> Optional[float]:
    """Parse a number after stripping ',', '$' and '%'; None if invalid."""
    cleaned = re.sub(r"[,$%]", "", value)
    try:
        return float(cleaned)
    except ValueError:
        return None


def generate_actor_id(name: str, unique: bool = False) -> str:
    """
    Stable id derived from a name.

    Non-alphanumerics become '_', runs of '_' collapse, and leading or
    trailing '_' are stripped. unique=True appends a random suffix.
    """
    base = re.sub(r"[^a-z0-9]", "_", name.lower())
    base = re.sub(r"_+", "_", base).strip("_")
    if unique:
        return f"{base}_{uuid.uuid4().hex[:8]}"
    return base


def generate_batch_id(now: datetime) -> str:
    return f"batch_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


def map_row(row: Dict[str, Any], field_mappings: Dict[str, str], row_number: int) -> MappedRow:
    """
    Apply header mappings and type conversion to one row.

    Empty values are ignored. Targets with no known type are kept verbatim
    in extras.
    """
    mapped = MappedRow(row_number=row_number)
    for header, target in field_mappings.items():
        raw = row.get(header)
        if raw is None:
            continue
        value = str(raw).strip()
        if not value:
            continue

        if target in STRING_FIELDS:
            mapped.fields[target] = value
        elif target in ARRAY_FIELDS:
            mapped.fields[target] = parse_array(value)
        elif target in NUMBER_FIELDS:
            number = parse_number(value)
            if number is not None:
                mapped.fields[target] = number
        elif target in DATE_FIELDS:
            parsed = parse_datetime(value)
            if parsed is not None:
                mapped.fields[target] = parsed.isoformat()
        else:
            mapped.extras[target] = value
    return mapped


def build_company(mapped: MappedRow, batch_id: Optional[str]) -> Company:
    """Build a Company from a mapped row."""
    company = Company(
        id=generate_actor_id(mapped.fields.get("name", "")),
        source="upload",
        upload_batch=batch_id,
        extras=dict(mapped.extras),
    )
    for target, value in mapped.fields.items():
        if target in NUMBER_FIELDS:
            company.set_numeric(NUMBER_FIELDS[target], value)
        elif target == "description":
            company.text["description"] = value
        else:
            setattr(company, COMPANY_ATTRIBUTES.get(target, target), value)

    company.profile_completeness = profile_completeness(company)
    return company


def profile_completeness(company: Company) -> int:
    """Percentage (0-100) of checklist fields that are filled."""
    filled = 0
    for _, getter in COMPLETENESS_CHECKLIST:
        value = getter(company)
        if value is not None and value != "" and value != []:
            filled += 1
    return round(filled / len(COMPLETENESS_CHECKLIST) * 100)


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def validate_company(company: Company, row_number: int, current_year: int) -> List[ValidationIssue]:
    """
    Validate one transformed company.

    Missing or too-short name and missing country are errors; bad URL or
    email, out-of-range founded year and negative employees are warnings.
    """
    issues = []

    def issue(field_name: str, value: Any, message: str, severity: Severity) -> None:
        issues.append(ValidationIssue(row_number, field_name, value, message, severity))

    if not company.name or len(company.name) < 2:
        issue("name", company.name, "Company name must be at least 2 characters", Severity.ERROR)
    if not company.country:
        issue("country", company.country, "Country is required", Severity.ERROR)

    if company.website and not is_valid_url(company.website):
        issue("website", company.website, "Invalid website URL format", Severity.WARNING)
    if company.contact_email and not EMAIL_PATTERN.match(company.contact_email):
        issue("contact_email", company.contact_email, "Invalid email format", Severity.WARNING)

    founded = company.get_numeric(NumericField.FOUNDED_YEAR)
    if founded is not None and not MIN_FOUNDED_YEAR <= founded <= current_year:
        issue(
            "founded_year", founded,
            f"Founded year must be between {MIN_FOUNDED_YEAR} and {current_year}",
            Severity.WARNING,
        )
    employees = company.get_numeric(NumericField.EMPLOYEES)
    if employees is not None and employees < 0:
        issue("employees", employees, "Employee count cannot be negative", Severity.WARNING)

    return issues


# =============================================================================
# Processor
# =============================================================================

class UploadProcessor:
    """
    Runs ingest jobs against a document store.

    Usage:
        processor = UploadProcessor(store)
        response = processor.process_upload(UploadRequest("companies.csv", rows))
        print(response.ingest_log.success_count)
    """

    def __init__(
        self,
        store: DocumentStore,
        config: Optional[IngestConfig] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.config = config or IngestConfig()
        self.config.validate()
        self.clock = clock

    def process_upload(self, request: UploadRequest, uploaded_by: Optional[str] = None) -> UploadResponse:
        """
        Run one ingest job.

        Args:
            request: Upload request
            uploaded_by: Identity of the uploader

        Returns:
            UploadResponse with the final ingest log (and a preview in
            validate-only mode)
        """
        start = time.perf_counter()
        now = self.clock()
        log = IngestLog(
            id=generate_batch_id(now),
            filename=request.filename,
            file_type=detect_file_type(request.filename),
            row_count=len(request.rows),
            duplicate_handling=request.duplicate_handling.value,
            uploaded_by=uploaded_by,
            uploaded_at=now.isoformat(),
            started_at=now.isoformat(),
            field_mappings=dict(request.field_mappings),
            sample_rows=[dict(r) for r in request.rows[:self.config.sample_rows]],
        )
        response = UploadResponse(ingest_log=log)

        try:
            self._check_file(request, log.file_type)

            log.detected_columns = detect_columns(request.rows, self.config.detection)
            if not request.field_mappings:
                log.field_mappings = generate_field_mappings(
                    log.detected_columns, self.config.auto_map_confidence
                )

            companies, issues = self._transform_and_validate(request.rows, log.field_mappings, log.id)
            log.validation_errors = issues
            log.error_count = sum(1 for i in issues if i.is_error)
            log.processed_rows = len(companies)
            log.profile_completeness_avg = _average_completeness(companies)

            if request.validate_only:
                response.preview = UploadPreview(
                    sample_actors=[c.to_dict() for c in companies[:self.config.sample_rows]],
                    field_mappings=log.field_mappings,
                    validation_summary=ValidationSummary(
                        total_rows=len(request.rows),
                        valid_rows=len(companies),
                        error_rows=log.error_count,
                        warning_rows=sum(1 for i in issues if not i.is_error),
                    ),
                )
            else:
                self._persist(companies, request.duplicate_handling, log)

            log.status = IngestStatus.COMPLETED
        except UploadRejectedError as e:
            logger.warning(f"Upload {log.id} rejected: {e}")
            log.status = IngestStatus.FAILED
            log.error_message = str(e)
        except Exception as e:
            logger.exception(f"Upload {log.id} failed: {e}")
            log.status = IngestStatus.FAILED
            log.error_message = str(e)

        log.completed_at = self.clock().isoformat()
        log.processing_time_ms = int((time.perf_counter() - start) * 1000)
        self._save_log(log)

        logger.info(
            f"Upload {log.id} {log.status.value}: {log.success_count} saved, "
            f"{log.skipped_count} skipped, {log.error_count} errors, "
            f"{log.duplicates_found} duplicates"
        )
        return response

    def _check_file(self, request: UploadRequest, file_type: str) -> None:
        if file_type not in self.config.supported_file_types:
            raise UploadRejectedError(
                f"Unsupported file type. Supported types: {', '.join(self.config.supported_file_types)}"
            )
        if len(request.rows) > self.config.max_rows:
            raise UploadRejectedError(f"Too many rows. Maximum allowed: {self.config.max_rows}")
        if not request.rows:
            raise UploadRejectedError("File is empty")

    def _transform_and_validate(
        self,
        rows: List[Dict[str, Any]],
        field_mappings: Dict[str, str],
        batch_id: str
    ) -> Tuple[List[Company], List[ValidationIssue]]:
        now = self.clock()
        companies = []
        issues = []
        for i, row in enumerate(rows, start=1):
            company = build_company(map_row(row, field_mappings, i), batch_id)
            row_issues = validate_company(company, i, now.year)
            issues.extend(row_issues)
            if not any(issue.is_error for issue in row_issues):
                companies.append(company)
        return companies, issues

    def _find_duplicate(self, name: str) -> Optional[str]:
        docs = self.store.query(ACTORS, [Filter("name", "==", name)], limit=1)
        return docs[0]["id"] if docs else None

    def _persist(self, companies: List[Company], policy: DuplicatePolicy, log: IngestLog) -> None:
        """Write companies through the chunked writer, applying the duplicate policy."""
        seen: Dict[str, str] = {}
        with ChunkedWriter(self.store) as writer:
            for company in companies:
                existing_id = seen.get(company.name) or self._find_duplicate(company.name)

                if existing_id is None:
                    target_id, merge = company.id, False
                    # Different names can normalize to the same id
                    if target_id in seen.values() or self.store.get(ACTORS, target_id) is not None:
                        target_id = generate_actor_id(company.name, unique=True)
                else:
                    log.duplicates_found += 1
                    if policy is DuplicatePolicy.SKIP:
                        log.skipped_count += 1
                        continue
                    if policy is DuplicatePolicy.UPDATE:
                        target_id, merge = existing_id, True
                    else:
                        target_id, merge = generate_actor_id(company.name, unique=True), False

                company.id = target_id
                writer.set(ACTORS, target_id, company.to_dict(), merge=merge)
                seen.setdefault(company.name, target_id)

        log.success_count = writer.report.committed
        log.error_count += writer.report.failed

    def _save_log(self, log: IngestLog) -> None:
        batch = self.store.batch()
        batch.set(INGEST_LOGS, log.id, log.to_dict())
        batch.commit()


def _average_completeness(companies: List[Company]) -> int:
    if not companies:
        return 0
    return round(sum(c.profile_completeness or 0 for c in companies) / len(companies))
