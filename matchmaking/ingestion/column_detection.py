"""
Column detection for tabular uploads.

For every uploaded column this infers a data type from its values and
suggests a target actor field from its header, with a tiered confidence:

    exact header match          100
    substring header match       80
    generic keyword in header    60
    unknown header               20
"""

import logging
import math
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List

import pandas as pd

from ..schema.actors import parse_datetime
from ..schema.ingest import ColumnDetection

logger = logging.getLogger(__name__)

# Normalized header -> target field
COMMON_FIELD_MAPPINGS = {
    "name": "name",
    "company": "name",
    "company_name": "name",
    "organization": "name",
    "description": "description",
    "about": "description",
    "summary": "description",
    "website": "website",
    "url": "website",
    "homepage": "website",
    "country": "country",
    "city": "city",
    "timezone": "timezone",
    "time_zone": "timezone",
    "type": "type",
    "company_type": "type",
    "size": "size",
    "company_size": "size",
    "stage": "stage",
    "funding_stage": "funding_stage",
    "email": "contact_email",
    "contact_email": "contact_email",
    "linkedin": "linkedin_url",
    "linkedin_url": "linkedin_url",
    "twitter": "twitter_handle",
    "pitch": "pitch",
    "looking_for": "looking_for",
    "industry": "industry",
    "industries": "industry",
    "sector": "industry",
    "platforms": "platforms",
    "platform": "platforms",
    "technologies": "technologies",
    "tech_stack": "technologies",
    "markets": "markets",
    "market": "markets",
    "capabilities": "capabilities",
    "services": "capabilities",
    "needs": "needs",
    "tags": "tags",
    "keywords": "tags",
    "employees": "employees",
    "employee_count": "employees",
    "founded": "founded_year",
    "founded_year": "founded_year",
    "year_founded": "founded_year",
    "revenue": "revenue",
    "valuation": "valuation",
    "last_funding_amount": "last_funding_amount",
    "last_funding_date": "last_funding_date",
}

# Longest patterns first so the most specific substring match wins
_PARTIAL_PATTERNS = sorted(COMMON_FIELD_MAPPINGS, key=len, reverse=True)

GENERIC_HEADER_WORDS = ["company", "name", "description", "industry", "location", "email", "website"]

LIST_SEPARATORS = (",", ";", "|")
BOOLEAN_TOKENS = {"true", "false", "yes", "no", "1", "0"}
SAMPLE_VALUE_COUNT = 5


@dataclass
class DetectionThresholds:
    """
    Fractions of non-empty values needed to infer each data type.

    Attributes:
        array_fraction: Values containing a list separator
        number_fraction: Values parsing as numbers
        date_fraction: Values parsing as dates
        boolean_fraction: Values among BOOLEAN_TOKENS
    """
    array_fraction: float = 0.3
    number_fraction: float = 0.8
    date_fraction: float = 0.6
    boolean_fraction: float = 0.8

    def validate(self) -> None:
        """Validate configuration values."""
        for name, value in self.to_dict().items():
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "DetectionThresholds":
        """Create from main config dictionary."""
        detection = config.get("ingestion", {}).get("detection", {})
        return cls(**{k: v for k, v in detection.items() if k in cls.__dataclass_fields__})


def normalize_header(header: str) -> str:
    """Lowercase, trim and replace non-alphanumerics with '_'."""
    return re.sub(r"[^a-z0-9]", "_", str(header).lower().strip())


def _partial_match(normalized: str):
    if not normalized:
        return None
    for pattern in _PARTIAL_PATTERNS:
        if pattern in normalized or normalized in pattern:
            return pattern
    return None


def suggest_field(header: str) -> str:
    """Target field suggested for a header (the normalized header if unknown)."""
    normalized = normalize_header(header)
    if normalized in COMMON_FIELD_MAPPINGS:
        return COMMON_FIELD_MAPPINGS[normalized]
    pattern = _partial_match(normalized)
    if pattern is not None:
        return COMMON_FIELD_MAPPINGS[pattern]
    return normalized


def mapping_confidence(header: str) -> int:
    """Tiered confidence of the suggested mapping."""
    normalized = normalize_header(header)
    if normalized in COMMON_FIELD_MAPPINGS:
        return 100
    if _partial_match(normalized) is not None:
        return 80
    if any(word in normalized for word in GENERIC_HEADER_WORDS):
        return 60
    return 20


def _is_number(value: str) -> bool:
    try:
        return math.isfinite(float(value))
    except ValueError:
        return False


def detect_data_type(values: List[Any], thresholds: DetectionThresholds = DetectionThresholds()) -> str:
    """
    Infer the data type of a column from its non-empty values.

    Returns:
        One of 'array', 'number', 'date', 'boolean', 'string'
    """
    if not values:
        return "string"

    strings = [str(v) for v in values]
    n = len(strings)

    array_like = sum(1 for s in strings if any(sep in s for sep in LIST_SEPARATORS))
    if array_like > n * thresholds.array_fraction:
        return "array"

    numeric = sum(1 for s in strings if _is_number(s))
    if numeric > n * thresholds.number_fraction:
        return "number"

    dates = sum(1 for s in strings if parse_datetime(s) is not None)
    if dates > n * thresholds.date_fraction:
        return "date"

    booleans = sum(1 for s in strings if s.lower() in BOOLEAN_TOKENS)
    if booleans > n * thresholds.boolean_fraction:
        return "boolean"

    return "string"


def detect_columns(
    rows: List[Dict[str, Any]],
    thresholds: DetectionThresholds = DetectionThresholds()
) -> List[ColumnDetection]:
    """
    Detect type and suggested mapping of every column.

    Columns are taken from the headers of the first row.
    """
    if not rows:
        return []

    frame = pd.DataFrame(rows, columns=list(rows[0].keys()))
    detections = []
    for header in frame.columns:
        column = frame[header]
        present = column[column.notna() & (column.astype(str) != "")]
        unique_values = list(dict.fromkeys(str(v) for v in present.tolist()))
        detections.append(ColumnDetection(
            header=header,
            suggested_field=suggest_field(header),
            confidence=mapping_confidence(header),
            data_type=detect_data_type(present.tolist(), thresholds),
            sample_values=unique_values[:SAMPLE_VALUE_COUNT],
            unique_count=len(unique_values),
            null_count=len(column) - len(present),
        ))

    logger.debug(f"Detected {len(detections)} columns")
    return detections


def generate_field_mappings(detections: List[ColumnDetection], min_confidence: int = 60) -> Dict[str, str]:
    """Header -> field for every detection at or above min_confidence."""
    return {
        d.header: d.suggested_field
        for d in detections
        if d.confidence >= min_confidence
    }
