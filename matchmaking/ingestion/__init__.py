"""Company uploads, attendee uploads and badge scans."""

from .column_detection import (
    DetectionThresholds,
    detect_columns,
    detect_data_type,
    generate_field_mappings,
    normalize_header,
    suggest_field,
)
from .upload_processor import IngestConfig, UploadProcessor, generate_actor_id
from .attendee_ingest import AttendeeIngestService, map_attendee_row, merge_attendee
from .loaders import load_upload_file

__all__ = [
    "DetectionThresholds",
    "detect_columns",
    "detect_data_type",
    "generate_field_mappings",
    "normalize_header",
    "suggest_field",
    "IngestConfig",
    "UploadProcessor",
    "generate_actor_id",
    "AttendeeIngestService",
    "map_attendee_row",
    "merge_attendee",
    "load_upload_file",
]
