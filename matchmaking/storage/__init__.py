"""Persistence contract, chunked writer and cache."""

from .document_store import DocumentStore, Filter, InMemoryDocumentStore, WriteBatch
from .chunked_writer import ChunkedWriter, WriteReport
from .cache import TTLCache

ACTORS = "actors"
ATTENDEES = "attendees"
WEIGHT_PROFILES = "weight_profiles"
INGEST_LOGS = "ingest_logs"
SCANS = "scans"


def matches_collection(profile_id: str) -> str:
    """Collection holding the persisted matches of one weight profile."""
    return f"matches/{profile_id}/pairs"


__all__ = [
    "DocumentStore",
    "Filter",
    "InMemoryDocumentStore",
    "WriteBatch",
    "ChunkedWriter",
    "WriteReport",
    "TTLCache",
    "ACTORS",
    "ATTENDEES",
    "WEIGHT_PROFILES",
    "INGEST_LOGS",
    "SCANS",
    "matches_collection",
]
