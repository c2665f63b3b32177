"""Pairwise similarity signals for companies, sponsors and attendees."""

from .signal_engine import (
    METRIC_DISPLAY_NAMES,
    SignalConfig,
    SignalEngine,
    date_proximity,
    jaccard,
    levenshtein_similarity,
    metric_display_name,
    stage_complement,
    zexp_similarity,
)
from .attendee_signals import (
    ATTENDEE_DISPLAY_NAMES,
    AttendeeSignalConfig,
    AttendeeSignalEngine,
    availability_overlap,
    bio_similarity,
    location_fit,
    role_intent_score,
)
from .text_index import TextIndex

__all__ = [
    "METRIC_DISPLAY_NAMES",
    "SignalConfig",
    "SignalEngine",
    "date_proximity",
    "jaccard",
    "levenshtein_similarity",
    "metric_display_name",
    "stage_complement",
    "zexp_similarity",
    "ATTENDEE_DISPLAY_NAMES",
    "AttendeeSignalConfig",
    "AttendeeSignalEngine",
    "availability_overlap",
    "bio_similarity",
    "location_fit",
    "role_intent_score",
    "TextIndex",
]
