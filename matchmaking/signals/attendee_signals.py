"""
Attendee signal engine: person-level metrics for matching attendees.

Metric keys:
- ctx:role.intent             role x counterparty-kind affinity
- scan:recency.boost          decayed boost after a recent badge scan
- avail:overlap               fraction of own slots the counterparty shares
- preference:location.fit     meeting location preference fit
- text:bio.similarity         keyword Jaccard between bio and counterparty text
- interest:capability.match   interests covered by counterparty capabilities

The same convention as the signal engine applies: zero and NaN metrics are
dropped. Metrics are always computed from the attendee's point of view.
"""

import logging
import math
import re
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from ..schema.actors import ActorKind, Actor, Attendee, AvailabilitySlot, DateField, utc_now, parse_datetime
from ..schema.matches import ScanEvent, edge_id_for
from .signal_engine import drop_empty_metrics, format_reason, rank_metrics, substring_match

logger = logging.getLogger(__name__)

# Lowercased role -> counterparty kind -> affinity
ROLE_INTENT = {
    "developer": {"company": 0.7, "sponsor": 0.9, "attendee": 0.5},
    "publisher": {"company": 0.9, "sponsor": 0.6, "attendee": 0.5},
    "investor": {"company": 0.95, "sponsor": 0.4, "attendee": 0.6},
    "tooling": {"company": 0.8, "sponsor": 0.7, "attendee": 0.9},
    "brand": {"company": 0.7, "sponsor": 0.8, "attendee": 0.5},
}
UNKNOWN_ROLE_INTENT = 0.5

RELATED_LOCATIONS = {
    "Expo Floor": ["Expo", "Booth", "Stand"],
    "Cabanas": ["Quiet Zone", "Meeting Rooms"],
    "Quiet Zone": ["Cabanas", "Meeting Rooms"],
    "Meeting Rooms": ["Quiet Zone", "Cabanas"],
    "Lounge": ["Coffee Area"],
    "Coffee Area": ["Lounge"],
}

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "can", "shall", "it", "this", "that",
}

ATTENDEE_REASONS = {
    "ctx:role.intent": "Strong role alignment ({pct}% match)",
    "scan:recency.boost": "Recent badge scan interaction",
    "avail:overlap": "Schedule availability overlap ({pct}%)",
    "preference:location.fit": "Preferred meeting location match",
    "text:bio.similarity": "Profile content alignment ({pct}%)",
    "interest:capability.match": "Interest-capability synergy ({pct}%)",
}

ATTENDEE_DISPLAY_NAMES = {
    "ctx:role.intent": "Role Intent",
    "scan:recency.boost": "Recent Scan",
    "avail:overlap": "Availability Overlap",
    "preference:location.fit": "Location Fit",
    "text:bio.similarity": "Bio Similarity",
    "interest:capability.match": "Interest-Capability Fit",
}


@dataclass
class AttendeeSignalConfig:
    """
    Scan recency decay parameters.

    Attributes:
        scan_horizon_hours: Scans older than this give no boost
        scan_temperature: Decay temperature
        scan_max_boost: Boost of a scan happening right now
    """
    scan_horizon_hours: float = 72.0
    scan_temperature: float = 1.0
    scan_max_boost: float = 0.25

    def validate(self) -> None:
        """Validate configuration values."""
        if self.scan_horizon_hours <= 0:
            raise ValueError(f"scan_horizon_hours must be > 0, got {self.scan_horizon_hours}")
        if self.scan_temperature <= 0:
            raise ValueError(f"scan_temperature must be > 0, got {self.scan_temperature}")
        if not 0 <= self.scan_max_boost <= 1:
            raise ValueError(f"scan_max_boost must be in [0, 1], got {self.scan_max_boost}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AttendeeSignalConfig":
        """Create from main config dictionary."""
        attendee = config.get("attendee", {})
        return cls(
            scan_horizon_hours=attendee.get("scan_horizon_hours", 72.0),
            scan_temperature=attendee.get("scan_temperature", 1.0),
            scan_max_boost=attendee.get("scan_max_boost", 0.25),
        )


def extract_keywords(text: str) -> Set[str]:
    """Lowercased words longer than two characters, stop words removed."""
    return {
        word for word in re.split(r"\W+", text.lower())
        if len(word) > 2 and word not in STOP_WORDS
    }


def role_intent_score(roles: List[str], counterparty: Actor) -> float:
    """
    Average role affinity towards the counterparty's kind, with boosts.

    Boosts apply to company counterparties only: developer + Gaming category,
    investor + Startup stage, publisher + no release date. Clamped to 1.
    """
    kind = counterparty.kind.value
    if roles:
        scores = [ROLE_INTENT.get(role.lower(), {}).get(kind, UNKNOWN_ROLE_INTENT) for role in roles]
        score = sum(scores) / len(scores)
    else:
        score = UNKNOWN_ROLE_INTENT

    if counterparty.kind is ActorKind.COMPANY:
        lowered = {role.lower() for role in roles}
        if "developer" in lowered and "Gaming" in counterparty.categories:
            score *= 1.2
        if "investor" in lowered and counterparty.stage == "Startup":
            score *= 1.3
        if "publisher" in lowered and counterparty.get_date(DateField.RELEASED) is None:
            score *= 1.2

    return min(score, 1.0)


def availability_overlap(
    own: List[AvailabilitySlot],
    counterparty: Optional[List[AvailabilitySlot]]
) -> float:
    """
    Fraction of the attendee's slots the counterparty also offers.

    0 when the attendee states no availability, 0.5 when the counterparty's
    availability is unknown. Days the counterparty lacks count as misses.
    """
    if not own:
        return 0.0
    if not counterparty:
        return 0.5

    by_day = {slot.day: set(slot.slots) for slot in counterparty}
    total = 0
    overlapping = 0
    for day in own:
        total += len(day.slots)
        offered = by_day.get(day.day)
        if offered:
            overlapping += sum(1 for slot in day.slots if slot in offered)

    if total == 0:
        return 0.0
    return overlapping / total


def location_fit(preferences: List[str], location: Optional[str]) -> float:
    """1.0 exact, 0.7 related, 0.3 mismatch, 0.5 when either side is unknown."""
    if not preferences or not location:
        return 0.5
    if location in preferences:
        return 1.0
    for preferred in preferences:
        if any(related in location for related in RELATED_LOCATIONS.get(preferred, [])):
            return 0.7
    return 0.3


def counterparty_location(counterparty: Actor) -> Optional[str]:
    """Where a counterparty can be met; None for attendees."""
    if counterparty.kind is ActorKind.COMPANY:
        return "Expo Floor"
    if counterparty.kind is ActorKind.SPONSOR:
        return "Cabanas" if getattr(counterparty, "sponsor_tier", None) == "Platinum" else "Expo Floor"
    return None


def bio_similarity(bio: str, text: str) -> float:
    """Keyword Jaccard; 0 when either side has no keywords."""
    if not bio or not text:
        return 0.0
    bio_words = extract_keywords(bio)
    text_words = extract_keywords(text)
    if not bio_words or not text_words:
        return 0.0
    return len(bio_words & text_words) / len(bio_words | text_words)


def interest_capability_match(interests: List[str], capabilities: List[str]) -> float:
    """Fraction of interests matched by at least one capability."""
    if not interests or not capabilities:
        return 0.0
    matched = [i for i in interests if any(substring_match(c, i) for c in capabilities)]
    return len(matched) / len(interests)


class AttendeeSignalEngine:
    """
    Person-level metric provider running alongside the signal engine.

    Usage:
        engine = AttendeeSignalEngine()
        engine.index_scans(scans)
        metrics = engine.calculate_metrics(attendee, company)
    """

    def __init__(self, config: Optional[AttendeeSignalConfig] = None):
        self.config = config or AttendeeSignalConfig()
        self.config.validate()
        self.scan_index: Dict[str, List[datetime]] = {}

    def index_scans(self, scans: Iterable[ScanEvent]) -> None:
        """Rebuild the recency index keyed by canonical actor pair."""
        self.scan_index = {}
        for scan in scans:
            ts = parse_datetime(scan.timestamp)
            if ts is None:
                logger.warning(f"Skipping scan {scan.scan_id} with invalid timestamp")
                continue
            self.scan_index.setdefault(scan.pair_key, []).append(ts)
        logger.info(f"Indexed scans for {len(self.scan_index)} actor pairs")

    def scan_recency_boost(self, id_a: str, id_b: str, now: Optional[datetime] = None) -> float:
        """
        max_boost * exp(-(elapsed / horizon) / temperature) for the latest
        scan of the pair; 0 without scans or outside the horizon.
        """
        timestamps = self.scan_index.get(edge_id_for(id_a, id_b))
        if not timestamps:
            return 0.0

        now = now or utc_now()
        # Scans stamped after now (clock skew) count as just happened
        elapsed_hours = max(0.0, (now - max(timestamps)).total_seconds() / 3600.0)
        if elapsed_hours > self.config.scan_horizon_hours:
            return 0.0
        normalized = elapsed_hours / self.config.scan_horizon_hours
        return math.exp(-normalized / self.config.scan_temperature) * self.config.scan_max_boost

    def calculate_metrics(
        self,
        attendee: Attendee,
        counterparty: Actor,
        now: Optional[datetime] = None
    ) -> Dict[str, float]:
        """
        Compute the attendee metrics against any counterparty.

        Args:
            attendee: The attendee whose point of view is scored
            counterparty: Company, sponsor or attendee
            now: Reference time for scan recency (current time when None)

        Returns:
            Metric key -> value, zero and NaN entries removed
        """
        metrics: Dict[str, float] = {}

        if attendee.roles:
            metrics["ctx:role.intent"] = role_intent_score(attendee.roles, counterparty)

        metrics["scan:recency.boost"] = self.scan_recency_boost(attendee.id, counterparty.id, now)

        if isinstance(counterparty, Attendee):
            metrics["avail:overlap"] = availability_overlap(
                attendee.availability, counterparty.availability
            )

        location = counterparty_location(counterparty)
        if location is not None:
            metrics["preference:location.fit"] = location_fit(attendee.meeting_locations, location)

        text = " ".join(
            t for t in [counterparty.get_text("description"), counterparty.get_text("abstract")] if t
        )
        if attendee.bio and text:
            metrics["text:bio.similarity"] = bio_similarity(attendee.bio, text)

        if attendee.interests:
            metrics["interest:capability.match"] = interest_capability_match(
                attendee.interests, counterparty.capabilities
            )

        return drop_empty_metrics(metrics)

    def generate_reasons(self, metrics: Dict[str, float], top_n: int = 3) -> List[str]:
        """Reasons for attendee and signal-engine metrics alike."""
        reasons = []
        for key, value in rank_metrics(metrics, top_n):
            template = ATTENDEE_REASONS.get(key)
            if template is not None:
                reasons.append(template.format(pct=round(value * 100)))
            else:
                reasons.append(format_reason(key, value))
        return reasons
