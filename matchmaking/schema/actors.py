"""
Actor data model for the matchmaking corpus.

An actor is a closed tagged sum over three variants:
- Company: exhibiting or uploaded companies (the bulk of the corpus)
- Sponsor: event sponsors, carrying a sponsor tier
- Attendee: individual people, carrying consent-gated PII

All variants share the categorical, text, numeric and date fields that the
signal engine compares. Numeric values are only accessed through the
NumericField registry so a typo in a field name fails loudly.
"""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

import pandas as pd


class ActorKind(Enum):
    """Variant tag of an actor."""
    COMPANY = "company"
    SPONSOR = "sponsor"
    ATTENDEE = "attendee"


class NumericField(Enum):
    """Registry of known numeric slots."""
    RATING = "rating"
    PRICE = "price"
    COST = "cost"
    TEAM = "team"
    FLOAT1 = "float1"
    FLOAT2 = "float2"
    INT1 = "int1"
    EMPLOYEES = "employees"
    REVENUE = "revenue"
    VALUATION = "valuation"
    FOUNDED_YEAR = "founded_year"
    LAST_FUNDING_AMOUNT = "last_funding_amount"


class DateField(Enum):
    """Registry of known date slots."""
    CREATED = "created"
    UPDATED = "updated"
    RELEASED = "released"


LIST_FIELDS = [
    "platforms", "markets", "capabilities", "needs",
    "categories", "tags", "industry", "technologies",
]

TEXT_FIELDS = ["title", "description", "abstract", "sentence1", "sentence2"]


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a date-like value into a timezone-aware datetime.

    Returns None for empty or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        ts = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Actor:
    """
    Common fields of every actor variant.

    Attributes:
        id: Unique actor identifier
        name: Display name
        platforms, markets, capabilities, needs, categories, tags,
        industry, technologies: Categorical list fields
        text: Free-text fields keyed by TEXT_FIELDS
        numeric: Numeric slots keyed by NumericField value
        dates: Date slots keyed by DateField value
        extras: Unmapped upload fields, stored verbatim
    """
    kind: ClassVar[ActorKind] = ActorKind.COMPANY

    id: str
    name: str = ""
    platforms: List[str] = field(default_factory=list)
    markets: List[str] = field(default_factory=list)
    capabilities: List[str] = field(default_factory=list)
    needs: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    industry: List[str] = field(default_factory=list)
    technologies: List[str] = field(default_factory=list)
    text: Dict[str, str] = field(default_factory=dict)
    numeric: Dict[str, float] = field(default_factory=dict)
    dates: Dict[str, datetime] = field(default_factory=dict)
    stage: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    website: Optional[str] = None
    embedding: Optional[List[float]] = None
    extras: Dict[str, str] = field(default_factory=dict)
    profile_completeness: Optional[int] = None
    source: str = "manual"
    upload_batch: Optional[str] = None

    def __post_init__(self):
        """Normalize numeric and date keys through the registries."""
        for key in self.numeric:
            NumericField(key)
        for key in list(self.dates):
            DateField(key)
            parsed = parse_datetime(self.dates[key])
            if parsed is None:
                del self.dates[key]
            else:
                self.dates[key] = parsed

    def get_numeric(self, numeric_field: NumericField) -> Optional[float]:
        """Return the value of a numeric slot, or None if unset."""
        return self.numeric.get(numeric_field.value)

    def set_numeric(self, numeric_field: NumericField, value: Optional[float]) -> None:
        """Set (or clear, with None) a numeric slot."""
        if value is None:
            self.numeric.pop(numeric_field.value, None)
        else:
            self.numeric[numeric_field.value] = float(value)

    def get_date(self, date_field: DateField) -> Optional[datetime]:
        return self.dates.get(date_field.value)

    def set_date(self, date_field: DateField, value: Any) -> None:
        parsed = parse_datetime(value)
        if parsed is None:
            self.dates.pop(date_field.value, None)
        else:
            self.dates[date_field.value] = parsed

    def get_text(self, name: str) -> str:
        return self.text.get(name) or ""

    def content_text(self) -> str:
        """Concatenated text used for the corpus relevance index."""
        parts = [self.get_text(name) for name in TEXT_FIELDS]
        parts.append(" ".join(self.tags))
        return " ".join(p for p in parts if p)

    def display_name(self) -> str:
        """Externally visible name."""
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        d = asdict(self)
        d["kind"] = self.kind.value
        d["dates"] = {k: _format_datetime(v) for k, v in self.dates.items()}
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Actor":
        """Create from dictionary (the 'kind' key is ignored here)."""
        names = {f.name for f in fields(cls)}
        data = {k: v for k, v in d.items() if k in names}
        return cls(**data)


@dataclass
class Company(Actor):
    """A company in the corpus."""
    kind: ClassVar[ActorKind] = ActorKind.COMPANY

    company_type: Optional[str] = None
    size: Optional[str] = None
    funding_stage: Optional[str] = None
    contact_email: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_handle: Optional[str] = None
    timezone: Optional[str] = None
    pitch: Optional[str] = None
    looking_for: Optional[str] = None
    last_funding_date: Optional[str] = None


@dataclass
class Sponsor(Actor):
    """An event sponsor."""
    kind: ClassVar[ActorKind] = ActorKind.SPONSOR

    sponsor_tier: Optional[str] = None


@dataclass
class AvailabilitySlot:
    """Meeting availability for one day, as a list of slot labels."""
    day: str
    slots: List[str] = field(default_factory=list)


@dataclass
class Consent:
    """Explicit consent flags governing PII and public-card visibility."""
    marketing: bool = False
    matchmaking: bool = False
    show_public_card: bool = False


@dataclass
class ScanStats:
    """Badge scan counters."""
    scans_given: int = 0
    scans_received: int = 0


@dataclass
class Attendee(Actor):
    """
    An individual conference attendee.

    email and full_name are PII: they are only exposed externally when
    consent.show_public_card is set.
    """
    kind: ClassVar[ActorKind] = ActorKind.ATTENDEE

    email: Optional[str] = None
    full_name: Optional[str] = None
    org: str = ""
    job_title: str = ""
    roles: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)
    bio: Optional[str] = None
    availability: List[AvailabilitySlot] = field(default_factory=list)
    meeting_locations: List[str] = field(default_factory=list)
    consent: Consent = field(default_factory=Consent)
    scan_stats: ScanStats = field(default_factory=ScanStats)
    badge_id: Optional[str] = None
    qr: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        self.availability = [
            AvailabilitySlot(**slot) if isinstance(slot, dict) else slot
            for slot in self.availability
        ]
        if isinstance(self.consent, dict):
            self.consent = Consent(**self.consent)
        if isinstance(self.scan_stats, dict):
            self.scan_stats = ScanStats(**self.scan_stats)

    def display_name(self) -> str:
        if self.consent.show_public_card and self.full_name:
            return self.full_name
        return f"Attendee {self.id[-6:]}"

    def public_card(self) -> Dict[str, Any]:
        """Externally visible card; PII only with show_public_card consent."""
        card = {
            "id": self.id,
            "name": self.display_name(),
            "roles": list(self.roles),
            "interests": list(self.interests),
            "platforms": list(self.platforms),
            "markets": list(self.markets),
        }
        if self.consent.show_public_card:
            card["org"] = self.org
            card["title"] = self.job_title
            card["email"] = self.email
        return card


ACTOR_TYPES = {
    ActorKind.COMPANY: Company,
    ActorKind.SPONSOR: Sponsor,
    ActorKind.ATTENDEE: Attendee,
}


def actor_from_dict(d: Dict[str, Any]) -> Actor:
    """
    Reconstruct an actor of the right variant from a stored dictionary.

    Args:
        d: Dictionary with a 'kind' tag (defaults to company)

    Returns:
        Company, Sponsor or Attendee instance
    """
    kind = ActorKind(d.get("kind", ActorKind.COMPANY.value))
    return ACTOR_TYPES[kind].from_dict(d)
