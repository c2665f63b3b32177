"""
Attendee ingestion and badge scan processing.

Attendee records (with PII) live in the 'attendees' collection. Only
attendees who consented to matchmaking are materialized into the 'actors'
corpus, and their public name and contact details are only copied there
with show_public_card consent.

Badge scans are append-only events in the 'scans' collection; they feed
the scan recency index of the attendee signal engine.
"""

import json
import logging
import uuid
from dataclasses import fields
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import ActorNotFoundError, ConsentError
from ..schema.actors import LIST_FIELDS, Attendee, AvailabilitySlot, utc_now
from ..schema.ingest import AttendeeUploadConfig, AttendeeUploadResult
from ..schema.matches import ScanEvent
from ..storage import ACTORS, ATTENDEES, INGEST_LOGS, SCANS, ChunkedWriter, DocumentStore, Filter, WriteReport
from .upload_processor import EMAIL_PATTERN

logger = logging.getLogger(__name__)

ATTENDEE_PREFIX = "a-"
ACTOR_ID_PREFIXES = ("a-", "c-", "s-")

PIPE_LIST_FIELDS = [
    "roles", "interests", "capabilities", "needs", "platforms",
    "markets", "tags", "meeting_locations",
]
DEFAULT_MEETING_LOCATIONS = ["Expo Floor"]
TRUE_TOKENS = {"true", "yes", "1", "y"}
MERGE_STRATEGIES = ["replace", "merge", "skip"]

# Attendee fields an upload row may set directly
ROW_FIELDS = {f.name for f in fields(Attendee)} - {
    "text", "numeric", "dates", "embedding", "extras", "scan_stats",
    "profile_completeness", "source", "upload_batch",
}
MERGED_LIST_FIELDS = set(LIST_FIELDS) | set(PIPE_LIST_FIELDS)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_TOKENS


def parse_availability(value: Any) -> List[AvailabilitySlot]:
    """
    Availability from a JSON list of {"day": ..., "slots": [...]}.

    Invalid JSON or entries without a day are ignored.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring invalid availability JSON: {value!r}")
            return []
    if not isinstance(value, list):
        return []
    return [
        AvailabilitySlot(day=str(entry["day"]), slots=[str(s) for s in entry.get("slots", [])])
        for entry in value
        if isinstance(entry, dict) and entry.get("day")
    ]


def map_attendee_row(row: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    """
    Apply a header mapping to one row.

    'consent.<flag>' targets set consent flags and other dotted targets
    ('preferences.availability') map to their last segment. List fields
    are pipe-separated and availability is parsed from JSON.
    """
    mapped: Dict[str, Any] = {}
    for header, target in mapping.items():
        value = row.get(header)
        if value is None or str(value).strip() == "":
            continue
        value = str(value).strip()
        if target.startswith("consent."):
            mapped.setdefault("consent", {})[target.split(".", 1)[1]] = value
        elif target == "consent":
            mapped.setdefault("consent", {})["matchmaking"] = value
        elif "." in target:
            mapped[target.rsplit(".", 1)[1]] = value
        else:
            mapped[target] = value

    for list_field in MERGED_LIST_FIELDS:
        if isinstance(mapped.get(list_field), str):
            mapped[list_field] = [s.strip() for s in mapped[list_field].split("|") if s.strip()]

    if "consent" in mapped:
        mapped["consent"] = {k: parse_bool(v) for k, v in mapped["consent"].items()}
    if "availability" in mapped:
        mapped["availability"] = parse_availability(mapped["availability"])

    return mapped


def build_attendee(mapped: Dict[str, Any]) -> Attendee:
    """
    Validate a mapped row and build an Attendee.

    Raises:
        ValueError: If email or full name is missing or invalid
    """
    email = mapped.get("email")
    if not email or not EMAIL_PATTERN.match(email):
        raise ValueError(f"Invalid email: {email!r}")
    if not mapped.get("full_name"):
        raise ValueError("Full name is required")

    known = {k: v for k, v in mapped.items() if k in ROW_FIELDS}
    extras = {k: str(v) for k, v in mapped.items() if k not in ROW_FIELDS}

    consent = known.pop("consent", {})
    attendee = Attendee(
        id=known.pop("id", None) or f"{ATTENDEE_PREFIX}{uuid.uuid4()}",
        extras=extras,
        **known,
    )
    for key, value in consent.items():
        if hasattr(attendee.consent, key):
            setattr(attendee.consent, key, value)
    if not attendee.meeting_locations:
        attendee.meeting_locations = list(DEFAULT_MEETING_LOCATIONS)
    attendee.source = "upload"
    return attendee


def merge_attendee(existing: Attendee, incoming: Attendee, mapped: Dict[str, Any], strategy: str) -> Attendee:
    """
    Combine an existing attendee with an uploaded one.

    Args:
        existing: Stored attendee
        incoming: Attendee built from the upload row
        mapped: The mapped upload row (its keys are the provided fields)
        strategy: 'replace' (incoming wins), 'merge' (provided fields
            overlay, lists are unioned) or 'skip' (existing kept)

    Returns:
        Attendee keeping the existing id and scan counters
    """
    if strategy == "skip":
        return existing

    if strategy == "replace":
        result = Attendee.from_dict(incoming.to_dict())
    else:
        data = existing.to_dict()
        incoming_data = incoming.to_dict()
        for key in mapped:
            if key not in ROW_FIELDS or key == "id":
                continue
            if key in MERGED_LIST_FIELDS:
                data[key] = list(dict.fromkeys(data.get(key, []) + incoming_data.get(key, [])))
            elif key == "consent":
                data["consent"] = {**data["consent"], **mapped["consent"]}
            else:
                data[key] = incoming_data[key]
        data["extras"] = {**data.get("extras", {}), **incoming.extras}
        result = Attendee.from_dict(data)

    result.id = existing.id
    result.scan_stats = existing.scan_stats
    return result


def to_public_actor(attendee: Attendee) -> Attendee:
    """
    Corpus copy of an attendee.

    PII (full name and email) is only kept with show_public_card consent.
    """
    actor = Attendee.from_dict(attendee.to_dict())
    actor.name = attendee.display_name()
    if not attendee.consent.show_public_card:
        actor.full_name = None
        actor.email = None
        actor.extras = {}
    return actor


class AttendeeIngestService:
    """
    Attendee uploads and badge scans.

    Usage:
        service = AttendeeIngestService(store)
        result = service.process_upload(rows, "attendees.csv", AttendeeUploadConfig(mapping))
        scan = service.process_scan("BADGE-001", "c-acme")
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    # =========================================================================
    # Uploads
    # =========================================================================

    def process_upload(
        self,
        rows: List[Dict[str, Any]],
        filename: str,
        config: AttendeeUploadConfig
    ) -> AttendeeUploadResult:
        """
        Ingest attendee rows.

        Rows failing validation are counted and reported, never fatal.

        Returns:
            AttendeeUploadResult with success, failed, skipped and
            materialized counts
        """
        if config.merge_strategy not in MERGE_STRATEGIES:
            raise ValueError(f"Unknown merge strategy: {config.merge_strategy}")

        result = AttendeeUploadResult(dry_run=config.dry_run)
        pending: Dict[str, Attendee] = {}
        # (row, attendee id, materialized) of every queued row
        written: List[Tuple[int, str, bool]] = []

        with ChunkedWriter(self.store) as writer:
            for i, row in enumerate(rows, start=1):
                try:
                    mapped = map_attendee_row(row, config.mapping)
                    attendee = build_attendee(mapped)
                except (ValueError, TypeError) as e:
                    result.failed += 1
                    result.errors.append({"row": i, "error": str(e)})
                    continue

                if config.dry_run:
                    result.success += 1
                    continue

                existing = self._find_existing(attendee, pending)
                if existing is not None and config.skip_duplicates:
                    result.skipped += 1
                    continue
                if existing is not None:
                    attendee = merge_attendee(existing, attendee, mapped, config.merge_strategy)

                writer.set(ATTENDEES, attendee.id, attendee.to_dict())
                self._remember(attendee, pending)
                written.append((i, attendee.id, self._materialize(attendee, writer)))

        self._count_written(result, written, writer.report)

        self._log_upload(filename, result)
        logger.info(
            f"Attendee upload {filename}: {result.success} ok, {result.failed} failed, "
            f"{result.skipped} skipped, {result.materialized} materialized"
            + (" (dry run)" if config.dry_run else "")
        )
        return result

    @staticmethod
    def _count_written(
        result: AttendeeUploadResult,
        written: List[Tuple[int, str, bool]],
        report: WriteReport
    ) -> None:
        """Rows whose attendee or actor write sat in a failed chunk count as failed."""
        failed_ids = set(report.failed_ids)
        message = "; ".join(report.errors)
        for row, attendee_id, materialized in written:
            if attendee_id in failed_ids:
                result.failed += 1
                result.errors.append({"row": row, "error": f"Write failed: {message}"})
                continue
            result.success += 1
            if materialized:
                result.materialized += 1

    def _find_existing(self, attendee: Attendee, pending: Dict[str, Attendee]) -> Optional[Attendee]:
        """Existing attendee by email, then by badge id."""
        for key, field_name, value in [
            (f"email:{attendee.email}", "email", attendee.email),
            (f"badge:{attendee.badge_id}", "badge_id", attendee.badge_id),
        ]:
            if not value:
                continue
            if key in pending:
                return pending[key]
            docs = self.store.query(ATTENDEES, [Filter(field_name, "==", value)], limit=1)
            if docs:
                return Attendee.from_dict(docs[0])
        return None

    @staticmethod
    def _remember(attendee: Attendee, pending: Dict[str, Attendee]) -> None:
        if attendee.email:
            pending[f"email:{attendee.email}"] = attendee
        if attendee.badge_id:
            pending[f"badge:{attendee.badge_id}"] = attendee

    def _materialize(self, attendee: Attendee, writer: ChunkedWriter) -> bool:
        """Write the corpus copy with consent; drop it when consent is withdrawn."""
        if attendee.consent.matchmaking:
            writer.set(ACTORS, attendee.id, to_public_actor(attendee).to_dict())
            return True

        logger.debug(f"Skipping actor materialization for {attendee.id}: no matchmaking consent")
        if self.store.get(ACTORS, attendee.id) is not None:
            writer.delete(ACTORS, attendee.id)
        return False

    def _log_upload(self, filename: str, result: AttendeeUploadResult) -> None:
        upload_id = f"attendees_{uuid.uuid4().hex}"
        batch = self.store.batch()
        batch.set(INGEST_LOGS, upload_id, {
            "upload_id": upload_id,
            "filename": filename,
            "type": "attendees",
            "result": {
                "success": result.success,
                "failed": result.failed,
                "skipped": result.skipped,
                "materialized": result.materialized,
                "errors": result.errors,
                "dry_run": result.dry_run,
            },
            "timestamp": self.clock().isoformat(),
        })
        batch.commit()

    # =========================================================================
    # Scans
    # =========================================================================

    def resolve_actor_id(self, identifier: str) -> Optional[str]:
        """Actor id from an actor id, a badge id or a QR code."""
        if identifier.startswith(ACTOR_ID_PREFIXES) or self.store.get(ACTORS, identifier) is not None:
            return identifier
        for field_name in ("badge_id", "qr"):
            docs = self.store.query(ATTENDEES, [Filter(field_name, "==", identifier)], limit=1)
            if docs:
                return docs[0]["id"]
        return None

    def has_matchmaking_consent(self, actor_id: str) -> bool:
        """Attendees need matchmaking consent; other actors always pass."""
        doc = self.store.get(ATTENDEES, actor_id)
        if doc is None:
            return not actor_id.startswith(ATTENDEE_PREFIX)
        return bool(doc.get("consent", {}).get("matchmaking", False))

    def process_scan(
        self,
        from_identifier: str,
        to_identifier: str,
        context: Optional[Dict[str, Any]] = None
    ) -> ScanEvent:
        """
        Record a badge scan and bump the scan counters.

        Raises:
            ActorNotFoundError: If either identifier cannot be resolved
            ConsentError: If an attendee lacks matchmaking consent
        """
        from_id = self.resolve_actor_id(from_identifier)
        if from_id is None:
            raise ActorNotFoundError(from_identifier)
        to_id = self.resolve_actor_id(to_identifier)
        if to_id is None:
            raise ActorNotFoundError(to_identifier)

        if not (self.has_matchmaking_consent(from_id) and self.has_matchmaking_consent(to_id)):
            logger.warning(f"Scan {from_id} -> {to_id} rejected: consent not granted")
            raise ConsentError("Consent not granted for matchmaking")

        scan = ScanEvent(
            scan_id=str(uuid.uuid4()),
            from_actor_id=from_id,
            to_actor_id=to_id,
            timestamp=self.clock().isoformat(),
            context=dict(context or {}),
        )

        batch = self.store.batch()
        batch.set(SCANS, scan.scan_id, scan.to_dict())
        # One stats dict per attendee so a self-scan bumps both counters
        counters: Dict[str, Dict[str, int]] = {}
        for actor_id, counter in [(from_id, "scans_given"), (to_id, "scans_received")]:
            if actor_id not in counters:
                doc = self.store.get(ATTENDEES, actor_id)
                if doc is None:
                    continue
                counters[actor_id] = dict(doc.get("scan_stats") or {})
            stats = counters[actor_id]
            stats[counter] = stats.get(counter, 0) + 1
        for actor_id, stats in counters.items():
            batch.set(ATTENDEES, actor_id, {"scan_stats": stats}, merge=True)
        batch.commit()

        logger.info(f"Scan processed: {from_id} -> {to_id}")
        return scan

    def load_scans(self) -> List[ScanEvent]:
        return [ScanEvent.from_dict(doc) for doc in self.store.query(SCANS)]
