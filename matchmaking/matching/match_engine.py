"""
Match engine: weighted, explainable pairwise scoring.

Combines signal-engine metrics (and attendee metrics when an attendee is
involved) with a weight profile into a score, ranked contributions,
reasons and a confidence value.

Key Design Decisions:
- Score is the weighted mean of the metrics present: sum(w * v) / sum(w).
  A metric the profile does not list still counts with weight 1; an
  explicit weight of 0 excludes it.
- Confidence measures data completeness, not match quality
- Batch persistence goes through ChunkedWriter: chunks commit
  incrementally and failures are counted, never rolled back
- The profile cache is only invalidated by clear_caches()
- Reinitialization of corpus statistics is serialized against scoring
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..errors import ActorNotFoundError
from ..schema.actors import Actor, Attendee, NumericField, actor_from_dict, utc_now
from ..schema.matches import (
    BatchResult,
    Contribution,
    Match,
    MatchRequest,
    MatchResponse,
    ScanEvent,
    edge_id_for,
)
from ..schema.profiles import WeightProfile
from ..signals import (
    ATTENDEE_DISPLAY_NAMES,
    AttendeeSignalEngine,
    SignalEngine,
    metric_display_name,
)
from ..storage import ACTORS, SCANS, ChunkedWriter, DocumentStore, Filter, TTLCache, matches_collection
from ..weights import WeightProfileManager

logger = logging.getLogger(__name__)

CONFIDENCE_TEXT_FIELDS = ["title", "description", "abstract"]
CONFIDENCE_NUMERIC_FIELDS = [NumericField.RATING, NumericField.TEAM, NumericField.PRICE]
CONFIDENCE_LIST_FIELDS = ["platforms", "markets", "categories", "capabilities", "needs"]


@dataclass
class MatchConfig:
    """
    Configuration for the match engine.

    Attributes:
        default_profile_id: Profile used when a request names none
        cache_ttl_seconds: Lifetime of cached weight profiles
        candidate_query_limit: Maximum candidates of a filtered corpus query
        expected_metric_count: Metric count giving full metric coverage
        write_chunk_size: Preferred batch size (capped at the store ceiling)
    """
    default_profile_id: str = "default"
    cache_ttl_seconds: float = 300.0
    candidate_query_limit: int = 100
    expected_metric_count: int = 15
    write_chunk_size: int = 400

    def validate(self) -> None:
        """Validate configuration values."""
        if not self.default_profile_id:
            raise ValueError("default_profile_id must not be empty")
        if self.cache_ttl_seconds < 0:
            raise ValueError(f"cache_ttl_seconds must be >= 0, got {self.cache_ttl_seconds}")
        if self.candidate_query_limit < 1:
            raise ValueError(f"candidate_query_limit must be >= 1, got {self.candidate_query_limit}")
        if self.expected_metric_count < 1:
            raise ValueError(f"expected_metric_count must be >= 1, got {self.expected_metric_count}")
        if self.write_chunk_size < 1:
            raise ValueError(f"write_chunk_size must be >= 1, got {self.write_chunk_size}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MatchConfig":
        """Create from main config dictionary."""
        matching = config.get("matching", {})
        return cls(
            default_profile_id=matching.get("default_profile_id", "default"),
            cache_ttl_seconds=matching.get("cache_ttl_seconds", 300.0),
            candidate_query_limit=matching.get("candidate_query_limit", 100),
            expected_metric_count=matching.get("expected_metric_count", 15),
            write_chunk_size=matching.get("write_chunk_size", 400),
        )


def calculate_confidence(
    a: Actor,
    b: Actor,
    metrics: Dict[str, float],
    expected_metric_count: int = 15
) -> float:
    """
    Data-completeness confidence of a match.

    Mean of (a) the fraction of checklist fields filled on both actors and
    (b) the metric count over expected_metric_count, capped at 1.
    """
    checks = []
    checks.extend(bool(a.get_text(f) and b.get_text(f)) for f in CONFIDENCE_TEXT_FIELDS)
    checks.extend(
        a.get_numeric(f) is not None and b.get_numeric(f) is not None
        for f in CONFIDENCE_NUMERIC_FIELDS
    )
    checks.extend(bool(getattr(a, f) and getattr(b, f)) for f in CONFIDENCE_LIST_FIELDS)

    completeness = sum(checks) / len(checks)
    coverage = len(metrics) / expected_metric_count
    return min((completeness + coverage) / 2, 1.0)


def display_name(key: str) -> str:
    return ATTENDEE_DISPLAY_NAMES.get(key) or metric_display_name(key)


class MatchEngine:
    """
    Scores, explains and ranks actor pairs.

    Usage:
        engine = MatchEngine(store)
        engine.initialize()
        response = engine.find_matches(MatchRequest(actor_id="c-1", limit=5))
        result = engine.compute_all_matches("default")
    """

    def __init__(
        self,
        store: DocumentStore,
        profiles: Optional[WeightProfileManager] = None,
        signal_engine: Optional[SignalEngine] = None,
        attendee_engine: Optional[AttendeeSignalEngine] = None,
        config: Optional[MatchConfig] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.config = config or MatchConfig()
        self.config.validate()
        self.profiles = profiles or WeightProfileManager(store, clock=clock)
        self.signal_engine = signal_engine or SignalEngine()
        self.attendee_engine = attendee_engine or AttendeeSignalEngine()
        self.clock = clock
        self.cache = TTLCache(self.config.cache_ttl_seconds)
        self._lock = threading.RLock()

    # =========================================================================
    # Corpus state
    # =========================================================================

    def load_corpus(self) -> List[Actor]:
        """All actors in the store."""
        return [actor_from_dict(doc) for doc in self.store.query(ACTORS)]

    def load_scans(self) -> List[ScanEvent]:
        return [ScanEvent.from_dict(doc) for doc in self.store.query(SCANS)]

    def initialize(
        self,
        corpus: Optional[List[Actor]] = None,
        scans: Optional[List[ScanEvent]] = None
    ) -> None:
        """
        Rebuild signal statistics and the scan index.

        Must be called again after the corpus changes.

        Args:
            corpus: Actors to index (loaded from the store when None)
            scans: Scan events to index (loaded from the store when None)
        """
        with self._lock:
            if corpus is None:
                corpus = self.load_corpus()
            if scans is None:
                scans = self.load_scans()
            self.signal_engine.initialize(corpus)
            self.attendee_engine.index_scans(scans)
            logger.info(f"Match engine initialized with {len(corpus)} actors")

    def get_weight_profile(self, profile_id: Optional[str] = None) -> WeightProfile:
        """Cached profile lookup; a missing profile is created as a default."""
        profile_id = profile_id or self.config.default_profile_id
        cache_key = f"profile:{profile_id}"

        profile = self.cache.get(cache_key)
        if profile is not None:
            return profile

        profile = self.profiles.ensure_profile(profile_id)
        self.cache.set(cache_key, profile)
        return profile

    def clear_caches(self) -> None:
        self.cache.clear()
        logger.info("Match engine caches cleared")

    # =========================================================================
    # Scoring
    # =========================================================================

    def calculate_match(self, a: Actor, b: Actor, profile: WeightProfile) -> Match:
        """
        Score one actor pair.

        Args:
            a: First actor
            b: Second actor
            profile: Weight profile to apply

        Returns:
            Match with score, contributions, reasons and confidence
        """
        metrics = self.signal_engine.calculate_metrics(
            a, b,
            temperature=profile.normalize.temperature,
            stage_table=profile.context_rules.stage_compatibility,
        )

        attendee_involved = isinstance(a, Attendee) or isinstance(b, Attendee)
        if isinstance(a, Attendee):
            metrics.update(self.attendee_engine.calculate_metrics(a, b, now=self.clock()))
        elif isinstance(b, Attendee):
            metrics.update(self.attendee_engine.calculate_metrics(b, a, now=self.clock()))

        contributions = []
        total_weight = 0.0
        weighted_sum = 0.0
        for key, value in metrics.items():
            weight = profile.weight_for(key)
            if weight == 0:
                continue
            contribution = value * weight
            contributions.append(Contribution(
                key=key,
                display_name=display_name(key),
                value=value,
                weight=weight,
                contribution=contribution,
            ))
            total_weight += weight
            weighted_sum += contribution

        score = weighted_sum / total_weight if total_weight > 0 else 0.0
        score = min(max(score, 0.0), 1.0)
        contributions.sort(key=lambda c: c.contribution, reverse=True)

        if attendee_involved:
            reasons = self.attendee_engine.generate_reasons(metrics, self.signal_engine.config.reasons_top_n)
        else:
            reasons = self.signal_engine.generate_reasons(metrics)

        now = self.clock().isoformat()
        return Match(
            edge_id=edge_id_for(a.id, b.id),
            a=a.id,
            b=b.id,
            score=score,
            confidence=calculate_confidence(a, b, metrics, self.config.expected_metric_count),
            contributions=contributions,
            metrics=metrics,
            reasons=reasons,
            profile_id=profile.id,
            created_at=now,
            updated_at=now,
        )

    def find_matches(self, request: MatchRequest) -> MatchResponse:
        """
        Rank matches for a source actor, or all pairs of a candidate set.

        Returns:
            MatchResponse with status 'ok', 'not_found' or 'failed'
        """
        try:
            with self._lock:
                if not self.signal_engine.initialized:
                    self.initialize()
                profile = self.get_weight_profile(request.profile_id)

                source = None
                if request.actor_id:
                    source = self._get_actor(request.actor_id)

                candidates = self._resolve_candidates(request)
                matches = self._score_candidates(source, candidates, profile, request)
        except ActorNotFoundError as e:
            logger.warning(str(e))
            return MatchResponse(status="not_found", profile_id=request.profile_id, error=str(e))
        except Exception as e:
            logger.exception(f"find_matches failed: {e}")
            return MatchResponse(status="failed", profile_id=request.profile_id, error=str(e))

        matches.sort(key=lambda m: m.score, reverse=True)
        matches = matches[:request.limit]
        for match in matches:
            if not request.include_metrics:
                match.metrics = None
            if not request.include_reasons:
                match.reasons = None

        return MatchResponse(
            status="ok",
            matches=matches,
            profile_id=profile.id,
            candidates_considered=len(candidates),
        )

    def compute_all_matches(self, profile_id: Optional[str] = None) -> BatchResult:
        """
        Score every unordered pair of the corpus and persist those meeting
        the profile's minimum overall score.

        A failure loading the corpus fails the whole job; failures while
        scoring or writing are counted and the job continues.

        Returns:
            BatchResult with success, failed, skipped and pairs_evaluated
        """
        start = time.perf_counter()
        result = BatchResult(profile_id=profile_id or self.config.default_profile_id)

        try:
            corpus = self.load_corpus()
            scans = self.load_scans()
        except Exception as e:
            logger.error(f"Batch computation failed loading corpus: {e}")
            result.status = "failed"
            result.error = str(e)
            result.duration_ms = int((time.perf_counter() - start) * 1000)
            return result

        with self._lock:
            self.initialize(corpus, scans)
            profile = self.get_weight_profile(result.profile_id)
            collection = matches_collection(profile.id)
            chunk_size = min(self.config.write_chunk_size, self.store.max_batch_size)

            with ChunkedWriter(self.store, chunk_size) as writer:
                for i in range(len(corpus)):
                    for j in range(i + 1, len(corpus)):
                        result.pairs_evaluated += 1
                        a, b = corpus[i], corpus[j]
                        try:
                            match = self.calculate_match(a, b, profile)
                        except Exception as e:
                            logger.error(f"Failed to score {a.id} / {b.id}: {e}")
                            result.failed += 1
                            result.errors.append({"id": edge_id_for(a.id, b.id), "error": str(e)})
                            continue

                        if match.score >= profile.score_threshold:
                            writer.set(collection, match.edge_id, match.to_dict(), merge=True)
                        else:
                            result.skipped += 1

        report = writer.report
        result.success = report.committed
        result.failed += report.failed
        result.errors.extend(
            {"id": edge_id, "error": "write failed"} for edge_id in report.failed_ids
        )
        result.status = "completed"
        result.duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Computed {result.success} matches from {result.pairs_evaluated} pairs "
            f"({result.skipped} below threshold, {result.failed} failed) in {result.duration_ms}ms"
        )
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_actor(self, actor_id: str) -> Actor:
        doc = self.store.get(ACTORS, actor_id)
        if doc is None:
            raise ActorNotFoundError(actor_id)
        return actor_from_dict(doc)

    def _resolve_candidates(self, request: MatchRequest) -> List[Actor]:
        if request.actor_ids:
            candidates = []
            for actor_id in request.actor_ids:
                doc = self.store.get(ACTORS, actor_id)
                if doc is None:
                    logger.warning(f"Candidate not found, skipping: {actor_id}")
                    continue
                candidates.append(actor_from_dict(doc))
            return candidates

        f = request.filters
        filters = []
        if f.platforms:
            filters.append(Filter("platforms", "array_contains_any", f.platforms))
        if f.markets:
            filters.append(Filter("markets", "array_contains_any", f.markets))
        if f.categories:
            filters.append(Filter("categories", "array_contains_any", f.categories))
        if f.stages:
            filters.append(Filter("stage", "in", f.stages))

        if filters:
            docs = self.store.query(ACTORS, filters, limit=self.config.candidate_query_limit)
        else:
            docs = self.store.query(ACTORS)
        return [actor_from_dict(doc) for doc in docs]

    def _score_candidates(
        self,
        source: Optional[Actor],
        candidates: List[Actor],
        profile: WeightProfile,
        request: MatchRequest
    ) -> List[Match]:
        if source is not None:
            pairs = [(source, c) for c in candidates if c.id != source.id]
        else:
            pairs = [
                (candidates[i], candidates[j])
                for i in range(len(candidates))
                for j in range(i + 1, len(candidates))
            ]

        matches = []
        for a, b in pairs:
            match = self.calculate_match(a, b, profile)
            if match.score < request.threshold:
                continue
            if request.min_confidence is not None and match.confidence < request.min_confidence:
                continue
            matches.append(match)
        return matches
