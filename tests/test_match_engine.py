"""Tests for match scoring, ranking and batch computation."""

import pytest

from matchmaking.matching import MatchConfig, MatchEngine, calculate_confidence
from matchmaking.schema import MatchRequest, WeightProfile
from matchmaking.schema.actors import Company
from matchmaking.storage import ACTORS, InMemoryDocumentStore, matches_collection
from matchmaking.weights import WeightProfileManager


@pytest.fixture
def engine(populated_store, fixed_clock) -> MatchEngine:
    engine = MatchEngine(populated_store, clock=fixed_clock)
    engine.initialize()
    return engine


def profile_with(weights=None, minimum_overall_score=0) -> WeightProfile:
    return WeightProfile(
        id="test",
        name="Test",
        persona="general",
        weights=weights or {},
        thresholds={"minimum_overall_score": minimum_overall_score},
    )


class TestCalculateMatch:
    """Test single-pair scoring."""

    def test_edge_id_order_independent(self, engine, companies):
        profile = profile_with()
        ab = engine.calculate_match(companies[0], companies[1], profile)
        ba = engine.calculate_match(companies[1], companies[0], profile)

        assert ab.edge_id == ba.edge_id == "c-publisher__c-studio"
        assert ab.score == pytest.approx(ba.score)

    def test_score_in_unit_interval(self, engine, companies, sponsor, attendee):
        profile = profile_with({"bipartite:capabilities.match": 100, "str:name.lev": 0.5})
        actors = companies + [sponsor, attendee]
        for a in actors:
            for b in actors:
                if a.id != b.id:
                    assert 0.0 <= engine.calculate_match(a, b, profile).score <= 1.0

    def test_score_is_weighted_mean_of_present_metrics(self, engine):
        a = Company(id="a", platforms=["PC"], markets=["EU"])
        b = Company(id="b", platforms=["PC", "Mobile"], markets=["EU"])
        profile = profile_with({
            "list:platforms.jaccard": 3,
            "list:markets.jaccard": 1,
            "list:categories.jaccard": 0,
            "list:tags.jaccard": 0,
            "ctx:platform.overlap": 0,
            "ctx:market.overlap": 0,
        })

        match = engine.calculate_match(a, b, profile)
        assert match.score == pytest.approx((0.5 * 3 + 1.0 * 1) / 4)

    def test_zero_weight_excludes_metric(self, engine, companies):
        profile = profile_with({"list:platforms.jaccard": 0})
        match = engine.calculate_match(companies[0], companies[1], profile)

        assert "list:platforms.jaccard" in match.metrics
        assert all(c.key != "list:platforms.jaccard" for c in match.contributions)

    def test_unlisted_metric_weighs_one(self, engine, companies):
        match = engine.calculate_match(companies[0], companies[1], profile_with())
        assert all(c.weight == 1.0 for c in match.contributions)

    def test_contributions_sorted_descending(self, engine, companies):
        match = engine.calculate_match(companies[0], companies[1], profile_with())
        values = [c.contribution for c in match.contributions]
        assert values == sorted(values, reverse=True)

    def test_attendee_metrics_merged(self, engine, attendee, companies):
        match = engine.calculate_match(companies[1], attendee, profile_with())
        assert "ctx:role.intent" in match.metrics
        assert match.reasons

    def test_confidence_measures_completeness(self, companies):
        full = calculate_confidence(companies[0], companies[1], {f"k{i}": 0.5 for i in range(15)})
        sparse = calculate_confidence(Company(id="x"), Company(id="y"), {"k": 0.5})

        assert 0 <= sparse < full <= 1
        assert calculate_confidence(companies[0], companies[1], {f"k{i}": 1 for i in range(40)}) <= 1


class TestFindMatches:
    """Test ranked match queries."""

    def test_unknown_actor_is_not_found(self, engine):
        response = engine.find_matches(MatchRequest(actor_id="missing"))
        assert response.status == "not_found"
        assert response.matches == []
        assert "missing" in response.error

    def test_ranked_and_limited(self, engine):
        response = engine.find_matches(MatchRequest(actor_id="c-studio", threshold=0.0, limit=2))

        assert response.status == "ok"
        assert response.candidates_considered == 4
        assert len(response.matches) == 2
        assert response.matches[0].score >= response.matches[1].score
        assert all("c-studio" in m.edge_id for m in response.matches)

    def test_threshold_filters(self, engine):
        response = engine.find_matches(MatchRequest(actor_id="c-studio", threshold=0.99))
        assert response.status == "ok"
        assert response.matches == []

    def test_min_confidence_filters(self, engine):
        response = engine.find_matches(MatchRequest(actor_id="c-studio", threshold=0.0, min_confidence=1.0))
        assert response.matches == []

    def test_all_pairs_over_explicit_candidates(self, engine):
        response = engine.find_matches(MatchRequest(
            actor_ids=["c-studio", "c-publisher", "c-tools", "missing"], threshold=0.0, limit=10
        ))
        assert response.candidates_considered == 3
        assert len(response.matches) == 3

    def test_filtered_candidates(self, engine):
        response = engine.find_matches(MatchRequest(
            actor_id="c-studio", threshold=0.0, filters={"platforms": ["Mobile"]}
        ))
        assert {m.b for m in response.matches} == {"c-publisher", "c-mobile"}

    def test_strip_metrics_and_reasons(self, engine):
        response = engine.find_matches(MatchRequest(
            actor_id="c-studio", threshold=0.0, include_metrics=False, include_reasons=False
        ))
        assert response.matches
        assert all(m.metrics is None and m.reasons is None for m in response.matches)
        assert all(m.contributions for m in response.matches)

    def test_lazy_initialization(self, populated_store, fixed_clock):
        engine = MatchEngine(populated_store, clock=fixed_clock)
        response = engine.find_matches(MatchRequest(actor_id="c-studio", threshold=0.0))

        assert response.status == "ok"
        assert engine.signal_engine.initialized


class TestWeightProfileCache:
    """Test cached profile lookup."""

    def test_lazy_default_created_and_cached(self, engine):
        profile = engine.get_weight_profile()
        assert profile.id == "default"
        assert profile.is_default

        engine.profiles.update_profile("default", {"weights": {"str:name.lev": 5}})
        assert engine.get_weight_profile().weights["str:name.lev"] == 0.1

        engine.clear_caches()
        assert engine.get_weight_profile().weights["str:name.lev"] == 5


class FailingQueryStore(InMemoryDocumentStore):
    def query(self, collection, filters=(), limit=None):
        if collection == ACTORS:
            raise RuntimeError("corpus unavailable")
        return super().query(collection, filters, limit)


class TestComputeAllMatches:
    """Test the batch all-pairs job."""

    def test_evaluates_every_unordered_pair(self, populated_store, fixed_clock):
        WeightProfileManager(populated_store).create_profile(
            {"name": "Everything", "persona": "general", "thresholds": {"minimum_overall_score": 0}},
            profile_id="everything",
        )
        engine = MatchEngine(populated_store, clock=fixed_clock)

        result = engine.compute_all_matches("everything")

        assert result.status == "completed"
        assert result.pairs_evaluated == 4 * 3 // 2
        assert result.success == 6
        assert populated_store.count(matches_collection("everything")) == 6

    def test_pairs_below_threshold_skipped(self, populated_store, fixed_clock):
        WeightProfileManager(populated_store).create_profile(
            {"name": "Strict", "persona": "general", "thresholds": {"minimum_overall_score": 100}},
            profile_id="strict",
        )
        result = MatchEngine(populated_store, clock=fixed_clock).compute_all_matches("strict")

        assert result.pairs_evaluated == 6
        assert result.skipped == 6
        assert result.success == 0

    def test_writes_in_chunks_bounded_by_store(self, companies, fixed_clock, make_company):
        store = InMemoryDocumentStore(max_batch_size=2)
        corpus = companies + [make_company(f"c-extra{i}", platforms=["PC"]) for i in range(2)]
        for company in corpus:
            batch = store.batch()
            batch.set(ACTORS, company.id, company.to_dict())
            batch.commit()
        WeightProfileManager(store).create_profile(
            {"name": "All", "persona": "general", "thresholds": {"minimum_overall_score": 0}},
            profile_id="all",
        )
        commits_before = store.commit_count

        engine = MatchEngine(store, config=MatchConfig(write_chunk_size=400), clock=fixed_clock)
        result = engine.compute_all_matches("all")

        assert result.pairs_evaluated == 15
        assert result.success == 15
        assert store.commit_count - commits_before == 8

    def test_corpus_load_failure_fails_job(self, fixed_clock):
        result = MatchEngine(FailingQueryStore(), clock=fixed_clock).compute_all_matches()

        assert result.status == "failed"
        assert "corpus unavailable" in result.error
        assert result.pairs_evaluated == 0
