"""Tests for the signal engine and its metric primitives."""

import itertools
import math
from datetime import datetime, timedelta, timezone

import pytest

from matchmaking.schema.actors import Company, DateField, NumericField
from matchmaking.signals import SignalConfig, SignalEngine, TextIndex
from matchmaking.signals.signal_engine import (
    UNKNOWN_STAGE_PAIR_SCORE,
    capability_need_fraction,
    date_proximity,
    format_reason,
    jaccard,
    levenshtein_distance,
    levenshtein_similarity,
    stage_complement,
    zexp_similarity,
)


class TestJaccard:
    """Test set overlap."""

    def test_both_empty_is_one(self):
        assert jaccard([], []) == 1.0
        assert jaccard(None, None) == 1.0

    def test_one_empty_is_zero(self):
        assert jaccard(["PC"], []) == 0.0
        assert jaccard([], ["PC"]) == 0.0

    def test_symmetric(self):
        a, b = ["PC", "Console", "Mobile"], ["PC", "VR"]
        assert jaccard(a, b) == jaccard(b, a) == pytest.approx(1 / 4)

    def test_duplicates_ignored(self):
        assert jaccard(["PC", "PC"], ["PC"]) == 1.0


class TestZexpSimilarity:
    """Test numeric z-exp similarity."""

    def test_symmetric(self):
        assert zexp_similarity(0.3, -1.2) == zexp_similarity(-1.2, 0.3)

    def test_strictly_decreasing_in_distance(self):
        values = [zexp_similarity(0.0, d, temperature=2.0) for d in [0.0, 0.5, 1.0, 2.0, 4.0]]
        assert all(x > y for x, y in zip(values, values[1:]))

    def test_identical_is_one(self):
        assert zexp_similarity(1.5, 1.5) == 1.0


class TestLevenshtein:
    """Test string similarity."""

    def test_self_similarity_is_one(self):
        assert levenshtein_similarity("Pixel Forge", "Pixel Forge") == 1.0
        assert levenshtein_similarity("", "") == 1.0

    def test_symmetric(self):
        assert levenshtein_similarity("kitten", "sitting") == levenshtein_similarity("sitting", "kitten")

    def test_known_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_one_empty_is_zero(self):
        assert levenshtein_similarity("abc", "") == 0.0


class TestOtherPrimitives:
    """Test date, capability and stage primitives."""

    def test_date_proximity_decays(self):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert date_proximity(base, base, 365) == 1.0
        assert date_proximity(base, base + timedelta(days=365), 365) == pytest.approx(math.exp(-1))
        assert date_proximity(base, None, 365) == 0.0

    def test_capability_need_fraction_substring_either_direction(self):
        assert capability_need_fraction(["Publishing Services"], ["Publishing"]) == 1.0
        assert capability_need_fraction(["Marketing"], ["Digital Marketing Support", "Funding"]) == 0.5
        assert capability_need_fraction([], ["Funding"]) == 0.0

    def test_stage_complement_default_table_case_insensitive(self):
        assert stage_complement("Startup", "ENTERPRISE") == 1.0

    def test_stage_complement_profile_table_first(self):
        table = {"Idea": {"Mature": 0.2}}
        assert stage_complement("idea", "mature", table) == 0.2

    def test_stage_complement_unknown_pair_and_missing(self):
        assert stage_complement("idea", "unicorn") == UNKNOWN_STAGE_PAIR_SCORE
        assert stage_complement(None, "startup") is None

    def test_format_reason_templates(self):
        assert format_reason("list:platforms.jaccard", 1.0) == "Strong platform alignment (100% match)"
        assert format_reason("num:float1.zexp", 0.42) == "float1 compatibility: 42%"


class TestTextIndex:
    """Test the TF-IDF relevance index."""

    def test_fewer_than_two_documents_gives_zero(self):
        index = TextIndex()
        index.build([Company(id="a", text={"description": "narrative games"})])
        assert index.similarity("a", "a") == 0.0

    def test_related_documents_score_higher(self, companies):
        index = TextIndex()
        index.build(companies)
        related = index.similarity("c-studio", "c-publisher")
        unrelated = index.similarity("c-studio", "c-tools")
        assert 0 < related <= 1
        assert related > unrelated

    def test_identical_documents_stay_within_unit_range(self, companies, make_company):
        description = "Cozy narrative adventure games with hand painted worlds and branching stories"
        corpus = companies + [
            make_company("c-twin-a", text={"description": description}),
            make_company("c-twin-b", text={"description": description}),
        ]
        index = TextIndex()
        index.build(corpus)
        assert index.similarity("c-twin-a", "c-twin-b") == pytest.approx(1.0)
        assert index.similarity("c-twin-a", "c-twin-b") <= 1.0

        engine = SignalEngine()
        engine.initialize(corpus)
        metrics = engine.calculate_metrics(corpus[-2], corpus[-1])
        assert all(0 <= value <= 1 for value in metrics.values())

    def test_unknown_id_gives_zero(self, companies):
        index = TextIndex()
        index.build(companies)
        assert index.similarity("c-studio", "missing") == 0.0


class TestSignalEngine:
    """Test pairwise metric computation."""

    def test_initialize_builds_numeric_statistics(self, companies):
        engine = SignalEngine()
        engine.initialize(companies)

        assert engine.initialized
        assert engine.corpus_size == 4
        assert engine.stats[NumericField.RATING].count == 4

    def test_zero_std_floored_to_one(self, make_company):
        corpus = [make_company(f"c{i}", numeric={NumericField.TEAM: 10}) for i in range(3)]
        engine = SignalEngine()
        engine.initialize(corpus)
        assert engine.stats[NumericField.TEAM].std == 1.0

    def test_metrics_never_zero_or_nan(self, companies, sponsor):
        engine = SignalEngine()
        corpus = companies + [sponsor]
        engine.initialize(corpus)

        for a, b in itertools.combinations(corpus, 2):
            metrics = engine.calculate_metrics(a, b)
            for key, value in metrics.items():
                assert value != 0, key
                assert not math.isnan(value), key
                assert 0 < value <= 1, key

    def test_shared_platforms_only(self):
        a = Company(id="a", platforms=["PC", "Console"])
        b = Company(id="b", platforms=["PC", "Console"])
        engine = SignalEngine()
        engine.initialize([a, b])

        metrics = engine.calculate_metrics(a, b)
        assert metrics["list:platforms.jaccard"] == 1.0

        reasons = engine.generate_reasons(metrics)
        assert any("platform alignment" in reason for reason in reasons)

    def test_capability_need_match(self):
        a = Company(id="a", needs=["Publishing Services"])
        b = Company(id="b", capabilities=["Publishing Services", "Marketing"])
        engine = SignalEngine()
        engine.initialize([a, b])

        metrics = engine.calculate_metrics(a, b)
        assert metrics["bipartite:capabilities.match"] == pytest.approx(1.0)
        assert engine.calculate_metrics(b, a)["bipartite:capabilities.match"] == pytest.approx(1.0)

    def test_missing_dates_absent(self, companies):
        engine = SignalEngine()
        engine.initialize(companies)
        metrics = engine.calculate_metrics(companies[0], companies[1])
        assert "date:created.prox" not in metrics

    def test_created_date_proximity_present(self):
        a = Company(id="a")
        b = Company(id="b")
        a.set_date(DateField.CREATED, "2020-01-01")
        b.set_date(DateField.CREATED, "2020-01-01")
        engine = SignalEngine(SignalConfig(created_horizon_days=30))
        engine.initialize([a, b])
        assert engine.calculate_metrics(a, b)["date:created.prox"] == 1.0

    def test_temperature_softens_numeric_similarity(self, companies):
        engine = SignalEngine()
        engine.initialize(companies)
        sharp = engine.calculate_metrics(companies[0], companies[1], temperature=0.5)["num:team.zexp"]
        soft = engine.calculate_metrics(companies[0], companies[1], temperature=5.0)["num:team.zexp"]
        assert soft > sharp

    def test_generate_reasons_respects_top_n(self):
        engine = SignalEngine()
        metrics = {"list:platforms.jaccard": 0.9, "list:markets.jaccard": 0.8, "list:tags.jaccard": 0.7}
        assert len(engine.generate_reasons(metrics, top_n=2)) == 2
        assert engine.generate_reasons(metrics, top_n=1) == ["Strong platform alignment (90% match)"]

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            SignalEngine(SignalConfig(zexp_temperature=0))
