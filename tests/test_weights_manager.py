"""Tests for weight profile management."""

import pytest

from matchmaking.errors import DefaultProfileError, ProfileNotFoundError, ProfileValidationError
from matchmaking.storage import WEIGHT_PROFILES
from matchmaking.weights import PERSONAS, WeightProfileManager, default_profile_id, template_defaults


@pytest.fixture
def manager(store, fixed_clock) -> WeightProfileManager:
    return WeightProfileManager(store, clock=fixed_clock)


class TestCreateProfile:
    """Test profile creation and validation."""

    def test_inherits_persona_template(self, manager):
        profile = manager.create_profile({"name": "VC Day", "persona": "investor"})

        expected = template_defaults("investor")
        assert profile.weights == expected["weights"]
        assert profile.thresholds.minimum_overall_score == 50
        assert profile.context_rules.stage_compatibility["idea"]["prototype"] == 0.9
        assert profile.is_default is False

    def test_explicit_fields_override_template(self, manager):
        profile = manager.create_profile({
            "name": "Custom",
            "persona": "general",
            "weights": {"list:platforms.jaccard": 9},
            "thresholds": {"maximum_results": 20},
        })
        assert profile.weights["list:platforms.jaccard"] == 9
        assert profile.weights["list:markets.jaccard"] == 2.0
        assert profile.thresholds.maximum_results == 20
        assert profile.thresholds.minimum_confidence == 30

    def test_out_of_range_weight_rejected_and_not_listed(self, manager):
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.create_profile({
                "name": "Broken",
                "persona": "general",
                "weights": {"list:platforms.jaccard": 150},
            })

        assert "list:platforms.jaccard" in str(exc_info.value)
        assert all(p.name != "Broken" for p in manager.list_profiles())

    def test_all_errors_aggregated(self, manager):
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.create_profile({
                "name": "Broken",
                "persona": "general",
                "weights": {"a": -1, "b": 101},
                "thresholds": {"minimum_overall_score": 120},
            })
        assert len(exc_info.value.errors) == 3

    def test_name_and_persona_required(self, manager, store):
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.create_profile({})
        assert exc_info.value.errors == ["Name is required", "Persona is required"]
        assert store.count(WEIGHT_PROFILES) == 0

    def test_unknown_nested_field_rejected(self, manager):
        with pytest.raises(ProfileValidationError):
            manager.create_profile({"name": "X", "persona": "general", "thresholds": {"bogus": 1}})

    def test_malformed_sections_aggregated(self, manager, store):
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.create_profile({
                "name": "X",
                "persona": "general",
                "weights": ["a", "b"],
                "thresholds": 5,
            })
        assert exc_info.value.errors == [
            "Section 'weights' must be a mapping",
            "Section 'thresholds' must be a mapping",
        ]
        assert store.count(WEIGHT_PROFILES) == 0

    def test_malformed_context_tables_aggregated(self, manager):
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.create_profile({
                "name": "X",
                "persona": "general",
                "context_rules": {
                    "platform_boosts": ["PC"],
                    "market_synergies": "EU",
                    "stage_compatibility": {"startup": 0.5},
                },
            })
        assert exc_info.value.errors == [
            "Platform boosts must be a mapping of platform to boost",
            "Market synergy table must be a mapping",
            "Stage compatibility row 'startup' must be a mapping",
        ]


class TestQueries:
    """Test listing and default profiles."""

    def test_list_seeds_one_default_per_persona(self, manager):
        profiles = manager.list_profiles()
        assert {p.id for p in profiles} == {default_profile_id(p) for p in PERSONAS}
        assert all(p.is_default for p in profiles)

    def test_list_orders_defaults_first(self, manager):
        manager.get_default_profile("general")
        manager.create_profile({"name": "Mine", "persona": "developer"})

        profiles = manager.list_profiles()
        assert profiles[0].is_default
        assert profiles[-1].name == "Mine"

    def test_default_profile_created_once(self, manager, store):
        first = manager.get_default_profile("publisher")
        second = manager.get_default_profile("publisher")

        assert first.id == second.id == "default-publisher"
        assert store.count(WEIGHT_PROFILES) == 1

    def test_ensure_profile_creates_under_requested_id(self, manager):
        profile = manager.ensure_profile("default")
        assert profile.id == "default"
        assert profile.persona == "general"
        assert manager.get_profile("default") is not None

    def test_get_profile_missing(self, manager):
        assert manager.get_profile("nope") is None


class TestMutations:
    """Test update, delete, duplicate, import/export and variants."""

    def test_update_merges_nested_maps(self, manager):
        profile = manager.create_profile({"name": "P", "persona": "general"})
        updated = manager.update_profile(profile.id, {
            "weights": {"ctx:stage.complement": 7},
            "thresholds": {"maximum_results": 10},
            "id": "hijacked",
        })

        assert updated.id == profile.id
        assert updated.weights["ctx:stage.complement"] == 7
        assert updated.weights["list:platforms.jaccard"] == 2.0
        assert updated.thresholds.maximum_results == 10
        assert updated.thresholds.minimum_overall_score == 40

    def test_invalid_update_leaves_profile_unchanged(self, manager):
        profile = manager.create_profile({"name": "P", "persona": "general"})
        with pytest.raises(ProfileValidationError):
            manager.update_profile(profile.id, {"weights": {"ctx:stage.complement": 500}})
        assert manager.get_profile(profile.id).weights["ctx:stage.complement"] == 2.0

    def test_update_missing_profile(self, manager):
        with pytest.raises(ProfileNotFoundError):
            manager.update_profile("nope", {"name": "x"})

    def test_update_with_malformed_section_rejected(self, manager):
        profile = manager.create_profile({"name": "P", "persona": "general"})
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.update_profile(profile.id, {"context_rules": {"platform_boosts": 3}})
        assert exc_info.value.errors == ["Platform boosts must be a mapping of platform to boost"]

    def test_default_flag_cannot_be_cleared(self, manager):
        default = manager.get_default_profile("general")
        updated = manager.update_profile(default.id, {"is_default": False, "name": "Renamed"})

        assert updated.is_default
        assert updated.name == "Renamed"
        with pytest.raises(DefaultProfileError):
            manager.delete_profile(default.id)

    def test_delete_default_blocked(self, manager):
        default = manager.get_default_profile("general")
        with pytest.raises(DefaultProfileError):
            manager.delete_profile(default.id)
        assert manager.get_profile(default.id) is not None

    def test_delete(self, manager):
        profile = manager.create_profile({"name": "P", "persona": "general"})
        manager.delete_profile(profile.id)
        assert manager.get_profile(profile.id) is None

    def test_duplicate(self, manager):
        original = manager.get_default_profile("sponsor")
        copy = manager.duplicate_profile(original.id, "Sponsor Copy")

        assert copy.id != original.id
        assert copy.description == f"Copy of {original.name}"
        assert copy.is_default is False
        assert copy.weights == original.weights

    def test_export_then_import(self, manager):
        original = manager.create_profile({"name": "Shared", "persona": "developer", "description": "Team setup"})
        bundle = manager.export_profile(original.id)

        assert bundle["version"] == "1.0"
        assert set(bundle["profile"]) == {
            "name", "description", "persona", "weights", "thresholds", "context_rules"
        }

        imported = manager.import_profile(bundle)
        assert imported.id != original.id
        assert imported.description == "Team setup (Imported 2026-03-01)"
        assert imported.weights == original.weights
        assert imported.is_default is False

    def test_import_invalid_bundle(self, manager):
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.import_profile({"something": "else"})
        assert exc_info.value.errors == ["Invalid import data format"]

    def test_import_malformed_profile(self, manager):
        bundle = {"version": "1.0", "profile": {"name": "External", "persona": "general", "weights": "heavy"}}
        with pytest.raises(ProfileValidationError) as exc_info:
            manager.import_profile(bundle)
        assert exc_info.value.errors == ["Section 'weights' must be a mapping"]

    def test_generate_test_variants(self, manager):
        base = manager.create_profile({"name": "Base", "persona": "general"})
        variants = manager.generate_test_variants(base.id, [
            {"name": "stage-heavy", "adjustments": {"ctx:stage.complement": 8}},
            {"name": "no-names", "adjustments": {"str:name.lev": 0}},
        ])

        assert [v.name for v in variants] == ["Base - stage-heavy", "Base - no-names"]
        assert variants[0].weights["ctx:stage.complement"] == 8
        assert variants[0].description == "A/B test variant: stage-heavy"
        assert variants[1].weights["str:name.lev"] == 0
        assert variants[1].weights["ctx:stage.complement"] == base.weights["ctx:stage.complement"]

    def test_invalid_variant_writes_nothing(self, manager, store):
        base = manager.create_profile({"name": "Base", "persona": "general"})
        with pytest.raises(ProfileValidationError):
            manager.generate_test_variants(base.id, [
                {"name": "ok", "adjustments": {"ctx:stage.complement": 8}},
                {"name": "bad", "adjustments": {"ctx:stage.complement": 800}},
            ])
        assert store.count(WEIGHT_PROFILES) == 1
