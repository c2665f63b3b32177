"""Tests for configuration loading and component configs."""

import pytest

from matchmaking.configs import (
    CONFIG_ENV_VAR,
    apply_overrides,
    get_config_value,
    load_config,
    resolve_config_path,
    set_config_value,
    validate_config,
)
from matchmaking.ingestion import DetectionThresholds, IngestConfig
from matchmaking.matching import MatchConfig
from matchmaking.signals import AttendeeSignalConfig, SignalConfig
from matchmaking.taxonomy import TaxonomyConfig


@pytest.fixture
def config(config_path):
    return load_config(config_path)


class TestLoadConfig:
    """Test YAML loading and validation."""

    def test_repository_config_is_valid(self, config):
        assert validate_config(config) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_missing_sections_reported(self):
        issues = validate_config({"global": {}})
        assert "Missing required section: taxonomy" in issues
        assert "Missing required section: global" not in issues

    def test_chunk_larger_than_store_ceiling_flagged(self, config):
        config["matching"]["write_chunk_size"] = 600
        issues = validate_config(config)
        assert any("write_chunk_size" in issue for issue in issues)

    def test_out_of_range_values_flagged(self, config):
        config["signals"]["zexp_temperature"] = 0
        config["ingestion"]["detection"]["array_fraction"] = 1.5
        config["taxonomy"]["edge_threshold_fraction"] = -0.1
        assert len(validate_config(config)) == 3

    def test_get_config_value(self, config):
        assert get_config_value(config, "store.max_batch_size") == 500
        assert get_config_value(config, "ingestion.detection.date_fraction") == 0.6
        assert get_config_value(config, "ingestion.missing.key", "fallback") == "fallback"

    def test_path_from_environment(self, config_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, config_path)
        assert str(resolve_config_path()) == config_path
        assert str(resolve_config_path("other.yaml")) == "other.yaml"
        assert load_config()["store"]["max_batch_size"] == 500

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(str(path))


class TestOverrides:
    """Test dotted-path assignments."""

    def test_values_parsed_as_yaml(self, config):
        apply_overrides(config, [
            "matching.write_chunk_size=200",
            "global.log_level=DEBUG",
            "ingestion.supported_file_types=[csv]",
            "taxonomy.extra.flag=true",
        ])
        assert config["matching"]["write_chunk_size"] == 200
        assert config["global"]["log_level"] == "DEBUG"
        assert config["ingestion"]["supported_file_types"] == ["csv"]
        assert config["taxonomy"]["extra"] == {"flag": True}

    def test_none_is_a_no_op(self, config):
        assert apply_overrides(config, None) is config

    def test_set_replaces_scalar_parent(self):
        config = {"a": 1}
        set_config_value(config, "a.b", 2)
        assert config == {"a": {"b": 2}}

    @pytest.mark.parametrize("item", ["no_equals", "=5"])
    def test_malformed_override(self, config, item):
        with pytest.raises(ValueError):
            apply_overrides(config, [item])


class TestComponentConfigs:
    """Test from_config constructors against the repository config."""

    def test_from_config(self, config):
        assert SignalConfig.from_config(config).created_horizon_days == 365
        assert AttendeeSignalConfig.from_config(config).scan_max_boost == 0.25
        assert MatchConfig.from_config(config).write_chunk_size == 400
        assert IngestConfig.from_config(config).detection.boolean_fraction == 0.8
        assert TaxonomyConfig.from_config(config).head_size == 20

    def test_defaults_when_sections_missing(self):
        assert MatchConfig.from_config({}) == MatchConfig()
        assert TaxonomyConfig.from_config({}) == TaxonomyConfig()
        assert DetectionThresholds.from_config({}) == DetectionThresholds()

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            MatchConfig(write_chunk_size=0).validate()
        with pytest.raises(ValueError):
            TaxonomyConfig(min_overlap=2).validate()
        with pytest.raises(ValueError):
            IngestConfig(auto_map_confidence=150).validate()
