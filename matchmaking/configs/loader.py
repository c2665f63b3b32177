"""
YAML configuration for the matchmaking engine.

The config file is resolved from an explicit path, then the
MATCHMAKING_CONFIG environment variable, then the repository default.
Individual values can be overridden with dotted 'section.key=value'
assignments whose values are parsed as YAML scalars.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "configs" / "config.yaml"
CONFIG_ENV_VAR = "MATCHMAKING_CONFIG"

REQUIRED_SECTIONS = ["global", "store", "signals", "attendee", "matching", "ingestion", "taxonomy"]
DETECTION_FRACTIONS = ["array_fraction", "number_fraction", "date_fraction", "boolean_fraction"]


def resolve_config_path(filepath: Optional[str] = None) -> Path:
    """Explicit path, then $MATCHMAKING_CONFIG, then the repository config."""
    return Path(filepath or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_config(filepath: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the engine configuration.

    Args:
        filepath: YAML file (see resolve_config_path when None)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file holds no mapping
    """
    path = resolve_config_path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info(f"Loading configuration from {path}")
    config = yaml.safe_load(path.read_text())

    if not config:
        raise ValueError(f"Configuration file is empty: {path}")
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Check sections and value ranges.

    Returns:
        Human-readable issues (empty if valid)
    """
    issues = [
        f"Missing required section: {section}"
        for section in REQUIRED_SECTIONS if section not in config
    ]

    max_batch = get_config_value(config, "store.max_batch_size", 500)
    if not isinstance(max_batch, int) or max_batch < 1:
        issues.append(f"store.max_batch_size must be a positive integer, got {max_batch}")

    chunk = get_config_value(config, "matching.write_chunk_size", 400)
    if isinstance(max_batch, int) and isinstance(chunk, int) and chunk > max_batch:
        issues.append(
            f"matching.write_chunk_size ({chunk}) exceeds store.max_batch_size ({max_batch})"
        )
    if get_config_value(config, "matching.cache_ttl_seconds", 300) < 0:
        issues.append("matching.cache_ttl_seconds must be >= 0")

    if get_config_value(config, "signals.zexp_temperature", 1.0) <= 0:
        issues.append("signals.zexp_temperature must be > 0")

    for key in DETECTION_FRACTIONS:
        value = get_config_value(config, f"ingestion.detection.{key}")
        if value is not None and not 0 <= value <= 1:
            issues.append(f"ingestion.detection.{key} must be in [0, 1], got {value}")

    edge_fraction = get_config_value(config, "taxonomy.edge_threshold_fraction", 0.02)
    if not 0 <= edge_fraction <= 1:
        issues.append(f"taxonomy.edge_threshold_fraction must be in [0, 1], got {edge_fraction}")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """Nested lookup by dotted path, e.g. 'ingestion.detection.array_fraction'."""
    node: Any = config
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def set_config_value(config: Dict[str, Any], path: str, value: Any) -> None:
    """Assign by dotted path, creating intermediate sections."""
    *parents, leaf = path.split(".")
    node = config
    for key in parents:
        child = node.get(key)
        if not isinstance(child, dict):
            child = node[key] = {}
        node = child
    node[leaf] = value


def apply_overrides(config: Dict[str, Any], overrides: Optional[Iterable[str]]) -> Dict[str, Any]:
    """
    Apply 'dotted.path=value' assignments in place.

    Values go through yaml.safe_load, so '60' is an int, 'true' a bool
    and '[a, b]' a list.

    Raises:
        ValueError: On an assignment without '=' or with an empty path
    """
    for item in overrides or []:
        path, sep, raw = item.partition("=")
        path = path.strip()
        if not sep or not path:
            raise ValueError(f"Override must look like section.key=value: {item!r}")
        value = yaml.safe_load(raw) if raw.strip() else None
        set_config_value(config, path, value)
        logger.debug(f"Config override {path} = {value!r}")
    return config
