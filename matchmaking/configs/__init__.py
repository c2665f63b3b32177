"""Configuration loading and validation."""

from .loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    apply_overrides,
    get_config_value,
    load_config,
    resolve_config_path,
    set_config_value,
    validate_config,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "apply_overrides",
    "get_config_value",
    "load_config",
    "resolve_config_path",
    "set_config_value",
    "validate_config",
]
