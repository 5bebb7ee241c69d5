"""Configuration, initialization and preflight checks."""

from pmp.config.loader import (
    home_config_exists,
    load_config,
    local_config_exists,
    save_config,
)
from pmp.config.schema import DEFAULT_CONFIG, PmpConfig

__all__ = [
    "DEFAULT_CONFIG",
    "PmpConfig",
    "home_config_exists",
    "load_config",
    "local_config_exists",
    "save_config",
]
