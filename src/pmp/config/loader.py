"""Configuration file loading and merging."""

import os
from pathlib import Path

import yaml

from pmp.config.schema import DEFAULT_CONFIG, PmpConfig

CONFIG_FILENAME = "config.yaml"

# Environment variables, applied after both config files
ENV_OVERRIDES: dict[str, str] = {
    "PMP_ENGINE": "engine",
    "PMP_PROJECTS_ROOT": "projects_root",
}


def get_home_config_path() -> Path:
    """Get path to global config: ~/.pmp/config.yaml."""
    return Path.home() / ".pmp" / CONFIG_FILENAME


def get_local_config_path() -> Path:
    """Get path to local config: ./.pmp/config.yaml."""
    return Path.cwd() / ".pmp" / CONFIG_FILENAME


def home_config_exists() -> bool:
    """Check if the global home config exists."""
    return get_home_config_path().exists()


def local_config_exists() -> bool:
    """Check if the local project config exists."""
    return get_local_config_path().exists()


def load_yaml_config(path: Path) -> dict[str, object] | None:
    """Load a YAML config file, return None if not found or empty."""
    if not path.exists():
        return None
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
            if data is None:
                return None
            if not isinstance(data, dict):
                return None
            result: dict[str, object] = data
            return result
    except yaml.YAMLError:
        return None


def load_env_config() -> PmpConfig:
    """Build a config layer from PMP_* environment variables."""
    data = {
        key: os.environ[var]
        for var, key in ENV_OVERRIDES.items()
        if os.environ.get(var)
    }
    return PmpConfig.from_dict(data)


def load_config() -> PmpConfig:
    """Load merged configuration.

    Precedence (lowest to highest):
    1. Built-in defaults
    2. Global config (~/.pmp/config.yaml)
    3. Local config (./.pmp/config.yaml)
    4. PMP_ENGINE / PMP_PROJECTS_ROOT environment variables

    Returns merged PmpConfig.
    """
    # Start with defaults
    config = DEFAULT_CONFIG

    # Layer home config
    home_data = load_yaml_config(get_home_config_path())
    if home_data:
        config = config.merge(PmpConfig.from_dict(home_data))

    # Layer local config
    local_data = load_yaml_config(get_local_config_path())
    if local_data:
        config = config.merge(PmpConfig.from_dict(local_data))

    return config.merge(load_env_config())


def save_config(config: PmpConfig, path: Path) -> None:
    """Save config to a YAML file.

    Creates parent directories if needed.
    Only saves non-None values.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    with path.open("w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
