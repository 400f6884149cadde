"""Configuration loading and management for gymflow."""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from loguru import logger
from pydantic import ValidationError

from gymflow.models import GymflowConfig

# Default paths
DEFAULT_CONFIG_DIR = Path.home() / ".gymflow"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "gymflow.yaml"
DEFAULT_DB_FILE = DEFAULT_CONFIG_DIR / "gymflow.db"
DEFAULT_LOGS_DIR = DEFAULT_CONFIG_DIR / "logs"


class ConfigError(Exception):
    """Configuration error."""

    pass


def ensure_config_dir() -> Path:
    """Ensure the config directory exists."""
    DEFAULT_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    DEFAULT_LOGS_DIR.mkdir(parents=True, exist_ok=True)
    return DEFAULT_CONFIG_DIR


def expand_env_vars(value: str) -> str:
    """Expand environment variables in a string.

    Supports:
    - ${env:VAR_NAME} - environment variable
    - $VAR_NAME or ${VAR_NAME} - standard env var expansion
    """
    def replace_env(match: re.Match[str]) -> str:
        return os.environ.get(match.group(1), "")

    value = re.sub(r"\$\{env:([^}]+)\}", replace_env, value)
    return os.path.expandvars(value)


def expand_path(path: str | None) -> str | None:
    """Expand a path with ~ and environment variables."""
    if path is None:
        return None
    return os.path.expanduser(expand_env_vars(path))


def load_yaml_file(path: Path) -> dict:
    """Load a YAML file."""
    if not path.exists():
        return {}

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file {path}: expected a mapping, got {type(data).__name__}")

    return data


def load_config(config_path: Path | None = None) -> GymflowConfig:
    """Load the main gymflow configuration.

    Args:
        config_path: Config file (defaults to ~/.gymflow/gymflow.yaml)

    Returns:
        GymflowConfig; defaults when the file does not exist.

    Raises:
        ConfigError: If the file is not valid YAML or fails validation.
    """
    path = config_path or DEFAULT_CONFIG_FILE

    if not path.exists():
        logger.info(f"Config file not found at {path}, using defaults")
        return GymflowConfig()

    try:
        data = load_yaml_file(path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    # Expand paths and env vars
    for section, key in (("logging", "file"), ("storage", "path")):
        values = data.get(section)
        if isinstance(values, dict) and isinstance(values.get(key), str):
            values[key] = expand_path(values[key])

    try:
        config = GymflowConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    logger.debug(f"Loaded config from {path}")
    return config


def save_config(config: GymflowConfig, config_path: Path | None = None) -> None:
    """Write a configuration file, omitting default values."""
    path = config_path or DEFAULT_CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            config.model_dump(mode="json", exclude_defaults=True),
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    logger.debug(f"Saved config to {path}")


def create_default_config() -> Path:
    """Create the default configuration file if it doesn't exist."""
    ensure_config_dir()

    if not DEFAULT_CONFIG_FILE.exists():
        save_config(GymflowConfig(), DEFAULT_CONFIG_FILE)
        logger.info(f"Created default config at {DEFAULT_CONFIG_FILE}")

    return DEFAULT_CONFIG_FILE


def get_db_path(config: GymflowConfig) -> Path:
    """Get the snapshot database path for a configuration."""
    if config.storage.path:
        return Path(config.storage.path)
    return DEFAULT_DB_FILE
