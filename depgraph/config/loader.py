"""Load depgraph settings from YAML."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import DepgraphConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".depgraph/config.yml")


class ConfigError(Exception):
    """Raised when a configuration file cannot be used."""


def _read_mapping(config_path: Path) -> dict[str, Any]:
    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if data is None:
        raise ConfigError(f"Empty configuration file: {config_path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping: {config_path}")
    return data


def _anchor_log_dir(sections: dict[str, Any], base_dir: Path) -> None:
    logging_section = sections.get("logging")
    if not isinstance(logging_section, dict) or "log_dir" not in logging_section:
        return

    log_dir = Path(logging_section["log_dir"])
    if not log_dir.is_absolute():
        logging_section["log_dir"] = (base_dir / log_dir).resolve()


def load_config(config_path: Path) -> DepgraphConfig:
    """Parse and validate a configuration file.

    Sections left empty (a bare ``detection:``) take their defaults, and a
    relative ``logging.log_dir`` is resolved against the file's directory.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated DepgraphConfig

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    sections = {
        key: value for key, value in _read_mapping(config_path).items() if value is not None
    }
    _anchor_log_dir(sections, config_path.parent)

    try:
        config = DepgraphConfig.model_validate(sections)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed for {config_path}: {e}")

    logger.debug(f"Loaded configuration from {config_path}")
    return config


def resolve_config(config_path: Path) -> DepgraphConfig:
    """Load configuration, falling back to defaults when the file is absent.

    Raises:
        ConfigError: If the file exists but is invalid
    """
    if not config_path.exists():
        logger.debug(f"No configuration at {config_path}, using defaults")
        return DepgraphConfig()
    return load_config(config_path)


def default_config_data() -> dict[str, Any]:
    """Default settings as written by ``depgraph init``."""
    data = DepgraphConfig().model_dump(mode="json")
    # Relative to the config file, so logs land next to it
    data["logging"]["log_dir"] = "logs"
    return data


def create_default_config(config_path: Path) -> None:
    """Write the default configuration, creating parent directories."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(yaml.safe_dump(default_config_data(), sort_keys=False))
