"""Configuration loading from ``csvcalc.yaml``, with defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from csvcalc.errors import ConfigError

CONFIG_FILENAME = "csvcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "delimiter": ",",  # or "auto" to sniff
    "require_csv_suffix": True,
    "log_dir": None,  # structured event logs disabled when None
    "logging_fsync": False,
    "log_level": "WARNING",
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _flatten_logging_block(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten a nested ``logging:`` block into flat config keys.

    Supports::

        logging:
          dir: logs
          fsync: true
          level: DEBUG

    Maps to ``log_dir``, ``logging_fsync`` and ``log_level``.  Flat keys
    given alongside the block take precedence.
    """
    block = user_config.pop("logging", None)
    if not isinstance(block, dict):
        return user_config
    mapping = {"dir": "log_dir", "fsync": "logging_fsync", "level": "log_level"}
    for key, flat_key in mapping.items():
        if key in block and flat_key not in user_config:
            user_config[flat_key] = block[key]
    return user_config


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging a YAML file over :data:`DEFAULT_CONFIG`.

    Args:
        path: Explicit config file.  When None, ``csvcalc.yaml`` in the
            current directory is used if it exists.

    Returns:
        Merged configuration dict.

    Raises:
        ConfigError: If the file is not a YAML mapping or a value is invalid.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(path) if path is not None else Path.cwd() / CONFIG_FILENAME
    if path is not None and not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    if config_path.exists():
        try:
            user_config = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(user_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
        config.update(_flatten_logging_block(user_config))

    delimiter = config.get("delimiter")
    if delimiter != "auto" and not (isinstance(delimiter, str) and len(delimiter) == 1):
        raise ConfigError(
            f"delimiter must be a single character or 'auto', got {delimiter!r}"
        )

    level = config.get("log_level")
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise ConfigError(
            f"log_level must be one of {', '.join(LOG_LEVELS)}, got {level!r}"
        )
    config["log_level"] = level.upper()
    return config
