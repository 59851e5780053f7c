"""Configuration loading utilities."""

from __future__ import annotations
import os
from pathlib import Path
from typing import Dict, Any, Union, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..contracts.errors import ConfigError
from .model import AppConfig

logger = structlog.get_logger()

ENV_PREFIX = "PKDATA_"


def default_config() -> AppConfig:
    """Create default configuration."""
    return AppConfig()


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load configuration from file or environment.

    Args:
        path: Path to configuration file. If None, looks for:
              - PKDATA_CONFIG environment variable
              - pkdata.toml in current directory
              - ~/.pkdata/config.toml

    Returns:
        Loaded configuration with environment overrides applied

    Raises:
        ConfigError: If configuration file is invalid or not found
    """
    if path is None:
        path = _find_config_file()

    if path is None:
        return _apply_env_overrides(default_config())

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        config = AppConfig.from_toml_file(path)
        return _apply_env_overrides(config)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}")


def _find_config_file() -> Optional[Path]:
    """Find configuration file using standard search paths."""

    # 1. Environment variable
    env_path = os.environ.get("PKDATA_CONFIG")
    if env_path:
        return Path(env_path)

    # 2. Current directory
    cwd_config = Path("pkdata.toml")
    if cwd_config.exists():
        return cwd_config

    # 3. User config directory
    user_config = Path.home() / ".pkdata" / "config.toml"
    if user_config.exists():
        return user_config

    return None


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """Apply environment variable overrides to configuration.

    Environment variables follow pattern: PKDATA_<SECTION>_<FIELD>
    Examples:
        PKDATA_RUN_THREADS=4
        PKDATA_EVENTS_EVENT_DATA=false
        PKDATA_COLUMNS_EVID_COLUMN=EVID
        PKDATA_COLUMNS_OBSERVATION_COLUMNS=dv,conc
        PKDATA_EVENTS_COMPARTMENT_ALIAS_MAP=depot=1,central=2

    Variables naming no known section or field are logged and skipped.
    """
    sections = AppConfig.model_fields
    config_dict = config.model_dump()
    applied = []

    for key, value in sorted(os.environ.items()):
        if not key.startswith(ENV_PREFIX) or key == "PKDATA_CONFIG":
            continue

        parts = key[len(ENV_PREFIX):].lower().split("_", 1)
        if len(parts) != 2 or parts[0] not in sections:
            logger.warning("Ignoring unknown environment override", variable=key)
            continue

        section, field = parts
        section_model = sections[section].annotation
        if field not in section_model.model_fields:
            logger.warning("Ignoring unknown environment override", variable=key)
            continue

        current = config_dict[section][field]
        config_dict[section][field] = _convert_env_value(value, current)
        applied.append(key)

    if not applied:
        return config

    logger.debug("Applied environment overrides", variables=applied)
    try:
        return AppConfig.model_validate(config_dict)
    except PydanticValidationError as e:
        raise ConfigError(
            f"Invalid {ENV_PREFIX}* environment override: {e}", details={"variables": applied}
        ) from e


def _convert_env_value(value: str, current: Any) -> Any:
    """Shape an environment string like the field it replaces.

    Lists are comma separated and mappings are ``name=value`` pairs; scalars
    are left to pydantic's coercion so ``"4"`` and ``"false"`` still validate.
    """
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]

    if isinstance(current, dict):
        mapping: Dict[str, str] = {}
        for item in value.split(","):
            name, sep, raw = item.partition("=")
            if not sep:
                raise ConfigError(f"Expected name=value pairs, got {item!r}")
            mapping[name.strip()] = raw.strip()
        return mapping

    return value.strip()
