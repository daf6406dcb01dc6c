"""
ssmctl Config - Loading and saving.

YAML file at ~/.ssmctl/config.yaml, overridden by SSMCTL_* environment
variables. A missing file means defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from ssmctl.config.models import DEFAULT_DATA_DIR, Config
from ssmctl.core.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.yaml"

# env var -> (section, key)
ENV_OVERRIDES = {
    "SSMCTL_DATABASE_PATH": ("database", "path"),
    "SSMCTL_MAX_CONCURRENT": ("aws", "max_concurrent_sessions"),
    "SSMCTL_TTL": ("discovery", "ttl"),
    "SSMCTL_LOG_DIR": ("logging", "log_dir"),
}


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}", {"path": str(path)}) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root must be a mapping: {path}", {"path": str(path)})
    return data


def _apply_env(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    # An empty section ("aws:" with nothing under it) loads as None
    for section in Config.model_fields:
        values = data.get(section)
        if values is None:
            data[section] = {}
        elif not isinstance(values, dict):
            raise ConfigurationError(
                f"Config section '{section}' must be a mapping", {"section": section}
            )

    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            data.setdefault(section, {})[key] = value
    return data


def load_config(path: Path | None = None, environ: dict[str, str] | None = None) -> Config:
    """
    Load configuration from file and environment.

    Args:
        path: Config file path (default ~/.ssmctl/config.yaml).
        environ: Environment mapping (default os.environ).

    Returns:
        Validated Config.

    Raises:
        ConfigurationError: If the file or a value is invalid.
    """
    config_path = (path or DEFAULT_CONFIG_PATH).expanduser()
    data = _apply_env(_read_yaml(config_path), dict(os.environ if environ is None else environ))

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", {"path": str(config_path)}) from e

    logger.debug(f"⚙️ Configuration loaded (file={config_path}, exists={config_path.exists()})")
    return config


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write configuration as YAML and return the path."""
    config_path = (path or DEFAULT_CONFIG_PATH).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False),
        encoding="utf-8",
    )
    return config_path
