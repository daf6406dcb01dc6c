"""
ssmctl Config - Configuration management.
"""

from ssmctl.config.loader import (
    DEFAULT_CONFIG_PATH,
    load_config,
    save_config,
)
from ssmctl.config.models import (
    AWSConfig,
    Config,
    DatabaseConfig,
    DiscoveryConfig,
    LoggingConfig,
    parse_duration,
)

__all__ = [
    "AWSConfig",
    "Config",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "DiscoveryConfig",
    "LoggingConfig",
    "load_config",
    "parse_duration",
    "save_config",
]
