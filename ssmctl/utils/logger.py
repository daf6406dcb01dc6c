"""
Centralized logging for ssmctl.

Provides:
- Rotated file log, always on (~/.ssmctl/logs/ssmctl.log)
- Console log on stderr (DEBUG when verbose, configured level otherwise)
- ASCII replacements for emoji prefixes when USE_EMOJI_LOGS=0
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from ssmctl.config.models import LoggingConfig

APP_LOG_NAME = "ssmctl.log"


def use_emoji_logs() -> bool:
    """
    Check if emoji prefixes should be used in log messages.

    Returns True unless USE_EMOJI_LOGS environment variable is set to "0" or "false".
    """
    value = os.environ.get("USE_EMOJI_LOGS", "1").lower()
    return value not in ("0", "false", "no", "off")


# Mapping of emoji prefixes to ASCII alternatives
_EMOJI_TO_ASCII = {
    "🔄": "[SYNC]",
    "⚠️": "[WARN]",
    "✅": "[OK]",
    "❌": "[ERROR]",
    "🔍": "[SCAN]",
    "🔎": "[RESOLVE]",
    "🔌": "[CLIENT]",
    "🌐": "[CONNECT]",
    "📡": "[PING]",
    "🖥️": "[EXEC]",
    "🧹": "[CLEANUP]",
    "🗄️": "[DB]",
    "⚙️": "[CONFIG]",
    "🚫": "[DISABLED]",
}


def log_prefix(emoji: str) -> str:
    """
    Return the appropriate log prefix based on USE_EMOJI_LOGS setting.

    Args:
        emoji: The emoji to use when emoji logs are enabled.

    Returns:
        The emoji if USE_EMOJI_LOGS is enabled, otherwise the ASCII equivalent
        (or empty string if no mapping exists).
    """
    if use_emoji_logs():
        return emoji
    return _EMOJI_TO_ASCII.get(emoji, "")


def _ascii_prefix_patcher(record: dict[str, Any]) -> None:
    message = record["message"]
    for emoji in _EMOJI_TO_ASCII:
        if message.startswith(emoji):
            record["message"] = log_prefix(emoji) + message[len(emoji):]
            return


def setup_logger(verbose: bool = False, config: LoggingConfig | None = None) -> Path:
    """
    Configure loguru sinks.

    Args:
        verbose: Log DEBUG+ to stderr.
        config: Logging settings (defaults when None).

    Returns:
        Path of the file log.
    """
    if config is None:
        from ssmctl.config.models import LoggingConfig

        config = LoggingConfig()

    logger.remove()

    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / APP_LOG_NAME

    logger.add(
        log_path,
        rotation=config.rotation,
        retention=config.retention,
        level=config.file_level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        enqueue=True,
    )

    console_format = (
        "<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )
    if verbose:
        console_format = (
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )
    logger.add(
        sys.stderr,
        format=console_format,
        level="DEBUG" if verbose else config.console_level.upper(),
        colorize=True,
    )

    if not use_emoji_logs():
        logger.configure(patcher=_ascii_prefix_patcher)

    return log_path
