"""
Centralized logging for ComfyPod.

Provides:
- Timestamped, leveled console lines (INFO, SUCCESS, WARNING, ERROR)
- A rotated orchestrator log file
- ASCII fallbacks for status glyphs

Configuration is loaded from COMFYPOD_LOG_* environment variables.
See log_config.py for details.
"""
import json
import os
import sys
from typing import Any, Optional

from loguru import logger


def use_emoji_logs() -> bool:
    """
    Check if glyph prefixes should be used in log messages.

    Returns True unless USE_EMOJI_LOGS environment variable is set to "0" or "false".
    """
    value = os.environ.get("USE_EMOJI_LOGS", "1").lower()
    return value not in ("0", "false", "no", "off")


# Mapping of glyph prefixes to ASCII alternatives
_EMOJI_TO_ASCII = {
    "✓": "[OK]",
    "✅": "[OK]",
    "⚠️": "[WARN]",
    "✗": "[FAIL]",
    "❌": "[ERROR]",
    "🔍": "[CHECK]",
    "🚀": "[START]",
    "📁": "[FILE]",
    "⏱️": "[TIMEOUT]",
}


def log_prefix(emoji: str) -> str:
    """
    Return the appropriate log prefix based on USE_EMOJI_LOGS setting.

    Args:
        emoji: The glyph to use when emoji logs are enabled.

    Returns:
        The glyph if USE_EMOJI_LOGS is enabled, otherwise the ASCII equivalent
        (or empty string if no mapping exists).
    """
    if use_emoji_logs():
        return emoji
    return _EMOJI_TO_ASCII.get(emoji, "")


def _get_log_config():
    """Get log configuration (lazy import to avoid circular deps)."""
    from comfypod.utils.log_config import LogConfig, get_log_config
    try:
        return get_log_config()
    except ValueError as e:
        config = LogConfig()
        config.rejected = [str(e)]
        return config


def _level(name: str) -> str:
    from comfypod.utils.log_config import LogLevel
    return LogLevel.from_string(name).value


def setup_logger(verbose: bool = False, config: Optional[Any] = None) -> None:
    """
    Configure the logger for a pod startup run.

    Rules:
    1. CONSOLE: always log to stderr at the configured level (DEBUG if verbose).
    2. FILE: log to <log_dir>/comfypod.log (rotated) when the directory is
       writable and the rotation settings are accepted by loguru; otherwise
       only the console is kept.

    Invalid COMFYPOD_LOG_* values never abort startup: they are reported as
    warnings and the default is used.

    Args:
        verbose: Enable DEBUG console logging
        config: Optional LogConfig override (for testing)
    """
    logger.remove()

    if config is None:
        config = _get_log_config()

    console_format = (
        "<blue>{time:YYYY-MM-DD HH:mm:ss}</blue> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )
    logger.add(
        sys.stderr,
        format=console_format,
        level="DEBUG" if verbose else _level(config.console_level),
        colorize=True,
    )

    for entry in getattr(config, "rejected", []):
        logger.warning(f"{log_prefix('⚠️')} Ignoring invalid log setting {entry}, using the default")

    def format_record(record):
        """Format file log record, plain or JSON."""
        if config.json_logs:
            log_entry = {
                "timestamp": record["time"].isoformat(),
                "level": record["level"].name,
                "message": record["message"],
                "module": record["name"],
                "function": record["function"],
                "line": record["line"],
            }
            # Escape braces, loguru formats the returned string
            return json.dumps(log_entry).replace("{", "{{").replace("}", "}}") + "\n"
        return (
            "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
            "{name}:{function}:{line} - {message}\n"
        )

    try:
        log_path = config.log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            rotation=config.rotation_size,
            retention=config.retention,
            level=_level(config.file_level),
            format=format_record,
            compression=config.compression,
        )
    except (OSError, ValueError) as e:
        logger.warning(f"{log_prefix('⚠️')} File logging disabled ({config.log_path}): {e}")
