"""
Logging configuration for ComfyPod.

The orchestrator's own log file sits next to the per-service logs
(default /var/log/comfypod.log) and is rotated by loguru.

Environment variables:
    COMFYPOD_LOG_DIR            directory of comfypod.log
    COMFYPOD_LOG_LEVEL          console level (default INFO)
    COMFYPOD_LOG_FILE_LEVEL     file level (default DEBUG)
    COMFYPOD_LOG_ROTATION_SIZE  e.g. "10 MB"
    COMFYPOD_LOG_RETENTION      e.g. "1 week"
    COMFYPOD_LOG_COMPRESSION    gz, zip or none
    COMFYPOD_LOG_JSON           1/true for JSON lines in the file
"""
import os
import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Optional

from comfypod.config.constants import DEFAULT_SERVICE_LOG_DIR


class LogLevel(str, Enum):
    """Loguru level names."""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_string(cls, level: str) -> "LogLevel":
        """Parse a level name, accepting WARN/ERR/CRIT/FATAL shorthands."""
        name = level.strip().upper()
        name = _LEVEL_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown log level: {level}") from None


_LEVEL_ALIASES = {
    "WARN": "WARNING",
    "ERR": "ERROR",
    "CRIT": "CRITICAL",
    "FATAL": "CRITICAL",
}

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s+(B|KB|MB|GB|TB)\s*$", re.IGNORECASE)

_COMPRESSIONS = ("gz", "zip", None)


@dataclass
class LogConfig:
    """
    Settings for the orchestrator log.

    Attributes:
        log_dir: Directory holding comfypod.log
        app_log_name: Log filename
        console_level: stderr level
        file_level: File level
        rotation_size: Size that triggers rotation, "<number> <unit>"
        retention: How long rotated files are kept (loguru syntax)
        compression: gz, zip or None
        json_logs: Write JSON lines to the file
    """
    log_dir: Path = DEFAULT_SERVICE_LOG_DIR
    app_log_name: str = "comfypod.log"
    console_level: str = "INFO"
    file_level: str = "DEBUG"
    rotation_size: str = "10 MB"
    retention: str = "1 week"
    compression: Optional[str] = "gz"
    json_logs: bool = False
    # COMFYPOD_LOG_* entries dropped by a lenient load
    rejected: list[str] = field(default_factory=list, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.log_dir = Path(self.log_dir or DEFAULT_SERVICE_LOG_DIR)

        for attr in ("console_level", "file_level"):
            try:
                LogLevel.from_string(getattr(self, attr))
            except ValueError as e:
                raise ValueError(f"Invalid {attr}: {e}") from e

        if self.compression not in _COMPRESSIONS:
            raise ValueError(f"compression must be gz, zip or None, got: {self.compression!r}")

        match = _SIZE_RE.match(self.rotation_size)
        if not match:
            raise ValueError(f"Invalid rotation_size: {self.rotation_size!r} (expected: '10 MB')")
        if float(match.group(1)) <= 0:
            raise ValueError(f"rotation_size must be positive: {self.rotation_size!r}")

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.app_log_name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogConfig":
        """Build from a mapping, dropping keys that are not fields."""
        names = {f.name for f in fields(cls) if f.init}
        return cls(**{k: v for k, v in data.items() if k in names})


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _compression(value: str) -> Optional[str]:
    value = value.strip().lower()
    return None if value in ("", "none", "off") else value


_ENV_FIELDS: tuple[tuple[str, str, Callable[[str], Any]], ...] = (
    ("COMFYPOD_LOG_DIR", "log_dir", Path),
    ("COMFYPOD_LOG_LEVEL", "console_level", str),
    ("COMFYPOD_LOG_FILE_LEVEL", "file_level", str),
    ("COMFYPOD_LOG_ROTATION_SIZE", "rotation_size", str),
    ("COMFYPOD_LOG_RETENTION", "retention", str),
    ("COMFYPOD_LOG_COMPRESSION", "compression", _compression),
    ("COMFYPOD_LOG_JSON", "json_logs", _flag),
)


def load_log_config(strict: bool = True) -> LogConfig:
    """
    Read COMFYPOD_LOG_* variables over the defaults.

    Args:
        strict: Raise ValueError on an invalid variable. When False the
            variable keeps its default and is listed in ``rejected``.
    """
    config = LogConfig()
    rejected = []
    for env_var, field_name, parse in _ENV_FIELDS:
        if env_var not in os.environ:
            continue
        value = os.environ[env_var]
        try:
            config = replace(config, **{field_name: parse(value)})
        except ValueError as e:
            if strict:
                raise ValueError(f"{env_var}: {e}") from e
            rejected.append(f"{env_var}={value!r} ({e})")
    config.rejected = rejected
    return config


@lru_cache(maxsize=1)
def get_log_config() -> LogConfig:
    """Logging configuration, read from the environment once."""
    return load_log_config(strict=False)


def reset_log_config() -> None:
    """Forget the cached configuration."""
    get_log_config.cache_clear()
