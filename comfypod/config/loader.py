"""
ComfyPod Config - Environment loader.

Resolves PodConfig from environment variables with documented defaults,
and the model table from an optional YAML manifest.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from comfypod.config import constants
from comfypod.config.models import PodConfig
from comfypod.core.exceptions import ConfigurationError
from comfypod.core.types import ModelSpec
from comfypod.utils.logger import log_prefix

# Environment variable -> PodConfig field
_PATH_VARS = {
    "WORKSPACE": "workspace",
    "COMFYUI_DIR": "comfyui_dir",
    "MODEL_DIR": "model_dir",
    "COMFYPOD_MODELS_FILE": "models_file",
    "COMFYPOD_SERVICE_LOG_DIR": "service_log_dir",
}

_FLOAT_VARS = {
    "JUPYTER_PROBE_DELAY": "jupyter_probe_delay",
    "FILEBROWSER_PROBE_DELAY": "filebrowser_probe_delay",
    "HEALTH_PROBE_TIMEOUT": "health_probe_timeout",
}

_FIELD_VARS = {field: var for var, field in {**_PATH_VARS, **_FLOAT_VARS}.items()}


def _reject(strict: bool, env_var: str, message: str) -> None:
    if strict:
        raise ConfigurationError(message, {"variable": env_var})
    logger.warning(f"{log_prefix('⚠️')} {message}, using the default")


def load_config(environ: Mapping[str, str] | None = None, strict: bool = True) -> PodConfig:
    """
    Build the pod configuration from environment variables.

    ENABLE_JUPYTER and DEBUG are enabled only by the exact string "1".
    Serverless mode is inferred from the presence of SERVERLESS_API_ENDPOINT,
    which also implies a RunPod environment; RUNPOD_POD_ID alone marks RunPod.

    Args:
        environ: Environment mapping (default: os.environ).
        strict: Raise on the first invalid value. When False, each invalid
            variable is logged and its field keeps the PodConfig default.

    Returns:
        Validated PodConfig.

    Raises:
        ConfigurationError: If a value cannot be parsed or fails validation
            (strict mode only).
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    for env_var, field_name in _PATH_VARS.items():
        value = env.get(env_var)
        if value:
            data[field_name] = Path(value)

    for env_var, field_name in _FLOAT_VARS.items():
        value = env.get(env_var)
        if value:
            try:
                data[field_name] = float(value)
            except ValueError:
                _reject(strict, env_var, f"{env_var} must be a number, got: {value!r}")

    data["enable_jupyter"] = env.get("ENABLE_JUPYTER", "1") == "1"
    data["debug"] = env.get("DEBUG", "0") == "1"

    serverless = bool(env.get("SERVERLESS_API_ENDPOINT"))
    data["serverless"] = serverless
    data["runpod"] = serverless or bool(env.get("RUNPOD_POD_ID"))

    try:
        return PodConfig(**data)
    except ValidationError as e:
        if strict:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        rejected = {err["loc"][0] for err in e.errors() if err["loc"]}
        for field_name in sorted(rejected):
            env_var = _FIELD_VARS.get(field_name, field_name)
            _reject(strict, env_var, f"{env_var}={env.get(env_var)!r} is out of range")
            data.pop(field_name, None)

    try:
        return PodConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_model_specs(path: Path | None = None) -> tuple[ModelSpec, ...]:
    """
    Load the expected model table.

    The manifest is a YAML list of ``{path, min_size_gb}`` entries
    (``min_size_bytes`` is accepted instead of ``min_size_gb``).

    Args:
        path: Manifest file, or None for the built-in table.

    Returns:
        Tuple of ModelSpec in manifest order.
    """
    if path is None:
        return constants.DEFAULT_MODEL_SPECS

    try:
        with open(path) as f:
            entries = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read model manifest {path}: {e}") from e

    if not isinstance(entries, list):
        raise ConfigurationError(f"Model manifest {path} must be a list of entries")

    specs = []
    for entry in entries:
        if not isinstance(entry, dict) or "path" not in entry:
            raise ConfigurationError(f"Invalid model manifest entry: {entry!r}")
        try:
            if "min_size_bytes" in entry:
                size = int(entry["min_size_bytes"])
            else:
                size = int(float(entry.get("min_size_gb", 0)) * constants.GIB)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid size in manifest entry: {entry!r}") from None
        if size < 0:
            raise ConfigurationError(f"Negative size in manifest entry: {entry!r}")
        specs.append(ModelSpec(str(entry["path"]), size))

    logger.debug(f"{log_prefix('📁')} Loaded {len(specs)} model specs from {path}")
    return tuple(specs)
