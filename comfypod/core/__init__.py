"""
ComfyPod Core - Shared types and errors.
"""

from comfypod.core.exceptions import (
    ComfyPodError,
    ConfigurationError,
    PrimaryServerMissingError,
    ProbeError,
    ProbeTimeoutError,
    ServiceStartError,
)
from comfypod.core.types import (
    Finding,
    ModelSpec,
    ServiceHandle,
    Severity,
    StartupStage,
    ValidationStatus,
    Verdict,
)

__all__ = [
    "ComfyPodError",
    "ConfigurationError",
    "Finding",
    "ModelSpec",
    "PrimaryServerMissingError",
    "ProbeError",
    "ProbeTimeoutError",
    "ServiceHandle",
    "ServiceStartError",
    "Severity",
    "StartupStage",
    "ValidationStatus",
    "Verdict",
]
