"""
Core Exceptions - Unified error hierarchy for ComfyPod.

Each exception type handles one category of errors.
"""

from pathlib import Path


class ComfyPodError(Exception):
    """Base exception for all ComfyPod errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ComfyPodError):
    """Environment or manifest configuration is invalid."""
    pass


# =============================================================================
# Probe Errors
# =============================================================================

class ProbeError(ComfyPodError):
    """An external probing tool is absent, failed, or timed out."""

    def __init__(self, tool: str, reason: str):
        super().__init__(
            f"Probe '{tool}' failed: {reason}",
            {"tool": tool, "reason": reason}
        )
        self.tool = tool
        self.reason = reason


class ProbeTimeoutError(ProbeError):
    """An external probing tool did not answer in time."""

    def __init__(self, tool: str, timeout_seconds: float):
        super().__init__(tool, f"timed out after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Service Errors
# =============================================================================

class ServiceStartError(ComfyPodError):
    """A background service could not be spawned."""

    def __init__(self, service: str, reason: str):
        super().__init__(
            f"Could not start {service}: {reason}",
            {"service": service, "reason": reason}
        )
        self.service = service
        self.reason = reason


class PrimaryServerMissingError(ComfyPodError):
    """The ComfyUI installation directory does not exist."""

    def __init__(self, path: Path):
        super().__init__(
            f"ComfyUI directory not found: {path}",
            {"path": str(path)}
        )
        self.path = path
