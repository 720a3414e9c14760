"""
ComfyPod Core - Shared types and enums.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any


class ValidationStatus(StrEnum):
    """Classification of a single model file."""

    VALID = "valid"
    MISSING = "missing"
    TOO_SMALL = "too_small"
    CORRUPTED_HTML = "corrupted_html"

    @property
    def is_corrupted(self) -> bool:
        """Too-small and HTML files share the corrupted bucket."""
        return self in (ValidationStatus.TOO_SMALL, ValidationStatus.CORRUPTED_HTML)


class Severity(StrEnum):
    """Severity of a health finding. Only ISSUE counts toward the verdict."""

    OK = "ok"
    NOTICE = "notice"
    ISSUE = "issue"


class Verdict(StrEnum):
    """Tri-state health verdict."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class StartupStage(StrEnum):
    """Startup orchestration states."""

    INIT = "init"
    HEALTH_CHECKED = "health_checked"
    MODELS_CHECKED = "models_checked"
    SSH_ATTEMPTED = "ssh_attempted"
    JUPYTER_ATTEMPTED = "jupyter_attempted"
    JUPYTER_SKIPPED = "jupyter_skipped"
    FILEBROWSER_ATTEMPTED = "filebrowser_attempted"
    PRIMARY_DIR_OK = "primary_dir_ok"
    PRIMARY_DIR_MISSING = "primary_dir_missing"
    RUNNING = "running"
    EXITED = "exited"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ModelSpec:
    """A model file expected on disk."""

    relative_path: str
    minimum_size_bytes: int


@dataclass
class Finding:
    """Result of one health probe."""

    probe: str
    kind: str
    severity: Severity
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_issue(self) -> bool:
        return self.severity == Severity.ISSUE


@dataclass
class ServiceHandle:
    """A best-effort background service, probed once after launch."""

    name: str
    process_id: int
    liveness_probe_delay: float
    log_file_path: Path
    port: int | None = None
    alive: bool | None = None
