"""
ComfyPod Models - Model file verification.

Validates:
- Model files exist in the expected locations
- File sizes meet the minimum (detects incomplete downloads)
- Files are not HTML error pages (detects auth failures / bad links)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from loguru import logger

from comfypod.config.constants import DEFAULT_MODEL_SPECS, GIB, HTML_SIGNATURES, HTML_SNIFF_BYTES
from comfypod.core.types import ModelSpec, ValidationStatus
from comfypod.ui.console import ConsoleUI, get_console
from comfypod.utils.logger import log_prefix


class ValidationOutcome(StrEnum):
    """Overall model validation result."""

    COMPLETE = "complete"        # every model valid
    INCOMPLETE = "incomplete"    # some found, some missing, none corrupted
    DOWNLOADING = "downloading"  # nothing found yet, none corrupted
    FAILED = "failed"            # at least one corrupted file


@dataclass
class ModelCheck:
    """Classification of one expected model file."""

    spec: ModelSpec
    path: Path
    status: ValidationStatus
    size_bytes: int | None = None

    @property
    def detail(self) -> str:
        if self.status == ValidationStatus.MISSING:
            return f"Expected: {self.path}"
        if self.status == ValidationStatus.TOO_SMALL:
            return (
                f"Size: {_gb(self.size_bytes)} GB "
                f"(expected ≥ {_gb(self.spec.minimum_size_bytes)} GB)"
            )
        if self.status == ValidationStatus.CORRUPTED_HTML:
            return "File contains HTML (download error/auth failure)"
        return f"Size: {_gb(self.size_bytes)} GB"


@dataclass
class ModelReport:
    """Results of validating every expected model."""

    model_dir: Path
    checks: list[ModelCheck] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.checks)

    @property
    def found(self) -> int:
        return sum(1 for c in self.checks if c.status == ValidationStatus.VALID)

    @property
    def missing(self) -> int:
        return sum(1 for c in self.checks if c.status == ValidationStatus.MISSING)

    @property
    def corrupted(self) -> int:
        return sum(1 for c in self.checks if c.status.is_corrupted)

    @property
    def outcome(self) -> ValidationOutcome:
        if self.corrupted:
            return ValidationOutcome.FAILED
        if not self.missing:
            return ValidationOutcome.COMPLETE
        if self.found:
            return ValidationOutcome.INCOMPLETE
        return ValidationOutcome.DOWNLOADING

    @property
    def exit_code(self) -> int:
        """1 only for corruption; missing files may still be downloading."""
        return 1 if self.corrupted else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_dir": str(self.model_dir),
            "found": self.found,
            "missing": self.missing,
            "corrupted": self.corrupted,
            "outcome": self.outcome.value,
            "exit_code": self.exit_code,
            "models": [
                {
                    "path": c.spec.relative_path,
                    "status": c.status.value,
                    "size_bytes": c.size_bytes,
                    "minimum_size_bytes": c.spec.minimum_size_bytes,
                }
                for c in self.checks
            ],
        }


def _gb(size_bytes: int | None) -> str:
    return f"{(size_bytes or 0) / GIB:.2f}"


def format_size(size_bytes: float) -> str:
    """Format size in bytes to human readable."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


def looks_like_html(head: bytes) -> bool:
    """Check a file prefix for an HTML document signature (case-insensitive)."""
    lowered = head.lower()
    return any(sig in lowered for sig in HTML_SIGNATURES)


def classify_model(spec: ModelSpec, model_dir: Path) -> ModelCheck:
    """
    Classify one expected model file.

    Order matters: a missing file is never corrupted, and a file below the
    size threshold is TOO_SMALL whatever its content.
    """
    path = model_dir / spec.relative_path

    if not path.is_file():
        return ModelCheck(spec, path, ValidationStatus.MISSING)

    size = path.stat().st_size
    if size < spec.minimum_size_bytes:
        return ModelCheck(spec, path, ValidationStatus.TOO_SMALL, size)

    try:
        with open(path, "rb") as f:
            head = f.read(HTML_SNIFF_BYTES)
    except OSError as e:
        logger.warning(
            f"{log_prefix('⚠️')} Could not read {path} for content sniffing, "
            f"judging by size only: {e}"
        )
        head = b""

    if looks_like_html(head):
        return ModelCheck(spec, path, ValidationStatus.CORRUPTED_HTML, size)

    return ModelCheck(spec, path, ValidationStatus.VALID, size)


def validate_models(
    model_dir: Path,
    specs: tuple[ModelSpec, ...] | list[ModelSpec] = DEFAULT_MODEL_SPECS,
) -> ModelReport:
    """
    Classify every expected model file. Files are never modified.

    Args:
        model_dir: Model root directory.
        specs: Expected models.

    Returns:
        ModelReport with one ModelCheck per spec, in spec order.
    """
    report = ModelReport(model_dir=model_dir)
    for spec in specs:
        report.checks.append(classify_model(spec, model_dir))
    return report


def list_model_files(model_dir: Path) -> list[tuple[Path, int]]:
    """List every file under the model directory with its size."""
    if not model_dir.is_dir():
        return []

    files = []
    for path in sorted(model_dir.rglob("*")):
        try:
            if path.is_file():
                files.append((path, path.stat().st_size))
        except OSError:
            continue
    return files


def print_model_report(report: ModelReport, ui: ConsoleUI | None = None) -> None:
    """Print the per-file report, summary, directory listing and outcome."""
    ui = ui or get_console()

    ui.header("Model File Validation")
    for check in report.checks:
        ui.model_status(check.spec.relative_path, check.status, check.detail)

    ui.newline()
    ui.header("Validation Summary")
    ui.print(f"Found: [success]{report.found}[/success]")
    ui.print(f"Missing: [warning]{report.missing}[/warning]")
    ui.print(f"Corrupted: [error]{report.corrupted}[/error]")
    ui.newline()

    files = list_model_files(report.model_dir)
    if report.model_dir.is_dir():
        ui.section("Model Directory Contents:")
        for path, size in files:
            ui.print(f"  {path} ({format_size(size)})", markup=False)
        ui.newline()

    outcome = report.outcome
    if outcome == ValidationOutcome.COMPLETE:
        ui.success("✓ All models validated successfully!")
    elif outcome == ValidationOutcome.INCOMPLETE:
        ui.warning(f"⚠ Found {report.found}/{report.total} required models")
        ui.print("  Some models are missing, the others are present and intact")
    elif outcome == ValidationOutcome.FAILED:
        ui.error("✗ Model validation FAILED")
        ui.print("  Corrupted files detected. Models may need to be re-downloaded")
    else:
        ui.warning("⚠ Some models are missing")
        ui.print("  This is normal if models are being downloaded on first startup")


def run_model_validation(
    model_dir: Path,
    specs: tuple[ModelSpec, ...] | list[ModelSpec] = DEFAULT_MODEL_SPECS,
    ui: ConsoleUI | None = None,
    quiet: bool = False,
) -> ModelReport:
    """Validate models, print the report unless quiet, and log the outcome."""
    report = validate_models(model_dir, specs)
    if not quiet:
        print_model_report(report, ui)

    logger.debug(
        f"{log_prefix('🔍')} Model validation: found={report.found} "
        f"missing={report.missing} corrupted={report.corrupted} outcome={report.outcome}"
    )
    return report
