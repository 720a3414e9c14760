"""
ComfyPod Health - GPU/CUDA/PyTorch health checks.

Verifies:
- NVIDIA driver is loaded and which CUDA runtime it provides
- GPU architecture (compute capability)
- CUDA runtime is recent enough for the architecture (Blackwell needs 13+)
- PyTorch is installed and built against a compatible CUDA
- A tensor can actually be allocated on the GPU

Every probe always runs and returns a Finding. Findings are folded into a
PASS / WARN / FAIL verdict by count_issues() and verdict_for(); a single
unreliable probe can only produce a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from comfypod.config.constants import (
    BLACKWELL_MIN_CUDA_MAJOR,
    FORWARD_COMPAT_CUDA_MAJOR,
    HEALTH_PROBE_TIMEOUT,
    WARN_ISSUE_LIMIT,
)
from comfypod.core.types import Finding, Severity, Verdict
from comfypod.health.gpu import (
    ADA,
    BLACKWELL,
    architecture_name,
    parse_major,
    sm_version,
)
from comfypod.health.queries import (
    DeviceCapability,
    DriverInfo,
    DriverQuery,
    FrameworkInfo,
    FrameworkVersionQuery,
    NvidiaSmiQuery,
    RuntimeCapabilityQuery,
    TorchQuery,
)
from comfypod.ui.console import ConsoleUI, get_console
from comfypod.utils.logger import log_prefix

PROBE_DRIVER = "driver"
PROBE_ARCHITECTURE = "architecture"
PROBE_RUNTIME = "runtime_compat"
PROBE_FRAMEWORK = "framework"
PROBE_FUNCTIONAL = "functional"
PROBE_COMPATIBILITY = "compatibility"

PROBE_TITLES = {
    PROBE_DRIVER: "[1] NVIDIA Driver & GPU Detection",
    PROBE_ARCHITECTURE: "[2] GPU Architecture Detection",
    PROBE_RUNTIME: "[3] CUDA Version Check (Blackwell Requirement)",
    PROBE_FRAMEWORK: "[4] PyTorch Installation Check",
    PROBE_FUNCTIONAL: "[5] PyTorch GPU Testing",
    PROBE_COMPATIBILITY: "[6] Compatibility Summary",
}


# =============================================================================
# Aggregation
# =============================================================================


def count_issues(findings: list[Finding]) -> int:
    """Count findings with ISSUE severity."""
    return sum(1 for f in findings if f.is_issue)


def verdict_for(issue_count: int) -> Verdict:
    """0 issues -> PASS, 1..2 -> WARN, 3+ -> FAIL."""
    if issue_count <= 0:
        return Verdict.PASS
    if issue_count <= WARN_ISSUE_LIMIT:
        return Verdict.WARN
    return Verdict.FAIL


def exit_code_for(verdict: Verdict) -> int:
    """Warnings still let the pod start; only FAIL is non-zero."""
    return 1 if verdict == Verdict.FAIL else 0


@dataclass
class HealthReport:
    """Results of all health probes."""

    findings: list[Finding] = field(default_factory=list)
    driver: DriverInfo | None = None
    capability: DeviceCapability | None = None
    framework: FrameworkInfo | None = None

    @property
    def issue_count(self) -> int:
        return count_issues(self.findings)

    @property
    def verdict(self) -> Verdict:
        return verdict_for(self.issue_count)

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.verdict)

    @property
    def architecture(self) -> str | None:
        """Architecture family of the detected GPU, if any."""
        return _architecture(self.capability)

    def get_finding(self, probe: str) -> Finding | None:
        """Get finding by probe name."""
        for finding in self.findings:
            if finding.probe == probe:
                return finding
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "verdict": self.verdict.value,
            "issues": self.issue_count,
            "exit_code": self.exit_code,
            "architecture": self.architecture,
            "findings": [
                {
                    "probe": f.probe,
                    "kind": f.kind,
                    "severity": f.severity.value,
                    "message": f.message,
                    "details": f.details,
                }
                for f in self.findings
            ],
        }


def _architecture(capability: DeviceCapability | None) -> str | None:
    if capability is None or not capability.available or capability.major is None:
        return None
    return architecture_name(sm_version(capability.major, capability.minor or 0))


# =============================================================================
# Probes
# =============================================================================


def probe_driver(driver: DriverInfo) -> Finding:
    """[1] Driver presence and CUDA runtime version."""
    if not driver.available:
        return Finding(
            probe=PROBE_DRIVER,
            kind="driver_absent",
            severity=Severity.ISSUE,
            message=f"nvidia-smi unavailable ({driver.error or 'unknown error'})",
            details={"error": driver.error},
        )

    details = {"cuda_version": driver.cuda_version, "products": driver.products}
    message = f"nvidia-smi available, CUDA Runtime: {driver.cuda_version or 'unknown'}"
    if driver.products:
        message += f" ({', '.join(driver.products)} GPU named)"
    return Finding(PROBE_DRIVER, "driver_ok", Severity.OK, message, details)


def probe_architecture(capability: DeviceCapability) -> Finding:
    """[2] Map compute capability to an architecture family."""
    arch = _architecture(capability)
    if arch is None:
        return Finding(
            probe=PROBE_ARCHITECTURE,
            kind="architecture_undetected",
            severity=Severity.ISSUE,
            message="GPU Architecture: Not detected (CPU-only mode)",
            details={"error": capability.error},
        )

    sm = sm_version(capability.major, capability.minor or 0)
    return Finding(
        probe=PROBE_ARCHITECTURE,
        kind="architecture_detected",
        severity=Severity.OK,
        message=f"GPU Architecture: sm_{sm} ({arch})",
        details={"sm": sm, "architecture": arch, "device": capability.device_name},
    )


def probe_runtime_compat(driver: DriverInfo, capability: DeviceCapability) -> Finding:
    """[3] Blackwell needs a CUDA 13+ runtime; older families do not."""
    arch = _architecture(capability)
    runtime_major = parse_major(driver.cuda_version)
    details = {"cuda_version": driver.cuda_version, "architecture": arch}

    if arch is None or runtime_major is None:
        return Finding(
            PROBE_RUNTIME,
            "runtime_unverified",
            Severity.NOTICE,
            "Could not compare CUDA runtime against GPU architecture",
            details,
        )

    if arch == BLACKWELL and runtime_major < BLACKWELL_MIN_CUDA_MAJOR:
        return Finding(
            PROBE_RUNTIME,
            "runtime_mismatch",
            Severity.ISSUE,
            f"CUDA {driver.cuda_version} detected, "
            f"{BLACKWELL} requires CUDA {BLACKWELL_MIN_CUDA_MAJOR}.0+",
            details,
        )

    return Finding(
        PROBE_RUNTIME,
        "runtime_ok",
        Severity.OK,
        f"CUDA {driver.cuda_version} supports {arch}",
        details,
    )


def probe_framework(framework: FrameworkInfo) -> Finding:
    """[4] PyTorch CUDA build: native / forward-compatible / too old."""
    if not framework.installed:
        return Finding(
            PROBE_FRAMEWORK,
            "framework_missing",
            Severity.ISSUE,
            f"PyTorch not available ({framework.error or 'import failed'})",
            {"error": framework.error},
        )

    details = {
        "version": framework.version,
        "cuda_version": framework.cuda_version,
        "cuda_available": framework.cuda_available,
        "device": framework.device_name,
    }
    cuda_major = parse_major(framework.cuda_version)

    if cuda_major is None:
        return Finding(
            PROBE_FRAMEWORK,
            "framework_cpu_build",
            Severity.NOTICE,
            f"PyTorch {framework.version} reports no CUDA build",
            details,
        )
    if cuda_major >= BLACKWELL_MIN_CUDA_MAJOR:
        return Finding(
            PROBE_FRAMEWORK,
            "framework_native",
            Severity.OK,
            f"PyTorch CUDA {framework.cuda_version} (≥{BLACKWELL_MIN_CUDA_MAJOR}.0, Blackwell native)",
            details,
        )
    if cuda_major >= FORWARD_COMPAT_CUDA_MAJOR:
        return Finding(
            PROBE_FRAMEWORK,
            "framework_forward_compatible",
            Severity.NOTICE,
            f"PyTorch CUDA {framework.cuda_version} is forward-compatible "
            f"with a CUDA {BLACKWELL_MIN_CUDA_MAJOR}.0 runtime",
            details,
        )
    return Finding(
        PROBE_FRAMEWORK,
        "framework_too_old",
        Severity.ISSUE,
        f"PyTorch CUDA {framework.cuda_version} may be too old",
        details,
    )


def probe_functional(query: FrameworkVersionQuery, capability: DeviceCapability) -> Finding:
    """
    [5] Allocate a tensor on the GPU.

    Skipped (NOTICE) when no accelerator is visible: probe [2] already
    counted that absence.
    """
    if not capability.available:
        return Finding(
            PROBE_FUNCTIONAL,
            "allocation_skipped",
            Severity.NOTICE,
            "No GPU visible, tensor allocation not attempted",
        )

    result = query.try_allocation()
    if not result.success:
        return Finding(
            PROBE_FUNCTIONAL,
            "allocation_failed",
            Severity.ISSUE,
            f"Tensor on GPU: Failed ({result.error or 'unknown error'})",
            {"error": result.error},
        )

    memory = f", GPU Memory: {result.memory_gb:.1f} GB" if result.memory_gb is not None else ""
    return Finding(
        PROBE_FUNCTIONAL,
        "allocation_ok",
        Severity.OK,
        f"Tensor on GPU: Success (devices: {result.device_count}{memory})",
        {"device_count": result.device_count, "memory_gb": result.memory_gb},
    )


def synthesize_compatibility(
    driver: DriverInfo,
    capability: DeviceCapability,
    framework: FrameworkInfo,
) -> Finding:
    """[6] Summarize compatibility for the detected family. Never an ISSUE."""
    arch = _architecture(capability)
    runtime_major = parse_major(driver.cuda_version)
    framework_major = parse_major(framework.cuda_version)

    if arch is None:
        return Finding(
            PROBE_COMPATIBILITY,
            "no_gpu",
            Severity.NOTICE,
            "No GPU detected, ComfyUI will fall back to CPU",
        )

    if arch == BLACKWELL:
        if runtime_major is None or runtime_major < BLACKWELL_MIN_CUDA_MAJOR:
            return Finding(
                PROBE_COMPATIBILITY,
                "blackwell_runtime_old",
                Severity.NOTICE,
                f"{BLACKWELL} requires CUDA {BLACKWELL_MIN_CUDA_MAJOR}.0+ runtime, "
                f"found: {driver.cuda_version or 'unknown'}",
            )
        if framework_major is None or framework_major < FORWARD_COMPAT_CUDA_MAJOR:
            return Finding(
                PROBE_COMPATIBILITY,
                "blackwell_framework_old",
                Severity.NOTICE,
                f"{BLACKWELL} detected but PyTorch CUDA version may be incompatible "
                f"(found: {framework.cuda_version or 'unknown'})",
            )
        return Finding(
            PROBE_COMPATIBILITY,
            "blackwell_ready",
            Severity.OK,
            f"{BLACKWELL} (RTX 5090) Compatible: CUDA {driver.cuda_version} runtime "
            f"+ PyTorch CUDA {framework.cuda_version} = Ready",
        )

    if arch == ADA:
        return Finding(
            PROBE_COMPATIBILITY,
            "ada_ready",
            Severity.OK,
            f"{ADA} (RTX 4090) Fully Compatible",
        )

    return Finding(
        PROBE_COMPATIBILITY,
        "gpu_ready",
        Severity.OK,
        f"{arch} GPU detected and PyTorch available",
    )


# =============================================================================
# Runner
# =============================================================================


def run_health_checks(
    driver_query: DriverQuery | None = None,
    capability_query: RuntimeCapabilityQuery | None = None,
    framework_query: FrameworkVersionQuery | None = None,
    timeout: float = HEALTH_PROBE_TIMEOUT,
) -> HealthReport:
    """
    Run all health probes in order. No probe short-circuits another.

    Args:
        driver_query: Driver query (default: nvidia-smi).
        capability_query: Device capability query (default: torch).
        framework_query: Framework query (default: torch).
        timeout: Per-tool timeout for the default queries.

    Returns:
        HealthReport with one finding per probe.
    """
    torch_query = TorchQuery(timeout=timeout)
    driver_query = driver_query or NvidiaSmiQuery(timeout=timeout)
    capability_query = capability_query or torch_query
    framework_query = framework_query or torch_query

    logger.debug(f"{log_prefix('🔍')} Running GPU health probes...")

    report = HealthReport()
    report.driver = driver_query.query_driver()
    report.findings.append(probe_driver(report.driver))

    report.capability = capability_query.query_capability()
    report.findings.append(probe_architecture(report.capability))

    report.findings.append(probe_runtime_compat(report.driver, report.capability))

    report.framework = framework_query.query_framework()
    report.findings.append(probe_framework(report.framework))

    report.findings.append(probe_functional(framework_query, report.capability))

    report.findings.append(
        synthesize_compatibility(report.driver, report.capability, report.framework)
    )

    logger.debug(
        f"{log_prefix('✅')} Health probes complete: "
        f"{report.issue_count} issues, verdict={report.verdict}"
    )
    return report


def print_health_report(report: HealthReport, ui: ConsoleUI | None = None) -> None:
    """Print each probe's finding and the final status."""
    ui = ui or get_console()

    ui.header("GPU/CUDA Health Check")
    for finding in report.findings:
        ui.section(PROBE_TITLES.get(finding.probe, finding.probe))
        if finding.probe == PROBE_DRIVER and report.driver and report.driver.output:
            ui.print(report.driver.output.rstrip(), markup=False)
        ui.finding(finding.severity, finding.message)
        ui.newline()

    if report.verdict == Verdict.PASS:
        ui.success("Status: ✓ ALL CHECKS PASSED")
    elif report.verdict == Verdict.WARN:
        ui.warning(f"Status: ⚠ WARNINGS DETECTED ({report.issue_count})")
        ui.print("The pod may work, but GPU support might be limited")
    else:
        ui.error(f"Status: ✗ CRITICAL ISSUES ({report.issue_count})")
        ui.print("GPU/CUDA may not be properly configured")
