"""
Tests for GPU health probes and verdict aggregation.

Probes run against fake capability queries, so no GPU is needed.
"""
import pytest

from comfypod.core.types import Finding, Severity, Verdict
from comfypod.health.checks import (
    PROBE_ARCHITECTURE,
    PROBE_COMPATIBILITY,
    PROBE_DRIVER,
    PROBE_FRAMEWORK,
    PROBE_FUNCTIONAL,
    PROBE_RUNTIME,
    HealthReport,
    count_issues,
    exit_code_for,
    print_health_report,
    run_health_checks,
    verdict_for,
)
from comfypod.health.queries import (
    AllocationResult,
    DeviceCapability,
    DriverInfo,
    DriverQuery,
    FrameworkInfo,
    FrameworkVersionQuery,
    RuntimeCapabilityQuery,
)


class FakeDriver:
    """Driver query returning a canned answer."""

    def __init__(self, info: DriverInfo):
        self.info = info

    def query_driver(self) -> DriverInfo:
        return self.info


class FakeTorch:
    """Capability and framework query returning canned answers."""

    def __init__(
        self,
        capability: DeviceCapability,
        framework: FrameworkInfo,
        allocation: AllocationResult | None = None,
    ):
        self.capability = capability
        self.framework = framework
        self.allocation = allocation or AllocationResult(success=True, device_count=1, memory_gb=32.0)
        self.allocations = 0

    def query_capability(self) -> DeviceCapability:
        return self.capability

    def query_framework(self) -> FrameworkInfo:
        return self.framework

    def try_allocation(self) -> AllocationResult:
        self.allocations += 1
        return self.allocation


def driver(cuda: str | None = "12.8") -> FakeDriver:
    return FakeDriver(DriverInfo(available=True, cuda_version=cuda))


def no_driver() -> FakeDriver:
    return FakeDriver(DriverInfo(available=False, error="nvidia-smi not found"))


def gpu(major: int, minor: int, framework_cuda: str | None = "12.8", **kwargs) -> FakeTorch:
    return FakeTorch(
        DeviceCapability(available=True, major=major, minor=minor, device_name="GPU"),
        FrameworkInfo(installed=True, version="2.8.0", cuda_version=framework_cuda, cuda_available=True),
        **kwargs,
    )


def cpu_only(installed: bool = True) -> FakeTorch:
    framework = (
        FrameworkInfo(installed=True, version="2.8.0+cpu", cuda_version=None)
        if installed
        else FrameworkInfo(installed=False, error="No module named 'torch'")
    )
    return FakeTorch(DeviceCapability(available=False), framework)


def run(driver_query, torch_query) -> HealthReport:
    return run_health_checks(driver_query, torch_query, torch_query)


def finding(severity: Severity) -> Finding:
    return Finding("probe", "kind", severity, "message")


class TestAggregation:
    """Tests for the pure verdict functions."""

    @pytest.mark.parametrize("issues,verdict", [
        (0, Verdict.PASS),
        (1, Verdict.WARN),
        (2, Verdict.WARN),
        (3, Verdict.FAIL),
        (6, Verdict.FAIL),
    ])
    def test_verdict_thresholds(self, issues, verdict):
        """0 -> PASS, 1..2 -> WARN, 3+ -> FAIL."""
        assert verdict_for(issues) == verdict

    def test_exit_codes(self):
        """Warnings still let the pod start."""
        assert exit_code_for(Verdict.PASS) == 0
        assert exit_code_for(Verdict.WARN) == 0
        assert exit_code_for(Verdict.FAIL) == 1

    def test_only_issues_count(self):
        """OK and NOTICE findings never count."""
        findings = [
            finding(Severity.OK),
            finding(Severity.NOTICE),
            finding(Severity.ISSUE),
            finding(Severity.NOTICE),
            finding(Severity.ISSUE),
        ]
        assert count_issues(findings) == 2
        assert count_issues([]) == 0

    def test_count_is_monotonic(self):
        """Adding findings never lowers the count."""
        report = run(no_driver(), cpu_only(installed=False))
        counts = [count_issues(report.findings[:i]) for i in range(len(report.findings) + 1)]
        assert counts == sorted(counts)


class TestProbes:
    """Tests for individual probe outcomes."""

    def test_all_probes_always_run(self):
        """Six findings in fixed order even when everything fails."""
        report = run(no_driver(), cpu_only(installed=False))
        assert [f.probe for f in report.findings] == [
            PROBE_DRIVER,
            PROBE_ARCHITECTURE,
            PROBE_RUNTIME,
            PROBE_FRAMEWORK,
            PROBE_FUNCTIONAL,
            PROBE_COMPATIBILITY,
        ]

    def test_healthy_ada(self):
        """RTX 4090 on CUDA 12.8 passes."""
        torch = gpu(8, 9)
        report = run(driver("12.8"), torch)
        assert report.issue_count == 0
        assert report.verdict == Verdict.PASS
        assert report.architecture == "Ada"
        assert report.get_finding(PROBE_ARCHITECTURE).message == "GPU Architecture: sm_89 (Ada)"
        assert report.get_finding(PROBE_COMPATIBILITY).kind == "ada_ready"
        assert torch.allocations == 1

    def test_healthy_blackwell(self):
        """RTX 5090 with a CUDA 13 runtime and cu130 PyTorch is ready."""
        report = run(driver("13.0"), gpu(12, 0, framework_cuda="13.0"))
        assert report.verdict == Verdict.PASS
        assert report.get_finding(PROBE_RUNTIME).kind == "runtime_ok"
        assert report.get_finding(PROBE_FRAMEWORK).kind == "framework_native"
        assert report.get_finding(PROBE_COMPATIBILITY).kind == "blackwell_ready"

    def test_blackwell_old_runtime(self):
        """Blackwell on a CUDA 12 runtime is one issue."""
        report = run(driver("12.8"), gpu(12, 0))
        runtime = report.get_finding(PROBE_RUNTIME)
        assert runtime.kind == "runtime_mismatch"
        assert runtime.is_issue
        assert report.issue_count == 1
        assert report.verdict == Verdict.WARN

    def test_older_family_does_not_need_new_runtime(self):
        """Ampere on CUDA 12 has no runtime mismatch."""
        report = run(driver("12.2"), gpu(8, 6))
        assert report.get_finding(PROBE_RUNTIME).kind == "runtime_ok"
        assert report.architecture == "Ampere"

    def test_unknown_architecture(self):
        """Unlisted capabilities still count as a detected GPU."""
        report = run(driver("12.8"), gpu(6, 1))
        assert report.architecture == "Unknown"
        assert not report.get_finding(PROBE_ARCHITECTURE).is_issue

    def test_unknown_runtime_is_not_an_issue(self):
        """An unparseable CUDA version cannot be compared; no issue."""
        report = run(driver(None), gpu(12, 0))
        assert report.get_finding(PROBE_RUNTIME).severity == Severity.NOTICE

    @pytest.mark.parametrize("cuda,kind,severity", [
        ("13.0", "framework_native", Severity.OK),
        ("12.8", "framework_forward_compatible", Severity.NOTICE),
        ("11.8", "framework_too_old", Severity.ISSUE),
        (None, "framework_cpu_build", Severity.NOTICE),
    ])
    def test_framework_bands(self, cuda, kind, severity):
        """Only a too-old PyTorch CUDA build is an issue."""
        report = run(driver("13.0"), gpu(8, 9, framework_cuda=cuda))
        found = report.get_finding(PROBE_FRAMEWORK)
        assert found.kind == kind
        assert found.severity == severity

    def test_framework_missing(self):
        """PyTorch not importable is an issue."""
        report = run(driver(), cpu_only(installed=False))
        assert report.get_finding(PROBE_FRAMEWORK).kind == "framework_missing"

    def test_allocation_failure(self):
        """A visible GPU that cannot allocate is an issue."""
        torch = gpu(8, 9, allocation=AllocationResult(success=False, error="CUDA error: out of memory"))
        report = run(driver(), torch)
        functional = report.get_finding(PROBE_FUNCTIONAL)
        assert functional.kind == "allocation_failed"
        assert functional.is_issue
        assert "out of memory" in functional.message

    def test_allocation_skipped_without_gpu(self):
        """No allocation is attempted when no GPU is visible."""
        torch = cpu_only()
        report = run(driver(), torch)
        assert report.get_finding(PROBE_FUNCTIONAL).kind == "allocation_skipped"
        assert torch.allocations == 0

    def test_compatibility_never_adds_issues(self):
        """The synthesis finding is informational only."""
        for report in (
            run(driver("12.8"), gpu(12, 0, framework_cuda="11.8")),
            run(no_driver(), cpu_only()),
            run(driver("13.0"), gpu(12, 0, framework_cuda=None)),
        ):
            assert not report.get_finding(PROBE_COMPATIBILITY).is_issue


class TestScenarios:
    """End-to-end health scenarios."""

    def test_no_driver_tool(self):
        """nvidia-smi absent on a CPU-only host: 2 issues, WARN, exit 0."""
        report = run(no_driver(), cpu_only())
        assert report.get_finding(PROBE_DRIVER).kind == "driver_absent"
        assert report.get_finding(PROBE_ARCHITECTURE).kind == "architecture_undetected"
        assert report.issue_count == 2
        assert report.verdict == Verdict.WARN
        assert report.exit_code == 0

    def test_broken_environment_fails(self):
        """No driver, no GPU and no PyTorch: FAIL, exit 1."""
        report = run(no_driver(), cpu_only(installed=False))
        assert report.issue_count == 3
        assert report.verdict == Verdict.FAIL
        assert report.exit_code == 1

    def test_report_to_dict(self):
        """The JSON report lists every finding."""
        data = run(no_driver(), cpu_only()).to_dict()
        assert data["verdict"] == "warn"
        assert data["issues"] == 2
        assert len(data["findings"]) == 6


class TestProtocols:
    """Fakes satisfy the capability query protocols."""

    def test_fakes_match_protocols(self):
        assert isinstance(no_driver(), DriverQuery)
        assert isinstance(cpu_only(), RuntimeCapabilityQuery)
        assert isinstance(cpu_only(), FrameworkVersionQuery)


class TestHealthOutput:
    """Tests for the printed report."""

    def test_warn_output(self, ui):
        """WARN status names the issue count."""
        print_health_report(run(no_driver(), cpu_only()), ui)
        output = ui.console.file.getvalue()
        assert "GPU/CUDA Health Check" in output
        assert "[1] NVIDIA Driver & GPU Detection" in output
        assert "WARNINGS DETECTED (2)" in output

    def test_pass_output_includes_driver_dump(self, ui):
        """nvidia-smi output is echoed verbatim."""
        info = DriverInfo(available=True, cuda_version="12.8", output="| [GPU 0] RTX 4090 |")
        print_health_report(run_health_checks(FakeDriver(info), gpu(8, 9), gpu(8, 9)), ui)
        output = ui.console.file.getvalue()
        assert "| [GPU 0] RTX 4090 |" in output
        assert "ALL CHECKS PASSED" in output
